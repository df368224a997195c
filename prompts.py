"""
Prompt and output-schema builders, one per analysis kind.

Every builder is pure: the same inputs give the same AdvisoryRequest. The
schema is the JSON schema of the result model the client will validate
against, so required fields and enumerations are defined in one place.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from pydantic_models import (
    RESULT_MODELS, AnalysisKind, DietPlanRequest, DrugComparisonRequest,
    HealthProfile, SecondOpinionRequest, Symptom,
)

NONE_REPORTED = "None reported"


@dataclass(frozen=True)
class AdvisoryRequest:
    kind: AnalysisKind
    instruction: str
    schema: dict = field(repr=False)


def output_schema(kind: AnalysisKind) -> dict:
    return RESULT_MODELS[kind].model_json_schema(by_alias=True)


def join_or_none(items: Optional[Iterable[str]], fallback: str = NONE_REPORTED) -> str:
    cleaned = [str(i).strip() for i in (items or []) if str(i).strip()]
    return ", ".join(cleaned) if cleaned else fallback


def _sections(*parts: str) -> str:
    # blank/absent sections are dropped instead of leaving empty headers
    return "\n\n".join(p.strip() for p in parts if p and p.strip()) + "\n"


def format_symptom(s: Symptom) -> str:
    line = f"- {s.name.strip()} ({s.severity} severity"
    if s.duration:
        line += f", duration: {s.duration}"
    line += ")"
    if s.location:
        line += f" at {s.location}"
    if s.description and s.description.strip():
        line += f": {s.description.strip()}"
    if s.triggers:
        line += f"; triggered by {join_or_none(s.triggers)}"
    if s.relieved_by:
        line += f"; relieved by {join_or_none(s.relieved_by)}"
    return line


def format_symptoms(symptoms: List[Symptom]) -> str:
    if not symptoms:
        return "No current symptoms reported."
    return "\n".join(format_symptom(s) for s in symptoms)


def format_profile(profile: Optional[HealthProfile]) -> str:
    if profile is None:
        return "No patient profile provided."
    life = profile.lifestyle
    conditions = [c for c in profile.conditions if c != "None"]
    return "\n".join([
        "PATIENT PROFILE:",
        f"- Age: {profile.age} years old",
        f"- Gender: {profile.gender}",
        f"- Weight: {profile.weight:g} kg, Height: {profile.height:g} cm",
        f"- Existing Conditions: {join_or_none(conditions)}",
        f"- Current Medications: {join_or_none(profile.medications)}",
        f"- Known Allergies: {join_or_none(profile.allergies)}",
        f"- Family History: {join_or_none(profile.family_history)}",
        "- Lifestyle: {}, {}, {} activity level".format(
            "Smoker" if life.smoking else "Non-smoker",
            "Drinks alcohol" if life.alcohol else "No alcohol",
            life.exercise,
        ),
    ])


def format_symptom_triage(symptoms: List[Symptom], profile: Optional[HealthProfile] = None,
                          notes: str = "") -> AdvisoryRequest:
    notes = (notes or "").strip()
    instruction = _sections(
        "You are a helpful AI medical assistant. A patient is describing their symptoms and needs guidance.",
        format_profile(profile),
        "REPORTED SYMPTOMS:\n" + format_symptoms(symptoms),
        f"ADDITIONAL NOTES: {notes}" if notes else "",
        """IMPORTANT GUIDELINES:
1. Use simple, everyday language that anyone can understand
2. Be helpful but always recommend consulting a real doctor
3. Consider the patient's profile when assessing risk factors
4. Provide practical, actionable recommendations
5. Be caring and reassuring while being honest about potential concerns""",
        """Analyze these symptoms and provide:
1. Possible conditions that could explain these symptoms (ranked by likelihood)
2. The overall urgency level (Low/Medium/High/Emergency)
3. Recommended actions the patient should take
4. Warning signs to watch for
5. Questions they should ask their doctor""",
        "Remember: You are providing information to help someone prepare for a doctor visit, "
        "NOT replacing medical diagnosis.",
    )
    kind = AnalysisKind.SYMPTOM_TRIAGE
    return AdvisoryRequest(kind, instruction, output_schema(kind))


def format_second_opinion(request: SecondOpinionRequest,
                          profile: Optional[HealthProfile] = None) -> AdvisoryRequest:
    diagnosis = f"EXISTING DIAGNOSIS: {request.existing_diagnosis.strip()}"
    if request.diagnosed_by.strip():
        diagnosis += f"\nDIAGNOSED BY: {request.diagnosed_by.strip()}"
    if request.diagnosis_date:
        diagnosis += f"\nDIAGNOSIS DATE: {request.diagnosis_date}"
    if request.treatment_prescribed.strip():
        diagnosis += f"\nPRESCRIBED TREATMENT: {request.treatment_prescribed.strip()}"
    concerns = request.patient_concerns.strip()

    instruction = _sections(
        "You are a thoughtful AI medical assistant helping a patient understand their diagnosis better.",
        format_profile(profile),
        diagnosis,
        "CURRENT SYMPTOMS:\n" + format_symptoms(request.current_symptoms),
        f"PATIENT'S CONCERNS: {concerns}" if concerns else "",
        "TASK: Provide a thoughtful second opinion analysis.",
        """GUIDELINES:
1. Be respectful of the original diagnosis - doctors have examined the patient
2. Explain whether the diagnosis aligns with the reported symptoms
3. Mention if there are other conditions worth considering
4. Suggest questions the patient can ask for clarity
5. Recommend additional tests that might be helpful
6. Use simple, clear language""",
        "This is meant to help the patient have a more informed conversation with their "
        "healthcare provider, not to undermine their doctor.",
    )
    kind = AnalysisKind.SECOND_OPINION
    return AdvisoryRequest(kind, instruction, output_schema(kind))


GOAL_TEXT = {"lose": "lose weight", "gain": "gain weight", "maintain": "maintain their current weight"}


def format_diet_plan(profile: HealthProfile, request: DietPlanRequest) -> AdvisoryRequest:
    plan = "\n".join([
        "DIET PLAN REQUEST:",
        f"- Goal: {GOAL_TEXT[request.goal]}",
        f"- Current Weight: {profile.weight:g} kg",
        f"- Target Weight: {request.target_weight:g} kg",
        f"- Timeframe: {request.timeframe}",
        f"- Meals Per Day: {request.meals_per_day}",
        f"- Dietary Restrictions: {join_or_none(request.dietary_restrictions)}",
        f"- Food Preferences: {join_or_none(request.food_preferences)}",
    ])
    instruction = _sections(
        "You are a supportive AI nutrition assistant creating a practical meal plan for a patient.",
        format_profile(profile),
        plan,
        """Create a 7-day meal plan that:
1. Sets a safe daily calorie target for the goal and timeframe
2. Gives a macro breakdown (protein, carbs, fats in grams)
3. Respects every dietary restriction and existing condition
4. Uses affordable, easy-to-find ingredients with simple instructions
5. Includes a weekly grocery list, practical tips and progress milestones""",
        "Flag any goal that looks unsafe for this patient and always recommend checking the plan "
        "with a doctor or registered dietitian, especially with existing conditions or medications.",
    )
    kind = AnalysisKind.DIET_PLAN
    return AdvisoryRequest(kind, instruction, output_schema(kind))


def format_drug_comparison(request: DrugComparisonRequest) -> AdvisoryRequest:
    context = "\n".join([
        f"DRUG TO REVIEW: {request.drug_name.strip()}",
        f"- Current Medications: {join_or_none(request.current_medications)}",
        f"- Existing Conditions: {join_or_none(request.conditions)}",
        f"- Known Allergies: {join_or_none(request.allergies)}",
    ])
    instruction = _sections(
        "You are a careful AI pharmacy assistant helping a patient understand a medication and its options.",
        context,
        """Provide:
1. Key information about the drug: generic name, drug class, common uses, side effects, warnings, typical cost
2. Alternatives that may be safer for this patient, with how they compare on safety, cost and side effects
3. Natural alternatives (foods, herbs, supplements, lifestyle) with the strength of evidence behind them
4. Interaction warnings with the patient's current medications, conditions and allergies
5. General advice in simple, everyday language""",
        "Never advise stopping or switching a medication without a doctor or pharmacist; "
        "present alternatives only as topics to discuss with them.",
    )
    kind = AnalysisKind.DRUG_COMPARISON
    return AdvisoryRequest(kind, instruction, output_schema(kind))


def format_health_recommendations(profile: HealthProfile) -> AdvisoryRequest:
    instruction = _sections(
        "Based on this patient's health profile, provide personalized wellness recommendations.",
        format_profile(profile),
        """Generate practical, actionable health recommendations across these categories:
- Lifestyle improvements
- Diet suggestions
- Exercise recommendations
- Mental health tips
- Preventive care reminders""",
        "Focus on simple changes that can make a real difference. Prioritize based on their "
        "conditions and risk factors, and recommend regular check-ups with their doctor.",
    )
    kind = AnalysisKind.RECOMMENDATIONS
    return AdvisoryRequest(kind, instruction, output_schema(kind))


def build_request(kind: AnalysisKind, profile: Optional[HealthProfile] = None,
                  symptoms: Optional[List[Symptom]] = None, notes: str = "",
                  second_opinion: Optional[SecondOpinionRequest] = None,
                  diet_plan: Optional[DietPlanRequest] = None,
                  drug_comparison: Optional[DrugComparisonRequest] = None) -> AdvisoryRequest:
    kind = AnalysisKind(kind)
    if kind is AnalysisKind.SYMPTOM_TRIAGE:
        return format_symptom_triage(symptoms or [], profile, notes)
    if kind is AnalysisKind.SECOND_OPINION:
        return format_second_opinion(second_opinion or SecondOpinionRequest(), profile)
    if kind is AnalysisKind.DIET_PLAN:
        return format_diet_plan(profile, diet_plan or DietPlanRequest())
    if kind is AnalysisKind.DRUG_COMPARISON:
        return format_drug_comparison(drug_comparison or DrugComparisonRequest())
    return format_health_recommendations(profile)
