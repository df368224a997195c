import uuid
from enum import Enum
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PositiveFloat, PositiveInt, field_validator
from pydantic.alias_generators import to_camel


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """snake_case in Python, camelCase on the wire and in stored JSON."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ResultModel(CamelModel):
    # results are never edited after they arrive
    model_config = ConfigDict(frozen=True)


class AnalysisKind(str, Enum):
    SYMPTOM_TRIAGE = "symptom-triage"
    SECOND_OPINION = "second-opinion"
    DIET_PLAN = "diet-plan"
    DRUG_COMPARISON = "drug-comparison"
    RECOMMENDATIONS = "recommendations"


# ----------------------------
# Patient input
# ----------------------------
Gender = Literal["Male", "Female", "Other", "Prefer not to say"]
Severity = Literal["Mild", "Moderate", "Severe", "Critical"]
ExerciseLevel = Literal["Sedentary", "Light", "Moderate", "Active"]
MedicalCondition = Literal[
    "Diabetes", "Hypertension", "Heart Disease", "Asthma", "COPD",
    "Kidney Disease", "Liver Disease", "Thyroid Disorder", "Arthritis",
    "Depression", "Anxiety", "Migraine", "Epilepsy", "Cancer", "None",
]
Duration = Literal[
    "", "Few hours", "1 day", "2-3 days", "About a week",
    "1-2 weeks", "More than 2 weeks", "More than a month",
]
BodyLocation = Literal[
    "", "Head", "Neck", "Chest", "Stomach", "Back", "Arms", "Legs",
    "Joints", "Throat", "Eyes", "Ears", "Whole Body",
]

MEDICAL_CONDITIONS = list(MedicalCondition.__args__)
GENDERS = list(Gender.__args__)
SEVERITIES = list(Severity.__args__)
EXERCISE_LEVELS = list(ExerciseLevel.__args__)
DURATIONS = list(Duration.__args__)
BODY_LOCATIONS = list(BodyLocation.__args__)


class Lifestyle(CamelModel):
    smoking: bool = False
    alcohol: bool = False
    exercise: ExerciseLevel = "Light"


class HealthProfile(CamelModel):
    id: str = Field(default_factory=new_id)
    age: PositiveInt = 30
    gender: Gender = "Prefer not to say"
    weight: PositiveFloat = 70
    height: PositiveFloat = 170
    conditions: List[MedicalCondition] = Field(default_factory=list)
    medications: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    family_history: List[str] = Field(default_factory=list)
    lifestyle: Lifestyle = Field(default_factory=Lifestyle)
    last_updated: Optional[datetime] = None

    @field_validator("conditions")
    @classmethod
    def _conditions_are_a_set(cls, value):
        seen = list(dict.fromkeys(value))
        if "None" in seen and len(seen) > 1:
            raise ValueError("'None' cannot be combined with other conditions")
        return seen


class Symptom(CamelModel):
    id: str = Field(default_factory=new_id)
    name: str = ""
    duration: Duration = ""
    severity: Severity = "Moderate"
    location: BodyLocation = ""
    description: str = ""
    triggers: List[str] = Field(default_factory=list)
    relieved_by: List[str] = Field(default_factory=list)


class SecondOpinionRequest(CamelModel):
    existing_diagnosis: str = ""
    diagnosed_by: str = ""
    diagnosis_date: Optional[str] = None
    current_symptoms: List[Symptom] = Field(default_factory=list)
    treatment_prescribed: str = ""
    patient_concerns: str = ""


WeightGoal = Literal["lose", "gain", "maintain"]


class DietPlanRequest(CamelModel):
    goal: WeightGoal = "lose"
    target_weight: PositiveFloat = 70
    timeframe: str = "3 months"
    dietary_restrictions: List[str] = Field(default_factory=list)
    food_preferences: List[str] = Field(default_factory=list)
    meals_per_day: int = Field(3, ge=1, le=6)


class DrugComparisonRequest(CamelModel):
    drug_name: str = ""
    current_medications: List[str] = Field(default_factory=list)
    conditions: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)


# ----------------------------
# Symptom triage
# ----------------------------
class PossibleCondition(ResultModel):
    name: str
    likelihood: Literal["Low", "Moderate", "High"]
    confidence_score: float = Field(..., description="0-100 confidence percentage")
    description: str = Field(..., description="Simple explanation of what this condition is")
    common_symptoms: List[str] = Field(default_factory=list)
    risk_factors: List[str] = Field(default_factory=list)
    typical_treatments: List[str] = Field(default_factory=list)
    when_to_seek: Optional[str] = Field(None, description="When to seek immediate care")


class DiagnosisResult(ResultModel):
    possible_conditions: List[PossibleCondition]
    urgency_level: Literal["Low", "Medium", "High", "Emergency"]
    recommended_actions: List[str]
    warning_signs_to_watch: List[str] = Field(default_factory=list)
    questions_for_doctor: List[str] = Field(default_factory=list)
    disclaimer: str


# ----------------------------
# Second opinion
# ----------------------------
class AlternativeCondition(ResultModel):
    name: str
    reason: str
    differentiating_factors: List[str] = Field(default_factory=list)


class SecondOpinionResult(ResultModel):
    original_diagnosis: str
    analysis_confidence: float = Field(..., description="0-100 confidence in analysis")
    agreement: Literal["Fully Agrees", "Partially Agrees", "Suggests Review"]
    analysis: str = Field(..., description="Detailed but simple analysis of the diagnosis")
    alternative_considerations: List[AlternativeCondition] = Field(default_factory=list)
    additional_tests_suggested: List[str] = Field(default_factory=list)
    questions_to_ask: List[str] = Field(default_factory=list)
    second_opinion_summary: Optional[str] = None
    disclaimer: str


# ----------------------------
# Diet plan
# ----------------------------
class MacroBreakdown(ResultModel):
    protein: float
    carbs: float
    fats: float


class Meal(ResultModel):
    name: str
    time: str
    calories: float
    protein: float
    carbs: float
    fats: float
    ingredients: List[str]
    instructions: str
    alternatives: List[str] = Field(default_factory=list)


class DailyMealPlan(ResultModel):
    day: str
    total_calories: float
    meals: List[Meal]
    snacks: List[str] = Field(default_factory=list)
    water_intake: Optional[str] = None


class ProgressMilestone(ResultModel):
    week: int
    expected_weight: float


class DietPlanResult(ResultModel):
    goal: WeightGoal
    current_weight: Optional[float] = None
    target_weight: Optional[float] = None
    daily_calorie_target: float
    macro_breakdown: MacroBreakdown
    weekly_plan: List[DailyMealPlan]
    grocery_list: List[str] = Field(default_factory=list)
    tips: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    progress_milestones: List[ProgressMilestone] = Field(default_factory=list)
    disclaimer: str


# ----------------------------
# Drug comparison
# ----------------------------
class DrugInfo(ResultModel):
    name: str
    generic_name: str
    drug_class: str
    common_uses: List[str] = Field(default_factory=list)
    side_effects: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    average_cost: Optional[str] = None
    prescription: Optional[bool] = None


class DrugAlternative(ResultModel):
    name: str
    generic_name: str
    safety_rating: Literal["Safer", "Similar", "Use Caution"]
    reason: str
    cost_comparison: Literal["Cheaper", "Similar", "More Expensive"]
    side_effect_comparison: Optional[str] = None
    effectiveness: Optional[str] = None


class NaturalAlternative(ResultModel):
    name: str
    type: Literal["Food", "Herb", "Supplement", "Lifestyle"]
    benefits: List[str]
    how_to_use: str
    evidence_level: Literal["Strong", "Moderate", "Limited"]
    warnings: List[str] = Field(default_factory=list)
    food_sources: List[str] = Field(default_factory=list)


class DrugComparisonResult(ResultModel):
    original_drug: DrugInfo
    safer_alternatives: List[DrugAlternative]
    natural_alternatives: List[NaturalAlternative]
    interaction_warnings: List[str] = Field(default_factory=list)
    general_advice: List[str] = Field(default_factory=list)
    disclaimer: str


# ----------------------------
# Wellness recommendations
# ----------------------------
class HealthRecommendation(ResultModel):
    category: Literal["Lifestyle", "Diet", "Exercise", "Mental Health", "Preventive Care"]
    title: str
    description: str
    priority: Literal["High", "Medium", "Low"]
    action_items: List[str]


class HealthRecommendationsResult(ResultModel):
    recommendations: List[HealthRecommendation]


RESULT_MODELS = {
    AnalysisKind.SYMPTOM_TRIAGE: DiagnosisResult,
    AnalysisKind.SECOND_OPINION: SecondOpinionResult,
    AnalysisKind.DIET_PLAN: DietPlanResult,
    AnalysisKind.DRUG_COMPARISON: DrugComparisonResult,
    AnalysisKind.RECOMMENDATIONS: HealthRecommendationsResult,
}


# ----------------------------
# Accounts & history
# ----------------------------
class Account(CamelModel):
    id: str = Field(default_factory=new_id)
    email: str
    name: str
    password_hash: str
    created_at: datetime = Field(default_factory=utcnow)


class ConsultationRecord(CamelModel):
    id: str = Field(default_factory=new_id)
    created_at: datetime = Field(default_factory=utcnow)
    symptoms: List[Symptom] = Field(default_factory=list)
    diagnosis: Optional[DiagnosisResult] = None
    second_opinion: Optional[SecondOpinionResult] = None
    profile: Optional[HealthProfile] = None


class AccountData(CamelModel):
    profile: Optional[HealthProfile] = None
    consultations: List[ConsultationRecord] = Field(default_factory=list)
