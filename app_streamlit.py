import streamlit as st
import pandas as pd

from auth import CredentialStore
from config import Config, configure_logging
from llm_wrapper import AdvisoryClient
from pydantic_models import (
    BODY_LOCATIONS, DURATIONS, EXERCISE_LEVELS, GENDERS, MEDICAL_CONDITIONS, SEVERITIES,
    AnalysisKind,
)
from session_controller import SessionController, View
from storage import HealthRepository, KeyValueStore

VIEW_LABELS = {
    View.HOME: "🏠 Home",
    View.CONSULTATION: "🩺 Symptom Check",
    View.SECOND_OPINION: "🧠 Second Opinion",
    View.DIET_PLAN: "🥗 Diet Plan",
    View.DRUG_COMPARE: "💊 Drug Compare",
    View.PROFILE: "👤 Profile",
    View.HISTORY: "🕒 History",
}


@st.cache_resource
def _store():
    return KeyValueStore(Config.DB_PATH)


def get_controller() -> SessionController:
    if "controller" not in st.session_state:
        configure_logging()
        store = _store()
        repository = HealthRepository(store)
        controller = SessionController(CredentialStore(store, repository), repository, AdvisoryClient())
        controller.restore_session()
        st.session_state["controller"] = controller
    return st.session_state["controller"]


def split_lines(text: str):
    return [line.strip() for line in (text or "").splitlines() if line.strip()]


def run(ctrl: SessionController, kind: AnalysisKind, label: str):
    with st.spinner(label):
        ctrl.submit(kind)
    st.rerun()


# ----------------------------
# Sidebar: account + navigation
# ----------------------------
def sidebar(ctrl: SessionController):
    st.sidebar.header("Account")
    if ctrl.session:
        st.sidebar.success(f"Signed in as {ctrl.session.account.name}")
        if st.sidebar.button("Log out"):
            ctrl.logout()
            st.rerun()
    else:
        st.sidebar.caption("Guest mode: results are not saved.")
        mode = st.sidebar.radio("Sign in or register", ["Sign in", "Register"], horizontal=True)
        with st.sidebar.form("auth"):
            name = st.text_input("Name") if mode == "Register" else ""
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            if st.form_submit_button(mode):
                ok = (ctrl.register(email, password, name) if mode == "Register"
                      else ctrl.login(email, password))
                if ok:
                    st.rerun()

    views = list(VIEW_LABELS)
    choice = st.sidebar.radio("Go to", views, index=views.index(ctrl.view),
                              format_func=VIEW_LABELS.get)
    if choice is not ctrl.view:
        ctrl.navigate(choice)
        st.rerun()


# ----------------------------
# Views
# ----------------------------
def home_view(ctrl: SessionController):
    st.markdown("Describe how you feel, get a second opinion on a diagnosis, plan meals or "
                "compare medications. Every answer is general information to discuss with a doctor.")
    if not Config.OPENAI_API_KEY:
        st.warning("OPENAI_API_KEY is not set; analyses will fail until it is configured.")


def profile_form(ctrl: SessionController, key: str):
    p = ctrl.profile
    with st.form(f"profile-{key}"):
        c1, c2, c3, c4 = st.columns(4)
        age = c1.number_input("Age", min_value=1, max_value=120, value=p.age if p else 30)
        gender = c2.selectbox("Gender", GENDERS, index=GENDERS.index(p.gender) if p else len(GENDERS) - 1)
        weight = c3.number_input("Weight (kg)", min_value=1.0, value=float(p.weight) if p else 70.0)
        height = c4.number_input("Height (cm)", min_value=1.0, value=float(p.height) if p else 170.0)
        conditions = st.multiselect("Existing conditions", MEDICAL_CONDITIONS, default=p.conditions if p else [])
        medications = st.text_area("Medications (one per line)", "\n".join(p.medications) if p else "")
        allergies = st.text_area("Allergies (one per line)", "\n".join(p.allergies) if p else "")
        family = st.text_area("Family history (one per line)", "\n".join(p.family_history) if p else "")
        l1, l2, l3 = st.columns(3)
        smoking = l1.checkbox("Smoker", value=p.lifestyle.smoking if p else False)
        alcohol = l2.checkbox("Drinks alcohol", value=p.lifestyle.alcohol if p else False)
        exercise = l3.selectbox("Exercise", EXERCISE_LEVELS,
                                index=EXERCISE_LEVELS.index(p.lifestyle.exercise if p else "Light"))
        if st.form_submit_button("Save profile"):
            saved = ctrl.save_profile({
                "age": int(age), "gender": gender, "weight": weight, "height": height,
                "conditions": conditions, "medications": split_lines(medications),
                "allergies": split_lines(allergies), "family_history": split_lines(family),
                "lifestyle": {"smoking": smoking, "alcohol": alcohol, "exercise": exercise},
            })
            if saved:
                st.success("Profile saved ✅")


def symptom_editor(ctrl: SessionController):
    for s in list(ctrl.symptoms):
        with st.container(border=True):
            c1, c2, c3, c4, c5 = st.columns([3, 2, 2, 2, 1])
            name = c1.text_input("Symptom", s.name, key=f"name-{s.id}")
            severity = c2.selectbox("Severity", SEVERITIES, index=SEVERITIES.index(s.severity), key=f"sev-{s.id}")
            duration = c3.selectbox("Duration", DURATIONS, index=DURATIONS.index(s.duration), key=f"dur-{s.id}",
                                    format_func=lambda d: d or "Select duration")
            location = c4.selectbox("Location", BODY_LOCATIONS, index=BODY_LOCATIONS.index(s.location),
                                    key=f"loc-{s.id}", format_func=lambda l: l or "Select location")
            if c5.button("🗑️", key=f"del-{s.id}"):
                ctrl.remove_symptom(s.id)
                st.rerun()
            description = st.text_input("Details", s.description, key=f"desc-{s.id}")
            ctrl.update_symptom(s.id, name=name, severity=severity, duration=duration,
                                location=location, description=description)
    if st.button("➕ Add symptom"):
        ctrl.add_symptom()
        st.rerun()


def show_error(ctrl: SessionController):
    if ctrl.error:
        st.error(f"⚠️ {ctrl.error}")


def consultation_view(ctrl: SessionController):
    with st.expander("Health profile", expanded=ctrl.profile is None):
        profile_form(ctrl, "consultation")
    symptom_editor(ctrl)
    ctrl.notes = st.text_area("Additional notes", ctrl.notes)
    show_error(ctrl)
    if st.button("Analyze symptoms", disabled=not ctrl.can_submit(AnalysisKind.SYMPTOM_TRIAGE)):
        run(ctrl, AnalysisKind.SYMPTOM_TRIAGE, "Analyzing symptoms...")

    result = ctrl.result_for(AnalysisKind.SYMPTOM_TRIAGE)
    if result:
        st.subheader(f"🔎 Results — urgency: {result.urgency_level}")
        for cond in result.possible_conditions:
            st.markdown(f"**{cond.name}** ({cond.likelihood}, {cond.confidence_score:g}%)  \n{cond.description}")
            if cond.when_to_seek:
                st.caption(f"When to seek care: {cond.when_to_seek}")
        st.subheader("🩺 Recommended Next Steps")
        for step in result.recommended_actions:
            st.write("•", step)
        if result.warning_signs_to_watch:
            st.subheader("🚩 Warning signs")
            for sign in result.warning_signs_to_watch:
                st.write("•", sign)
        if result.questions_for_doctor:
            st.subheader("❓ Questions for your doctor")
            for q in result.questions_for_doctor:
                st.write("•", q)
        st.caption(result.disclaimer)


def second_opinion_view(ctrl: SessionController):
    form = ctrl.second_opinion_form
    diagnosis = st.text_input("Existing diagnosis", form.existing_diagnosis)
    diagnosed_by = st.text_input("Diagnosed by", form.diagnosed_by)
    treatment = st.text_area("Prescribed treatment", form.treatment_prescribed)
    concerns = st.text_area("Your concerns", form.patient_concerns)
    ctrl.second_opinion_form = form.model_copy(update={
        "existing_diagnosis": diagnosis, "diagnosed_by": diagnosed_by,
        "treatment_prescribed": treatment, "patient_concerns": concerns,
    })
    symptom_editor(ctrl)
    show_error(ctrl)
    if st.button("Get second opinion", disabled=not ctrl.can_submit(AnalysisKind.SECOND_OPINION)):
        run(ctrl, AnalysisKind.SECOND_OPINION, "Reviewing diagnosis...")

    result = ctrl.result_for(AnalysisKind.SECOND_OPINION)
    if result:
        st.subheader(f"{result.agreement} ({result.analysis_confidence:g}% confidence)")
        st.write(result.analysis)
        for alt in result.alternative_considerations:
            st.markdown(f"**{alt.name}** — {alt.reason}")
        if result.additional_tests_suggested:
            st.markdown("**Tests to ask about:** " + ", ".join(result.additional_tests_suggested))
        for q in result.questions_to_ask:
            st.write("•", q)
        if result.second_opinion_summary:
            st.info(result.second_opinion_summary)
        st.caption(result.disclaimer)


def diet_plan_view(ctrl: SessionController):
    if ctrl.profile is None:
        st.info("Please complete your health profile first.")
        profile_form(ctrl, "diet")
        return
    form = ctrl.diet_plan_form
    c1, c2, c3, c4 = st.columns(4)
    goal = c1.selectbox("Goal", ["lose", "gain", "maintain"], index=["lose", "gain", "maintain"].index(form.goal))
    target = c2.number_input("Target weight (kg)", min_value=1.0, value=float(form.target_weight))
    timeframe = c3.text_input("Timeframe", form.timeframe)
    meals = c4.number_input("Meals per day", min_value=1, max_value=6, value=form.meals_per_day)
    restrictions = st.text_area("Dietary restrictions (one per line)", "\n".join(form.dietary_restrictions))
    preferences = st.text_area("Food preferences (one per line)", "\n".join(form.food_preferences))
    ctrl.diet_plan_form = form.model_copy(update={
        "goal": goal, "target_weight": target, "timeframe": timeframe, "meals_per_day": int(meals),
        "dietary_restrictions": split_lines(restrictions), "food_preferences": split_lines(preferences),
    })
    show_error(ctrl)
    if st.button("Generate diet plan", disabled=not ctrl.can_submit(AnalysisKind.DIET_PLAN)):
        run(ctrl, AnalysisKind.DIET_PLAN, "Building your plan...")

    result = ctrl.result_for(AnalysisKind.DIET_PLAN)
    if result:
        m = result.macro_breakdown
        st.subheader(f"{result.daily_calorie_target:g} kcal/day — P {m.protein:g}g · C {m.carbs:g}g · F {m.fats:g}g")
        for day in result.weekly_plan:
            with st.expander(f"{day.day} ({day.total_calories:g} kcal)"):
                for meal in day.meals:
                    st.markdown(f"**{meal.time} — {meal.name}** ({meal.calories:g} kcal)  \n{meal.instructions}")
        if result.grocery_list:
            st.markdown("**Grocery list:** " + ", ".join(result.grocery_list))
        for w in result.warnings:
            st.warning(w)
        st.caption(result.disclaimer)


def drug_compare_view(ctrl: SessionController):
    form = ctrl.drug_form
    drug = st.text_input("Drug name", form.drug_name)
    meds = st.text_area("Current medications (one per line)", "\n".join(form.current_medications))
    conditions = st.text_area("Conditions (one per line)", "\n".join(form.conditions))
    allergies = st.text_area("Allergies (one per line)", "\n".join(form.allergies))
    ctrl.drug_form = form.model_copy(update={
        "drug_name": drug, "current_medications": split_lines(meds),
        "conditions": split_lines(conditions), "allergies": split_lines(allergies),
    })
    show_error(ctrl)
    if st.button("Compare", disabled=not ctrl.can_submit(AnalysisKind.DRUG_COMPARISON)):
        run(ctrl, AnalysisKind.DRUG_COMPARISON, "Looking up alternatives...")

    result = ctrl.result_for(AnalysisKind.DRUG_COMPARISON)
    if result:
        d = result.original_drug
        st.subheader(f"{d.name} ({d.generic_name}) — {d.drug_class}")
        st.dataframe(pd.DataFrame([a.to_json_dict() for a in result.safer_alternatives]))
        st.dataframe(pd.DataFrame([a.to_json_dict() for a in result.natural_alternatives]))
        for w in result.interaction_warnings:
            st.warning(w)
        st.caption(result.disclaimer)


def profile_view(ctrl: SessionController):
    profile_form(ctrl, "profile")
    show_error(ctrl)
    if ctrl.profile and st.button("Get wellness recommendations",
                                  disabled=not ctrl.can_submit(AnalysisKind.RECOMMENDATIONS)):
        run(ctrl, AnalysisKind.RECOMMENDATIONS, "Thinking about your routine...")
    result = ctrl.result_for(AnalysisKind.RECOMMENDATIONS)
    if result:
        for rec in result.recommendations:
            st.markdown(f"**[{rec.priority}] {rec.category}: {rec.title}**  \n{rec.description}")
            for item in rec.action_items:
                st.write("•", item)


def history_view(ctrl: SessionController):
    if ctrl.is_guest:
        st.info("Sign in to keep a consultation history.")
        return
    if not ctrl.consultations:
        st.info("No history yet.")
        return
    df = pd.DataFrame([{
        "id": c.id,
        "date": c.created_at.strftime("%Y-%m-%d %H:%M"),
        "symptoms": ", ".join(s.name for s in c.symptoms),
        "type": "Second opinion" if c.second_opinion else "Symptom check",
        "urgency": c.diagnosis.urgency_level if c.diagnosis else "",
    } for c in ctrl.consultations])
    st.dataframe(df.drop(columns=["id"]), hide_index=True)

    chosen = st.selectbox("Consultation", df["id"].tolist(),
                          format_func=lambda i: df.set_index("id").loc[i, "date"])
    c1, c2 = st.columns(2)
    if c1.button("Open"):
        ctrl.view_consultation(chosen)
        st.rerun()
    if c2.button("Delete"):
        ctrl.delete_consultation(chosen)
        st.rerun()


VIEWS = {
    View.HOME: home_view,
    View.CONSULTATION: consultation_view,
    View.SECOND_OPINION: second_opinion_view,
    View.DIET_PLAN: diet_plan_view,
    View.DRUG_COMPARE: drug_compare_view,
    View.PROFILE: profile_view,
    View.HISTORY: history_view,
}

st.set_page_config(page_title="AI Health Advisor", page_icon="🏥", layout="centered")
st.title("🏥 AI Health Advisor")
st.info("This tool provides general information only. It does not replace a doctor.")

controller = get_controller()
sidebar(controller)
VIEWS[controller.view](controller)
