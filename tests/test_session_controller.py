from unittest.mock import MagicMock

import pytest

from errors import AnalysisInProgress, ValidationError
from pydantic_models import AnalysisKind, DiagnosisResult, HealthProfile
from session_controller import View

TRIAGE = AnalysisKind.SYMPTOM_TRIAGE
SECOND = AnalysisKind.SECOND_OPINION


@pytest.fixture
def signed_in(controller):
    assert controller.register("grace@clinic.org", "secret123", "Grace")
    return controller


def test_starts_as_guest_on_home(controller):
    assert controller.view is View.HOME
    assert controller.is_guest
    assert controller.restore_session() is False


def test_guest_analysis_is_never_persisted(controller, repository, fake_openai, diagnosis_payload):
    repository.save_consultation = MagicMock()
    fake_openai.reply(diagnosis_payload)
    controller.navigate(View.CONSULTATION)
    controller.add_symptom("Headache", duration="1 day")

    result = controller.submit(TRIAGE)

    assert isinstance(result, DiagnosisResult)
    assert controller.result_for(TRIAGE) == result
    repository.save_consultation.assert_not_called()
    assert controller.consultations == []


def test_signed_in_analysis_is_saved(signed_in, repository, fake_openai, diagnosis_payload):
    signed_in.save_profile({"age": 44, "weight": 70, "height": 172, "conditions": ["Asthma"]})
    signed_in.navigate(View.CONSULTATION)
    symptom = signed_in.add_symptom("Headache", severity="Severe")
    fake_openai.reply(diagnosis_payload)

    result = signed_in.submit(TRIAGE)

    saved = repository.get_data(signed_in.session.account_id).consultations
    assert len(saved) == 1
    assert saved[0].diagnosis == result
    assert saved[0].second_opinion is None
    assert saved[0].symptoms == [symptom]
    assert saved[0].profile.conditions == ["Asthma"]
    assert signed_in.consultations == saved
    assert signed_in.busy is False


def test_second_opinion_saved_in_its_own_slot(signed_in, repository, fake_openai, second_opinion_payload):
    signed_in.navigate(View.SECOND_OPINION)
    signed_in.second_opinion_form = signed_in.second_opinion_form.model_copy(
        update={"existing_diagnosis": "Acid reflux"})
    fake_openai.reply(second_opinion_payload)

    assert signed_in.submit(SECOND) is not None
    record = repository.get_data(signed_in.session.account_id).consultations[0]
    assert record.second_opinion.original_diagnosis == "Acid reflux"
    assert record.diagnosis is None
    assert record.symptoms == []


def test_empty_symptom_list_rejected_before_any_call(controller, fake_openai):
    with pytest.raises(ValidationError):
        controller.start_analysis(TRIAGE)
    assert controller.submit(TRIAGE) is None
    assert controller.error == "Please add at least one symptom"
    assert controller.busy is False
    fake_openai.chat.completions.create.assert_not_called()
    assert not controller.can_submit(TRIAGE)


def test_empty_diagnosis_rejected_before_any_call(controller, fake_openai):
    controller.add_symptom("Heartburn")
    controller.second_opinion_form = controller.second_opinion_form.model_copy(
        update={"existing_diagnosis": "   "})
    with pytest.raises(ValidationError):
        controller.start_analysis(SECOND)
    assert controller.submit(SECOND) is None
    assert controller.error == "Please enter your existing diagnosis"
    fake_openai.chat.completions.create.assert_not_called()


def test_unnamed_symptom_blocks_submission(controller):
    controller.add_symptom("Fever")
    controller.add_symptom("")
    assert not controller.can_submit(TRIAGE)
    with pytest.raises(ValidationError):
        controller.start_analysis(TRIAGE)


def test_diet_plan_needs_a_profile(controller):
    with pytest.raises(ValidationError):
        controller.start_analysis(AnalysisKind.DIET_PLAN)
    controller.save_profile(HealthProfile(age=30))
    assert controller.can_submit(AnalysisKind.DIET_PLAN)


def test_start_sets_busy_and_clears_stale_state(controller, fake_openai, diagnosis_payload):
    controller.add_symptom("Cough")
    fake_openai.reply(diagnosis_payload)
    controller.submit(TRIAGE)
    controller.error = "old banner"

    pending = controller.start_analysis(TRIAGE)
    assert controller.busy
    assert controller.error is None
    assert controller.result_for(TRIAGE) is None
    with pytest.raises(AnalysisInProgress):
        controller.start_analysis(TRIAGE)
    assert not controller.can_submit(TRIAGE)
    assert controller.complete_analysis(pending, DiagnosisResult.model_validate(diagnosis_payload))
    assert not controller.busy


def test_superseded_result_is_discarded(signed_in, repository, diagnosis_payload):
    signed_in.navigate(View.CONSULTATION)
    signed_in.add_symptom("Dizziness")
    pending = signed_in.start_analysis(TRIAGE)

    signed_in.navigate(View.HISTORY)
    assert signed_in.busy is False

    applied = signed_in.complete_analysis(pending, DiagnosisResult.model_validate(diagnosis_payload))
    assert applied is False
    assert signed_in.result_for(TRIAGE) is None
    assert repository.get_data(signed_in.session.account_id).consultations == []


def test_superseded_failure_is_discarded(controller):
    controller.add_symptom("Dizziness")
    pending = controller.start_analysis(TRIAGE)
    controller.navigate(View.PROFILE)
    assert controller.fail_analysis(pending, RuntimeError("late")) is False
    assert controller.error is None


def test_provider_failure_surfaces_message_and_keeps_inputs(controller, fake_openai):
    controller.add_symptom("Rash", location="Arms")
    controller.notes = "after hiking"
    fake_openai.reply("")

    assert controller.submit(TRIAGE) is None
    assert controller.error == "No response from the advisory service. Please try again."
    assert controller.busy is False
    assert [s.name for s in controller.symptoms] == ["Rash"]
    assert controller.notes == "after hiking"
    assert controller.can_submit(TRIAGE)


def test_missing_provider_key_is_reported(controller, fake_openai):
    controller.client.api_key = ""
    controller.add_symptom("Fever")
    assert controller.submit(TRIAGE) is None
    assert "OPENAI_API_KEY" in controller.error
    fake_openai.chat.completions.create.assert_not_called()


def test_view_consultation_rehydrates_without_calling_client(signed_in, fake_openai, diagnosis_payload):
    signed_in.add_symptom("Headache")
    fake_openai.reply(diagnosis_payload)
    result = signed_in.submit(TRIAGE)
    record_id = signed_in.consultations[0].id
    signed_in.clear_symptoms()
    signed_in.navigate(View.HISTORY)
    calls = fake_openai.chat.completions.create.call_count

    assert signed_in.view_consultation(record_id)
    assert signed_in.view is View.CONSULTATION
    assert [s.name for s in signed_in.symptoms] == ["Headache"]
    assert signed_in.result_for(TRIAGE) == result
    assert fake_openai.chat.completions.create.call_count == calls


def test_delete_consultation(signed_in, repository, fake_openai, diagnosis_payload):
    signed_in.add_symptom("Headache")
    fake_openai.reply(diagnosis_payload)
    signed_in.submit(TRIAGE)
    record_id = signed_in.consultations[0].id

    signed_in.delete_consultation(record_id)
    assert signed_in.consultations == []
    assert repository.get_data(signed_in.session.account_id).consultations == []


def test_symptom_editing(controller):
    s = controller.add_symptom("Back Pain")
    updated = controller.update_symptom(s.id, severity="Mild", location="Back")
    assert updated.id == s.id and updated.severity == "Mild"
    assert controller.update_symptom(s.id, severity="Unbearable") is None
    assert controller.error.startswith("Invalid symptom")
    controller.remove_symptom(s.id)
    assert controller.symptoms == []


def test_guest_profile_is_kept_in_memory_only(controller, repository):
    repository.save_profile = MagicMock()
    saved = controller.save_profile({"age": 25, "weight": 60, "height": 160})
    assert saved.last_updated is not None
    assert controller.profile == saved
    repository.save_profile.assert_not_called()


def test_invalid_profile_sets_error(controller):
    assert controller.save_profile({"age": -1}) is None
    assert controller.error.startswith("Invalid profile")
    assert controller.profile is None


def test_profile_save_keeps_identity(signed_in):
    first = signed_in.save_profile({"age": 30})
    second = signed_in.save_profile({"age": 31})
    assert first.id == second.id
    assert second.last_updated >= first.last_updated
    third = signed_in.save_profile(HealthProfile(age=32))
    assert third.id == first.id
    assert third.age == 32


def test_login_error_message_and_logout(controller, credentials):
    credentials.register("henry@clinic.org", "secret123", "Henry")
    credentials.logout()

    assert controller.login("henry@clinic.org", "nope-nope") is False
    assert controller.error == "Incorrect password. Please try again."
    assert controller.is_guest

    assert controller.login("HENRY@clinic.org", "secret123")
    assert controller.error is None
    assert controller.session.account.name == "Henry"

    controller.navigate(View.PROFILE)
    controller.logout()
    assert controller.is_guest
    assert controller.view is View.HOME
    assert credentials.current_account() is None


def test_register_error_message(controller):
    assert controller.register("bad-email", "secret123", "Ivy") is False
    assert controller.error == "Please enter a valid email address."


def test_restore_session_loads_account_data(signed_in, credentials, repository, advisory):
    from session_controller import SessionController

    signed_in.save_profile({"age": 50})
    fresh = SessionController(credentials, repository, advisory)
    assert fresh.restore_session()
    assert fresh.session.account.email == "grace@clinic.org"
    assert fresh.profile.age == 50


def test_guest_profile_model_keeps_identity(controller):
    first = controller.save_profile(HealthProfile(age=40))
    second = controller.save_profile(HealthProfile(age=41, weight=80))
    assert second.id == first.id
    assert second.weight == 80
