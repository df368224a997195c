import pytest

from app import create_app
from llm_wrapper import AdvisoryClient


@pytest.fixture
def client(advisory):
    app = create_app(client=advisory)
    app.config["TESTING"] = True
    return app.test_client()


def test_index_and_health(client):
    assert b"/api/analyze/<kind>" in client.get("/").data
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok", "providerConfigured": True}


def test_symptom_triage(client, fake_openai, diagnosis_payload):
    fake_openai.reply(diagnosis_payload)
    resp = client.post("/api/analyze/symptom-triage", json={
        "symptoms": [{"name": "Headache", "severity": "Moderate", "duration": "1 day"}],
        "profile": {"age": 33, "gender": "Female", "weight": 60, "height": 165},
    })
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["kind"] == "symptom-triage"
    assert body["result"]["urgencyLevel"] == "Low"
    prompt = fake_openai.chat.completions.create.call_args.kwargs["messages"][1]["content"]
    assert "- Headache (Moderate severity, duration: 1 day)" in prompt
    assert "- Age: 33 years old" in prompt


def test_empty_symptoms_rejected(client, fake_openai):
    resp = client.post("/api/analyze/symptom-triage", json={"symptoms": []})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Please add at least one symptom"
    fake_openai.chat.completions.create.assert_not_called()


def test_invalid_input_rejected(client):
    resp = client.post("/api/analyze/symptom-triage", json={
        "symptoms": [{"name": "Cough", "severity": "Extreme"}],
    })
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Invalid input."


def test_non_object_body_rejected(client):
    resp = client.post("/api/analyze/symptom-triage", data="not json", content_type="text/plain")
    assert resp.status_code == 400


def test_unknown_kind(client):
    assert client.post("/api/analyze/horoscope", json={}).status_code == 404


def test_schema_violation_is_bad_gateway(client, fake_openai):
    fake_openai.reply({"possibleConditions": []})
    resp = client.post("/api/analyze/second-opinion", json={"secondOpinion": {"existingDiagnosis": "Flu"}})
    assert resp.status_code == 502


def test_unconfigured_provider(fake_openai):
    app = create_app(client=AdvisoryClient(api_key="", client=fake_openai))
    resp = app.test_client().post("/api/analyze/drug-comparison", json={"drugComparison": {"drugName": "Ibuprofen"}})
    assert resp.status_code == 503
    assert "OPENAI_API_KEY" in resp.get_json()["error"]
    fake_openai.chat.completions.create.assert_not_called()


def test_second_opinion_symptoms_reach_prompt(client, fake_openai, second_opinion_payload):
    fake_openai.reply(second_opinion_payload)
    resp = client.post("/api/analyze/second-opinion", json={"secondOpinion": {
        "existingDiagnosis": "Acid reflux",
        "currentSymptoms": [{"name": "Heartburn", "severity": "Mild"}],
    }})
    assert resp.status_code == 200
    prompt = fake_openai.chat.completions.create.call_args.kwargs["messages"][1]["content"]
    assert "Heartburn" in prompt


def test_api_is_stateless(advisory):
    app = create_app(client=advisory)
    assert app.secret_key is None
    resp = app.test_client().get("/health")
    assert "Set-Cookie" not in resp.headers
