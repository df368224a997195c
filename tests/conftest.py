import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import bcrypt
import pytest

import auth
from auth import CredentialStore
from llm_wrapper import AdvisoryClient
from session_controller import SessionController
from storage import HealthRepository, KeyValueStore


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    real_gensalt = bcrypt.gensalt
    monkeypatch.setattr(auth.bcrypt, "gensalt", lambda *a, **k: real_gensalt(rounds=4))


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def fake_openai():
    """Stand-in for openai.OpenAI(); set `.chat.completions.create.return_value`."""
    fake = MagicMock()
    fake.reply = lambda payload: setattr(
        fake.chat.completions.create, "return_value",
        completion(payload if isinstance(payload, str) or payload is None else json.dumps(payload)),
    )
    return fake


@pytest.fixture
def advisory(fake_openai):
    return AdvisoryClient(api_key="test-key", model="test-model", client=fake_openai, temperature=0.3)


@pytest.fixture
def store():
    s = KeyValueStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def repository(store):
    return HealthRepository(store)


@pytest.fixture
def credentials(store, repository):
    return CredentialStore(store, repository)


@pytest.fixture
def controller(credentials, repository, advisory):
    return SessionController(credentials, repository, advisory)


@pytest.fixture
def diagnosis_payload():
    return {
        "possibleConditions": [
            {
                "name": "Tension headache",
                "likelihood": "High",
                "confidenceScore": 72,
                "description": "A common headache caused by muscle tightness and stress.",
                "commonSymptoms": ["Dull ache", "Pressure around the forehead"],
                "riskFactors": ["Stress", "Poor sleep"],
                "typicalTreatments": ["Rest", "Hydration"],
                "whenToSeek": "If the pain is sudden and severe.",
            },
            {
                "name": "Migraine",
                "likelihood": "Moderate",
                "confidenceScore": 40,
                "description": "A headache that often comes with light sensitivity.",
            },
        ],
        "urgencyLevel": "Low",
        "recommendedActions": ["Drink water", "Rest in a dark room"],
        "warningSignsToWatch": ["Stiff neck with fever"],
        "questionsForDoctor": ["Could this be related to my sleep?"],
        "disclaimer": "This is general information, not a diagnosis.",
    }


@pytest.fixture
def second_opinion_payload():
    return {
        "originalDiagnosis": "Acid reflux",
        "analysisConfidence": 65,
        "agreement": "Partially Agrees",
        "analysis": "The burning feeling fits reflux, but chest symptoms deserve a closer look.",
        "alternativeConsiderations": [
            {"name": "Gastritis", "reason": "Similar upper stomach pain",
             "differentiatingFactors": ["Pain not linked to lying down"]},
        ],
        "additionalTestsSuggested": ["H. pylori test"],
        "questionsToAsk": ["Should I try a longer course of treatment?"],
        "secondOpinionSummary": "The diagnosis is reasonable; ask about gastritis.",
        "disclaimer": "Talk to your doctor before changing treatment.",
    }
