"""
Advisory client: the only module that talks to the generative model.

Provides:
- AdvisoryClient.invoke: sends a formatted request, returns the validated result model
- parse_and_validate_json: raw model text -> result model, or SchemaViolation
- log_raw: appends raw provider output to LLM_RAW_LOG for debugging

One attempt per call; failures are classified, never retried here.
"""

import os
import json
import hashlib
import logging

import openai
from openai import OpenAI
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from config import Config, log_event
from errors import EmptyResponse, ProviderError, ProviderUnavailable, SchemaViolation
from prompts import AdvisoryRequest
from pydantic_models import RESULT_MODELS, AnalysisKind

logger = logging.getLogger(__name__)

BASE_PERSONA = (
    "You are AIDoctor Pro, a compassionate AI health assistant. Explain medical concepts in "
    "everyday language as if talking to a concerned family member. Always emphasize the importance "
    "of professional medical care while providing helpful, accurate information."
)

PERSONAS = {
    AnalysisKind.SYMPTOM_TRIAGE: BASE_PERSONA,
    AnalysisKind.SECOND_OPINION: (
        "You are AIDoctor Pro, providing thoughtful second opinion analysis. Be balanced - "
        "acknowledge the original diagnosis while offering additional perspectives. Never tell a "
        "patient their doctor is wrong, instead empower them with questions and considerations."
    ),
    AnalysisKind.DIET_PLAN: (
        "You are AIDoctor Pro, a friendly nutrition guide. Build realistic, safe meal plans in plain "
        "language and always recommend reviewing them with a doctor or registered dietitian."
    ),
    AnalysisKind.DRUG_COMPARISON: (
        "You are AIDoctor Pro, a careful medication guide. Explain drugs and alternatives in plain "
        "language and always defer medication changes to a doctor or pharmacist."
    ),
    AnalysisKind.RECOMMENDATIONS: (
        "Provide friendly, encouraging health recommendations. Focus on achievable goals and "
        "positive changes, and recommend regular care from a healthcare professional."
    ),
}

# wellness tips are allowed a little more variety than clinical answers
TEMPERATURE_OVERRIDES = {AnalysisKind.RECOMMENDATIONS: 0.5}


def log_raw(tag: str, text: str, path: str = None):
    path = path or Config.LLM_RAW_LOG
    if not path:
        return
    d = os.path.dirname(path)
    try:
        if d and not os.path.exists(d):
            os.makedirs(d, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(f"----{tag}----\n")
            f.write((text or "") + "\n")
    except OSError as e:
        logger.warning("raw log write failed: %s", e)


def _strip_fences(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("```") and raw.endswith("```"):
        raw = "\n".join(l for l in raw.splitlines() if not l.strip().startswith("```")).strip()
    return raw


def parse_and_validate_json(raw_text: str, model: type) -> BaseModel:
    """
    Parse the provider's text as the declared structure.

    The parsed values are returned unchanged: no clamping, re-ranking or
    filling-in of missing fields. Anything that is not exactly a JSON object
    satisfying `model` is a SchemaViolation.
    """
    try:
        parsed = json.loads(_strip_fences(raw_text))
    except json.JSONDecodeError as e:
        raise SchemaViolation() from e
    if not isinstance(parsed, dict):
        raise SchemaViolation()
    try:
        return model.model_validate(parsed)
    except PydanticValidationError as e:
        logger.info("schema violation: %s", e.errors(include_url=False, include_input=False))
        raise SchemaViolation() from e


class AdvisoryClient:
    def __init__(self, api_key: str = None, model: str = None, base_url: str = None,
                 temperature: float = None, timeout: float = None, client=None,
                 raw_log_path: str = None):
        self.api_key = Config.OPENAI_API_KEY if api_key is None else api_key
        self.model = model or Config.OPENAI_MODEL
        self.base_url = base_url or Config.OPENAI_BASE_URL
        self.temperature = Config.ADVISORY_TEMPERATURE if temperature is None else temperature
        self.timeout = timeout or Config.ADVISORY_TIMEOUT
        self.raw_log_path = raw_log_path
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    def _get_client(self):
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key, base_url=self.base_url, timeout=self.timeout)
        return self._client

    def _call(self, kind: AnalysisKind, request: AdvisoryRequest) -> str:
        try:
            resp = self._get_client().chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": PERSONAS[kind]},
                    {"role": "user", "content": request.instruction},
                ],
                temperature=TEMPERATURE_OVERRIDES.get(kind, self.temperature),
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": kind.value.replace("-", "_"), "schema": request.schema},
                },
            )
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            log_event(logger, "advisory.rejected", logging.WARNING, kind=kind.value, error=str(e))
            raise ProviderUnavailable(
                "The advisory service rejected the API key. Check OPENAI_API_KEY and try again."
            ) from e
        except openai.APIError as e:
            log_event(logger, "advisory.provider_error", logging.WARNING, kind=kind.value, error=str(e))
            log_raw("PROVIDER_ERROR", str(e), self.raw_log_path)
            raise ProviderError() from e

        choices = getattr(resp, "choices", None) or []
        text = choices[0].message.content if choices else None
        log_raw("CALL", text, self.raw_log_path)
        if not text or not text.strip():
            raise EmptyResponse()
        return text

    def invoke(self, kind: AnalysisKind, request: AdvisoryRequest):
        kind = AnalysisKind(kind)
        if not self.configured:
            raise ProviderUnavailable()
        if request.kind is not kind:
            raise ValueError(f"request was built for {request.kind.value}, not {kind.value}")

        digest = hashlib.sha256(request.instruction.encode("utf-8")).hexdigest()[:16]
        log_event(logger, "advisory.request", kind=kind.value, prompt_hash=digest, model=self.model)
        text = self._call(kind, request)
        result = parse_and_validate_json(text, RESULT_MODELS[kind])
        log_event(logger, "advisory.result", kind=kind.value, prompt_hash=digest)
        return result
