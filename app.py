# app.py — Flask backend (guest-mode analysis API)
import logging

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException
from pydantic import ValidationError as PydanticValidationError

from auth import CredentialStore
from config import Config, configure_logging
from errors import ProviderError, ProviderUnavailable, ValidationError
from llm_wrapper import AdvisoryClient
from pydantic_models import (
    AnalysisKind, DietPlanRequest, DrugComparisonRequest, HealthProfile,
    SecondOpinionRequest, Symptom,
)
from session_controller import SessionController
from storage import HealthRepository, KeyValueStore

logger = logging.getLogger(__name__)

USAGE = ("Health Advisor API — POST /api/analyze/<kind> with JSON; kinds: "
         + ", ".join(k.value for k in AnalysisKind))


def _load_inputs(controller: SessionController, data: dict):
    if data.get("profile"):
        controller.profile = HealthProfile.model_validate(data["profile"])
    controller.symptoms = [Symptom.model_validate(s) for s in data.get("symptoms") or []]
    controller.notes = str(data.get("notes") or "")
    if data.get("secondOpinion"):
        controller.second_opinion_form = SecondOpinionRequest.model_validate(data["secondOpinion"])
        if "symptoms" not in data:
            controller.symptoms = list(controller.second_opinion_form.current_symptoms)
    if data.get("dietPlan"):
        controller.diet_plan_form = DietPlanRequest.model_validate(data["dietPlan"])
    if data.get("drugComparison"):
        controller.drug_form = DrugComparisonRequest.model_validate(data["drugComparison"])


def create_app(client: AdvisoryClient = None) -> Flask:
    configure_logging()
    app = Flask(__name__)

    # guests never persist anything, so an in-memory store is enough here
    store = KeyValueStore(":memory:")
    repository = HealthRepository(store)
    credentials = CredentialStore(store, repository)
    advisory = client or AdvisoryClient()

    @app.route("/", methods=["GET"])
    def index():
        return USAGE

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok", "providerConfigured": advisory.configured}), 200

    @app.route("/api/analyze/<kind>", methods=["POST"])
    def analyze(kind):
        try:
            kind = AnalysisKind(kind)
        except ValueError:
            return jsonify({"error": f"Unknown analysis kind '{kind}'. {USAGE}"}), 404

        data = request.get_json(force=True, silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Please POST a JSON object."}), 400

        controller = SessionController(credentials, repository, advisory)
        try:
            _load_inputs(controller, data)
            pending = controller.start_analysis(kind)
            result = advisory.invoke(pending.kind, pending.request)
        except PydanticValidationError as e:
            return jsonify({"error": "Invalid input.", "details": e.errors(include_url=False, include_input=False, include_context=False)}), 400
        except ValidationError as e:
            return jsonify({"error": e.message}), 400
        except ProviderUnavailable as e:
            return jsonify({"error": e.message}), 503
        except ProviderError as e:
            return jsonify({"error": e.message}), 502

        controller.complete_analysis(pending, result)
        return jsonify({"kind": kind.value, "result": result.to_json_dict()}), 200

    @app.errorhandler(Exception)
    def handle_exception(e):
        if isinstance(e, HTTPException):
            return e
        logger.exception("unhandled error")
        return jsonify({"error": "Internal server error"}), 500

    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=Config.PORT)
