"""
View/state machine shared by every front end.

One SessionController per user-facing session (a Streamlit session, a
single API request). It owns the explicit Session, the form inputs of each
view, the per-kind results and the busy/error flags, and sequences:
profile -> symptoms -> analysis -> history.

Each analysis gets a generation token; any later analysis or a view change
supersedes it, and a superseded result is dropped (not shown, not saved).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from auth import CredentialStore
from config import log_event
from errors import AnalysisInProgress, AuthError, ProviderError, ValidationError
from llm_wrapper import AdvisoryClient
from prompts import AdvisoryRequest, build_request
from pydantic_models import (
    Account, AnalysisKind, ConsultationRecord, DietPlanRequest, DrugComparisonRequest,
    HealthProfile, SecondOpinionRequest, Symptom, utcnow,
)
from storage import HealthRepository

logger = logging.getLogger(__name__)


class View(str, Enum):
    HOME = "home"
    CONSULTATION = "consultation"
    SECOND_OPINION = "second-opinion"
    PROFILE = "profile"
    HISTORY = "history"
    DIET_PLAN = "diet-plan"
    DRUG_COMPARE = "drug-compare"


VIEW_FOR_KIND = {
    AnalysisKind.SYMPTOM_TRIAGE: View.CONSULTATION,
    AnalysisKind.SECOND_OPINION: View.SECOND_OPINION,
    AnalysisKind.DIET_PLAN: View.DIET_PLAN,
    AnalysisKind.DRUG_COMPARISON: View.DRUG_COMPARE,
    AnalysisKind.RECOMMENDATIONS: View.PROFILE,
}

# only these kinds produce a ConsultationRecord
PERSISTED_KINDS = (AnalysisKind.SYMPTOM_TRIAGE, AnalysisKind.SECOND_OPINION)


@dataclass
class Session:
    account: Account
    started_at: datetime = field(default_factory=utcnow)

    @property
    def account_id(self) -> str:
        return self.account.id


@dataclass(frozen=True)
class PendingAnalysis:
    generation: int
    kind: AnalysisKind
    request: AdvisoryRequest
    symptoms: tuple
    profile: Optional[HealthProfile]


def _short(e: PydanticValidationError) -> str:
    err = e.errors(include_url=False)[0]
    where = ".".join(str(p) for p in err.get("loc", ()))
    return f"{where}: {err.get('msg')}" if where else err.get("msg", "Invalid input")


class SessionController:
    def __init__(self, credentials: CredentialStore, repository: HealthRepository,
                 client: AdvisoryClient):
        self.credentials = credentials
        self.repository = repository
        self.client = client

        self.session: Optional[Session] = None
        self.view = View.HOME
        self.profile: Optional[HealthProfile] = None
        self.consultations: List[ConsultationRecord] = []

        self.symptoms: List[Symptom] = []
        self.notes = ""
        self.second_opinion_form = SecondOpinionRequest()
        self.diet_plan_form = DietPlanRequest()
        self.drug_form = DrugComparisonRequest()

        self.results: Dict[AnalysisKind, object] = {}
        self.error: Optional[str] = None
        self.busy = False
        self.generation = 0

    # ----------------------------
    # Navigation
    # ----------------------------
    def navigate(self, view: Union[View, str]):
        view = View(view)
        if view is self.view:
            return
        # leaving the view supersedes whatever it was waiting for
        self.generation += 1
        self.busy = False
        self.error = None
        self.view = view

    def result_for(self, kind: AnalysisKind):
        return self.results.get(AnalysisKind(kind))

    # ----------------------------
    # Session
    # ----------------------------
    @property
    def is_guest(self) -> bool:
        return self.session is None

    def _open_session(self, account: Account):
        self.session = Session(account)
        self._load_account_data()

    def _load_account_data(self):
        data = self.repository.get_data(self.session.account_id)
        self.profile = data.profile
        self.consultations = data.consultations

    def restore_session(self) -> bool:
        account = self.credentials.current_account()
        if account is None:
            return False
        self._open_session(account)
        return True

    def register(self, email: str, password: str, name: str) -> bool:
        try:
            account = self.credentials.register(email, password, name)
        except (ValidationError, AuthError) as e:
            self.error = e.message
            return False
        self.error = None
        self._open_session(account)
        return True

    def login(self, email: str, password: str) -> bool:
        try:
            account = self.credentials.login(email, password)
        except (ValidationError, AuthError) as e:
            self.error = e.message
            return False
        self.error = None
        self._open_session(account)
        return True

    def logout(self):
        self.credentials.logout()
        self.session = None
        self.profile = None
        self.consultations = []
        self.results = {}
        self.navigate(View.HOME)

    # ----------------------------
    # Profile
    # ----------------------------
    def save_profile(self, profile: Union[HealthProfile, dict]) -> Optional[HealthProfile]:
        try:
            if isinstance(profile, dict):
                if self.profile is not None:
                    profile = {"id": self.profile.id, **profile}
                profile = HealthProfile.model_validate(profile)
            elif self.profile is not None:
                profile = profile.model_copy(update={"id": self.profile.id})
        except PydanticValidationError as e:
            self.error = f"Invalid profile ({_short(e)})"
            return None

        if self.session is not None:
            stored = self.repository.save_profile(self.session.account_id, profile)
        else:
            # guests keep their profile for this session only
            stored = profile.model_copy(update={"last_updated": utcnow()})
        self.profile = stored
        self.error = None
        return stored

    # ----------------------------
    # Symptoms
    # ----------------------------
    def add_symptom(self, name: str = "", **fields) -> Optional[Symptom]:
        try:
            symptom = Symptom(name=name, **fields)
        except PydanticValidationError as e:
            self.error = f"Invalid symptom ({_short(e)})"
            return None
        self.symptoms.append(symptom)
        return symptom

    def update_symptom(self, symptom_id: str, **changes) -> Optional[Symptom]:
        for i, s in enumerate(self.symptoms):
            if s.id != symptom_id:
                continue
            try:
                updated = Symptom.model_validate({**s.model_dump(), **changes, "id": s.id})
            except PydanticValidationError as e:
                self.error = f"Invalid symptom ({_short(e)})"
                return None
            self.symptoms[i] = updated
            return updated
        return None

    def remove_symptom(self, symptom_id: str):
        self.symptoms = [s for s in self.symptoms if s.id != symptom_id]

    def clear_symptoms(self):
        self.symptoms = []
        self.notes = ""

    # ----------------------------
    # Analysis
    # ----------------------------
    def _validate(self, kind: AnalysisKind):
        if kind is AnalysisKind.SYMPTOM_TRIAGE:
            if not self.symptoms:
                raise ValidationError("Please add at least one symptom")
            if any(not s.name.strip() for s in self.symptoms):
                raise ValidationError("Please name every symptom before analyzing")
        elif kind is AnalysisKind.SECOND_OPINION:
            if not self.second_opinion_form.existing_diagnosis.strip():
                raise ValidationError("Please enter your existing diagnosis")
            if any(not s.name.strip() for s in self.symptoms):
                raise ValidationError("Please name every symptom before analyzing")
        elif kind in (AnalysisKind.DIET_PLAN, AnalysisKind.RECOMMENDATIONS):
            if self.profile is None:
                raise ValidationError("Please complete your health profile first")
        elif kind is AnalysisKind.DRUG_COMPARISON:
            if not self.drug_form.drug_name.strip():
                raise ValidationError("Please enter a drug name")

    def can_submit(self, kind: AnalysisKind) -> bool:
        if self.busy:
            return False
        try:
            self._validate(AnalysisKind(kind))
        except ValidationError:
            return False
        return True

    def _build(self, kind: AnalysisKind) -> AdvisoryRequest:
        second_opinion = self.second_opinion_form.model_copy(
            update={"current_symptoms": list(self.symptoms)})
        return build_request(
            kind,
            profile=self.profile,
            symptoms=list(self.symptoms),
            notes=self.notes,
            second_opinion=second_opinion,
            diet_plan=self.diet_plan_form,
            drug_comparison=self.drug_form,
        )

    def start_analysis(self, kind: AnalysisKind) -> PendingAnalysis:
        kind = AnalysisKind(kind)
        if self.busy:
            raise AnalysisInProgress()
        self._validate(kind)
        request = self._build(kind)

        self.error = None
        self.results.pop(kind, None)
        self.busy = True
        self.generation += 1
        log_event(logger, "analysis.started", kind=kind.value, generation=self.generation,
                  guest=self.is_guest)
        return PendingAnalysis(self.generation, kind, request, tuple(self.symptoms), self.profile)

    def _is_current(self, pending: PendingAnalysis) -> bool:
        if pending.generation == self.generation:
            return True
        log_event(logger, "analysis.discarded", kind=pending.kind.value,
                  generation=pending.generation, current=self.generation)
        return False

    def complete_analysis(self, pending: PendingAnalysis, result) -> bool:
        if not self._is_current(pending):
            return False
        self.busy = False
        self.results[pending.kind] = result
        if self.session is not None and pending.kind in PERSISTED_KINDS:
            record = ConsultationRecord(
                symptoms=list(pending.symptoms),
                diagnosis=result if pending.kind is AnalysisKind.SYMPTOM_TRIAGE else None,
                second_opinion=result if pending.kind is AnalysisKind.SECOND_OPINION else None,
                profile=pending.profile,
            )
            self.repository.save_consultation(self.session.account_id, record)
            self.consultations = self.repository.get_data(self.session.account_id).consultations
        log_event(logger, "analysis.completed", kind=pending.kind.value, generation=pending.generation)
        return True

    def fail_analysis(self, pending: PendingAnalysis, error: Exception) -> bool:
        if not self._is_current(pending):
            return False
        self.busy = False
        self.error = str(error)
        return True

    def submit(self, kind: AnalysisKind):
        """Run one analysis end to end; returns the result, or None with `error` set."""
        try:
            pending = self.start_analysis(kind)
        except ValidationError as e:
            self.error = e.message
            return None
        try:
            result = self.client.invoke(pending.kind, pending.request)
        except ProviderError as e:
            self.fail_analysis(pending, e)
            return None
        if not self.complete_analysis(pending, result):
            return None
        return result

    # ----------------------------
    # History
    # ----------------------------
    def find_consultation(self, consultation_id: str) -> Optional[ConsultationRecord]:
        return next((c for c in self.consultations if c.id == consultation_id), None)

    def view_consultation(self, consultation_id: str) -> bool:
        record = self.find_consultation(consultation_id)
        if record is None:
            return False
        self.navigate(View.CONSULTATION)
        self.symptoms = list(record.symptoms)
        if record.diagnosis is not None:
            self.results[AnalysisKind.SYMPTOM_TRIAGE] = record.diagnosis
        else:
            self.results.pop(AnalysisKind.SYMPTOM_TRIAGE, None)
        return True

    def delete_consultation(self, consultation_id: str):
        if self.session is None:
            return
        self.repository.delete_consultation(self.session.account_id, consultation_id)
        self.consultations = [c for c in self.consultations if c.id != consultation_id]
