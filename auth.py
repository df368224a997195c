import logging
from typing import Optional

import bcrypt
from pydantic import BaseModel, EmailStr
from pydantic import ValidationError as PydanticValidationError

from config import log_event
from errors import (
    DuplicateEmail, InvalidCredential, InvalidEmail, MissingName, NotFound,
    StorageError, WeakCredential,
)
from pydantic_models import Account
from storage import ACCOUNTS_KEY, SESSION_KEY, HealthRepository, KeyValueStore

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_BYTES = 72  # bcrypt ignores/rejects anything longer


class _EmailCheck(BaseModel):
    email: EmailStr


def normalize_email(email: str) -> str:
    email = (email or "").strip().lower()
    try:
        _EmailCheck(email=email)
    except PydanticValidationError:
        raise InvalidEmail()
    return email


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash or over-long input
        return False


class CredentialStore:
    """
    Accounts live in one index keyed by lower-cased email; the signed-in
    account is a durable pointer (account id) in the same store.
    """

    def __init__(self, store: KeyValueStore, repository: HealthRepository):
        self.store = store
        self.repository = repository

    def _accounts(self) -> dict:
        try:
            return self.store.get(ACCOUNTS_KEY) or {}
        except StorageError as e:
            log_event(logger, "auth.index_unreadable", logging.WARNING, error=str(e))
            return {}

    def _find(self, email: str) -> Optional[Account]:
        raw = self._accounts().get(email)
        return Account.model_validate(raw) if raw else None

    def _start_session(self, account: Account):
        self.store.set(SESSION_KEY, account.id)
        self.repository.init_account(account.id)

    def register(self, email: str, password: str, name: str) -> Account:
        email = normalize_email(email)
        if not name or not name.strip():
            raise MissingName()
        password = password or ""
        if len(password) < MIN_PASSWORD_LENGTH:
            raise WeakCredential()
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise WeakCredential(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")

        accounts = self._accounts()
        if email in accounts:
            raise DuplicateEmail()

        account = Account(email=email, name=name.strip(), password_hash=hash_password(password))
        accounts[email] = account.to_json_dict()
        self.store.set(ACCOUNTS_KEY, accounts)
        self._start_session(account)
        log_event(logger, "auth.registered", account_id=account.id)
        return account

    def login(self, email: str, password: str) -> Account:
        email = normalize_email(email)
        account = self._find(email)
        if account is None:
            raise NotFound()
        if not verify_password(password or "", account.password_hash):
            log_event(logger, "auth.login_failed", account_id=account.id)
            raise InvalidCredential()
        self._start_session(account)
        log_event(logger, "auth.logged_in", account_id=account.id)
        return account

    def logout(self):
        self.store.delete(SESSION_KEY)

    def current_account(self) -> Optional[Account]:
        try:
            account_id = self.store.get(SESSION_KEY)
        except StorageError:
            return None
        if not account_id:
            return None
        for raw in self._accounts().values():
            if raw.get("id") == account_id:
                return Account.model_validate(raw)
        return None
