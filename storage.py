"""
Persistence for accounts, profiles and consultation history.

- KeyValueStore: JSON values in a single sqlite table, keyed by string
- HealthRepository: per-account {profile, consultations} bucket on top of it
"""

import json
import sqlite3
import logging
import threading
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from config import log_event
from errors import StorageError
from pydantic_models import AccountData, ConsultationRecord, HealthProfile, utcnow

logger = logging.getLogger(__name__)

NAMESPACE = "aihealth"
ACCOUNTS_KEY = f"{NAMESPACE}_accounts"
SESSION_KEY = f"{NAMESPACE}_current_user"
MAX_CONSULTATIONS = 50


def bucket_key(account_id: str) -> str:
    return f"{NAMESPACE}_user_{account_id}"


class KeyValueStore:
    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        # one connection per store; ":memory:" databases vanish with it
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self):
        with self._lock:
            cur = self._conn.cursor()
            cur.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_utc TEXT
            );
            """)
            self._conn.commit()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = cur.fetchone()
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as e:
            raise StorageError(f"Stored value for '{key}' is not valid JSON") from e

    def set(self, key: str, value: Any):
        raw = json.dumps(value, ensure_ascii=False)
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(
                "INSERT OR REPLACE INTO kv (key, value, updated_utc) VALUES (?, ?, datetime('now'))",
                (key, raw),
            )
            self._conn.commit()

    def delete(self, key: str):
        with self._lock:
            cur = self._conn.cursor()
            cur.execute("DELETE FROM kv WHERE key = ?", (key,))
            self._conn.commit()

    def close(self):
        self._conn.close()


class HealthRepository:
    """
    One bucket per account. Every call is a full read-modify-write of that
    bucket; a single active session per account is assumed, so no locking.
    """

    def __init__(self, store: KeyValueStore, max_consultations: int = MAX_CONSULTATIONS):
        self.store = store
        self.max_consultations = max_consultations

    def init_account(self, account_id: str):
        key = bucket_key(account_id)
        try:
            existing = self.store.get(key)
        except StorageError:
            # unreadable but present; leave it for get_data to fall back on
            return
        if existing is None:
            self._write(account_id, AccountData())

    def get_data(self, account_id: str) -> AccountData:
        try:
            raw = self.store.get(bucket_key(account_id))
            if raw is None:
                return AccountData()
            return AccountData.model_validate(raw)
        except (StorageError, PydanticValidationError) as e:
            # corrupt local data must not block the UI
            log_event(logger, "storage.bucket_unreadable", logging.WARNING,
                      account_id=account_id, error=str(e).splitlines()[0])
            return AccountData()

    def save_profile(self, account_id: str, profile: HealthProfile) -> HealthProfile:
        data = self.get_data(account_id)
        stamp = utcnow()
        previous = data.profile.last_updated if data.profile else None
        if previous is not None and previous > stamp:
            stamp = previous
        stored = profile.model_copy(update={"last_updated": stamp})
        data.profile = stored
        self._write(account_id, data)
        return stored

    def save_consultation(self, account_id: str, record: ConsultationRecord):
        data = self.get_data(account_id)
        data.consultations.insert(0, record)
        evicted = len(data.consultations) - self.max_consultations
        if evicted > 0:
            data.consultations = data.consultations[: self.max_consultations]
            log_event(logger, "storage.consultations_evicted", account_id=account_id, count=evicted)
        self._write(account_id, data)

    def delete_consultation(self, account_id: str, consultation_id: str):
        data = self.get_data(account_id)
        remaining = [c for c in data.consultations if c.id != consultation_id]
        if len(remaining) == len(data.consultations):
            return
        data.consultations = remaining
        self._write(account_id, data)

    def _write(self, account_id: str, data: AccountData):
        self.store.set(bucket_key(account_id), data.to_json_dict())
