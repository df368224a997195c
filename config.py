import os
import json
import logging
from datetime import datetime, timezone

from dotenv import load_dotenv

load_dotenv()


class Config:

    # Advisory provider (any OpenAI-compatible endpoint)
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL") or None
    ADVISORY_TEMPERATURE = float(os.getenv("ADVISORY_TEMPERATURE", "0.3"))
    ADVISORY_TIMEOUT = float(os.getenv("ADVISORY_TIMEOUT", "30"))

    # Persistence
    DB_PATH = os.getenv("DB_PATH", "aihealth.db")
    LLM_RAW_LOG = os.getenv("LLM_RAW_LOG") or None

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    PORT = int(os.getenv("PORT", "5000"))


# ----------------------------
# Logging
# ----------------------------
_RESERVED = set(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    def format(self, record):
        log_record = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # anything passed through `extra=` rides along
        for key, value in record.__dict__.items():
            if key not in _RESERVED and not key.startswith("_"):
                log_record[key] = value
        if record.exc_info:
            log_record["exc"] = self.formatException(record.exc_info)
        return json.dumps(log_record, default=str)


def configure_logging(level: str = None):
    root = logging.getLogger()
    if any(isinstance(h.formatter, JSONFormatter) for h in root.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)
    root.setLevel(level or Config.LOG_LEVEL)


def log_event(logger: logging.Logger, event: str, level: int = logging.INFO, **fields):
    """Structured one-line event; fields end up as top-level JSON keys."""
    logger.log(level, event, extra={"event": event, **fields})
