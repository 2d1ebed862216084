"""Structured logging for the identity service.

Every line is one JSON object carrying the event name as ``message``, the
request correlation id, and the ``extra`` fields given at the call site.
Log lines leave the process, so a single ``Redactor`` scrubs them first:
fields named like secrets (passwords, credential hashes, API keys, store
tokens) and chat message bodies are masked, and so is any value that looks
like a bcrypt hash whatever field it sits in.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from app.core.config import LogSettings, settings

MASK = "[REDACTED]"

SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        # gateway and store credentials
        "api_key",
        "x-api-key",
        "authorization",
        "auth_token",
        "token",
        "secret",
        "cookie",
        "set-cookie",
        # account credentials
        "password",
        "candidate_password",
        "supplied_password",
        "salt",
        "hash",
        # chat content
        "message_text",
        "raw_text",
        "text",
    }
)

_BCRYPT_HASH_RE = re.compile(r"\$2[abxy]?\$\d{2}\$[./A-Za-z0-9]{53}")

# Attributes every LogRecord has; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(LogRecord("", 0, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
    "taskName",
}

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


class Redactor:
    """Masks sensitive fields and credential-looking values.

    Args:
        sensitive_keys: Field names (case-insensitive) whose values are
            always masked. Defaults to ``SENSITIVE_KEYS_DEFAULT``.
    """

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        keys = SENSITIVE_KEYS_DEFAULT if sensitive_keys is None else sensitive_keys
        self.sensitive_keys = frozenset(key.lower() for key in keys)

    def is_sensitive(self, key: str) -> bool:
        return key.lower() in self.sensitive_keys

    def redact(self, value: Any) -> Any:
        """Return ``value`` with sensitive content masked.

        Mappings are walked key by key, lists and tuples item by item.
        Strings keep their text except for embedded bcrypt hashes.
        """
        if isinstance(value, Mapping):
            return {
                key: MASK if self.is_sensitive(str(key)) else self.redact(item)
                for key, item in value.items()
            }
        if isinstance(value, (list, tuple)):
            return type(value)(self.redact(item) for item in value)
        if isinstance(value, str):
            return _BCRYPT_HASH_RE.sub(MASK, value)
        return value

    def extras(self, record: LogRecord) -> dict[str, Any]:
        """Caller-supplied fields of ``record``, redacted."""
        return {
            key: MASK if self.is_sensitive(key) else self.redact(value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }


class RequestContextFilter(logging.Filter):
    """Stamp the current request id on records that lack one."""

    def filter(self, record: LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class RedactionFilter(logging.Filter):
    """Redact extras in place, so plain-text formatters are covered too."""

    def __init__(self, redactor: Redactor | None = None) -> None:
        super().__init__()
        self.redactor = redactor or Redactor()

    def filter(self, record: LogRecord) -> bool:
        for key, value in self.redactor.extras(record).items():
            setattr(record, key, value)
        record.msg = self.redactor.redact(record.getMessage())
        record.args = None
        return True


class JsonLineFormatter(logging.Formatter):
    """Render a record as one JSON line."""

    def __init__(self, redactor: Redactor | None = None, *, ensure_ascii: bool = True) -> None:
        super().__init__()
        self.redactor = redactor or Redactor()
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:
        line: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": self.redactor.redact(record.getMessage()),
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            line["request_id"] = request_id

        line.update(self.redactor.extras(record))
        if record.exc_info and record.exc_info[0] is not None:
            line["exc_type"] = record.exc_info[0].__name__

        return json.dumps(line, default=str, ensure_ascii=self.ensure_ascii)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/app.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if log_settings.max_bytes:
        return RotatingFileHandler(
            file_path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(file_path, encoding="utf-8")


def build_redactor(log_settings: LogSettings) -> Redactor:
    """Default sensitive keys plus those listed in ``LOG_EXTRA_REDACTED_KEYS``."""
    extra = {key.strip() for key in (log_settings.extra_redacted_keys or "").split(",") if key.strip()}
    return Redactor(SENSITIVE_KEYS_DEFAULT | extra)


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install the JSON (or plain) handler on the root logger.

    Args:
        log_settings: Log settings; the global settings are used when omitted.
    """
    cfg = log_settings or settings.log
    redactor = build_redactor(cfg)

    handler = _build_handler(cfg)
    handler.addFilter(RequestContextFilter())
    handler.addFilter(RedactionFilter(redactor))
    if cfg.format.lower() == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonLineFormatter(redactor))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
    # httpx logs every request URL, which carries the store auth token
    logging.getLogger("httpx").setLevel(logging.WARNING)
