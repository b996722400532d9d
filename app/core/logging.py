"""Logging setup for the proxy: JSON lines, request correlation, redaction.

Two kinds of data must never reach a log sink:

- the provider credential, which travels as the ``appid`` query parameter
  on every outbound call and can surface inside exception text or URLs
- raw client addresses, which are hashed before logging

Redaction works on field names (``SENSITIVE_KEYS_DEFAULT``) and on known
secret values registered through ``configure_logging(secrets=...)``. The
httpx/httpcore loggers are capped at WARNING since their INFO lines contain
full request URLs.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from app.core.config import LogSettings, settings

REDACTED = "[REDACTED]"

SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "appid",
        "api_key",
        "weather_api_key",
        "openweather_api_key",
        "authorization",
        "proxy-authorization",
        "cookie",
        "set-cookie",
        "client_ip",
        "upstream_url",
    }
)

HTTP_CLIENT_LOGGERS = ("httpx", "httpcore")

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_BUILTIN_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "taskName",
}

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    """Return the correlation id of the request being handled, if any."""

    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def hash_identifier(value: str) -> str:
    """Return a short, stable digest of an identifier for log correlation.

    Used for client addresses and cache signatures so logs can be grouped by
    caller without storing the raw value.
    """
    return hashlib.sha256(value.encode()).hexdigest()[:16]


def scrub_secret(text: str, secret: str | None) -> str:
    """Replace every occurrence of ``secret`` in ``text`` with a marker.

    Examples:
        >>> scrub_secret("GET /weather?appid=abc123&q=x", "abc123")
        'GET /weather?appid=[REDACTED]&q=x'
        >>> scrub_secret("nothing to hide", None)
        'nothing to hide'
    """
    if not secret:
        return text
    return text.replace(secret, REDACTED)


class Redactor:
    """Masks sensitive fields by name and known secret values by content."""

    def __init__(
        self,
        sensitive_keys: Iterable[str] | None = None,
        secrets: Iterable[str | None] = (),
    ) -> None:
        keys = SENSITIVE_KEYS_DEFAULT if sensitive_keys is None else sensitive_keys
        self.sensitive_keys = {key.lower() for key in keys}
        self.secrets = tuple(secret for secret in secrets if secret)

    def is_sensitive(self, key: str) -> bool:
        return key.lower() in self.sensitive_keys

    def scrub_text(self, text: str) -> str:
        for secret in self.secrets:
            text = scrub_secret(text, secret)
        return text

    def redact(self, value: Any) -> Any:
        if isinstance(value, str):
            return self.scrub_text(value)
        if isinstance(value, Mapping):
            return {
                key: REDACTED if self.is_sensitive(str(key)) else self.redact(item)
                for key, item in value.items()
            }
        if isinstance(value, (list, tuple)):
            return type(value)(self.redact(item) for item in value)
        return value

    def extras(self, record: LogRecord) -> dict[str, Any]:
        """Return the record's ``extra`` fields with redaction applied."""

        return {
            key: REDACTED if self.is_sensitive(key) else self.redact(value)
            for key, value in vars(record).items()
            if key not in _BUILTIN_ATTRS and not key.startswith("_")
        }


class RequestIdFilter(logging.Filter):
    """Attach request_id from context when absent on the record."""

    def filter(self, record: LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Redact the record in place so every formatter sees clean values."""

    def __init__(
        self,
        sensitive_keys: Iterable[str] | None = None,
        secrets: Iterable[str | None] = (),
    ) -> None:
        super().__init__()
        self.redactor = Redactor(sensitive_keys, secrets)

    def filter(self, record: LogRecord) -> bool:
        for key, value in self.redactor.extras(record).items():
            setattr(record, key, value)
        if self.redactor.secrets:
            record.msg = self.redactor.scrub_text(record.getMessage())
            record.args = None
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, extras."""

    def __init__(
        self,
        *,
        sensitive_keys: Iterable[str] | None = None,
        secrets: Iterable[str | None] = (),
        ensure_ascii: bool = True,
    ) -> None:
        super().__init__()
        self.redactor = Redactor(sensitive_keys, secrets)
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": self.redactor.scrub_text(record.getMessage()),
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id

        payload.update(self.redactor.extras(record))

        if record.exc_info:
            payload["exc_info"] = self.redactor.scrub_text(self.formatException(record.exc_info))

        return json.dumps(payload, default=str, ensure_ascii=self.ensure_ascii)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/weather-proxy.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if log_settings.max_bytes:
        return RotatingFileHandler(
            file_path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(file_path, encoding="utf-8")


def configure_logging(
    log_settings: LogSettings | None = None,
    *,
    secrets: Iterable[str | None] = (),
) -> None:
    """Install a single redacting handler on the root logger.

    Args:
        log_settings: Output options; defaults to the global settings.
        secrets: Literal values (e.g. the provider API key) that must be
            masked wherever they appear in a log line.
    """

    cfg = log_settings or settings.log
    secrets = tuple(secrets)
    level = getattr(logging, cfg.level.upper(), logging.INFO)

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter(secrets=secrets))
    if cfg.format.lower() == "plain":
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    else:
        handler.setFormatter(JsonFormatter(secrets=secrets))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in HTTP_CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    # Avoid double logging from uvicorn if it gets re-configured
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
