"""
JSON logging for the marketplace.

Every record is emitted as one JSON object on stdout. Marketplace identifiers
passed through ``extra=`` (order, RFQ, escrow ids and so on) are lifted into
top-level keys so log pipelines can filter on them. Credentials and payment
references are masked before anything is written.
"""
import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from trademart.core.config import settings

REDACTED = "***REDACTED***"

# Matches "key=value" / "key": "value" fragments inside free text
_SECRET_FRAGMENT = re.compile(
    r'(password|secret|token|authorization|payment_reference|paymentReference)'
    r'[\"\']?\s*[:=]\s*[\"\']?[^\s,;\"\'}{]+',
    re.IGNORECASE,
)

_SECRET_KEYS = frozenset({
    "password", "hashed_password", "secret_key", "token", "access_token",
    "authorization", "payment_reference", "paymentreference",
})

CONTEXT_FIELDS = (
    "user_id", "action", "entity_type", "entity_id",
    "rfq_id", "quote_id", "order_id", "escrow_id", "transaction_id", "job_id",
)

_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "rq.worker")


def redact(payload: Any) -> Any:
    """Return a copy of ``payload`` with secret-bearing keys masked, at any depth."""
    if isinstance(payload, dict):
        return {
            key: REDACTED if str(key).lower() in _SECRET_KEYS else redact(value)
            for key, value in payload.items()
        }
    if isinstance(payload, (list, tuple)):
        return [redact(item) for item in payload]
    return payload


def redact_text(text: str) -> str:
    return _SECRET_FRAGMENT.sub(rf'\1={REDACTED}', text)


class JsonLogFormatter(logging.Formatter):
    """One JSON document per record, tagged with the service name and version."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "logger": record.name,
            "message": redact_text(record.getMessage()),
        }
        entry.update(
            (name, getattr(record, name))
            for name in CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        )
        if record.exc_info:
            entry["exception"] = redact_text(self.formatException(record.exc_info))
        return json.dumps(entry, default=str)


def setup_logging(level: Optional[int] = None):
    """Install the JSON handler on the root logger once."""
    root = logging.getLogger()
    if root.handlers:
        return

    if level is None:
        level = logging.DEBUG if settings.DEBUG else logging.INFO
    root.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonLogFormatter())
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class AuditLogger:
    """Writes marketplace state changes to the ``trademart.audit`` log stream."""

    def __init__(self, name: str = "trademart.audit"):
        self.logger = get_logger(name)

    def log(
        self,
        action: str,
        user_id: Optional[int] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        target = f"{entity_type}:{entity_id}" if entity_type and entity_id else entity_type or "-"
        extra = {
            "user_id": user_id,
            "action": action,
            "entity_type": entity_type,
            "entity_id": entity_id,
        }
        if details:
            # Marketplace ids in the details become searchable context keys
            extra.update((k, v) for k, v in details.items() if k in CONTEXT_FIELDS and k not in extra)
            self.logger.info(
                "audit %s %s %s", action, target, json.dumps(redact(details), default=str), extra=extra,
            )
        else:
            self.logger.info("audit %s %s", action, target, extra=extra)


audit_logger = AuditLogger()
