"""
Structured logging for the registry.

Every line is one JSON object. Audit records are mirrored onto the "audit"
logger with their ledger coordinates (seq, kind, batch, medicine, manufacturer)
lifted into top-level keys so log shippers can index them.
"""
import logging
import re
import sys
from datetime import datetime, timezone
import json
from typing import Any, Mapping

from app.core.config import settings

# Bearer tokens can end up in request error messages
_BEARER_TOKEN = re.compile(r'(bearer\s+)[A-Za-z0-9\-_\.]+', re.IGNORECASE)

# LogRecord attribute -> JSON key
_LEDGER_FIELDS = (
    ("seq", "seq"),
    ("kind", "kind"),
    ("address", "address"),
    ("pharma_name", "pharma_name"),
    ("batch_id", "batch_id"),
    ("medicine_id", "medicine_id"),
    ("status", "status"),
)


def _scrub_message(message: str) -> str:
    return _BEARER_TOKEN.sub(r'\1***REDACTED***', message)


class StructuredFormatter(logging.Formatter):
    """JSON formatter that surfaces ledger coordinates attached via ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": _scrub_message(record.getMessage()),
        }

        for attr, key in _LEDGER_FIELDS:
            value = getattr(record, attr, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info:
            log_entry["exception"] = _scrub_message(self.formatException(record.exc_info))

        return json.dumps(log_entry, default=str)


def setup_logging():
    """Configure application logging."""
    root_logger = logging.getLogger()

    # Prevent duplicate handlers on repeated calls
    if root_logger.handlers:
        return

    root_logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(console_handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class AuditLogger:
    """Mirrors committed audit records into the log stream."""

    def __init__(self):
        self.logger = get_logger("audit")

    @staticmethod
    def ledger_extra(kind: str, seq: int, fields: Mapping[str, Any]) -> dict:
        """Map audit record fields onto the formatter's ledger keys."""
        return {
            "seq": seq,
            "kind": kind,
            "address": fields.get("manufacturer") or fields.get("address"),
            "pharma_name": fields.get("name") or fields.get("pharmaName"),
            "batch_id": fields.get("batchId"),
            "medicine_id": fields.get("medicineId"),
            "status": fields.get("status"),
        }

    def log(self, kind: str, seq: int, fields: Mapping[str, Any]):
        message = f"AUDIT #{seq}: {kind}"
        if fields.get("batchId") is not None:
            message += f" on batch {fields['batchId']}"
        self.logger.info(message, extra=self.ledger_extra(kind, seq, fields))


audit_logger = AuditLogger()
