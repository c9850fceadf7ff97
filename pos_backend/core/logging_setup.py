from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime, timezone

from pos_backend.core.request_context import context_fields

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
# "json" em produção; "text" deixa o terminal legível em dev
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()

_SENSITIVE_PATTERNS = [
    re.compile(r"(authorization\s*[:=]\s*bearer\s+)([^\s\"]+)", re.IGNORECASE),
    re.compile(r"((?:access_)?token\s*[:=]\s*)([^\s\",}]+)", re.IGNORECASE),
    re.compile(r"(password(?:_hash|_confirmation)?\s*[:=]\s*)([^\s\",}]+)", re.IGNORECASE),
    re.compile(r"(secret(?:_key)?\s*[:=]\s*)([^\s\",}]+)", re.IGNORECASE),
]

# campos passados via extra= que entram no JSON quando presentes
_EXTRA_FIELDS = (
    "endpoint",
    "method",
    "status_code",
    "error_code",
    "order_id",
    "order_number",
    "product_id",
)


def mask_secrets(value: str) -> str:
    for pattern in _SENSITIVE_PATTERNS:
        value = pattern.sub(r"\1***", value)
    return value


class JsonFormatter(logging.Formatter):
    """One JSON object per line, carrying the request/tenant/user of the current request."""

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        payload = {"timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(), "level": record.levelname}
        for key, value in context_fields().items():
            payload[key] = getattr(record, key, None) or value
        payload["module"] = record.name
        payload["message"] = mask_secrets(self.formatMessage(record))
        payload["duration_ms"] = getattr(record, "duration_ms", None)

        for field in _EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        if record.exc_info:
            payload["exception"] = mask_secrets(self.formatException(record.exc_info))
        return json.dumps(payload, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        fields = context_fields()
        record.tenant = getattr(record, "tenant_id", None) or fields["tenant_id"] or "-"
        record.request = getattr(record, "request_id", None) or fields["request_id"] or "-"
        return mask_secrets(super().format(record))


def configure_logging() -> None:
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(LOG_LEVEL)

    handler = logging.StreamHandler()
    if LOG_FORMAT == "text":
        handler.setFormatter(
            TextFormatter("%(asctime)s %(levelname)s [tenant=%(tenant)s req=%(request)s] %(name)s: %(message)s")
        )
    else:
        handler.setFormatter(JsonFormatter("%(message)s"))
    root_logger.addHandler(handler)

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(logger_name).setLevel(LOG_LEVEL)
    # SQL só com LOG_LEVEL=DEBUG
    logging.getLogger("sqlalchemy.engine").setLevel(logging.DEBUG if LOG_LEVEL == "DEBUG" else logging.WARNING)
