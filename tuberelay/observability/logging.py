import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from flask import g, has_app_context, has_request_context, request

# Job fields are attached either from ``extra=`` or from the request's ``g``
JOB_FIELDS = ("job_id", "job_kind", "job_state")
REQUEST_FIELDS = ("request_id", "path", "method", "remote_addr")


class RequestContextFilter(logging.Filter):
    """Attach request metadata and the current job to log records.

    Values passed explicitly through ``extra=`` win over the ones taken from
    Flask's ``g``, so job transitions logged off the request thread (for
    example when a transfer finishes) still name their job.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        in_app = has_app_context()
        record.request_id = getattr(g, "request_id", None) if in_app else None
        if getattr(record, "job_id", None) is None:
            record.job_id = getattr(g, "job_id", None) if in_app else None
        for name in ("job_kind", "job_state"):
            if not hasattr(record, name):
                setattr(record, name, None)

        if has_request_context():
            record.path = request.path
            record.method = request.method
            record.remote_addr = request.headers.get("X-Forwarded-For", request.remote_addr)
        else:
            record.path = None
            record.method = None
            record.remote_addr = None
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record; context fields that are unset are omitted."""

    def __init__(self, service: str = "tuberelay") -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in REQUEST_FIELDS + JOB_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_structured_logging(app) -> None:
    """Attach one JSON stdout handler to the root logger."""
    root = logging.getLogger()
    if any(isinstance(getattr(h, "formatter", None), JsonFormatter) for h in root.handlers):
        return

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(JsonFormatter(service=app.config.get("SERVICE_NAME") or "tuberelay"))
    stream_handler.addFilter(RequestContextFilter())
    stream_handler.setLevel(logging.DEBUG if app.config.get("DEBUG") else logging.INFO)
    root.addHandler(stream_handler)
