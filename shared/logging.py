"""
Structured JSON logging with request correlation.

Every event carries the service name, the active trace and span ids, and the
request, user and project ids of the request being served.
"""

import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog
from opentelemetry import trace

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)
project_id_var: ContextVar[Optional[str]] = ContextVar("project_id", default=None)

_CORRELATION_VARS = {
    "request_id": request_id_var,
    "user_id": user_id_var,
    "project_id": project_id_var,
}


def configure_logging(service_name: str, log_level: str = "info", json_output: bool = True) -> None:
    """Route structlog through stdlib logging at ``log_level``."""
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_service_context,
            add_trace_context,
            add_correlation_context,
            add_timestamp,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Derive ``service`` from logger names of the form ``<service>.<component>``."""
    service, dot, _ = event_dict.get("logger", "").partition(".")
    if dot:
        event_dict.setdefault("service", service)
    return event_dict


def add_trace_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        event_dict["trace_id"] = f"{span_context.trace_id:032x}"
        event_dict["span_id"] = f"{span_context.span_id:016x}"
    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for key, var in _CORRELATION_VARS.items():
        value = var.get()
        if value:
            event_dict.setdefault(key, value)
    return event_dict


def add_timestamp(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Epoch seconds alongside the ISO timestamp, for sorting."""
    event_dict["ts"] = time.time()
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Use the caller's request id, or mint one."""
    request_id = request_id or str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_user_context(user_id: Optional[str] = None, project_id: Optional[str] = None):
    """Attach the authenticated caller and project to subsequent log events."""
    if user_id:
        user_id_var.set(user_id)
    if project_id:
        project_id_var.set(project_id)


def clear_context():
    for var in _CORRELATION_VARS.values():
        var.set(None)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
