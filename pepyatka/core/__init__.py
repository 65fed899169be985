# Core infrastructure
from pepyatka.core.context import (
    RequestContext,
    clear_context,
    get_context,
    get_request_id,
    get_user_id,
    set_correlation_id,
    set_request_id,
    set_trace_id,
    set_user_id,
)
from pepyatka.core.logging import configure_structlog, get_logger
from pepyatka.core.middleware import RequestContextMiddleware, set_user_context


__all__ = [
    "RequestContext",
    "RequestContextMiddleware",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_request_id",
    "get_user_id",
    "set_correlation_id",
    "set_request_id",
    "set_trace_id",
    "set_user_context",
    "set_user_id",
]
