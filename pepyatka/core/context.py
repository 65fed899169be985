"""Per-request context carried in contextvars.

Values set here are picked up by the logging processors, so every record
emitted while serving a request carries the request and user identifiers
without threading them through call signatures.
"""

from contextvars import ContextVar, Token
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

_VARS: dict[str, ContextVar[Any]] = {
    "request_id": request_id_var,
    "user_id": user_id_var,
    "trace_id": trace_id_var,
    "correlation_id": correlation_id_var,
}


def generate_request_id() -> str:
    return str(uuid4())


def get_request_id() -> str:
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Bind a request id, generating one when the client sent none.

    Returns:
        The id now bound to the current context.
    """
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_user_id() -> str | None:
    return user_id_var.get()


def set_user_id(user_id: str | UUID | None) -> None:
    user_id_var.set(str(user_id) if user_id is not None else None)


def set_trace_id(trace_id: str | None) -> None:
    trace_id_var.set(trace_id)


def set_correlation_id(correlation_id: str | None) -> None:
    correlation_id_var.set(correlation_id)


def get_context() -> dict[str, Any]:
    """Return the non-empty context values keyed by name."""
    return {name: var.get() for name, var in _VARS.items() if var.get()}


def clear_context() -> None:
    """Reset every context variable. Called when a request finishes."""
    request_id_var.set("")
    user_id_var.set(None)
    trace_id_var.set(None)
    correlation_id_var.set(None)


class RequestContext:
    """Bind context values for the duration of a `with` block.

    Usage:
        with RequestContext(user_id=user.id):
            logger.info("feed_rebuilt")  # carries request_id and user_id
    """

    def __init__(
        self,
        request_id: str | None = None,
        user_id: str | UUID | None = None,
        trace_id: str | None = None,
        correlation_id: str | None = None,
    ) -> None:
        self._values: dict[str, str | None] = {
            "request_id": request_id or generate_request_id(),
            "user_id": str(user_id) if user_id is not None else None,
            "trace_id": trace_id,
            "correlation_id": correlation_id,
        }
        self._tokens: dict[str, Token[Any]] = {}

    def __enter__(self) -> "RequestContext":
        for name, value in self._values.items():
            if value is not None:
                self._tokens[name] = _VARS[name].set(value)
        return self

    def __exit__(self, *_: object) -> None:
        for name, token in self._tokens.items():
            _VARS[name].reset(token)
        self._tokens.clear()
