"""
Request correlation for outbound calls.

Each logical call through the client gets one request ID. It is stored in
a context variable so that every log line emitted while the call runs
(including retries and the shared credential refresh) can be correlated,
and it is sent to the backend as the X-Request-ID header on every attempt.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

# Context variable for storing request_id across async contexts
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Header name for request ID
REQUEST_ID_HEADER = "X-Request-ID"


def new_request_id() -> str:
    return str(uuid.uuid4())


@contextmanager
def request_id_scope(request_id: Optional[str] = None) -> Iterator[str]:
    """
    Bind a request ID to the current context for the duration of a call.

    An ID already bound by the caller is reused, so nested calls made on
    behalf of one user action share the caller's ID.

    Args:
        request_id: Explicit ID to bind. Generated when not given.

    Yields:
        The bound request ID
    """
    effective_id = request_id or request_id_var.get("") or new_request_id()
    token = request_id_var.set(effective_id)
    try:
        yield effective_id
    finally:
        request_id_var.reset(token)


def set_request_id(request_id: str) -> None:
    """
    Set the request ID for the current context.

    Args:
        request_id: The request ID to set
    """
    request_id_var.set(request_id)


def get_request_id() -> str:
    """
    Get the current request ID from context.

    Returns:
        The current request ID, or empty string if not set
    """
    return request_id_var.get("")
