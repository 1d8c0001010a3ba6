"""
Request ID middleware for correlating log lines of a single request.

Generates a short hexadecimal ID (8 characters) for each request and keeps
it, together with the authenticated user's e-mail, in context variables
that the logging filter below copies onto every record.
"""

import logging
import os
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

_request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

_user_email_ctx: ContextVar[Optional[str]] = ContextVar("user_email", default=None)


def generate_request_id() -> str:
    """Generate a random 8-character hexadecimal ID."""
    return os.urandom(4).hex()


def get_request_id() -> Optional[str]:
    """Get the current request ID."""
    return _request_id_ctx.get()


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the current request ID.

    Args:
        request_id: Optional ID to set. If None, generates a new one.

    Returns:
        The request ID that was set.
    """
    if request_id is None:
        request_id = generate_request_id()
    _request_id_ctx.set(request_id)
    return request_id


def clear_request_id() -> None:
    _request_id_ctx.set(None)


def get_user_email() -> Optional[str]:
    """Get the current authenticated user email."""
    return _user_email_ctx.get()


def set_user_email(user_email: Optional[str]) -> Optional[str]:
    """Set the current authenticated user email."""
    _user_email_ctx.set(user_email)
    return user_email


def clear_user_email() -> None:
    _user_email_ctx.set(None)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware that assigns a unique ID to each HTTP request."""

    async def dispatch(self, request: Request, call_next):
        # Honour an ID forwarded by a proxy so logs line up across hops
        request_id = set_request_id(request.headers.get("X-Request-ID"))
        request.state.request_id = request_id

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_request_id()
            clear_user_email()


class RequestIDFilter(logging.Filter):
    """
    Logging filter that adds request_id and user_email to log records.

    Both attributes are always present so formatters can reference them
    outside of a request as well.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = get_request_id()
        record.request_id = request_id if request_id else "--------"
        record.user_email = get_user_email() or "-"
        return True
