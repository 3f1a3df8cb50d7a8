"""
Exception hierarchy for the Slack runtime client.

Every failure of a Web API call is a :class:`RequestError`, with one
subclass per cause so callers can branch on what went wrong::

    try:
        await client.methods.users.info(user="U123")
    except ApiError as e:
        if e.code == "user_not_found":
            ...
    except TransportError:
        ...  # network problem, retry later
"""

from __future__ import annotations

from typing import Any


class SlackError(Exception):
    """Base exception for the runtime client."""


class RequestError(SlackError):
    """A Web API call did not produce a usable result."""

    def __init__(self, message: str, method: str | None = None) -> None:
        super().__init__(message)
        self.method = method


class TransportError(RequestError):
    """The HTTP request itself failed (DNS, refused connection, timeout)."""

    def __init__(self, cause: BaseException, method: str | None = None) -> None:
        super().__init__(f"Request to {method or 'API'} failed: {cause}", method=method)
        self.cause = cause


class ApiError(RequestError):
    """The platform understood the request and refused it.

    ``code`` is the ``error`` field of the response body, e.g.
    ``"invalid_auth"`` or ``"rate_limited"``. It is ``None`` when the body
    carried no error code at all.
    """

    def __init__(
        self,
        code: str | None,
        method: str | None = None,
        status_code: int = 200,
        body: Any = None,
    ) -> None:
        super().__init__(f"{method or 'API'} returned error: {code}", method=method)
        self.code = code
        self.status_code = status_code
        self.body = body


class HttpStatusError(RequestError):
    """A non-200 response with no structured error body."""

    def __init__(self, status_code: int, method: str | None = None) -> None:
        super().__init__(f"{method or 'API'} returned HTTP {status_code}", method=method)
        self.status_code = status_code


class ValidationError(SlackError, ValueError):
    """A local precondition failed before any request was made."""


class MethodTableError(SlackError, ValueError):
    """The configured method names cannot form a call surface."""
