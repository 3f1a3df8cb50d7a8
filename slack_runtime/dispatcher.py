"""
Web API request dispatcher.

Turns a method name plus an argument mapping into a GET request against
the platform's Web API and classifies the outcome: the parsed body on
success, otherwise one of :class:`TransportError`, :class:`ApiError` or
:class:`HttpStatusError`. There is no caching and no retrying here;
rate limits come back to the caller as ``ApiError("rate_limited")``.
"""

from __future__ import annotations

import json
import logging
import math
from decimal import Decimal
from typing import Any, Mapping
from urllib.parse import quote

import httpx

from slack_runtime.errors import ApiError, HttpStatusError, TransportError

logger = logging.getLogger(__name__)

# Characters encodeURIComponent leaves alone besides alphanumerics and "-_."
_SAFE = "~!*'()"


def encode_value(value: Any) -> str:
    """Render one argument value for the query string (before quoting).

    Strings and numbers pass through; anything else (lists, dicts,
    booleans, ``None``) is sent as JSON.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, float):
        return format_number(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return json.dumps(value, separators=(",", ":"))


def format_number(value: float) -> str:
    """Format a float the way JavaScript's ``JSON.stringify`` does.

    Integral values drop the ``.0``, non-finite values become ``null``,
    and exponent notation is only used outside ``1e-6 <= |x| < 1e21``.
    """
    if not math.isfinite(value):
        return "null"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    if "e" not in text:
        return text
    mantissa, _, exponent_text = text.partition("e")
    exponent = int(exponent_text)
    if -7 < exponent < 21:
        return format(Decimal(text), "f")
    return f"{mantissa}e{'+' if exponent > 0 else '-'}{abs(exponent)}"


def build_query(args: Mapping[str, Any]) -> str:
    """Build ``key=value&...`` in insertion order, percent-encoded."""
    return "&".join(
        f"{quote(str(key), safe=_SAFE)}={quote(encode_value(value), safe=_SAFE)}"
        for key, value in args.items()
    )


class Dispatcher:
    """Thin wrapper around httpx for Web API calls."""

    def __init__(
        self,
        base_url: str = "https://slack.com/api/",
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    def build_url(self, method: str, args: Mapping[str, Any] | None = None) -> str:
        """Full request URL for ``method`` with ``args`` in the query string."""
        return f"{self.base_url}{method}?{build_query(args or {})}"

    async def dispatch(self, method: str, args: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Call ``method`` and return the response body.

        Raises:
            TransportError: The request never got a response.
            ApiError: The body carries an error code (any status), or a 200
                body is not ``ok``.
            HttpStatusError: A non-200 response without an error code.
        """
        url = self.build_url(method, args)
        logger.debug("Calling %s", method)

        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            logger.debug("%s failed in transport: %r", method, e)
            raise TransportError(e, method=method) from e

        body = _parse_body(response)

        if response.status_code != 200:
            # Don't echo the raw body into the message; it may contain the
            # request's token.
            if isinstance(body, dict) and body.get("error"):
                raise ApiError(body["error"], method=method, status_code=response.status_code, body=body)
            raise HttpStatusError(response.status_code, method=method)

        if not isinstance(body, dict) or not body.get("ok"):
            code = body.get("error") if isinstance(body, dict) else None
            raise ApiError(code, method=method, body=body)

        if body.get("warning"):
            logger.info("%s succeeded with warning: %s", method, body["warning"])
        return body

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _parse_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None
