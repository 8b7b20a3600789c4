"""
Error classification — maps a transport outcome to an ErrorKind.

Rules, in priority order:
1. Transport failure (connect, timeout, broken read) → Network
2. 401 / 403 → Validation (authorization failures are validation errors)
3. 429 → RateLimited, retry_after_ms parsed from the retry-after header
4. 5xx → Server
5. 404 → NotFound when a key is known, Validation otherwise
6. Anything else → Validation, with the response body as details

Network, Server and RateLimited are retry-eligible. NotFound and
Validation are not.
"""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from recall.core.errors import (
    ErrorKind,
    Network,
    NotFound,
    RateLimited,
    Server,
    Validation,
)


def classify(outcome: httpx.Response | BaseException, key: str | None = None) -> ErrorKind:
    """Classify a failed response or a raised transport exception."""
    if isinstance(outcome, BaseException):
        return classify_transport_error(outcome)
    return classify_response(outcome, key=key)


def classify_transport_error(error: BaseException) -> ErrorKind:
    """Every exception escaping the transport is a network failure."""
    detail = str(error) or type(error).__name__
    return Network(cause=f"{type(error).__name__}: {detail}")


def classify_response(response: httpx.Response, key: str | None = None) -> ErrorKind:
    """Classify a non-2xx response. The body must already be read."""
    status = response.status_code
    body = response_body(response)
    message = _extract_message(body, status)

    if status in (401, 403):
        return Validation(f"Authorization failed: {message}", details=body)

    if status == 429:
        return RateLimited(retry_after_ms=parse_retry_after(response.headers.get("retry-after")))

    if status >= 500:
        return Server(status=status, message=message)

    if status == 404:
        if key:
            return NotFound(key=key)
        return Validation(message, details=body)

    return Validation(message, details=body)


def classify_item_status(key: str, status: int, error: str | None = None) -> ErrorKind:
    """Translate a per-item status from a batch response."""
    reason = error or "Unknown"
    if status == 404:
        return NotFound(key=key)
    if status in (401, 403):
        return Validation(f"Authorization failed for item {key}: {reason}")
    if status == 400:
        return Validation(f"Bad request for item {key}: {reason}")
    return Validation(f"Item {key} failed with status {status}: {reason}")


def is_retry_eligible(kind: ErrorKind) -> bool:
    return isinstance(kind, (Network, Server, RateLimited))


def parse_retry_after(value: str | None, now: datetime | None = None) -> int | None:
    """
    Parse a retry-after header into milliseconds.

    Accepts integer seconds or an HTTP date. Dates in the past clamp to 0.
    Missing or unparseable values give None.
    """
    if not value:
        return None
    value = value.strip()

    try:
        return max(0, int(value) * 1000)
    except ValueError:
        pass

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)

    now = now or datetime.now(timezone.utc)
    return max(0, int((when - now).total_seconds() * 1000))


def response_body(response: httpx.Response) -> Any:
    """JSON body if it parses, raw text otherwise, None when empty."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _extract_message(body: Any, status: int) -> str:
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return f"HTTP {status}"
