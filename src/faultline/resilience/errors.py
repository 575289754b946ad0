"""Advisor error types and classification.

The LLM backend raises exactly two failure types so callers can tell a
broken connection from a broken server, and both from a successful but
empty reply. ``classify_error`` maps arbitrary client exceptions onto
that split and decides which failures are worth a retry.
"""

from __future__ import annotations

import asyncio
from enum import Enum


class AdvisorError(Exception):
    """Base class for LLM backend failures."""


class TransportError(AdvisorError):
    """Connection refused, reset, or timed out before a reply."""


class ServerError(AdvisorError):
    """The backend answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedReplyError(AdvisorError):
    """The backend answered, but not in the line protocol."""


class ErrorClass(Enum):
    TRANSIENT = "transient"  # 429, network errors; retryable
    SERVER = "server"  # 500, 502, 503; retryable
    TIMEOUT = "timeout"  # deadline exceeded; retryable with backoff
    CLIENT = "client"  # 400, 401, 403; do NOT retry
    UNKNOWN = "unknown"  # unclassified; do NOT retry


def classify_error(error: Exception) -> ErrorClass:
    """Classify an error to determine handling strategy.

    Checks structured attributes first (status_code), falls back
    to string matching for untyped exceptions.
    """
    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int):
        if status_code == 429:
            return ErrorClass.TRANSIENT
        if 400 <= status_code < 500:
            return ErrorClass.CLIENT
        if 500 <= status_code < 600:
            return ErrorClass.SERVER

    if isinstance(error, (TimeoutError, asyncio.TimeoutError)):
        return ErrorClass.TIMEOUT
    if isinstance(error, (ConnectionError, TransportError)):
        return ErrorClass.TRANSIENT

    msg = str(error).lower()

    if "timeout" in msg or "timed out" in msg:
        return ErrorClass.TIMEOUT
    if "429" in msg or "rate limit" in msg or "rate_limit" in msg:
        return ErrorClass.TRANSIENT
    if any(code in msg for code in ("500", "502", "503", "504")):
        return ErrorClass.SERVER
    if "econnrefused" in msg or "connection" in msg:
        return ErrorClass.TRANSIENT
    if any(code in msg for code in ("400", "401", "403", "404")):
        return ErrorClass.CLIENT

    return ErrorClass.UNKNOWN


_RETRYABLE = frozenset({
    ErrorClass.TRANSIENT,
    ErrorClass.SERVER,
    ErrorClass.TIMEOUT,
})


def is_retryable(error: Exception) -> bool:
    """Return True if the error category supports retry."""
    return classify_error(error) in _RETRYABLE


def to_advisor_error(error: Exception) -> AdvisorError:
    """Wrap a backend client exception as TransportError or ServerError."""
    if isinstance(error, AdvisorError):
        return error
    kind = classify_error(error)
    if kind in (ErrorClass.TRANSIENT, ErrorClass.TIMEOUT) and getattr(
        error, "status_code", None
    ) is None:
        return TransportError(str(error))
    status = getattr(error, "status_code", None)
    return ServerError(
        str(error), status if isinstance(status, int) else None
    )
