"""Unified exception hierarchy for mongosession.

All store exceptions inherit from SessionStoreException, enabling unified
error handling in request handlers and middleware.

Categories:
- InfrastructureException: Database connectivity and query failures
- SerializationException: Session payload encode/decode failures
- CodecException: Cookie signing or verification failures
- SessionLoadException: Loading failed but a usable fresh session exists
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mongosession.session.session import Session


class SessionStoreException(Exception):
    """Base exception for all mongosession errors.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code (e.g. "SESSION_COOKIE_INVALID").
        context: Arbitrary key-value pairs for error context and debugging.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.context: dict[str, Any] = context if context is not None else {}


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


class InfrastructureException(SessionStoreException):
    """Database failures: connectivity, queries, schema management."""


class StoreConnectionException(InfrastructureException):
    """The database could not be reached while constructing the store."""


class StorePersistenceException(InfrastructureException):
    """A lookup, upsert, delete, sweep or count query failed."""


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


class SerializationException(SessionStoreException):
    """Session values could not be encoded to, or decoded from, the payload."""


# ---------------------------------------------------------------------------
# Cookies
# ---------------------------------------------------------------------------


class CodecException(SessionStoreException):
    """A cookie codec failed to encode or verify a value."""


# ---------------------------------------------------------------------------
# Load outcomes that still produce a session
# ---------------------------------------------------------------------------


class SessionLoadException(SessionStoreException):
    """Loading a session failed, but a fresh empty session is available.

    Callers that want to continue anonymously use :attr:`session`; callers
    that want to reject the request let the exception propagate.
    """

    def __init__(
        self,
        message: str,
        session: Session,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code=code, context=context)
        self.session = session


class CookieVerificationException(SessionLoadException):
    """The session cookie is malformed, tampered with, or expired."""


class CorruptSessionException(SessionLoadException):
    """A stored record exists but its payload cannot be deserialized."""
