"""
Failure taxonomy for the authorization code flow.

Every terminal failure of a callback is reported as a :class:`CallbackError`
tagged with an :class:`ErrorKind`. The classifier and the token exchanger
return these as values; the flow controller hands them to the host.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Kinds of terminal callback failure."""

    PROVIDER_ERROR = "provider_error"
    CSRF_DETECTED = "csrf_detected"
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_RESPONSE = "invalid_response"
    TIMEOUT = "timeout"
    FAILED_TO_CONNECT = "failed_to_connect"


class CodeGrantError(Exception):
    """Base exception for codegrant."""


class ConfigError(CodeGrantError):
    """Raised when a flow configuration cannot be loaded or validated."""


class SessionStoreError(CodeGrantError):
    """Raised when the pending flow cannot be written to the session store."""


class CallbackError(CodeGrantError):
    """An error indicated by, or raised while processing, an OAuth2 callback.

    Args:
        kind: Failure bucket reported to the host.
        error: Provider error code (e.g. ``access_denied``) or a short label.
        reason: Human-readable description.
        uri: Link to provider documentation for the error, if any.
    """

    def __init__(
        self,
        kind: ErrorKind,
        error: str | None = None,
        reason: str | None = None,
        uri: str | None = None,
    ) -> None:
        self.kind = kind
        self.error = error
        self.reason = reason
        self.uri = uri
        super().__init__(self.message)

    @property
    def message(self) -> str:
        return " | ".join(part for part in (self.error, self.reason, self.uri) if part)

    def to_dict(self) -> dict[str, str | None]:
        return {
            "kind": self.kind.value,
            "error": self.error,
            "reason": self.reason,
            "uri": self.uri,
        }

    def __repr__(self) -> str:
        return f"CallbackError(kind={self.kind.value!r}, message={self.message!r})"
