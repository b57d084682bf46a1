"""
Callback classification: success, provider error, or CSRF.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from codegrant.errors import CallbackError, ErrorKind
from codegrant.state import StateTokenGuard

if TYPE_CHECKING:
    from codegrant.config import FlowConfig
    from codegrant.session import SessionStore

logger = logging.getLogger("codegrant.classifier")


@dataclass(frozen=True)
class CallbackRequest:
    """Query parameters delivered to the callback URL."""

    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None
    error_reason: str | None = None
    error_uri: str | None = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> CallbackRequest:
        """Build from a query mapping; list values (parse_qs style) use the first item."""

        def _first(name: str) -> str | None:
            value = params.get(name)
            if isinstance(value, (list, tuple)):
                value = value[0] if value else None
            return None if value is None else str(value)

        return cls(
            code=_first("code"),
            state=_first("state"),
            error=_first("error"),
            error_description=_first("error_description"),
            error_reason=_first("error_reason"),
            error_uri=_first("error_uri"),
        )


@dataclass(frozen=True)
class CallbackOk:
    """A callback that passed both the provider-error and CSRF checks."""

    code: str | None
    code_verifier: str | None = None


class CallbackClassifier:
    """Classifies a callback against the pending flow in the session.

    Provider errors are reported before the state check. Unless
    ``ignore_state`` is set, the stored state token is removed from the
    session on every classification, provider errors included, so it can
    never be replayed.
    """

    def __init__(self, config: FlowConfig, guard: StateTokenGuard | None = None) -> None:
        self.config = config
        self.guard = guard or StateTokenGuard()

    def classify(
        self, request: CallbackRequest, session: SessionStore
    ) -> CallbackOk | CallbackError:
        # The pending flow is consumed whatever the outcome.
        expected = None
        if not self.config.ignore_state:
            expected = session.delete(self.config.state_key)
        code_verifier = None
        if self.config.use_pkce:
            code_verifier = session.delete(self.config.verifier_key)

        # Presence counts, even with an empty value.
        if request.error is not None or request.error_reason is not None:
            error = request.error if request.error is not None else request.error_reason
            logger.debug("Callback carries provider error %r", error)
            return CallbackError(
                ErrorKind.PROVIDER_ERROR,
                error=error,
                reason=request.error_description or request.error_reason,
                uri=request.error_uri,
            )

        if not self.config.ignore_state and not self.guard.verify(expected, request.state):
            return CallbackError(ErrorKind.CSRF_DETECTED, "csrf_detected", "CSRF detected")

        return CallbackOk(code=request.code, code_verifier=code_verifier)
