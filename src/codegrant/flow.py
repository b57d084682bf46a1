"""
Flow controller: the two protocol phases of the authorization code grant.

The host constructs one controller per request, injecting its session
store, a redirect primitive and an outcome sink::

    flow = FlowController(
        config,
        session=request_session,
        redirect=response,
        outcome=handler,
        full_host="https://app.example.com",
    )

    # GET /auth/<name>
    flow.request_phase()

    # GET /auth/<name>/callback
    await flow.callback_phase(request.query_params)

``request_phase`` stores the state token and issues the redirect.
``callback_phase`` classifies the callback, exchanges the code and reports
exactly one outcome: ``on_success(credential)`` or ``on_failure(kind, error)``.
An exception raised by the sink is logged; the flow state and return value
stand.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from codegrant.authorize import AuthorizationURLBuilder, build_callback_url
from codegrant.classifier import CallbackClassifier, CallbackOk, CallbackRequest
from codegrant.credentials import Credential, project
from codegrant.errors import CallbackError, ErrorKind, SessionStoreError
from codegrant.state import StateTokenGuard, generate_pkce_pair
from codegrant.token import AccessToken, TokenExchanger

if TYPE_CHECKING:
    from codegrant.config import FlowConfig
    from codegrant.session import SessionStore

logger = logging.getLogger("codegrant.flow")


class FlowState(str, Enum):
    START = "start"
    REDIRECTING = "redirecting"
    AWAITING_CALLBACK = "awaiting_callback"
    CLASSIFYING = "classifying"
    EXCHANGING = "exchanging"
    REFRESHING = "refreshing"
    COMPLETE = "complete"
    FAILED = "failed"


class RedirectSink(Protocol):
    def redirect(self, url: str) -> None:
        """Issue an HTTP 3xx response toward ``url``."""
        ...


class OutcomeSink(Protocol):
    def on_success(self, credential: Credential) -> None: ...

    def on_failure(self, kind: ErrorKind, error: CallbackError) -> None: ...


class FlowController:
    """Orchestrates one authorization code flow for one end-user session."""

    def __init__(
        self,
        config: FlowConfig,
        *,
        session: SessionStore,
        redirect: RedirectSink,
        outcome: OutcomeSink,
        exchanger: TokenExchanger | None = None,
        guard: StateTokenGuard | None = None,
        full_host: str = "http://localhost",
        script_name: str = "",
    ) -> None:
        self.config = config
        self.session = session
        self.redirect = redirect
        self.outcome = outcome
        self.guard = guard or StateTokenGuard()
        self.exchanger = exchanger or TokenExchanger(config)
        self.url_builder = AuthorizationURLBuilder(config)
        self.classifier = CallbackClassifier(config, self.guard)
        self.full_host = full_host
        self.script_name = script_name

        self.state = FlowState.START
        self.access_token: AccessToken | None = None
        self.credential: Credential | None = None
        self.error: CallbackError | None = None

    @property
    def callback_url(self) -> str:
        return build_callback_url(self.full_host, self.script_name, self.config.resolved_callback_path)

    def _transition(self, state: FlowState) -> None:
        logger.debug("%s flow: %s -> %s", self.config.name, self.state.value, state.value)
        self.state = state

    # ------------------------------------------------------------------
    # Request phase
    # ------------------------------------------------------------------

    def request_phase(self, overrides: dict[str, str] | None = None) -> str:
        """Store the pending flow and redirect the browser to the provider.

        Returns:
            The authorize URL the browser was sent to.

        Raises:
            SessionStoreError: If the session write fails; no redirect is issued.
        """
        self._transition(FlowState.REDIRECTING)
        state_token = self.guard.generate()

        code_challenge = None
        pending: dict[str, str] = {}
        if not self.config.ignore_state:
            pending[self.config.state_key] = state_token
        if self.config.use_pkce:
            code_verifier, code_challenge = generate_pkce_pair()
            pending[self.config.verifier_key] = code_verifier

        url = self.url_builder.build(
            state_token, self.callback_url, overrides, code_challenge=code_challenge
        )

        try:
            for key, value in pending.items():
                self.session.set(key, value)
        except Exception as e:
            for key in pending:
                self.session.delete(key)
            self._transition(FlowState.START)
            raise SessionStoreError(f"Could not store pending {self.config.name} flow: {e}") from e

        self.redirect.redirect(url)
        self._transition(FlowState.AWAITING_CALLBACK)
        return url

    # ------------------------------------------------------------------
    # Callback phase
    # ------------------------------------------------------------------

    async def callback_phase(self, params: Mapping[str, Any]) -> Credential | CallbackError:
        """Process the provider's redirect back to :attr:`callback_url`."""
        self._transition(FlowState.CLASSIFYING)
        try:
            result = await self._run_callback(CallbackRequest.from_params(params))
        except Exception as e:  # noqa: BLE001
            logger.exception("Unexpected failure in %s callback", self.config.name)
            result = CallbackError(ErrorKind.INVALID_RESPONSE, "invalid_response", str(e) or type(e).__name__)

        if isinstance(result, CallbackError):
            return self._fail(result)

        self.credential = result
        self._transition(FlowState.COMPLETE)
        logger.info("%s flow complete", self.config.name)
        try:
            self.outcome.on_success(result)
        except Exception:  # noqa: BLE001
            logger.exception("%s outcome sink raised on success", self.config.name)
        return result

    async def _run_callback(self, request: CallbackRequest) -> Credential | CallbackError:
        classified = self.classifier.classify(request, self.session)
        if not isinstance(classified, CallbackOk):
            return classified

        self._transition(FlowState.EXCHANGING)
        result = await self.exchanger.exchange(
            classified.code,
            self.callback_url,
            code_verifier=classified.code_verifier,
            refresh_expired=False,
        )
        if isinstance(result, CallbackError):
            return result

        if self.config.refresh_expired and result.expired:
            self._transition(FlowState.REFRESHING)
            result = await self.exchanger.refresh(result)
            if isinstance(result, CallbackError):
                return result

        self.access_token = result
        return project(result)

    def _fail(self, error: CallbackError) -> CallbackError:
        self.error = error
        self._transition(FlowState.FAILED)
        logger.warning("%s flow failed: %s (%s)", self.config.name, error.kind.value, error.message)
        try:
            self.outcome.on_failure(error.kind, error)
        except Exception:  # noqa: BLE001
            logger.exception("%s outcome sink raised on failure", self.config.name)
        return error
