"""Tests for callback classification."""

from __future__ import annotations

from helpers import make_config

from codegrant.classifier import CallbackClassifier, CallbackOk, CallbackRequest
from codegrant.errors import CallbackError, ErrorKind
from codegrant.session import InMemorySessionStore

STATE = "a" * 48


def _session_with_state(key: str = "example.state", value: str = STATE) -> InMemorySessionStore:
    return InMemorySessionStore({key: value})


class TestCallbackRequest:
    def test_from_plain_mapping(self) -> None:
        request = CallbackRequest.from_params({"code": "c1", "state": "s1"})
        assert request.code == "c1"
        assert request.state == "s1"
        assert request.error is None

    def test_from_parse_qs_lists(self) -> None:
        request = CallbackRequest.from_params({"code": ["c1", "c2"], "error_uri": []})
        assert request.code == "c1"
        assert request.error_uri is None


class TestCallbackClassifier:
    def test_ok(self) -> None:
        session = _session_with_state()
        result = CallbackClassifier(make_config()).classify(
            CallbackRequest(code="c1", state=STATE), session
        )
        assert result == CallbackOk(code="c1")
        assert "example.state" not in session

    def test_provider_error_before_csrf(self) -> None:
        session = _session_with_state()
        result = CallbackClassifier(make_config()).classify(
            CallbackRequest.from_params({"error": "access_denied", "state": "wrong"}),
            session,
        )
        assert isinstance(result, CallbackError)
        assert result.kind is ErrorKind.PROVIDER_ERROR
        assert result.error == "access_denied"

    def test_provider_error_details(self) -> None:
        result = CallbackClassifier(make_config()).classify(
            CallbackRequest(
                error="redirect_uri_mismatch",
                error_description="The redirect_uri does not match",
                error_uri="https://provider.example.com/docs/errors",
            ),
            _session_with_state(),
        )
        assert isinstance(result, CallbackError)
        assert result.reason == "The redirect_uri does not match"
        assert result.uri == "https://provider.example.com/docs/errors"
        assert str(result) == (
            "redirect_uri_mismatch | The redirect_uri does not match | "
            "https://provider.example.com/docs/errors"
        )

    def test_error_reason_alone_is_provider_error(self) -> None:
        result = CallbackClassifier(make_config()).classify(
            CallbackRequest(error_reason="user_denied"), _session_with_state()
        )
        assert isinstance(result, CallbackError)
        assert result.kind is ErrorKind.PROVIDER_ERROR
        assert result.error == "user_denied"
        assert result.reason == "user_denied"

    def test_empty_error_is_provider_error(self) -> None:
        result = CallbackClassifier(make_config()).classify(
            CallbackRequest.from_params({"code": "c1", "state": STATE, "error": ""}),
            _session_with_state(),
        )
        assert isinstance(result, CallbackError)
        assert result.kind is ErrorKind.PROVIDER_ERROR
        assert result.error == ""

    def test_empty_error_reason_is_provider_error(self) -> None:
        result = CallbackClassifier(make_config()).classify(
            CallbackRequest.from_params({"code": "c1", "state": STATE, "error_reason": ""}),
            _session_with_state(),
        )
        assert isinstance(result, CallbackError)
        assert result.kind is ErrorKind.PROVIDER_ERROR

    def test_provider_error_consumes_state(self) -> None:
        session = _session_with_state()
        CallbackClassifier(make_config()).classify(CallbackRequest(error="access_denied"), session)
        assert "example.state" not in session

    def test_missing_state_is_csrf(self) -> None:
        result = CallbackClassifier(make_config()).classify(
            CallbackRequest(code="c1"), _session_with_state()
        )
        assert isinstance(result, CallbackError)
        assert result.kind is ErrorKind.CSRF_DETECTED
        assert result.reason == "CSRF detected"

    def test_mismatched_state_is_csrf_and_consumes(self) -> None:
        session = _session_with_state()
        result = CallbackClassifier(make_config()).classify(
            CallbackRequest(code="c1", state="b" * 48), session
        )
        assert isinstance(result, CallbackError)
        assert result.kind is ErrorKind.CSRF_DETECTED
        assert "example.state" not in session

    def test_no_pending_flow_is_csrf(self) -> None:
        result = CallbackClassifier(make_config()).classify(
            CallbackRequest(code="c1", state=STATE), InMemorySessionStore()
        )
        assert isinstance(result, CallbackError)
        assert result.kind is ErrorKind.CSRF_DETECTED

    def test_ignore_state(self) -> None:
        session = InMemorySessionStore()
        result = CallbackClassifier(make_config(ignore_state=True)).classify(
            CallbackRequest(code="c1"), session
        )
        assert result == CallbackOk(code="c1")

    def test_pkce_verifier_returned(self) -> None:
        session = InMemorySessionStore({"example.state": STATE, "example.pkce_verifier": "v" * 50})
        result = CallbackClassifier(make_config(use_pkce=True)).classify(
            CallbackRequest(code="c1", state=STATE), session
        )
        assert result == CallbackOk(code="c1", code_verifier="v" * 50)
        assert len(session) == 0
