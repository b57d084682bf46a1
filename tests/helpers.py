"""Fakes and factories shared by the codegrant tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx

from codegrant.config import FlowConfig
from codegrant.credentials import Credential
from codegrant.errors import CallbackError, ErrorKind
from codegrant.token import TokenExchanger

TOKEN_URL = "https://provider.example.com/oauth/token"
AUTHORIZE_URL = "https://provider.example.com/oauth/authorize"


class RecordingRedirect:
    def __init__(self) -> None:
        self.urls: list[str] = []

    def redirect(self, url: str) -> None:
        self.urls.append(url)


class RecordingOutcome:
    def __init__(self) -> None:
        self.successes: list[Credential] = []
        self.failures: list[tuple[ErrorKind, CallbackError]] = []

    def on_success(self, credential: Credential) -> None:
        self.successes.append(credential)

    def on_failure(self, kind: ErrorKind, error: CallbackError) -> None:
        self.failures.append((kind, error))


def make_config(**overrides: Any) -> FlowConfig:
    data: dict[str, Any] = {
        "name": "example",
        "client_id": "test_client",
        "client_secret": "test_secret",
        "authorize_url": AUTHORIZE_URL,
        "token_url": TOKEN_URL,
    }
    data.update(overrides)
    return FlowConfig(**data)


def make_exchanger(
    config: FlowConfig,
    handler: Callable[[httpx.Request], httpx.Response],
) -> TokenExchanger:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TokenExchanger(config, http_client=client)
