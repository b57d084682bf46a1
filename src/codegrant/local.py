"""
Loopback flow for desktop and command-line clients.

Runs both phases of :class:`~codegrant.flow.FlowController` inside one
process: a one-shot local HTTP server receives the provider's redirect, and
the user's browser plays the part of the host's redirect primitive.

Usage::

    config = FlowConfig.load("provider.yaml")
    credential = await authorize_interactive(config, port=8080)
"""

from __future__ import annotations

import asyncio
import html
import logging
import threading
import time
import webbrowser
from collections.abc import Callable
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qs, urlparse

from codegrant.errors import CallbackError, ErrorKind
from codegrant.flow import FlowController
from codegrant.session import InMemorySessionStore

if TYPE_CHECKING:
    from codegrant.config import FlowConfig
    from codegrant.credentials import Credential
    from codegrant.token import TokenExchanger

logger = logging.getLogger("codegrant.local")

_PAGE = """<!DOCTYPE html>
<html>
<head><title>{title}</title></head>
<body style="font-family: sans-serif; text-align: center; margin-top: 15vh;">
    <h1>{title}</h1>
    <p>{message}</p>
</body>
</html>
"""


class _CallbackHTTPServer(HTTPServer):
    callback_path: str = "/callback"
    callback_params: dict[str, str] | None = None


class _CallbackHandler(BaseHTTPRequestHandler):
    """Captures the query string of the first request to the callback path."""

    server: _CallbackHTTPServer

    def do_GET(self) -> None:
        parsed = urlparse(self.path)
        if parsed.path.rstrip("/") != self.server.callback_path.rstrip("/"):
            self._send_page(404, "Not Found", "This server only handles the OAuth2 callback.")
            return

        params = {k: v[0] for k, v in parse_qs(parsed.query, keep_blank_values=True).items()}
        self.server.callback_params = params

        if "error" in params or "error_reason" in params:
            message = params.get("error_description") or params.get("error") or params.get("error_reason", "")
            self._send_page(400, "Authorization Failed", message)
        else:
            self._send_page(200, "Authorization Received", "You can close this window and return to the terminal.")

    def _send_page(self, status: int, title: str, message: str) -> None:
        body = _PAGE.format(title=html.escape(title), message=html.escape(message)).encode()
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        """Route request logs through the module logger."""
        logger.debug("callback server: " + format, *args)


class LocalCallbackServer:
    """Local HTTP server that captures one OAuth2 callback.

    Pass ``port=0`` to let the OS pick a free port.
    """

    def __init__(self, port: int = 8080, callback_path: str = "/callback", host: str = "localhost") -> None:
        self.host = host
        self.port = port
        self.callback_path = callback_path
        self._server: _CallbackHTTPServer | None = None
        self._thread: threading.Thread | None = None
        self._stopping = threading.Event()

    @property
    def full_host(self) -> str:
        return f"http://{self.host}:{self.port}"

    def get_redirect_uri(self) -> str:
        return self.full_host + self.callback_path

    def start(self) -> None:
        """Start serving in a background thread."""
        self._stopping.clear()
        self._server = _CallbackHTTPServer((self.host, self.port), _CallbackHandler)
        self._server.callback_path = self.callback_path
        self._server.timeout = 0.5
        self.port = self._server.server_address[1]
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()
        logger.debug("OAuth callback server started on port %d", self.port)

    def _serve(self) -> None:
        server = self._server
        while server is not None and server.callback_params is None and not self._stopping.is_set():
            server.handle_request()

    def stop(self) -> None:
        self._stopping.set()
        if self._thread:
            self._thread.join(timeout=2)
            self._thread = None
        if self._server:
            self._server.server_close()
            self._server = None
        logger.debug("OAuth callback server stopped")

    @property
    def params(self) -> dict[str, str] | None:
        return self._server.callback_params if self._server else None

    async def wait_for_callback(self, timeout: float = 300) -> dict[str, str]:
        """Wait for the callback query parameters.

        Raises:
            TimeoutError: If no callback arrives within ``timeout`` seconds.
        """
        start = time.monotonic()
        while time.monotonic() - start < timeout:
            params = self.params
            if params is not None:
                return params
            await asyncio.sleep(0.1)

        raise TimeoutError(f"OAuth callback not received within {timeout}s")


class _BrowserRedirect:
    def __init__(self, open_browser: bool, on_url: Callable[[str], None] | None) -> None:
        self.open_browser = open_browser
        self.on_url = on_url
        self.url: str | None = None

    def redirect(self, url: str) -> None:
        self.url = url
        if self.on_url:
            self.on_url(url)
        if self.open_browser:
            webbrowser.open(url)


class _CollectedOutcome:
    def __init__(self) -> None:
        self.credential: Credential | None = None
        self.error: CallbackError | None = None

    def on_success(self, credential: Credential) -> None:
        self.credential = credential

    def on_failure(self, kind: ErrorKind, error: CallbackError) -> None:
        self.error = error


async def authorize_interactive(
    config: FlowConfig,
    *,
    port: int = 8080,
    timeout: float = 300,
    open_browser: bool = True,
    on_url: Callable[[str], None] | None = None,
    exchanger: TokenExchanger | None = None,
) -> Credential:
    """Complete an authorization code flow through the user's browser.

    Args:
        config: Provider settings. The callback path is served on localhost.
        port: Local port for the callback server (0 picks a free one).
        timeout: Seconds to wait for the user to finish in the browser.
        open_browser: Open the authorize URL automatically.
        on_url: Called with the authorize URL once it is built.
        exchanger: Token exchanger to use instead of a fresh one.

    Returns:
        The projected credential.

    Raises:
        TimeoutError: If the user does not complete the flow in time.
        CallbackError: If the flow fails; ``kind`` tells why.
    """
    server = LocalCallbackServer(port=port, callback_path=config.resolved_callback_path)
    server.start()

    redirect = _BrowserRedirect(open_browser, on_url)
    outcome = _CollectedOutcome()
    flow = FlowController(
        config,
        session=InMemorySessionStore(),
        redirect=redirect,
        outcome=outcome,
        exchanger=exchanger,
        full_host=server.full_host,
    )

    try:
        logger.info("Starting %s authorization in the browser", config.name)
        flow.request_phase()
        params = await server.wait_for_callback(timeout=timeout)
        await flow.callback_phase(params)
    finally:
        server.stop()
        if exchanger is None:
            await flow.exchanger.close()

    if outcome.error is not None:
        raise outcome.error
    if outcome.credential is None:
        raise CallbackError(
            ErrorKind.INVALID_RESPONSE, "invalid_response", f"{config.name} flow finished without a credential"
        )
    return outcome.credential
