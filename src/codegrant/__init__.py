"""
codegrant: the OAuth 2.0 authorization code grant as a pluggable strategy.

Drives the browser redirect to an authorization server, checks the callback
for CSRF, exchanges the code for an access token and hands the host a
provider-agnostic credential.
"""

__version__ = "0.1.0"

from codegrant.config import FlowConfig  # noqa: E402
from codegrant.credentials import Credential, project  # noqa: E402
from codegrant.errors import (  # noqa: E402
    CallbackError,
    CodeGrantError,
    ConfigError,
    ErrorKind,
    SessionStoreError,
)
from codegrant.flow import FlowController, FlowState, OutcomeSink, RedirectSink  # noqa: E402
from codegrant.session import InMemorySessionStore, SessionStore  # noqa: E402
from codegrant.state import StateTokenGuard  # noqa: E402
from codegrant.token import AccessToken, TokenExchanger  # noqa: E402

__all__ = [
    "AccessToken",
    "CallbackError",
    "CodeGrantError",
    "ConfigError",
    "Credential",
    "ErrorKind",
    "FlowConfig",
    "FlowController",
    "FlowState",
    "InMemorySessionStore",
    "OutcomeSink",
    "RedirectSink",
    "SessionStore",
    "StateTokenGuard",
    "TokenExchanger",
    "project",
]
