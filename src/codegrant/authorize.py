"""
Authorize-endpoint URL construction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

if TYPE_CHECKING:
    from codegrant.config import FlowConfig


def build_callback_url(full_host: str, script_name: str, callback_path: str) -> str:
    """Join the host's public base URL, mount path and callback path."""
    parts = [full_host.rstrip("/")]
    for segment in (script_name, callback_path):
        segment = segment.strip("/")
        if segment:
            parts.append(segment)
    return "/".join(parts)


class AuthorizationURLBuilder:
    """Composes the redirect target toward the authorization server.

    Query parameters are merged with increasing precedence:

    1. parameters already present on ``authorize_url``
    2. ``authorize_endpoint_options``
    3. the ``scope`` setting
    4. per-request overrides
    5. protocol fields: ``response_type``, ``client_id``, ``redirect_uri``,
       ``state`` and the PKCE challenge

    The configuration is never mutated, so every key appears once no matter
    how many URLs are built.
    """

    def __init__(self, config: FlowConfig) -> None:
        self.config = config

    def authorize_params(
        self,
        state_token: str,
        redirect_uri: str,
        overrides: dict[str, str] | None = None,
        *,
        code_challenge: str | None = None,
    ) -> dict[str, str]:
        params: dict[str, str] = dict(self.config.authorize_endpoint_options)
        if self.config.scope:
            params["scope"] = self.config.scope
        if overrides:
            params.update(overrides)

        params.update({
            "response_type": "code",
            "client_id": self.config.client_id,
            "redirect_uri": redirect_uri,
            "state": state_token,
        })
        if code_challenge:
            params["code_challenge"] = code_challenge
            params["code_challenge_method"] = "S256"
        return params

    def build(
        self,
        state_token: str,
        redirect_uri: str,
        overrides: dict[str, str] | None = None,
        *,
        code_challenge: str | None = None,
    ) -> str:
        """Return the fully-qualified authorize URL."""
        scheme, netloc, path, query, fragment = urlsplit(self.config.authorize_url)
        merged = dict(parse_qsl(query, keep_blank_values=True))
        merged.update(
            self.authorize_params(
                state_token, redirect_uri, overrides, code_challenge=code_challenge
            )
        )
        return urlunsplit((scheme, netloc, path, urlencode(merged), fragment))
