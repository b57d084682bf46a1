"""
Token endpoint client: authorization code exchange and refresh.

Failures never escape as exceptions. Each call returns either an
:class:`AccessToken` or a :class:`~codegrant.errors.CallbackError` tagged
with the failure kind, so the flow controller can branch on the result.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qsl

import httpx

from codegrant.errors import CallbackError, ErrorKind

if TYPE_CHECKING:
    from codegrant.config import FlowConfig

logger = logging.getLogger("codegrant.token")

_KNOWN_FIELDS = {"access_token", "refresh_token", "expires_in", "expires", "expires_at"}


class _ResponseError(Exception):
    """Internal: the token endpoint answered, but not with a usable token."""

    def __init__(self, kind: ErrorKind, error: str, reason: str | None = None, uri: str | None = None) -> None:
        super().__init__(error)
        self.callback_error = CallbackError(kind, error, reason, uri)


@dataclass
class AccessToken:
    """Token returned by the token endpoint."""

    token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    expires_at: int | None = None
    params: dict[str, Any] = field(default_factory=dict)

    @property
    def expires(self) -> bool:
        return self.expires_at is not None

    @property
    def expired(self) -> bool:
        """True when the token expires and its expiry boundary has passed."""
        return self.expires and self.expires_at <= int(time.time())  # type: ignore[operator]

    @classmethod
    def from_response(cls, data: dict[str, Any], *, now: float | None = None) -> AccessToken:
        """Parse a token endpoint response body.

        ``expires_in`` (or the legacy ``expires``) is turned into an absolute
        ``expires_at``; an explicit ``expires_at`` takes precedence.
        """
        now = time.time() if now is None else now

        expires_in = data.get("expires_in", data.get("expires"))
        expires_in = int(expires_in) if expires_in not in (None, "") else None

        expires_at = data.get("expires_at")
        if expires_at not in (None, ""):
            expires_at = int(expires_at)
        elif expires_in is not None:
            expires_at = int(now) + expires_in
        else:
            expires_at = None

        return cls(
            token=str(data["access_token"]),
            refresh_token=data.get("refresh_token") or None,
            expires_in=expires_in,
            expires_at=expires_at,
            params={k: v for k, v in data.items() if k not in _KNOWN_FIELDS},
        )


class TokenExchanger:
    """Trades authorization codes (and refresh tokens) for access tokens.

    Usage::

        exchanger = TokenExchanger(config)
        result = await exchanger.exchange(code, redirect_uri)
        if isinstance(result, CallbackError):
            ...
        await exchanger.close()
    """

    def __init__(self, config: FlowConfig, *, http_client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self._http_client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create a reusable httpx client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.config.timeout)
            self._owns_client = True
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client if this exchanger created it."""
        if self._owns_client and self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def __aenter__(self) -> TokenExchanger:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    async def exchange(
        self,
        code: str | None,
        redirect_uri: str,
        *,
        code_verifier: str | None = None,
        refresh_expired: bool | None = None,
    ) -> AccessToken | CallbackError:
        """Exchange an authorization code, refreshing once if already expired.

        ``refresh_expired`` defaults to the configured setting; callers that
        drive the refresh themselves pass False.
        """
        if refresh_expired is None:
            refresh_expired = self.config.refresh_expired
        if not code:
            return CallbackError(
                ErrorKind.INVALID_CREDENTIALS, "invalid_request", "Authorization code missing from callback"
            )

        fields: dict[str, str] = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
        }
        if code_verifier:
            fields["code_verifier"] = code_verifier

        result = await self._request_token(fields)
        if isinstance(result, CallbackError):
            return result

        logger.info("Exchanged authorization code for %s token", self.config.name)
        if refresh_expired and result.expired:
            logger.debug("%s token already expired at receipt, refreshing", self.config.name)
            return await self.refresh(result)
        return result

    async def refresh(self, token: AccessToken) -> AccessToken | CallbackError:
        """Obtain a new access token with ``token.refresh_token``.

        A response without a new refresh token keeps the previous one.
        """
        if not token.refresh_token:
            return CallbackError(
                ErrorKind.INVALID_CREDENTIALS, "invalid_grant", "A refresh token is not available"
            )

        result = await self._request_token({
            "grant_type": "refresh_token",
            "refresh_token": token.refresh_token,
        })
        if isinstance(result, CallbackError):
            return result

        if not result.refresh_token:
            result.refresh_token = token.refresh_token
        logger.info("Refreshed %s access token", self.config.name)
        return result

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _build_request(self, fields: dict[str, str]) -> tuple[dict[str, str], dict[str, str], httpx.BasicAuth | None]:
        """Body, headers and auth for a token request.

        ``extra_token_params`` go underneath the protocol fields so they can
        never replace ``grant_type``, ``code`` or ``redirect_uri``.
        """
        data = {**self.config.extra_token_params, **fields}
        headers = {"Accept": "application/json", **self.config.token_endpoint_options}

        auth = None
        if self.config.auth_scheme == "basic_auth":
            auth = httpx.BasicAuth(self.config.client_id, self.config.client_secret)
        else:
            data["client_id"] = self.config.client_id
            if self.config.client_secret:
                data["client_secret"] = self.config.client_secret
        return data, headers, auth

    async def _request_token(self, fields: dict[str, str]) -> AccessToken | CallbackError:
        data, headers, auth = self._build_request(fields)
        grant = fields["grant_type"]

        try:
            client = await self._get_client()
            logger.debug("POST %s (grant_type=%s)", self.config.token_url, grant)
            kwargs: dict[str, Any] = {
                "data": data,
                "headers": headers,
                "timeout": httpx.Timeout(self.config.timeout),
            }
            if auth is not None:
                kwargs["auth"] = auth
            # Deadline for the whole call, body included.
            resp = await asyncio.wait_for(
                client.post(self.config.token_url, **kwargs),
                timeout=self.config.timeout,
            )
            return self._parse_response(resp)
        except _ResponseError as e:
            error = e.callback_error
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            error = CallbackError(
                ErrorKind.TIMEOUT,
                "timeout",
                str(e) or f"Token request exceeded {self.config.timeout}s",
            )
        except httpx.TransportError as e:
            error = CallbackError(ErrorKind.FAILED_TO_CONNECT, "failed_to_connect", str(e) or type(e).__name__)
        except Exception as e:  # noqa: BLE001
            logger.exception("Unexpected failure calling %s token endpoint", self.config.name)
            error = CallbackError(ErrorKind.INVALID_RESPONSE, "invalid_response", str(e) or type(e).__name__)

        logger.warning("Token request (%s) failed: %s [%s]", grant, error.message, error.kind.value)
        return error

    def _parse_response(self, resp: httpx.Response) -> AccessToken:
        body = _decode_body(resp)

        if resp.status_code >= 400 or (isinstance(body, dict) and body.get("error")):
            if isinstance(body, dict) and body.get("error"):
                raise _ResponseError(
                    ErrorKind.INVALID_CREDENTIALS,
                    str(body["error"]),
                    body.get("error_description"),
                    body.get("error_uri"),
                )
            raise _ResponseError(
                ErrorKind.INVALID_CREDENTIALS,
                f"http_{resp.status_code}",
                resp.reason_phrase or None,
            )

        if not isinstance(body, dict):
            raise _ResponseError(
                ErrorKind.INVALID_RESPONSE, "invalid_response", "Token response could not be parsed"
            )
        if not body.get("access_token"):
            raise _ResponseError(
                ErrorKind.INVALID_RESPONSE, "invalid_response", "Token response has no access_token"
            )
        try:
            return AccessToken.from_response(body)
        except (TypeError, ValueError) as e:
            raise _ResponseError(ErrorKind.INVALID_RESPONSE, "invalid_response", str(e)) from e


def _decode_body(resp: httpx.Response) -> dict[str, Any] | None:
    """Decode a JSON or form-encoded body; None when it is neither."""
    content_type = resp.headers.get("content-type", "").split(";")[0].strip().lower()
    text = resp.text

    if content_type != "application/x-www-form-urlencoded":
        try:
            body = json.loads(text)
        except ValueError:
            body = None
        if isinstance(body, dict):
            return body
        if content_type != "text/plain":
            return None

    # Form-encoded, or text/plain that is not JSON
    if "=" not in text:
        return None
    return dict(parse_qsl(text.strip(), keep_blank_values=True))
