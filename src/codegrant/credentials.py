"""
Provider-agnostic credential record handed to the host.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from codegrant.token import AccessToken


@dataclass(frozen=True)
class Credential:
    """Stable credential shape.

    ``refresh_token`` and ``expires_at`` are only ever set when ``expires``
    is true.
    """

    token: str
    expires: bool
    refresh_token: str | None = None
    expires_at: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"token": self.token}
        if self.expires and self.refresh_token:
            data["refresh_token"] = self.refresh_token
        if self.expires:
            data["expires_at"] = self.expires_at
        data["expires"] = self.expires
        return data


def project(token: AccessToken) -> Credential:
    """Map an access token onto a :class:`Credential`, dropping provider extras."""
    if not token.expires:
        return Credential(token=token.token, expires=False)
    return Credential(
        token=token.token,
        expires=True,
        refresh_token=token.refresh_token or None,
        expires_at=token.expires_at,
    )
