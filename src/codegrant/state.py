"""
Anti-CSRF state tokens and PKCE helpers.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import secrets

# 24 random bytes -> 48 hex characters (192 bits)
_STATE_BYTES = 24


class StateTokenGuard:
    """Generates and verifies the per-flow state nonce.

    The raw token is only ever handed to the session store and the
    authorize URL; nothing here logs it.
    """

    def __init__(self, nbytes: int = _STATE_BYTES) -> None:
        if nbytes < 16:
            raise ValueError("State tokens need at least 128 bits of entropy")
        self.nbytes = nbytes

    def generate(self) -> str:
        return secrets.token_hex(self.nbytes)

    @staticmethod
    def verify(expected: str | None, received: str | None) -> bool:
        """Constant-time equality; empty or missing values never verify."""
        if not expected or not received:
            return False
        return hmac.compare_digest(expected.encode(), received.encode())


def generate_pkce_pair() -> tuple[str, str]:
    """Generate a PKCE code_verifier and code_challenge pair.

    Returns:
        Tuple of (code_verifier, code_challenge) for the S256 method.
    """
    # 43-128 character verifier
    code_verifier = secrets.token_urlsafe(64)[:128]

    digest = hashlib.sha256(code_verifier.encode()).digest()
    code_challenge = base64.urlsafe_b64encode(digest).decode().rstrip("=")

    return code_verifier, code_challenge
