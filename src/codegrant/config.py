"""
Flow configuration.

Supports loading from YAML files, environment variables, and keyword overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from codegrant.errors import ConfigError

_ENV_FIELDS = {
    "CODEGRANT_CLIENT_ID": "client_id",
    "CODEGRANT_CLIENT_SECRET": "client_secret",
    "CODEGRANT_AUTHORIZE_URL": "authorize_url",
    "CODEGRANT_TOKEN_URL": "token_url",
    "CODEGRANT_SCOPE": "scope",
}


class FlowConfig(BaseModel):
    """Settings for one OAuth2 authorization code strategy.

    Immutable: a flow never changes its configuration while in flight.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="oauth2", description="Strategy name, used for session keys and paths")
    client_id: str = Field(description="Client identifier issued by the provider")
    client_secret: str = Field(default="", description="Client secret issued by the provider")
    authorize_url: str = Field(description="Authorization endpoint")
    token_url: str = Field(description="Token endpoint")
    scope: str | None = Field(default=None, description="Requested scope, promoted into authorize params")

    authorize_endpoint_options: dict[str, str] = Field(
        default_factory=dict,
        description="Extra query parameters for the authorize URL",
    )
    token_endpoint_options: dict[str, str] = Field(
        default_factory=dict,
        description="Extra HTTP headers for the token request",
    )
    extra_token_params: dict[str, str] = Field(
        default_factory=dict,
        description="Extra form fields for the token request body",
    )

    ignore_state: bool = Field(default=False, description="Skip the CSRF state check")
    refresh_expired: bool = Field(
        default=True,
        description="Refresh once when the exchanged token is already expired",
    )
    use_pkce: bool = Field(default=False, description="Add S256 PKCE to the code grant")
    auth_scheme: Literal["request_body", "basic_auth"] = "request_body"
    timeout: float = Field(default=30.0, gt=0, description="Token request timeout in seconds")
    callback_path: str | None = Field(default=None, description="Defaults to /auth/<name>/callback")

    @property
    def state_key(self) -> str:
        return f"{self.name}.state"

    @property
    def verifier_key(self) -> str:
        return f"{self.name}.pkce_verifier"

    @property
    def resolved_callback_path(self) -> str:
        return self.callback_path or f"/auth/{self.name}/callback"

    @classmethod
    def load(cls, config_path: str | None = None, **overrides: Any) -> FlowConfig:
        """Load configuration from file, env vars, and overrides.

        Priority: overrides > env vars > config file > defaults.

        Raises:
            ConfigError: If the merged settings do not validate.
        """
        data: dict[str, Any] = {}

        # 1. Load from YAML file if provided
        if config_path:
            path = Path(config_path)
            if path.exists():
                with open(path) as f:
                    data = yaml.safe_load(f) or {}

        # 2. Override from environment variables
        for env_name, field_name in _ENV_FIELDS.items():
            value = os.environ.get(env_name)
            if value:
                data[field_name] = value

        env_ignore = os.environ.get("CODEGRANT_IGNORE_STATE")
        if env_ignore and env_ignore.lower() in ("1", "true", "yes"):
            data["ignore_state"] = True

        # 3. Apply keyword overrides
        data.update(overrides)

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid flow configuration: {e}") from e
