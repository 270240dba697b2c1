"""
plaidsync configuration management.

Supports loading from YAML (or JSON) files, environment variables, and
keyword overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import AliasChoices, BaseModel, Field, field_validator

from plaidsync.connectors.plaid_client import PLAID_ENVS


class PlaidConfig(BaseModel):
    """Plaid API credentials and linked institutions."""

    client_id: str = Field(
        default="",
        validation_alias=AliasChoices("client_id", "clientId"),
        description="Plaid client id",
    )
    secret: str = Field(default="", description="Plaid secret for the selected environment")
    public_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("public_key", "publicKey"),
        description="Legacy Link public key (unused)",
    )
    env: str = Field(default="sandbox", description="sandbox, development or production")
    institution_tokens: dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("institution_tokens", "institutionTokens"),
        description="Institution display name -> access token",
    )

    @field_validator("env")
    @classmethod
    def _known_env(cls, value: str) -> str:
        if value not in PLAID_ENVS:
            raise ValueError(f"env must be one of {sorted(PLAID_ENVS)}")
        return value


class DbConfig(BaseModel):
    """Target database for the generated SQL (never connected to by plaidsync)."""

    host: str = "localhost"
    user: str = ""
    password: str = ""
    database: str = ""


class SyncConfig(BaseModel):
    """Root configuration for plaidsync."""

    plaid: PlaidConfig = Field(default_factory=PlaidConfig)
    db: DbConfig | None = None

    output_dir: str = Field(default="tables", description="Directory for <table>.sql files")
    history_months: int = Field(default=60, ge=1, description="Transaction history window in months")
    timeout: float = Field(default=60.0, gt=0, description="Plaid request timeout in seconds")

    @classmethod
    def load(cls, config_path: str | None = None, **overrides: Any) -> SyncConfig:
        """Load configuration from file, env vars, and overrides.

        Priority: overrides > env vars > config file > defaults.
        """
        data: dict[str, Any] = {}

        # 1. Load from YAML/JSON file if provided (JSON is a YAML subset)
        if config_path:
            path = Path(config_path)
            if path.exists():
                with open(path, encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError(f"Config file {config_path} must contain a mapping, not {type(data).__name__}")
            # A bare `plaid:` key with every entry commented out means defaults
            if data.get("plaid") is None:
                data.pop("plaid", None)

        # 2. Override from environment variables
        env_client_id = os.environ.get("PLAIDSYNC_CLIENT_ID")
        env_secret = os.environ.get("PLAIDSYNC_SECRET")
        env_plaid_env = os.environ.get("PLAIDSYNC_ENV")
        env_output = os.environ.get("PLAIDSYNC_OUTPUT_DIR")
        env_months = os.environ.get("PLAIDSYNC_HISTORY_MONTHS")

        if env_client_id or env_secret or env_plaid_env:
            plaid = data.get("plaid") or {}
            if env_client_id:
                plaid["client_id"] = env_client_id
            if env_secret:
                plaid["secret"] = env_secret
            if env_plaid_env:
                plaid["env"] = env_plaid_env
            data["plaid"] = plaid

        if env_output:
            data["output_dir"] = env_output
        if env_months:
            data["history_months"] = env_months

        # 3. Apply keyword overrides
        data.update({k: v for k, v in overrides.items() if v is not None})

        return cls.model_validate(data)
