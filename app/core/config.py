"""
Application settings.

Settings are read once at startup (environment first, then `.env`) and
passed explicitly into the components that need them. Key material is
never loaded at import time.
"""

import os
from pathlib import Path
from typing import Any, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, model_validator

# Base directory of the project (parent of 'app')
BASE_DIR = Path(__file__).resolve().parent.parent.parent

DB_DIR = BASE_DIR / "db"
KEYS_DIR = BASE_DIR / "keys"

ASYMMETRIC_ALGORITHMS = frozenset({
    "ES256", "ES384", "ES512",
    "RS256", "RS384", "RS512",
})


def env_field(default: Any, env: str, **kwargs):
    extra = kwargs.pop("json_schema_extra", {}) or {}
    extra = {**extra, "env": env}
    return Field(default, json_schema_extra=extra, **kwargs)


class Settings(BaseModel):
    """Runtime settings for the API and the auth core."""

    database_url: str = env_field(
        f"sqlite+aiosqlite:///{DB_DIR / 'app.db'}", "DATABASE_URL"
    )
    sql_echo: bool = env_field(False, "SQL_DEBUG")

    jwt_private_key: Optional[str] = env_field(None, "JWT_PRIVATE_KEY")
    jwt_public_key: Optional[str] = env_field(None, "JWT_PUBLIC_KEY")
    jwt_algorithm: str = env_field("ES256", "JWT_ALGORITHM")

    # Token lifetimes in seconds
    auth_token_ttl: int = env_field(15 * 60, "AUTH_TOKEN_TTL", gt=0)
    refresh_token_ttl: int = env_field(90 * 24 * 60 * 60, "REFRESH_TOKEN_TTL", gt=0)
    refresh_renew_threshold: int = env_field(
        7 * 24 * 60 * 60,
        "REFRESH_RENEW_THRESHOLD",
        ge=0,
        description="Rotate the refresh token when less than this many seconds remain",
    )

    cors_allow_origins: list[str] = env_field(
        ["http://localhost:5173"], "CORS_ALLOW_ORIGINS"
    )
    enable_docs: bool = env_field(True, "ENABLE_DOCS")
    log_level: str = env_field("INFO", "LOG_LEVEL")
    log_json: bool = env_field(True, "LOG_JSON")

    bootstrap_admin_email: Optional[str] = env_field(None, "BOOTSTRAP_ADMIN_EMAIL")
    bootstrap_admin_password: Optional[str] = env_field(None, "BOOTSTRAP_ADMIN_PASSWORD")
    bootstrap_admin_username: str = env_field("admin", "BOOTSTRAP_ADMIN_USERNAME")

    model_config = ConfigDict(extra="ignore", frozen=True)

    @model_validator(mode="after")
    def _check_auth_settings(self) -> "Settings":
        if self.jwt_algorithm not in ASYMMETRIC_ALGORITHMS:
            raise ValueError(
                f"JWT_ALGORITHM must be an asymmetric algorithm, got {self.jwt_algorithm!r}"
            )
        if not self.jwt_public_key:
            raise ValueError("JWT public key is required")
        if self.refresh_renew_threshold >= self.refresh_token_ttl:
            raise ValueError("REFRESH_RENEW_THRESHOLD must be lower than REFRESH_TOKEN_TTL")
        return self

    @classmethod
    def from_env(cls, env_file: str = ".env") -> "Settings":
        env_file_values = dotenv_values(env_file)
        merged: dict[str, Any] = {}
        for name, field in cls.model_fields.items():
            extra = field.json_schema_extra or {}
            env_name = extra.get("env") if isinstance(extra, dict) else None
            env_name = env_name or name.upper()
            if env_name in os.environ:
                merged[name] = os.environ[env_name]
            elif env_file_values.get(env_name) is not None:
                merged[name] = env_file_values[env_name]

        if isinstance(merged.get("cors_allow_origins"), str):
            merged["cors_allow_origins"] = [
                origin.strip()
                for origin in merged["cors_allow_origins"].split(",")
                if origin.strip()
            ]

        keys_dir = Path(
            os.environ.get("JWT_KEYS_DIR") or env_file_values.get("JWT_KEYS_DIR") or KEYS_DIR
        )
        merged["jwt_private_key"] = _resolve_pem(
            merged.get("jwt_private_key"), keys_dir / "private.pem", "JWT_PRIVATE_KEY"
        )
        merged["jwt_public_key"] = _resolve_pem(
            merged.get("jwt_public_key"), keys_dir / "public.pem", "JWT_PUBLIC_KEY"
        )
        return cls(**merged)


def _resolve_pem(value: Optional[str], key_file: Path, label: str) -> str:
    """Return PEM text from the env value, else from `key_file`."""
    if value:
        # Single-line env values carry escaped newlines
        return value.replace("\\n", "\n")
    if key_file.is_file():
        return key_file.read_text()
    raise RuntimeError(
        f"Missing {label}: set the environment variable or place a PEM file at {key_file}"
    )
