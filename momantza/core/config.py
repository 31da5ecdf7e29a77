from __future__ import annotations

from functools import lru_cache

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from momantza.core.errors import ConfigurationMissingError


# Keys that must be configured explicitly; there is no safe default for either.
REQUIRED_SETTINGS: tuple[str, ...] = ("database_url", "jwt_secret")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "momantza"
    log_level: str = "INFO"

    # Connection string for the backing store, e.g. postgresql+asyncpg://...
    database_url: str = ""
    api_db_pool_size: int = 10
    api_db_max_overflow: int = 20
    # Abort a single store operation after this many seconds (0 disables).
    db_operation_timeout_s: float = 0

    # Symmetric signing key for access tokens.
    jwt_secret: str = ""
    jwt_issuer: str = "MomantzaAPI"
    jwt_audience: str = "MomantzaClient"
    access_token_ttl_days: int = 7
    bcrypt_rounds: int = 12

    # First-login admin bootstrap stays off unless an operator opts in.
    auth_bootstrap_on_first_login: bool = False
    auth_bootstrap_admin_email: str = "admin"
    auth_bootstrap_admin_secret: str = ""

    # Header carrying an explicit tenant id when no path marker is present.
    tenant_header: str = "X-Organization-Id"

    def missing_required(self) -> list[str]:
        return [name for name in REQUIRED_SETTINGS if not str(getattr(self, name) or "").strip()]


def load_settings(**overrides: object) -> Settings:
    # Build settings and fail fast when required keys are absent.
    try:
        settings = Settings(**overrides)
    except ValidationError as exc:
        raise ConfigurationMissingError(str(exc)) from exc
    missing = settings.missing_required()
    if missing:
        keys = ", ".join(name.upper() for name in missing)
        raise ConfigurationMissingError(f"Required configuration missing: {keys}")
    return settings


@lru_cache
def get_settings() -> Settings:
    return load_settings()
