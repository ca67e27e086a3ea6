"""
church_rbac.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (JWT secret, bootstrap admin secret).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CHURCH_", case_sensitive=False)

    # Environment controls toggle behavior like auto-init DB tables and the dev token route.
    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "church-rbac"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Auth
    jwt_alg: str = "HS256"
    jwt_issuer: str = "church-auth"
    jwt_audience: str = "church-app"
    jwt_secret: str = Field(default="dev-secret-change-me", repr=False)

    # Initial-admin bootstrap; the route is disabled while this is unset.
    bootstrap_admin_secret: str | None = Field(default=None, repr=False)

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./church.db"
    store_timeout_seconds: float = Field(default=5.0, gt=0)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Tests construct `Settings(...)` directly and hand it to `create_app`, bypassing the cache.
