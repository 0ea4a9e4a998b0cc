from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local and deterministic; override via ``PERMGUARD_*`` env vars.
    - No secret has a default. Session verification needs either
      ``PERMGUARD_SESSION_SECRET`` (HS256) or ``PERMGUARD_SESSION_JWKS_URI`` (RS256).
    """

    model_config = SettingsConfigDict(env_prefix="PERMGUARD_", extra="ignore")

    db_url: str | None = None
    rbac_config_path: str | None = None
    log_level: str = "INFO"
    seed_demo_data: bool = True

    # Session credential
    session_cookie_name: str = "__session"
    authorization_header: str = "Authorization"
    bearer_prefix: str = "Bearer"
    session_secret: str | None = None
    session_jwks_uri: str | None = None
    session_audience: str | None = None
    session_issuer: str | None = None
    clock_skew_seconds: int = 120
    jwks_cache_ttl_seconds: int = 3600
    jwks_timeout_seconds: float = 10.0

    # Context building
    lookup_timeout_seconds: float = 5.0
    role_cache_ttl_seconds: float = 60.0
    bootstrap_admin_emails: list[str] = []
    system_role_ids: list[str] = ["system"]

    # Audit
    audit_sink: Literal["log", "db"] = "log"

    # Page-flow redirects
    login_path: str = "/login"
    denied_redirect_path: str = "/dashboard"

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "permguard.db"
        return f"sqlite:///{db_path}"

    def resolved_rbac_config_path(self) -> Path:
        if self.rbac_config_path:
            return Path(self.rbac_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "rbac.yaml"

    def session_algorithms(self) -> list[str]:
        return ["RS256"] if self.session_jwks_uri else ["HS256"]


@lru_cache
def get_settings() -> Settings:
    return Settings()
