"""Application configuration via environment variables."""

from typing import Literal

from pydantic_settings import BaseSettings

from .session.cookie import CookieOptions


class Settings(BaseSettings):
    session_key: str = "koa.sid"
    session_secret: str = "change-me-in-production"
    session_prefix: str = "koa:sess:"
    session_max_age: int | None = 24 * 3600
    session_path: str = "/"
    session_domain: str = ""
    session_http_only: bool = True
    session_https_only: bool = False
    session_same_site: Literal["lax", "strict", "none"] = "lax"
    session_signed: bool = True
    session_rolling: bool = False
    session_defer: bool = False
    session_allow_empty: bool = True
    session_reconnect_timeout: float = 10.0
    session_backend: str = "memory"  # "memory" or "dynamodb"
    session_sweep_interval: float = 60.0
    dynamodb_table: str = "sessions"
    dynamodb_endpoint: str = ""  # For local DynamoDB
    aws_region: str = "us-west-2"
    environment: str = "development"
    debug_hooks: bool = False  # honor ?force_session_id=

    def cookie_options(self) -> CookieOptions:
        return CookieOptions(
            max_age=self.session_max_age,
            path=self.session_path,
            domain=self.session_domain or None,
            http_only=self.session_http_only,
            secure=self.session_https_only,
            same_site=self.session_same_site,
            signed=self.session_signed,
        )

    model_config = {"env_prefix": "", "case_sensitive": False}


settings: Settings | None = None


def get_settings() -> Settings:
    global settings
    if settings is None:
        settings = Settings()
    return settings


def override_settings(s: Settings) -> None:
    """For testing: inject a Settings instance."""
    global settings
    settings = s
