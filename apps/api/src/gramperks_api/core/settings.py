from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./gramperks.db"
    database_echo: bool = False
    redis_url: str = "redis://localhost:6379/0"

    # Application URLs
    shop_domain: str = "https://www.soldacstudio.com"

    # Internal API security (producer tooling, vendor registration, telemetry)
    admin_api_key: str = ""

    # Vendor sessions
    vendor_session_ttl_seconds: int = Field(default=12 * 60 * 60, gt=0)
    vendor_secret_bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    vendor_legacy_header_auth_enabled: bool = True

    # Vendor login lockout (Redis counters)
    vendor_lockout_enabled: bool = False
    vendor_lockout_threshold: int = 5
    vendor_lockout_window_seconds: int = 300
    vendor_lockout_duration_seconds: int = 900

    # Business allowed to issue Shopify-backed perks
    studio_business_id: str = "SOLDAC"


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
