"""Application configuration using pydantic settings with structured sections."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000


class VoucherSettings(BaseModel):
    issue_timeout_seconds: Optional[float] = Field(default=5.0, gt=0)
    simulate_latency: bool = True
    simulate_failures: bool = True
    random_seed: Optional[int] = None
    max_workers: int = Field(default=8, ge=1)


class RedemptionSettings(BaseModel):
    expiring_days_ahead: int = Field(default=7, ge=0)


class SessionSettings(BaseModel):
    ttl_minutes: int = Field(default=60 * 24 * 7, gt=0)


class Settings(BaseSettings):
    """Top-level application settings with nested sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ECOCREDIT_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    project_name: str = "EcoCredit Rewards API"
    api_prefix: str = "/api"
    log_level: str = "INFO"
    seed_catalog: bool = True
    admin_token: Optional[SecretStr] = None

    server: ServerSettings = ServerSettings()
    vouchers: VoucherSettings = VoucherSettings()
    redemption: RedemptionSettings = RedemptionSettings()
    sessions: SessionSettings = SessionSettings()

    @property
    def issue_timeout(self) -> Optional[float]:
        return self.vouchers.issue_timeout_seconds

    @property
    def session_ttl_minutes(self) -> int:
        return self.sessions.ttl_minutes


@lru_cache()
def get_settings() -> Settings:
    return Settings()
