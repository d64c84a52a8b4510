import os
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

RESULT_TIERS = ("SUCCESS", "LOGIN_ERROR", "PRIVATE")


class Settings(BaseSettings):
    database_url: Optional[str] = Field(None, alias="STANDING_DATABASE_URL")
    database_pool_size: int = Field(10, alias="STANDING_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="STANDING_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="STANDING_DATABASE_ECHO")
    portal_base_url: str = Field("https://bssm.meistergo.co.kr", alias="STANDING_PORTAL_BASE_URL")
    portal_timeout_seconds: float = Field(10.0, gt=0, alias="STANDING_PORTAL_TIMEOUT_SECONDS")
    timezone: str = Field("Asia/Seoul", alias="STANDING_TIMEZONE")
    reconcile_at: str = Field("00:00", alias="STANDING_RECONCILE_AT")
    reconcile_delay_seconds: float = Field(1.0, ge=0, alias="STANDING_RECONCILE_DELAY_SECONDS")
    scheduler_enabled: bool = Field(True, alias="STANDING_SCHEDULER_ENABLED")
    privacy_cooldown_hours: int = Field(24, ge=0, alias="STANDING_PRIVACY_COOLDOWN_HOURS")
    ranking_tier_order: str = Field(",".join(RESULT_TIERS), alias="STANDING_RANKING_TIER_ORDER")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True

    @field_validator("reconcile_at")
    @classmethod
    def _check_reconcile_at(cls, value: str) -> str:
        hour, _, minute = value.strip().partition(":")
        if not (hour.isdigit() and minute.isdigit()) or int(hour) > 23 or int(minute) > 59:
            raise ValueError("reconcile_at must be formatted as HH:MM")
        return f"{int(hour):02d}:{int(minute):02d}"

    @field_validator("ranking_tier_order")
    @classmethod
    def _check_tier_order(cls, value: str) -> str:
        tiers = [tier.strip().upper() for tier in value.split(",") if tier.strip()]
        if sorted(tiers) != sorted(RESULT_TIERS):
            raise ValueError(f"ranking_tier_order must list each of {', '.join(RESULT_TIERS)} once")
        if tiers[0] != "SUCCESS":
            raise ValueError("ranking_tier_order must start with SUCCESS")
        return ",".join(tiers)

    def tier_order(self) -> List[str]:
        return self.ranking_tier_order.split(",")

    def reconcile_time(self) -> tuple[int, int]:
        hour, minute = self.reconcile_at.split(":")
        return int(hour), int(minute)


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid backend configuration: {exc}") from exc
