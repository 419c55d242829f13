from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Connection strings, e.g. postgresql+asyncpg://... and mysql+aiomysql://...
    SOURCE_DSN: str = Field(..., min_length=1)
    OPS_DSN: str = Field(..., min_length=1)

    INTERVAL_MINUTES: int = Field(2, gt=0)
    REPORT_TIMEZONE: str = "Asia/Shanghai"

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    METRICS_PORT: Optional[int] = None
    CREATE_TABLES: bool = False

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    @field_validator("REPORT_TIMEZONE")
    @classmethod
    def known_timezone(cls, v):
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone: {v}") from None
        return v

    @property
    def interval_seconds(self) -> int:
        return self.INTERVAL_MINUTES * 60

    @property
    def report_tz(self) -> ZoneInfo:
        return ZoneInfo(self.REPORT_TIMEZONE)
