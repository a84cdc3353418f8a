from __future__ import annotations

from functools import lru_cache
from zoneinfo import ZoneInfo

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    bot_token: str = Field(..., alias="BOT_TOKEN")
    database_url: str = Field(..., alias="DATABASE_URL")
    # "today" for analytics and the budget month
    tz: str = Field("UTC", alias="TZ")
    currency: str = Field("USD", alias="CURRENCY")
    alert_check_minutes: int = Field(15, alias="ALERT_CHECK_MINUTES", ge=1)
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_sql: bool = Field(False, alias="LOG_SQL")

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def zoneinfo(self) -> ZoneInfo:
        return ZoneInfo(self.tz)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]
