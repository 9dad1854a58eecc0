from datetime import time
from functools import lru_cache
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import Field
from pydantic_settings import BaseSettings


def _default_working_days() -> Dict[str, List[int]]:
    # Weekday numbers, Monday = 0
    return {
        "FULL_TIME": [0, 1, 2, 3, 4],
        "PART_TIME": [0, 2, 4],
        "CONTRACT": [0, 1, 2, 3, 4],
    }


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")
    db_echo: bool = Field(False, alias="DB_ECHO")
    db_pool_size: int = Field(20, alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(0, alias="DB_MAX_OVERFLOW")
    db_pool_timeout: int = Field(2, alias="DB_POOL_TIMEOUT")
    db_pool_recycle: int = Field(300, alias="DB_POOL_RECYCLE")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(60 * 24, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    refresh_token_expire_days: int = Field(7, alias="REFRESH_TOKEN_EXPIRE_DAYS")

    cors_origins: List[str] = Field(default_factory=lambda: ["*"], alias="CORS_ORIGINS")

    # Single bearer accepted by routes that opt in (staff attendance). Disabled unless both are set.
    service_token: Optional[str] = Field(None, alias="SERVICE_TOKEN")
    service_tenant_id: Optional[UUID] = Field(None, alias="SERVICE_TENANT_ID")

    staff_expected_start: time = Field(time(8, 0), alias="STAFF_EXPECTED_START")
    staff_expected_end: time = Field(time(16, 0), alias="STAFF_EXPECTED_END")
    staff_working_days: Dict[str, List[int]] = Field(
        default_factory=_default_working_days, alias="STAFF_WORKING_DAYS"
    )

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True


@lru_cache
def get_settings() -> Settings:
    return Settings()
