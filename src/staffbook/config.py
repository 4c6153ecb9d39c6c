from datetime import time

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="STAFFBOOK_",
        case_sensitive=False,
    )

    # App
    env: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    db_url: str = "sqlite+aiosqlite:///./staffbook.db"

    # Booking rules
    booking_window_days: int = 30
    same_day_penalty_days: int = 60
    admin_suspension_months: int = 2
    default_day_start: time = time(9, 0)
    default_day_end: time = time(17, 0)

    # Reference data (professionals/specialties) cache
    reference_cache_ttl_seconds: int = 300


def get_settings() -> Settings:
    return Settings()
