from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Guide Booking Platform API"
    environment: str = Field("local", validation_alias="ENVIRONMENT")
    database_url: str = Field("sqlite:///./guide_booking.db", validation_alias="DATABASE_URL")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")

    secret_key: str = Field("change-me-in-production", validation_alias="SECRET_KEY")
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(60 * 24, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # optional review side tables
    review_votes_enabled: bool = Field(True, validation_alias="REVIEW_VOTES_ENABLED")
    review_reports_enabled: bool = Field(True, validation_alias="REVIEW_REPORTS_ENABLED")

    booking_number_attempts: int = Field(5, validation_alias="BOOKING_NUMBER_ATTEMPTS")

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
