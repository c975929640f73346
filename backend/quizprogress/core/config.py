"""
Application configuration settings.
"""

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Literal, Self


# backend/config/answer_keys.yaml, independent of the working directory
_DEFAULT_ANSWER_KEYS_PATH = (
    Path(__file__).resolve().parents[2] / "config" / "answer_keys.yaml"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Quiz Progress API"
    APP_VERSION: str = "0.1.0"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # API
    API_V1_PREFIX: str = "/v1"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Identity
    # Bearer tokens are issued by the surrounding application; this service
    # only verifies them to resolve the learner identity.
    JWT_SECRET_KEY: str = Field(..., description="JWT signing secret key (required)")
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Quiz configuration
    ANSWER_KEYS_PATH: Path = Field(
        default=_DEFAULT_ANSWER_KEYS_PATH,
        description="YAML file with aptitude categories and knowledge-quiz answer keys",
    )
    MAX_UNIT_COUNT: int = Field(
        default=10,
        description="Upper bound reported for completed_units_count",
    )
    UNIT_PASS_PERCENTAGE: int = Field(
        default=60,
        description="Minimum percentage for a unit quiz attempt to count as passed",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in Settings
    )

    @model_validator(mode="after")
    def validate_unit_settings(self) -> Self:
        """Validate unit progress settings at startup."""
        if self.MAX_UNIT_COUNT <= 0:
            raise ValueError(
                f"MAX_UNIT_COUNT must be positive, got {self.MAX_UNIT_COUNT}"
            )
        if not 0 <= self.UNIT_PASS_PERCENTAGE <= 100:
            raise ValueError(
                "UNIT_PASS_PERCENTAGE must be between 0 and 100, "
                f"got {self.UNIT_PASS_PERCENTAGE}"
            )
        return self


# mypy doesn't understand that pydantic_settings loads required fields from env vars
settings = Settings()  # type: ignore[call-arg]
