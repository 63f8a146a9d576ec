"""
Records Configuration Module

Institutional policy values for the record engine using Pydantic Settings.
Supports environment variables, .env files, and explicit overrides.
"""

from typing import Any, Literal

import pydantic
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from campus_records.domain.exceptions import ConfigurationError


class RecordsSettings(BaseSettings):
    """Application-wide configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Campus Course & Records Manager"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"

    # Collaborator locations (CSV import/export, backups)
    data_directory: str = "data"
    backup_directory: str = "backups"
    backup_retention_days: int = Field(default=30, ge=0)
    default_date_format: str = "%Y-%m-%d"
    csv_separator: str = ","

    # Enrollment policy
    max_credits_per_semester: int = Field(
        default=21, ge=1, description="Credit ceiling for active enrollments in one semester"
    )
    min_course_credits: int = Field(default=1, ge=1)
    max_course_credits: int = Field(default=6, ge=1)
    min_gpa: float = Field(default=0.0, ge=0.0)
    max_gpa: float = Field(default=4.0, gt=0.0)
    current_semester_rule: Literal["calendar", "latest_enrollment"] = Field(
        default="calendar",
        description="How the 'current' semester of GPA listings is chosen",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "text"] = "json"

    @model_validator(mode="after")
    def check_bounds(self) -> "RecordsSettings":
        if self.min_course_credits > self.max_course_credits:
            raise ValueError("min_course_credits cannot exceed max_course_credits")
        if self.min_gpa > self.max_gpa:
            raise ValueError("min_gpa cannot exceed max_gpa")
        if self.max_credits_per_semester < self.max_course_credits:
            raise ValueError(
                "max_credits_per_semester must allow at least one course of max_course_credits"
            )
        return self

    def validation_context(self) -> dict[str, Any]:
        """Bounds consumed by entity validators."""
        return {
            "min_course_credits": self.min_course_credits,
            "max_course_credits": self.max_course_credits,
            "min_gpa": self.min_gpa,
            "max_gpa": self.max_gpa,
        }


def load_settings(**overrides: Any) -> RecordsSettings:
    """
    Build settings from the environment plus explicit overrides.

    Raises:
        ConfigurationError: If the resulting values are inconsistent
    """
    try:
        return RecordsSettings(**overrides)
    except pydantic.ValidationError as e:
        raise ConfigurationError(
            f"Invalid records configuration: {e.errors(include_url=False)[0]['msg']}",
            context={"overrides": {k: str(v) for k, v in overrides.items()}},
            cause=e,
        ) from e
