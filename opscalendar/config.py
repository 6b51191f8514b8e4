"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class CalendarConfig(BaseModel):
    """Grid settings for the week calendar."""
    start_hour: int = 7
    end_hour: int = 23
    hour_height: float = 60
    max_overlap_columns: int = 3
    weeks_visible: int = 2
    days_per_week: int = 5

    @field_validator("start_hour", "end_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 23."""
        if not 0 <= v <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {v}")
        return v

    @field_validator("hour_height")
    @classmethod
    def validate_hour_height(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("hour_height must be greater than zero")
        return v

    @field_validator("max_overlap_columns", "weeks_visible")
    @classmethod
    def validate_at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be at least 1, got {v}")
        return v

    @field_validator("days_per_week")
    @classmethod
    def validate_days_per_week(cls, v: int) -> int:
        if not 1 <= v <= 7:
            raise ValueError(f"days_per_week must be between 1 and 7, got {v}")
        return v

    @model_validator(mode="after")
    def validate_hours_order(self) -> "CalendarConfig":
        """Ensure the grid opens before it closes."""
        if self.end_hour <= self.start_hour:
            raise ValueError("end_hour must be later than start_hour")
        return self


class AppointmentDefaults(BaseModel):
    """Fallbacks used when an appointment has no usable length or transit."""
    appointment_length: int = 120
    transit_time: int = 30

    @field_validator("appointment_length", "transit_time")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Default minutes must be greater than zero")
        return value


class DraftConfig(BaseModel):
    """Draft persistence settings."""
    debounce_ms: int = 500

    @field_validator("debounce_ms")
    @classmethod
    def validate_debounce(cls, value: int) -> int:
        if value < 0:
            raise ValueError("debounce_ms must not be negative")
        return value

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000


class AppConfig(BaseModel):
    """Application configuration."""
    api_base_url: str = "http://localhost:8080/webhook"
    api_token: Optional[str] = None
    operator_name: Optional[str] = None
    timezone: Optional[str] = None  # None = local zone
    request_timeout_seconds: float = 30
    calendar: CalendarConfig = Field(default_factory=CalendarConfig)
    defaults: AppointmentDefaults = Field(default_factory=AppointmentDefaults)
    drafts: DraftConfig = Field(default_factory=DraftConfig)

    @field_validator("api_base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"api_base_url must be an http(s) URL, got {value!r}")
        return value.rstrip("/")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            pendulum.timezone(value)
        except (KeyError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("request_timeout_seconds must be greater than zero")
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    @classmethod
    def load_or_default(cls, config_path: Path) -> "AppConfig":
        """Like ``load_from_yaml`` but returns defaults when the file is absent."""
        if not config_path.exists():
            return cls()
        return cls.load_from_yaml(config_path)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
