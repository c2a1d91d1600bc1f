from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal
from functools import lru_cache
import codecs
import logging


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = "Transaction Ledger"
    app_version: str = "1.0.0"
    debug: bool = False  # Attach tracebacks to error logs

    # Logging settings
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"

    # Input settings
    csv_delimiter: str = Field(default=",", min_length=1, max_length=1)
    input_encoding: str = "utf-8"

    # Feature flags
    enable_detailed_logging: bool = True

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f'Unknown log level: {v}')
        return level

    @field_validator('input_encoding')
    @classmethod
    def validate_input_encoding(cls, v):
        try:
            codecs.lookup(v)
        except LookupError:
            raise ValueError(f'Unknown encoding: {v}') from None
        return v

    def with_overrides(self, **overrides) -> "Settings":
        """Copy of these settings with overrides applied and validated."""
        return type(self).model_validate({**self.model_dump(), **overrides})


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Environment-specific configurations
class DevelopmentSettings(Settings):
    debug: bool = True
    log_level: str = "DEBUG"
    log_format: Literal["json", "text"] = "text"
    enable_detailed_logging: bool = True


class ProductionSettings(Settings):
    debug: bool = False
    log_level: str = "WARNING"
    enable_detailed_logging: bool = False


class TestingSettings(Settings):
    debug: bool = True
    log_level: str = "WARNING"  # Reduce noise in tests
    log_format: Literal["json", "text"] = "text"
    enable_detailed_logging: bool = False


def get_settings_for_environment(env: str = "development") -> Settings:
    """Get settings for specific environment."""
    settings_map = {
        "development": DevelopmentSettings,
        "production": ProductionSettings,
        "testing": TestingSettings,
    }

    settings_class = settings_map.get(env.lower(), Settings)
    return settings_class()
