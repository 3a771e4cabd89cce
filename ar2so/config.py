"""
Tool configuration
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment defaults; command-line flags take precedence."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Linker
    AR2SO_LINKER: str = "ld"
    AR2SO_TARGET: str = "x86_64"

    # Outputs
    AR2SO_RECEIPT_DIR: str | None = None

    # Logging
    AR2SO_LOG_LEVEL: str = "WARNING"


def get_settings() -> Settings:
    return Settings()
