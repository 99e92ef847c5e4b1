"""
Configuration management for roomchat.

This module provides a Settings class that loads configuration from environment
variables (prefix ``ROOMCHAT_``) or a ``.env`` file.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8765

    # Model endpoint (OpenAI-compatible)
    llm_base_url: str | None = None
    llm_model: str = "gpt-4o-mini"
    llm_api_key: str | None = None
    llm_temperature: float | None = None

    # Azure OpenAI; used instead of llm_base_url when set
    azure_endpoint: str | None = None
    azure_api_version: str = "2024-10-21"

    # Conversation loop
    max_round_trips: int = 10

    # Room data
    rooms_file: str | None = None

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="ROOMCHAT_",
        env_file=".env",
        env_file_encoding="utf-8",
    )


def get_settings() -> Settings:
    """Get the application settings instance."""
    return Settings()
