"""Configuration settings using Pydantic BaseSettings."""

from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Eden API Configuration
    eden_api_base: str = Field(
        default="https://api.eden.art",
        validation_alias=AliasChoices("eden_api_base", "next_public_eden_api_base"),
        description="Base URL of the Eden API",
    )
    eden_api_key: Optional[str] = Field(default=None, description="Eden API key sent as X-Api-Key")
    eden_agent_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("eden_agent_id", "next_public_eden_agent_id"),
        description="Default agent used for chat and agent-filtered creations",
    )
    request_timeout: float = Field(default=30.0, gt=0, description="Upstream request timeout in seconds")

    # Polling Configuration
    task_poll_interval: float = Field(default=4.0, ge=0, description="Seconds between task status polls")
    session_poll_interval: float = Field(default=0.5, ge=0, description="Seconds between session polls")
    creations_page_size: int = Field(default=20, ge=1, le=100, description="Default creations page size")

    # Telegram Bot Configuration
    telegram_bot_token: Optional[str] = Field(default=None, description="Telegram bot token from BotFather")
    telegram_webhook_secret: Optional[str] = Field(default=None, description="Secret token for webhook validation")
    telegram_webhook_url: Optional[str] = Field(default=None, description="Webhook URL for Telegram bot")

    # Application Configuration
    app_host: str = Field(default="0.0.0.0", description="FastAPI host")
    app_port: int = Field(default=8000, description="FastAPI port")
    debug: bool = Field(default=False, description="Enable debug mode")
    environment: str = Field(default="development", description="Deployment environment name")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: Path = Field(default=Path("logs"), description="Directory for rotating log files")

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        populate_by_name = True
        extra = "ignore"


# Global settings instance
settings = Settings()
