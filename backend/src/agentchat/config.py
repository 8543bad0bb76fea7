"""Configuration management."""

from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import computed_field


class Settings(BaseSettings):
    """Application settings."""

    # Database (PostgreSQL) - constructed from parts
    db_host: str = "localhost"
    db_port: str = "5432"
    db_name: str = "agentchat"
    db_user: str = "agentchat"
    db_password: str = ""

    @computed_field
    @property
    def database_url(self) -> str:
        """Construct database URL from parts."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    # Identity - local agents are hosted as did:web:<host>:iam:<uid>
    did_web_host: str = "localhost%3A8000"

    # Reply generation
    completion_provider: Literal["scripted", "claude"] = "scripted"
    anthropic_api_key: str = ""
    claude_model: str = "claude-sonnet-4-20250514"

    # Credit gate
    minimum_credit: float = 0.0

    # Logging
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


# Global settings instance
settings = Settings()
