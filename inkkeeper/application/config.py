"""Application configuration using Pydantic Settings."""

from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..domain.rules.rewards import RewardModel


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = "inkkeeper"
    app_version: str = "0.1.0"
    debug: bool = False

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Logging
    log_level: str = "INFO"

    # Backend selection
    backend_type: Literal["local", "dynamodb", "postgrest"] = "local"

    # AWS settings for the DynamoDB backend
    aws_region: str = "us-east-1"
    dynamodb_table_prefix: str = "inkkeeper"

    # Hosted Postgres (PostgREST) backend
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    backend_timeout_seconds: float = 10.0

    # Game rules
    reward_model: RewardModel = RewardModel.TIME
    minimum_session_seconds: int = 60
    streak_break_hours: float = 48.0
    faint_after_hours: float = 24.0

    # Live timer
    timer_tick_seconds: float = 1.0

    # Journal
    journal_limit: int = 20

    # Book search
    book_search_url: str = "https://www.googleapis.com/books/v1"
    book_search_limit: int = 10


# Create a singleton instance
settings = Settings()
