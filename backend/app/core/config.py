"""Application configuration using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "E/M Level Service"
    debug: bool = False
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Authentication
    auth_enabled: bool = False
    api_key: str = ""
    api_key_header: str = "X-API-Key"

    # Anthropic (AI-assisted complexity inference)
    anthropic_api_key: str | None = None
    anthropic_model: str = "claude-sonnet-4-20250514"
    anthropic_max_tokens: int = 2048
    llm_max_attempts: int = 3

    # E/M classification
    em_transcript_char_limit: int = 3000
    em_strict_parsing: bool = False


settings = Settings()
