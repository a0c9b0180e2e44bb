"""
Centralized settings management using pydantic-settings.

All environment variables and configuration values are defined here.
Use get_settings() to access the singleton settings instance.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from config.constants import DEFAULT_RECOMMEND_CONFIG


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Required environment variables:
        - SUPABASE_URL: Supabase project URL
        - SUPABASE_SERVICE_KEY: Supabase service role (or anon) key

    Optional environment variables:
        - HOST / PORT / WORKERS: uvicorn binding
        - ENVIRONMENT: Environment name (development, staging, production)
        - LLM_BASE_URL / LLM_MODEL: OpenAI-compatible chat endpoint (Ollama by default)
        - FILTER_EXTRACTION_ENABLED: Turn the filter-extraction LLM call off
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Debug mode")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    # ==========================================================================
    # Server Configuration
    # ==========================================================================
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    workers: int = Field(default=2, description="Number of uvicorn workers")

    cors_origins: List[str] = Field(
        default=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        description="Allowed CORS origins"
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # ==========================================================================
    # Supabase Configuration
    # ==========================================================================
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_service_key: str = Field(..., description="Supabase service role or anon key")
    supabase_timeout_seconds: float = Field(
        default=10.0,
        description="PostgREST request timeout (seconds)"
    )

    # ==========================================================================
    # LLM (OpenAI-compatible chat completions, Ollama by default)
    # ==========================================================================
    llm_base_url: str = Field(
        default="http://127.0.0.1:11434/v1",
        description="Base URL of the OpenAI-compatible chat endpoint"
    )
    llm_api_key: str = Field(
        default="ollama",
        description="API key for the chat endpoint (Ollama ignores it)"
    )
    llm_model: str = Field(default="llama3:8b", description="Chat model name")
    llm_temperature: float = Field(default=0.2, description="Sampling temperature")
    llm_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for a single chat completion (seconds)"
    )

    @field_validator("llm_base_url", mode="before")
    @classmethod
    def strip_base_url(cls, v):
        if isinstance(v, str):
            return v.strip().rstrip("/")
        return v

    # ==========================================================================
    # Recommendation Pipeline
    # ==========================================================================
    filter_extraction_enabled: bool = Field(
        default=True,
        description="Call the LLM to extract filters (rules-only when disabled)"
    )
    recommend_candidate_limit: int = Field(
        default=DEFAULT_RECOMMEND_CONFIG.LLM_CANDIDATE_LIMIT,
        description="Max candidate rows fetched for the LLM selector"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses lru_cache to ensure only one instance is created.
    Settings are loaded from environment variables and .env file.

    Returns:
        Settings: The application settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    env_file = Path(__file__).parent.parent.parent / ".env"
    if env_file.exists():
        os.environ.setdefault("ENV_FILE", str(env_file))

    return Settings(_env_file=env_file if env_file.exists() else None)


def get_settings_for_testing(**overrides) -> Settings:
    """
    Create a settings instance for testing with optional overrides.

    This bypasses the cache to allow different settings in tests.

    Args:
        **overrides: Setting values to override

    Returns:
        Settings: A new settings instance with overrides applied
    """
    test_defaults = {
        "supabase_url": "https://test.supabase.co",
        "supabase_service_key": "test-key",
        "environment": "testing",
        "debug": True,
    }
    test_defaults.update(overrides)

    return Settings(**test_defaults)
