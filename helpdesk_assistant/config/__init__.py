"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="helpdesk-assistant", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/helpdesk",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Runtime Configuration ==========
    runtime_config_path: Path = Field(
        default=Path("runtime_config.yaml"),
        description="YAML file with administrator-managed feature flags (re-read on every check)"
    )

    # ========== Generative Providers ==========
    gemini_api_key: Optional[str] = Field(default=None, description="Google Gemini API key")
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    zai_api_key: Optional[str] = Field(default=None, description="Z.AI API key for GLM models")
    llm_provider_order: List[str] = Field(
        default=["gemini", "openai", "zai"],
        description="Providers in fallback priority order"
    )
    gemini_models: List[str] = Field(
        default=["gemini-2.5-flash", "gemini-1.5-flash", "gemini-1.5-pro", "gemini-pro"],
        description="Gemini candidate models, tried in order"
    )
    openai_models: List[str] = Field(
        default=["gpt-4o-mini", "gpt-3.5-turbo", "gpt-4-turbo-preview"],
        description="OpenAI candidate models, tried in order"
    )
    zai_models: List[str] = Field(
        default=["glm-4.7"],
        description="Z.AI candidate models, tried in order"
    )
    mock_llm: bool = Field(
        default=False,
        description="Use mock LLM responses for testing (no API calls)"
    )

    # ========== LLM Settings ==========
    llm_temperature: float = Field(
        default=0.3,
        description="Temperature for assistant replies",
        ge=0.0,
        le=1.0
    )
    llm_max_tokens: int = Field(
        default=1000,
        description="Max tokens for assistant replies",
        ge=1,
        le=8000
    )
    assistant_context_window: int = Field(
        default=10,
        description="Number of most recent transcript entries sent to the model",
        ge=1
    )

    # ========== Knowledge Base (RAG) ==========
    rag_model: str = Field(
        default="gemini-2.5-flash",
        description="Single model used for grounded KB solutions"
    )
    rag_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    rag_top_p: float = Field(default=0.8, ge=0.0, le=1.0)
    rag_top_k: int = Field(default=40, ge=1)
    rag_max_tokens: int = Field(default=2048, ge=1, le=8192)
    rag_max_results: int = Field(
        default=5,
        description="Number of articles retrieved for grounding",
        ge=1,
        le=20
    )
    grounding_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for the grounded generation call",
        ge=0.1,
        le=120
    )
    kb_suggestion_webhook_url: Optional[str] = Field(
        default=None,
        description="Optional webhook returning a suggested solution for a new ticket"
    )
    webhook_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for the suggestion webhook",
        ge=0.1,
        le=60
    )

    # ========== Ticketing Service ==========
    ticketing_base_url: str = Field(
        default="http://localhost:3001/api",
        description="Base URL of the ticket service"
    )
    ticketing_api_token: Optional[str] = Field(
        default=None,
        description="Service token sent to the ticket service"
    )
    ticketing_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for ticket service calls",
        ge=0.1,
        le=60
    )
    escalation_priority: str = Field(default="MEDIUM", description="Priority of escalated tickets")
    escalation_ticket_type: str = Field(default="INCIDENT", description="Type of escalated tickets")

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )

    # ========== Grafana OTLP Metrics ==========
    grafana_host: Optional[str] = Field(
        default=None,
        description="Grafana OTLP gateway URL (e.g., https://otlp-gateway-prod-ap-south-1.grafana.net)"
    )
    grafana_api_key: Optional[str] = Field(
        default=None,
        description="Grafana API key for OTLP authentication"
    )
    grafana_instance_id: Optional[str] = Field(
        default=None,
        description="Grafana instance ID for OTLP authentication"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("llm_provider_order")
    @classmethod
    def validate_provider_order(cls, v: List[str]) -> List[str]:
        """Only known providers, no duplicates."""
        normalized = [name.strip().lower() for name in v]
        unknown = set(normalized) - set(KNOWN_PROVIDERS)
        if unknown:
            raise ValueError(f"unknown providers: {sorted(unknown)}")
        if len(set(normalized)) != len(normalized):
            raise ValueError("llm_provider_order contains duplicates")
        return normalized


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# ========== Constants ==========

KNOWN_PROVIDERS = ("gemini", "openai", "zai")


class ProviderName(str):
    """Generative-language providers."""
    GEMINI = "gemini"
    OPENAI = "openai"
    ZAI = "zai"
    MOCK = "mock"


# Global settings instance
settings = get_settings()
