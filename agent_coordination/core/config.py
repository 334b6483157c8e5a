from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal, Mapping

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CoordinationSettings(BaseModel):
    max_feedback_iterations: int = Field(
        5,
        ge=1,
        le=5,
        description="Upper bound on feedback-loop passes; the loop never runs more than five.",
    )
    convergence_threshold: float = Field(
        0.1,
        ge=0.0,
        le=1.0,
        description="Confidence delta above which a feedback-loop agent counts as changed.",
    )
    max_parallel_agents: int = Field(10, ge=1, description="Concurrent invocations allowed within one level.")
    default_task_type: str = Field("coordination", min_length=1)


class AgentInvokerSettings(BaseModel):
    base_url: str = Field("http://localhost:8080", description="Base URL of the remote agent service.")
    api_key: str | None = Field(default=None, description="Bearer token sent to the agent service.")
    timeout_seconds: float = Field(30.0, ge=0.1)
    max_retries: int = Field(3, ge=0, description="Retry attempts after the first failed call.")
    retry_backoff_seconds: float = Field(1.0, ge=0.0)
    max_backoff_seconds: float = Field(4.0, ge=0.0)
    user_agent: str = Field("agent-coordination/0.1.0", min_length=1)
    verify_ssl: bool = Field(True)


class EventSettings(BaseModel):
    enabled: bool = Field(True, description="Toggle lifecycle event publication.")
    subscriber_timeout_seconds: float = Field(
        2.0,
        ge=0.01,
        description="Maximum time a single subscriber may take to handle one event.",
    )
    webhook_url: str | None = Field(
        None,
        description="Optional observability endpoint receiving every coordination event.",
    )
    webhook_timeout_seconds: float = Field(5.0, ge=0.1)


class ObservabilitySettings(BaseModel):
    prometheus_enabled: bool = Field(True)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


class Settings(BaseSettings):
    environment: Literal["local", "test", "production"] = Field("local")

    coordination: CoordinationSettings = Field(default_factory=CoordinationSettings)  # type: ignore[arg-type]
    agents: AgentInvokerSettings = Field(default_factory=AgentInvokerSettings)  # type: ignore[arg-type]
    events: EventSettings = Field(default_factory=EventSettings)  # type: ignore[arg-type]
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)  # type: ignore[arg-type]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )


@lru_cache(maxsize=1)
def _get_cached_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


def get_settings(overrides: Mapping[str, Any] | None = None) -> Settings:
    """Return settings, using cached defaults unless overrides are provided."""
    if overrides:
        return Settings(**dict(overrides))
    return _get_cached_settings()
