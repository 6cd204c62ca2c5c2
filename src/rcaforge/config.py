"""Configuration settings for rcaforge."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Literal, Sequence

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from rcaforge.knowledge import WorkedExample


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or overrides."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, populate_by_name=True
    )

    provider: Literal["ollama", "openai", "mock"] = Field(
        default="ollama", validation_alias="RCA_PROVIDER"
    )
    ollama_base_url: str = Field(
        default="http://localhost:11434", validation_alias="OLLAMA_BASE_URL"
    )
    ollama_model: str = Field(default="granite-code:8b", validation_alias="OLLAMA_MODEL")
    openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")
    openai_base_url: str = Field(
        default="https://api.openai.com/v1", validation_alias="OPENAI_BASE_URL"
    )
    openai_model: str = Field(default="gpt-4.1-mini", validation_alias="OPENAI_MODEL")
    openai_extra_headers: str | None = Field(
        default=None, validation_alias="OPENAI_EXTRA_HEADERS"
    )
    request_timeout_seconds: float = Field(
        default=90, validation_alias="RCA_REQUEST_TIMEOUT_SECONDS"
    )
    max_retries: int = Field(default=3, validation_alias="RCA_MAX_RETRIES")
    max_iterations: int = Field(default=10, ge=1, validation_alias="RCA_MAX_ITERATIONS")
    analysis_timeout_seconds: float = Field(
        default=90, gt=0, validation_alias="RCA_ANALYSIS_TIMEOUT_SECONDS"
    )
    temperature: float = Field(default=0.7, validation_alias="RCA_TEMPERATURE")
    final_temperature: float = Field(default=0.5, validation_alias="RCA_FINAL_TEMPERATURE")
    max_tokens: int = Field(default=1500, validation_alias="RCA_MAX_TOKENS")
    observation_chars: int = Field(default=2000, validation_alias="RCA_OBSERVATION_CHARS")
    example_limit: int = Field(default=2, ge=0, validation_alias="RCA_EXAMPLE_LIMIT")
    workspace_dir: str = Field(default=".rcaforge", validation_alias="RCA_WORKSPACE_DIR")
    source_root: str | None = Field(default=None, validation_alias="RCA_SOURCE_ROOT")
    trace_enabled: bool = Field(default=False, validation_alias="RCA_TRACE")


@dataclass
class RunConfig:
    """Per-run budget and prompt context.

    ``examples`` of ``None`` lets the controller ask its example source;
    an explicit empty sequence disables worked examples for the run.
    """

    max_iterations: int = 10
    timeout_seconds: float = 90.0
    examples: Sequence[WorkedExample] | None = None
    cancel_event: threading.Event | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: object) -> "RunConfig":
        values: dict[str, object] = {
            "max_iterations": settings.max_iterations,
            "timeout_seconds": settings.analysis_timeout_seconds,
        }
        values.update(overrides)
        return cls(**values)  # type: ignore[arg-type]

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()
