"""Base inference provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel


class GenerateOptions(BaseModel):
    temperature: float = 0.7
    max_tokens: int = 1500
    top_p: float | None = None
    stop: list[str] | None = None


class BaseInferenceProvider(ABC):
    """Single-shot text completion.

    Implementations raise ``rcaforge.failures.ProviderError`` on any transport,
    timeout, or protocol failure. Retries, if any, happen inside the provider.
    """

    @abstractmethod
    def complete(self, prompt: str, options: GenerateOptions | None = None) -> str:
        """Send ``prompt`` and return the raw reply text."""
        raise NotImplementedError
