"""Ollama generation provider."""

from __future__ import annotations

import json
import time
from typing import Any

import httpx

from rcaforge.failures import ProviderError
from rcaforge.models.base import BaseInferenceProvider, GenerateOptions
from rcaforge.util.logging import get_logger

logger = get_logger(__name__)

_HEALTH_TIMEOUT_SECONDS = 5.0


class OllamaProvider(BaseInferenceProvider):
    """Client for a local Ollama server's ``/api/generate`` endpoint."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "granite-code:8b",
        timeout_seconds: float = 90,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.strip().rstrip("/")
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.max_retries = max(0, max_retries)
        self.backoff_seconds = backoff_seconds
        self.transport = transport

    def _client(self, timeout: float) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url, timeout=httpx.Timeout(timeout), transport=self.transport
        )

    def _request_payload(self, prompt: str, options: GenerateOptions) -> dict[str, Any]:
        sampling: dict[str, Any] = {
            "temperature": options.temperature,
            "num_predict": options.max_tokens,
        }
        if options.top_p is not None:
            sampling["top_p"] = options.top_p
        if options.stop:
            sampling["stop"] = options.stop
        return {"model": self.model, "prompt": prompt, "stream": False, "options": sampling}

    def _generate_once(self, payload: dict[str, Any]) -> str:
        try:
            with self._client(self.timeout_seconds) as client:
                response = client.post("/api/generate", json=payload)
        except httpx.TimeoutException as exc:
            raise ProviderError(f"Request timed out after {self.timeout_seconds}s", retryable=True) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(
                f"Failed to reach Ollama at {self.base_url}: {exc}", retryable=True
            ) from exc
        if response.status_code >= 400:
            raise ProviderError(
                f"Ollama generation failed: {response.status_code} {response.text[:200]}",
                status_code=response.status_code,
                retryable=response.status_code >= 500,
            )
        try:
            data = response.json()
        except json.JSONDecodeError as exc:
            raise ProviderError("Malformed JSON response from Ollama") from exc
        text = data.get("response")
        return text if isinstance(text, str) else ""

    def complete(self, prompt: str, options: GenerateOptions | None = None) -> str:
        payload = self._request_payload(prompt, options or GenerateOptions())
        delay = self.backoff_seconds
        for attempt in range(self.max_retries + 1):
            try:
                return self._generate_once(payload)
            except ProviderError as exc:
                if not exc.retryable or attempt == self.max_retries:
                    raise
                logger.warning(
                    "Attempt %s/%s failed: %s. Retrying in %.1fs.",
                    attempt + 1,
                    self.max_retries + 1,
                    exc,
                    delay,
                )
                time.sleep(delay)
                delay *= 2
        raise ProviderError("Ollama request failed")

    def list_models(self) -> list[str]:
        try:
            with self._client(_HEALTH_TIMEOUT_SECONDS) as client:
                response = client.get("/api/tags")
        except httpx.HTTPError:
            return []
        if response.status_code >= 400:
            return []
        try:
            models = response.json().get("models") or []
        except json.JSONDecodeError:
            return []
        return [str(item.get("name")) for item in models if isinstance(item, dict) and item.get("name")]

    def is_healthy(self) -> bool:
        try:
            with self._client(_HEALTH_TIMEOUT_SECONDS) as client:
                return client.get("/api/tags").status_code < 400
        except httpx.HTTPError:
            return False
