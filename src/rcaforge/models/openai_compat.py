"""OpenAI-compatible completion provider."""

from __future__ import annotations

import json
import time
from typing import Any
from urllib.parse import urlparse, urlunparse

import httpx

from rcaforge.failures import ProviderError
from rcaforge.models.base import BaseInferenceProvider, GenerateOptions
from rcaforge.util.logging import get_logger

logger = get_logger(__name__)


class OpenAICompatProvider(BaseInferenceProvider):
    """HTTP client for OpenAI-compatible chat/completions."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        timeout_seconds: float = 90,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        max_response_bytes: int = 2_000_000,
        extra_headers: dict[str, str] | None = None,
        force_chatcompletions_path: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        normalized = base_url.strip()
        if not normalized.startswith(("http://", "https://")):
            normalized = f"http://{normalized}"
        self.base_url = normalized.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.max_retries = max(0, max_retries)
        self.backoff_seconds = backoff_seconds
        self.max_response_bytes = max_response_bytes
        self.extra_headers = extra_headers or {}
        self.force_chatcompletions_path = force_chatcompletions_path
        self.transport = transport

    def _request_payload(self, prompt: str, options: GenerateOptions) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
        }
        if options.top_p is not None:
            payload["top_p"] = options.top_p
        if options.stop:
            payload["stop"] = options.stop
        return payload

    def _build_url(self) -> str:
        parsed = urlparse(self.base_url)
        if self.force_chatcompletions_path:
            forced_path = self.force_chatcompletions_path
            if not forced_path.startswith("/"):
                forced_path = f"/{forced_path}"
            return urlunparse(parsed._replace(path=forced_path, params="", query="", fragment=""))
        path = parsed.path or ""
        if path in {"", "/"}:
            base_path = "/v1"
        else:
            base_path = path.rstrip("/")
            segments = [segment for segment in base_path.split("/") if segment]
            if "v1" not in segments:
                base_path = f"{base_path}/v1"
        if base_path.endswith("/chat/completions"):
            final_path = base_path
        else:
            final_path = f"{base_path}/chat/completions"
        return urlunparse(parsed._replace(path=final_path, params="", query="", fragment=""))

    def _post_once(self, url: str, headers: dict[str, str], payload: dict[str, Any]) -> str:
        timeout = httpx.Timeout(self.timeout_seconds)
        try:
            with httpx.Client(timeout=timeout, transport=self.transport) as client:
                response = client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            raise ProviderError(f"Request timed out after {self.timeout_seconds}s", retryable=True) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"Transport error: {exc}", retryable=True) from exc
        if response.status_code == 429 or response.status_code >= 500:
            raise ProviderError(
                f"Retryable error {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
                retryable=True,
            )
        if response.status_code >= 400:
            raise ProviderError(
                f"Request rejected {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        if len(response.content) > self.max_response_bytes:
            raise ProviderError("Response too large")
        try:
            data = response.json()
        except json.JSONDecodeError as exc:
            raise ProviderError("Malformed JSON response") from exc
        choice = (data.get("choices") or [{}])[0]
        message = choice.get("message", {})
        content = message.get("content")
        return content if isinstance(content, str) else ""

    def complete(self, prompt: str, options: GenerateOptions | None = None) -> str:
        url = self._build_url()
        headers = {"Authorization": f"Bearer {self.api_key}", **self.extra_headers}
        payload = self._request_payload(prompt, options or GenerateOptions())

        last_error: ProviderError | None = None
        for attempt in range(self.max_retries + 1):
            try:
                return self._post_once(url, headers, payload)
            except ProviderError as exc:
                last_error = exc
                if not exc.retryable or attempt == self.max_retries:
                    break
                delay = self.backoff_seconds * (2**attempt)
                logger.warning(
                    "Attempt %s/%s failed: %s. Retrying in %.1fs.",
                    attempt + 1,
                    self.max_retries + 1,
                    exc,
                    delay,
                )
                time.sleep(delay)
        assert last_error is not None
        raise ProviderError(
            f"OpenAI-compatible request failed: {last_error}",
            status_code=last_error.status_code,
            retryable=last_error.retryable,
        ) from last_error
