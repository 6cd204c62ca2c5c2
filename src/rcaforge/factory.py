"""Shared construction helpers for providers, registries, and controllers."""

from __future__ import annotations

import json
from uuid import uuid4

from rcaforge.config import Settings
from rcaforge.controller import LoopController
from rcaforge.knowledge import ExampleSource, StaticExampleLibrary
from rcaforge.models.base import BaseInferenceProvider, GenerateOptions
from rcaforge.models.mock import ScriptedProvider
from rcaforge.models.ollama import OllamaProvider
from rcaforge.models.openai_compat import OpenAICompatProvider
from rcaforge.stream import ProgressStream
from rcaforge.tools.builtins.read_file import ReadFileTool
from rcaforge.tools.registry import ToolRegistry
from rcaforge.trace import TraceRecorder


def build_provider(settings: Settings) -> BaseInferenceProvider:
    if settings.provider == "mock":
        return ScriptedProvider()
    if settings.provider == "openai":
        if not settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY is required when RCA_PROVIDER=openai")
        extra_headers = None
        if settings.openai_extra_headers:
            extra_headers = json.loads(settings.openai_extra_headers)
        return OpenAICompatProvider(
            base_url=settings.openai_base_url,
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timeout_seconds=settings.request_timeout_seconds,
            max_retries=settings.max_retries,
            extra_headers=extra_headers,
        )
    return OllamaProvider(
        base_url=settings.ollama_base_url,
        model=settings.ollama_model,
        timeout_seconds=settings.request_timeout_seconds,
        max_retries=settings.max_retries,
    )


def build_registry(settings: Settings) -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(ReadFileTool(settings.source_root))
    return registry


def build_stream(settings: Settings) -> tuple[ProgressStream, TraceRecorder | None]:
    stream = ProgressStream()
    if not settings.trace_enabled:
        return stream, None
    recorder = TraceRecorder(trace_id=uuid4().hex, workspace_dir=settings.workspace_dir)
    recorder.attach(stream)
    return stream, recorder


def build_controller(
    settings: Settings,
    provider: BaseInferenceProvider | None = None,
    registry: ToolRegistry | None = None,
    stream: ProgressStream | None = None,
    example_source: ExampleSource | None = None,
) -> LoopController:
    return LoopController(
        provider=provider or build_provider(settings),
        registry=registry or build_registry(settings),
        stream=stream,
        example_source=example_source or StaticExampleLibrary(),
        example_limit=settings.example_limit,
        observation_chars=settings.observation_chars,
        generate_options=GenerateOptions(
            temperature=settings.temperature, max_tokens=settings.max_tokens
        ),
        final_options=GenerateOptions(
            temperature=settings.final_temperature, max_tokens=settings.max_tokens
        ),
    )
