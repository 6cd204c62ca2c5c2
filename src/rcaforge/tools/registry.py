"""Tool registry with validated, exception-safe dispatch."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from pydantic import BaseModel, ValidationError

from rcaforge.failures import FailureTag, ToolRegistrationError
from rcaforge.state import ActionRequest, ToolOutcome
from rcaforge.tools.base import Tool, ToolExample, describe_signature
from rcaforge.util.logging import get_logger

logger = get_logger(__name__)

ToolCallSpec = ActionRequest | tuple[str, dict[str, Any]]


@dataclass(frozen=True)
class Registration:
    tool: Tool
    schema: type[BaseModel]
    examples: tuple[ToolExample, ...]


class ToolRegistry:
    """Registry of capabilities available to the analysis loop.

    Registration is a setup step; dispatch may be called concurrently from
    several runs once registration is done.
    """

    def __init__(self, max_workers: int = 4) -> None:
        self._entries: dict[str, Registration] = {}
        self.max_workers = max(1, max_workers)

    def register(
        self,
        tool: Tool,
        schema: type[BaseModel] | None = None,
        examples: Iterable[ToolExample] | None = None,
    ) -> None:
        name = getattr(tool, "name", "")
        if not name:
            raise ToolRegistrationError("Tool must define a non-empty name")
        if name in self._entries:
            raise ToolRegistrationError(f'Tool "{name}" is already registered')
        self._entries[name] = Registration(
            tool=tool,
            schema=schema or tool.input_schema,
            examples=tuple(examples) if examples is not None else tuple(tool.examples),
        )
        logger.debug("Registered tool %s.", name)

    def register_all(self, tools: Iterable[Tool]) -> None:
        for tool in tools:
            self.register(tool)

    def unregister(self, name: str) -> bool:
        return self._entries.pop(name, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def has(self, name: str) -> bool:
        return name in self._entries

    def get(self, name: str) -> Tool | None:
        entry = self._entries.get(name)
        return entry.tool if entry else None

    def list(self) -> list[str]:
        return list(self._entries)

    def describe(self) -> str:
        """Render tool descriptions and usage examples for a prompt."""
        if not self._entries:
            return "No tools available."
        blocks: list[str] = []
        for entry in self._entries.values():
            signature = describe_signature(entry.tool.name, entry.tool.description, entry.schema)
            lines = [f"- {signature}"]
            for example in entry.examples:
                lines.append(
                    f"    example: {example.model_dump_json(include={'parameters'})} -> {example.outcome}"
                )
            blocks.append("\n".join(lines))
        return "\n".join(blocks)

    def validate(self, name: str, parameters: dict[str, Any]) -> tuple[BaseModel | None, str | None]:
        """Return the validated parameter model, or an error message."""
        entry = self._entries.get(name)
        if entry is None:
            return None, f'Tool "{name}" not found'
        if not isinstance(parameters, dict):
            return None, "Invalid parameters: expected an object"
        try:
            return entry.schema.model_validate(parameters), None
        except ValidationError as exc:
            details = "; ".join(
                f"{'.'.join(str(part) for part in err['loc']) or 'parameters'}: {err['msg']}"
                for err in exc.errors()
            )
            return None, f"Invalid parameters: {details}"

    def dispatch(self, name: str, parameters: dict[str, Any]) -> ToolOutcome:
        validated, error = self.validate(name, parameters)
        if validated is None:
            logger.warning("%s for %s: %s", FailureTag.TOOL_VALIDATION_ERROR.value, name, error)
            return ToolOutcome(tool_name=name, succeeded=False, error=error)
        tool = self._entries[name].tool
        started = time.perf_counter()
        try:
            data = tool.execute(validated)
        except Exception as exc:  # noqa: BLE001
            elapsed = time.perf_counter() - started
            logger.warning(
                "%s for %s: %s", FailureTag.TOOL_EXECUTION_ERROR.value, name, exc.__class__.__name__
            )
            return ToolOutcome(
                tool_name=name,
                succeeded=False,
                error=str(exc) or exc.__class__.__name__,
                elapsed=elapsed,
            )
        elapsed = time.perf_counter() - started
        logger.info("Tool %s finished in %.3fs.", name, elapsed)
        return ToolOutcome(tool_name=name, succeeded=True, data=data, elapsed=elapsed)

    def dispatch_all(self, calls: Sequence[ToolCallSpec]) -> list[ToolOutcome]:
        """Dispatch several calls concurrently; outcomes follow input order."""
        normalized = [_normalize_call(call) for call in calls]
        if not normalized:
            return []
        if len(normalized) == 1:
            return [self.dispatch(*normalized[0])]
        workers = min(self.max_workers, len(normalized))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="rca-tool") as pool:
            return list(pool.map(lambda call: self.dispatch(*call), normalized))


def _normalize_call(call: ToolCallSpec) -> tuple[str, dict[str, Any]]:
    if isinstance(call, ActionRequest):
        return call.tool_name, dict(call.parameters)
    name, parameters = call
    return name, parameters
