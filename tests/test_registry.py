from __future__ import annotations

import time

import pytest
from pydantic import BaseModel

from rcaforge.failures import ToolRegistrationError
from rcaforge.state import ActionRequest
from rcaforge.tools.base import Tool, ToolExample
from rcaforge.tools.registry import ToolRegistry


class EchoInput(BaseModel):
    value: int
    delay: float = 0.0


class EchoTool(Tool):
    name = "echo"
    description = "echo the value back"
    input_schema = EchoInput
    examples = (ToolExample(parameters={"value": 1}, outcome="Returns 1"),)

    def __init__(self) -> None:
        self.calls = 0

    def execute(self, params: BaseModel) -> int:
        payload = EchoInput.model_validate(params)
        self.calls += 1
        if payload.delay:
            time.sleep(payload.delay)
        return payload.value


class ExplodingTool(Tool):
    name = "explode"
    description = "always raises"
    input_schema = EchoInput

    def execute(self, params: BaseModel) -> int:
        raise RuntimeError("kaboom")


def test_registry_register_and_lookup():
    registry = ToolRegistry()
    tool = EchoTool()
    registry.register(tool)
    assert registry.has("echo")
    assert registry.get("echo") is tool
    assert registry.list() == ["echo"]
    assert registry.get("missing") is None


def test_registry_rejects_duplicate_names():
    registry = ToolRegistry()
    registry.register(EchoTool())
    with pytest.raises(ToolRegistrationError):
        registry.register(EchoTool())


def test_registry_unregister_and_clear():
    registry = ToolRegistry()
    registry.register_all([EchoTool(), ExplodingTool()])
    assert registry.unregister("echo") is True
    assert registry.unregister("echo") is False
    registry.clear()
    assert registry.list() == []
    assert registry.describe() == "No tools available."


def test_registry_describe_includes_fields_and_examples():
    registry = ToolRegistry()
    registry.register(EchoTool())
    text = registry.describe()
    assert text.startswith("- echo(value: integer, delay?: number): echo the value back")
    assert '{"parameters":{"value":1}} -> Returns 1' in text


class StrictEchoInput(BaseModel):
    value: int
    reason: str


def test_registry_describe_uses_registered_schema():
    registry = ToolRegistry()
    tool = EchoTool()
    registry.register(tool, schema=StrictEchoInput, examples=[])
    assert registry.describe() == "- echo(value: integer, reason: string): echo the value back"
    outcome = registry.dispatch("echo", {"value": 1})
    assert not outcome.succeeded
    assert "reason" in outcome.error
    assert tool.calls == 0


def test_dispatch_success_records_elapsed():
    registry = ToolRegistry()
    registry.register(EchoTool())
    outcome = registry.dispatch("echo", {"value": 7})
    assert outcome.succeeded
    assert outcome.data == 7
    assert outcome.error is None
    assert outcome.elapsed >= 0


def test_dispatch_skips_tool_when_validation_fails():
    registry = ToolRegistry()
    tool = EchoTool()
    registry.register(tool)
    outcome = registry.dispatch("echo", {"value": "not a number"})
    assert not outcome.succeeded
    assert outcome.error.startswith("Invalid parameters:")
    assert "value" in outcome.error
    assert tool.calls == 0


def test_dispatch_rejects_non_object_parameters():
    registry = ToolRegistry()
    registry.register(EchoTool())
    outcome = registry.dispatch("echo", ["value", 1])  # type: ignore[arg-type]
    assert not outcome.succeeded
    assert outcome.error == "Invalid parameters: expected an object"


def test_dispatch_unknown_tool_is_failed_outcome():
    registry = ToolRegistry()
    outcome = registry.dispatch("grep_code", {"pattern": "x"})
    assert not outcome.succeeded
    assert outcome.error == 'Tool "grep_code" not found'
    assert outcome.observation_text() == 'Tool grep_code failed: Tool "grep_code" not found'


def test_dispatch_captures_tool_exceptions():
    registry = ToolRegistry()
    registry.register(ExplodingTool())
    outcome = registry.dispatch("explode", {"value": 1})
    assert not outcome.succeeded
    assert outcome.error == "kaboom"


def test_dispatch_all_preserves_input_order():
    registry = ToolRegistry(max_workers=3)
    registry.register(EchoTool())
    outcomes = registry.dispatch_all(
        [
            ("echo", {"value": 1, "delay": 0.15}),
            ActionRequest(tool_name="echo", parameters={"value": 2, "delay": 0.05}),
            ("echo", {"value": 3}),
            ("missing", {}),
        ]
    )
    assert [outcome.data for outcome in outcomes[:3]] == [1, 2, 3]
    assert [outcome.succeeded for outcome in outcomes] == [True, True, True, False]
    assert outcomes[3].tool_name == "missing"


def test_dispatch_all_empty():
    assert ToolRegistry().dispatch_all([]) == []
