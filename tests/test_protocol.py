from __future__ import annotations

import pytest

from rcaforge.protocol import (
    ActionDecision,
    ConclusionDecision,
    InterpretationFailure,
    interpret,
)


def test_interpret_action_reply_with_prose():
    raw = (
        "Let me check the file first.\n"
        '{"thought": "user is read before assignment", '
        '"action": {"tool": "read_file", "parameters": {"filePath": "A.kt", "line": 45}}}'
    )
    decision = interpret(raw)
    assert isinstance(decision, ActionDecision)
    assert decision.thought == "user is read before assignment"
    assert decision.action.tool_name == "read_file"
    assert decision.action.parameters == {"filePath": "A.kt", "line": 45}


def test_interpret_multiple_actions():
    raw = (
        '{"thought": "need both", "actions": ['
        '{"tool": "read_file", "parameters": {"filePath": "A.kt", "line": 1}},'
        '{"name": "find_symbol", "arguments": {"symbol": "user"}}]}'
    )
    decision = interpret(raw)
    assert isinstance(decision, ActionDecision)
    assert [action.tool_name for action in decision.actions] == ["read_file", "find_symbol"]
    assert decision.actions[1].parameters == {"symbol": "user"}


def test_interpret_conclusion():
    raw = (
        "```json\n"
        '{"thought": "done", "action": null, "rootCause": "user never assigned", '
        '"fixSteps": ["assign user in onCreate"], "confidence": 0.9}\n'
        "```"
    )
    decision = interpret(raw)
    assert isinstance(decision, ConclusionDecision)
    assert decision.root_cause == "user never assigned"
    assert decision.fix_steps == ("assign user in onCreate",)
    assert decision.confidence == 0.9


def test_interpret_accepts_fix_guidelines_alias_and_integer_confidence():
    raw = '{"thought": "t", "rootCause": "r", "fixGuidelines": ["a"], "confidence": 1}'
    decision = interpret(raw)
    assert isinstance(decision, ConclusionDecision)
    assert decision.confidence == 1.0


@pytest.mark.parametrize(
    ("raw", "reason"),
    [
        ("", "Empty reply"),
        ("   ", "Empty reply"),
        ("I think the variable is null.", "No JSON object found in reply"),
        ('{"action": null, "rootCause": "r", "fixSteps": ["a"], "confidence": 0.5}', '"thought"'),
        ('{"thought": "  ", "rootCause": "r", "fixSteps": ["a"], "confidence": 0.5}', '"thought"'),
        ('{"thought": "t", "action": {"parameters": {}}}', '"tool"'),
        ('{"thought": "t", "action": {"tool": ""}}', '"tool"'),
        ('{"thought": "t", "action": "read_file"}', "Action must be an object"),
        ('{"thought": "t", "action": {"tool": "x", "parameters": [1]}}', '"parameters"'),
        ('{"thought": "t", "fixSteps": ["a"], "confidence": 0.5}', '"rootCause"'),
        ('{"thought": "t", "rootCause": "   ", "fixSteps": ["a"], "confidence": 0.5}', '"rootCause"'),
        ('{"thought": "t", "rootCause": "r", "fixSteps": [], "confidence": 0.5}', '"fixSteps"'),
        ('{"thought": "t", "rootCause": "r", "fixSteps": [" "], "confidence": 0.5}', '"fixSteps"'),
        ('{"thought": "t", "rootCause": "r", "fixSteps": ["a"]}', '"confidence"'),
        ('{"thought": "t", "rootCause": "r", "fixSteps": ["a"], "confidence": "high"}', '"confidence"'),
        ('{"thought": "t", "rootCause": "r", "fixSteps": ["a"], "confidence": true}', '"confidence"'),
        ('{"thought": "t", "rootCause": "r", "fixSteps": ["a"], "confidence": 1.5}', '"confidence"'),
        ('{"thought": "t", "rootCause": "r", "fixSteps": ["a"], "confidence": -0.1}', '"confidence"'),
    ],
)
def test_interpret_failures(raw: str, reason: str):
    result = interpret(raw)
    assert isinstance(result, InterpretationFailure)
    assert reason in result.reason
    assert result.raw == raw


def test_interpret_deeply_nested_reply_is_a_failure():
    raw = '{"thought": "t", "x": ' + '{"a": ' * 1500 + "1" + "}" * 1500 + "}"
    result = interpret(raw)
    assert isinstance(result, InterpretationFailure)
    assert result.reason == "No JSON object found in reply"


def test_interpret_skips_deeply_nested_block_before_real_payload():
    nested = '{"x": ' + "[" * 1500 + "]" * 1500 + "}"
    raw = nested + ' then {"thought": "t", "action": {"tool": "read_file"}}'
    result = interpret(raw)
    assert isinstance(result, ActionDecision)
    assert result.action.tool_name == "read_file"


def test_interpret_confidence_bounds_are_inclusive():
    for value in (0, 0.0, 1.0):
        raw = f'{{"thought": "t", "rootCause": "r", "fixSteps": ["a"], "confidence": {value}}}'
        assert isinstance(interpret(raw), ConclusionDecision)
