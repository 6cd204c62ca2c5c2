"""Structured reply protocol: turn raw model text into a loop decision."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from rcaforge.state import ActionRequest
from rcaforge.util.json_repair import JsonRepairError, extract_first_object


@dataclass(frozen=True)
class ActionDecision:
    thought: str
    actions: tuple[ActionRequest, ...]

    @property
    def action(self) -> ActionRequest:
        return self.actions[0]


@dataclass(frozen=True)
class ConclusionDecision:
    thought: str
    root_cause: str
    fix_steps: tuple[str, ...]
    confidence: float


@dataclass(frozen=True)
class InterpretationFailure:
    reason: str
    raw: str


Decision = Union[ActionDecision, ConclusionDecision]
Interpretation = Union[ActionDecision, ConclusionDecision, InterpretationFailure]


def interpret(raw: str) -> Interpretation:
    """Interpret a model reply.

    The first JSON object in ``raw`` is used; surrounding prose and code
    fences are ignored. Failures are returned, not raised.
    """
    if not isinstance(raw, str) or not raw.strip():
        return InterpretationFailure(reason="Empty reply", raw=raw or "")
    try:
        payload = extract_first_object(raw)
    except JsonRepairError:
        return InterpretationFailure(reason="No JSON object found in reply", raw=raw)
    result = decision_from_payload(payload)
    if isinstance(result, str):
        return InterpretationFailure(reason=result, raw=raw)
    return result


def decision_from_payload(payload: dict[str, Any]) -> Decision | str:
    """Validate an already-decoded payload; a string return is the failure reason."""
    thought = payload.get("thought")
    if not isinstance(thought, str) or not thought.strip():
        return 'Missing or invalid "thought" field'
    thought = thought.strip()

    raw_actions = _raw_actions(payload)
    if isinstance(raw_actions, str):
        return raw_actions
    if raw_actions:
        actions: list[ActionRequest] = []
        for item in raw_actions:
            parsed = _action_from_payload(item)
            if isinstance(parsed, str):
                return parsed
            actions.append(parsed)
        return ActionDecision(thought=thought, actions=tuple(actions))
    return _conclusion_from_payload(thought, payload)


def _raw_actions(payload: dict[str, Any]) -> list[Any] | str:
    action = payload.get("action")
    many = payload.get("actions")
    if action is not None:
        if not isinstance(action, dict):
            return "Action must be an object or null"
        return [action]
    if many is None:
        return []
    if not isinstance(many, list):
        return '"actions" must be a list'
    return many


def _action_from_payload(item: Any) -> ActionRequest | str:
    if not isinstance(item, dict):
        return "Action must be an object"
    name = item.get("tool") or item.get("name")
    if not isinstance(name, str) or not name.strip():
        return 'Action must have a "tool" field'
    parameters = item.get("parameters")
    if parameters is None:
        parameters = item.get("arguments", {})
    if not isinstance(parameters, dict):
        return 'Action "parameters" must be an object'
    return ActionRequest(tool_name=name.strip(), parameters=parameters)


def _conclusion_from_payload(thought: str, payload: dict[str, Any]) -> ConclusionDecision | str:
    root_cause = payload.get("rootCause", payload.get("root_cause"))
    if not isinstance(root_cause, str) or not root_cause.strip():
        return 'Missing or invalid "rootCause" when concluding'
    steps = payload.get("fixSteps")
    if steps is None:
        steps = payload.get("fixGuidelines", payload.get("fix_steps"))
    if not isinstance(steps, list) or not steps:
        return 'Missing or invalid "fixSteps" when concluding'
    if not all(isinstance(step, str) and step.strip() for step in steps):
        return '"fixSteps" entries must be non-empty strings'
    confidence = payload.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        return 'Missing or invalid "confidence" when concluding'
    if not 0.0 <= float(confidence) <= 1.0:
        return 'Invalid "confidence" value (must be 0.0-1.0)'
    return ConclusionDecision(
        thought=thought,
        root_cause=root_cause.strip(),
        fix_steps=tuple(step.strip() for step in steps),
        confidence=float(confidence),
    )
