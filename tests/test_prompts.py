from __future__ import annotations

from rcaforge.knowledge import StaticExampleLibrary
from rcaforge.prompts import (
    build_final_prompt,
    build_initial_prompt,
    build_iteration_prompt,
    build_retry_prompt,
    format_history,
)
from rcaforge.state import ActionRequest, AnalysisState, ParsedError, ToolOutcome, render_outcomes


def _error() -> ParsedError:
    return ParsedError(
        type="lateinit",
        message="lateinit property user has not been initialized",
        filePath="UserActivity.kt",
        line=45,
        language="kotlin",
    )


def _record(state: AnalysisState, thought: str, action: ActionRequest, outcomes: list[ToolOutcome]) -> None:
    state.record_step(thought, action, render_outcomes(outcomes), outcomes)


def _state_with_history() -> AnalysisState:
    state = AnalysisState(source_error=_error(), max_iterations=5, deadline=60.0)
    state.iteration = 3
    _record(
        state,
        "Check the\n  declaration",
        ActionRequest(tool_name="read_file", parameters={"filePath": "UserActivity.kt", "line": 45}),
        [ToolOutcome(tool_name="read_file", succeeded=True, data="x" * 500)],
    )
    _record(
        state,
        "Look for the symbol",
        ActionRequest(tool_name="find_symbol", parameters={"symbol": "user"}),
        [ToolOutcome(tool_name="find_symbol", succeeded=False, error="symbol index missing" + "!" * 300)],
    )
    return state


def test_initial_prompt_includes_examples_and_error_fields():
    examples = StaticExampleLibrary().examples_for("lateinit", 2)
    prompt = build_initial_prompt(_error(), "- read_file(...): reads", examples, max_iterations=4)
    assert "TOOLS AVAILABLE:\n- read_file(...): reads" in prompt
    assert "EXAMPLES OF SIMILAR ANALYSIS:" in prompt
    assert "Example 1:" in prompt
    assert "Location: UserActivity.kt:45" in prompt
    assert "Language: kotlin" in prompt
    assert "PROGRESS: Iteration 1/4" in prompt
    assert '"rootCause"' in prompt


def test_initial_prompt_omits_empty_examples_section():
    prompt = build_initial_prompt(_error(), "No tools available.", [], max_iterations=4)
    assert "EXAMPLES OF SIMILAR ANALYSIS" not in prompt


def test_iteration_prompt_condenses_history_and_keeps_failures_verbatim():
    state = _state_with_history()
    prompt = build_iteration_prompt(_error(), state, "tools", observation_chars=100)
    assert "PROGRESS: Iteration 3/5" in prompt
    assert "EXAMPLES OF SIMILAR ANALYSIS" not in prompt
    assert "Thought: Check the declaration" in prompt
    assert "Observation (read_file): " + "x" * 100 + "... [truncated 400 chars]" in prompt
    assert "!" * 300 in prompt
    assert "Action:" not in prompt


def test_iteration_prompt_keeps_failed_call_among_several_outcomes():
    state = AnalysisState(source_error=_error(), max_iterations=5, deadline=60.0)
    state.iteration = 2
    _record(
        state,
        "check both",
        ActionRequest(tool_name="note", parameters={"topic": "user"}),
        [
            ToolOutcome(tool_name="note", succeeded=True, data="y" * 200),
            ToolOutcome(tool_name="find", succeeded=False, error="X" * 300),
        ],
    )
    prompt = build_iteration_prompt(_error(), state, "tools", observation_chars=50)
    assert "Observation: [note] " + "y" * 50 + "... [truncated 150 chars]" in prompt
    assert "[find] Tool find failed: " + "X" * 300 in prompt


def test_iteration_prompt_is_deterministic():
    state = _state_with_history()
    first = build_iteration_prompt(_error(), state, "tools")
    second = build_iteration_prompt(_error(), state, "tools")
    assert first == second


def test_final_prompt_has_full_history_and_no_tools():
    state = _state_with_history()
    prompt = build_final_prompt(_error(), state)
    assert prompt.startswith("FINAL ANALYSIS REQUIRED")
    assert "No further tools are available" in prompt
    assert "TOOLS AVAILABLE" not in prompt
    assert "x" * 500 in prompt
    assert 'Action: {"tool": "read_file"' in prompt
    assert '"fixSteps" must contain at least one step' in prompt


def test_history_marks_malformed_iterations():
    state = AnalysisState(source_error=_error(), max_iterations=3, deadline=60.0)
    state.record_step("(reply could not be interpreted)", None, "Model reply could not be interpreted")
    history = format_history(state, observation_chars=50)
    assert "Iteration 1:" in history
    assert "Observation: Model reply could not be interpreted" in history


def test_retry_prompt_names_the_reason():
    prompt = build_retry_prompt("BASE", 'Missing or invalid "thought" field')
    assert prompt.startswith("BASE\n\n")
    assert 'rejected: Missing or invalid "thought" field.' in prompt
