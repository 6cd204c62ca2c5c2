from __future__ import annotations

import pytest

from rcaforge.state import ActionRequest, AnalysisState, ParsedError, Phase


def _state(max_iterations: int = 2) -> AnalysisState:
    error = ParsedError(type="npe", message="NullPointerException", filePath="Main.kt", line=67)
    return AnalysisState(source_error=error, max_iterations=max_iterations, deadline=30.0)


def test_parsed_error_location():
    assert ParsedError(type="x", message="m").location == "unknown"
    assert ParsedError(type="x", message="m", filePath="A.kt").location == "A.kt"
    assert ParsedError(type="x", message="m", file_path="A.kt", line=3).location == "A.kt:3"


def test_record_step_keeps_lists_aligned_and_bounded():
    state = _state(max_iterations=2)
    state.record_step("t1", ActionRequest(tool_name="read_file"), "obs")
    state.record_step("t2", None, None)
    assert len(state.thoughts) == len(state.actions) == 2
    assert len(state.observations) <= len(state.actions)
    with pytest.raises(ValueError):
        state.record_step("t3", None, None)


def test_conclude_validates_and_marks_converged():
    state = _state()
    with pytest.raises(ValueError):
        state.conclude("  ", ["fix"], 0.5)
    with pytest.raises(ValueError):
        state.conclude("cause", ["fix"], 1.5)
    state.iteration = 1
    state.tools_used.add("read_file")
    state.conclude("cause", ["fix"], 0.7)
    result = state.to_result()
    assert result.converged is True
    assert result.forced is False
    assert result.iterations_used == 1
    assert result.tools_used == frozenset({"read_file"})
    assert state.to_result(forced=True).converged is False


def test_terminal_phases():
    assert {phase for phase in Phase if phase.terminal} == {Phase.DONE, Phase.TIMED_OUT, Phase.ABORTED}
