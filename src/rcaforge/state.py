"""Typed records shared by the analysis loop, the tool registry, and callers."""

from __future__ import annotations

import json
import time
from enum import Enum
from typing import Any, Sequence

from pydantic import BaseModel, ConfigDict, Field


class Phase(str, Enum):
    """Loop controller states."""

    START = "start"
    THINKING = "thinking"
    ACTING = "acting"
    OBSERVING = "observing"
    CONCLUDING = "concluding"
    DONE = "done"
    TIMED_OUT = "timed_out"
    ABORTED = "aborted"

    @property
    def terminal(self) -> bool:
        return self in {Phase.DONE, Phase.TIMED_OUT, Phase.ABORTED}


class ParsedError(BaseModel):
    """Structured error record produced by an upstream classifier."""

    model_config = ConfigDict(populate_by_name=True)

    type: str
    message: str
    file_path: str = Field(default="", alias="filePath")
    line: int = 0
    language: str = "unknown"
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def location(self) -> str:
        if not self.file_path:
            return "unknown"
        return f"{self.file_path}:{self.line}" if self.line else self.file_path


class ActionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool_name: str
    parameters: dict[str, Any] = Field(default_factory=dict)

    def to_prompt_json(self) -> str:
        return json.dumps({"tool": self.tool_name, "parameters": self.parameters}, default=str)


class ToolOutcome(BaseModel):
    """Result of one registry dispatch. Failures are values, never raised."""

    model_config = ConfigDict(frozen=True)

    tool_name: str
    succeeded: bool
    data: Any = None
    error: str | None = None
    elapsed: float = 0.0

    def observation_text(self, max_chars: int | None = None) -> str:
        """Render for a prompt; ``max_chars`` clips successful data only."""
        if not self.succeeded:
            return f"Tool {self.tool_name} failed: {self.error or 'unknown error'}"
        if self.data is None:
            return f"Tool {self.tool_name} returned no data"
        if isinstance(self.data, str):
            text = self.data
        else:
            text = json.dumps(self.data, ensure_ascii=False, default=str)
        return truncate(text, max_chars)


def truncate(text: str, max_chars: int | None) -> str:
    if max_chars is None or len(text) <= max_chars:
        return text
    return f"{text[:max_chars]}... [truncated {len(text) - max_chars} chars]"


def render_outcomes(outcomes: Sequence[ToolOutcome], max_chars: int | None = None) -> str:
    """Join outcomes into one observation; several are prefixed ``[tool]``."""
    if len(outcomes) == 1:
        return outcomes[0].observation_text(max_chars)
    return "\n".join(
        f"[{outcome.tool_name}] {outcome.observation_text(max_chars)}" for outcome in outcomes
    )


class AnalysisResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    root_cause: str
    fix_steps: tuple[str, ...]
    confidence: float = Field(ge=0.0, le=1.0)
    iterations_used: int = 0
    tools_used: frozenset[str] = frozenset()
    forced: bool = False
    converged: bool = False
    error_message: str = ""


class AnalysisState(BaseModel):
    """Mutable per-run record owned by the loop controller."""

    source_error: ParsedError
    max_iterations: int
    deadline: float
    started_at: float = Field(default_factory=time.monotonic)
    iteration: int = 0
    phase: Phase = Phase.START
    thoughts: list[str] = Field(default_factory=list)
    actions: list[ActionRequest | None] = Field(default_factory=list)
    observations: list[str | None] = Field(default_factory=list)
    outcomes: list[tuple[ToolOutcome, ...]] = Field(default_factory=list)
    tools_used: set[str] = Field(default_factory=set)
    hypothesis: str | None = None
    root_cause: str | None = None
    fix_steps: list[str] = Field(default_factory=list)
    confidence: float | None = None
    converged: bool = False

    def record_step(
        self,
        thought: str,
        action: ActionRequest | None,
        observation: str | None,
        outcomes: Sequence[ToolOutcome] = (),
    ) -> None:
        """Append one iteration's entries, keeping the lists aligned.

        ``outcomes`` holds the dispatch results behind ``observation`` so
        prompts can tell failed calls apart without parsing the text.
        """
        if len(self.thoughts) >= self.max_iterations:
            raise ValueError("iteration budget already fully recorded")
        self.thoughts.append(thought)
        self.actions.append(action)
        self.observations.append(observation)
        self.outcomes.append(tuple(outcomes))

    def conclude(self, root_cause: str, fix_steps: list[str], confidence: float) -> None:
        if not root_cause.strip():
            raise ValueError("root cause must not be empty")
        if not 0.0 <= confidence <= 1.0:
            raise ValueError("confidence must be within [0, 1]")
        self.root_cause = root_cause
        self.fix_steps = list(fix_steps)
        self.confidence = confidence
        self.converged = True

    def to_result(self, forced: bool = False) -> AnalysisResult:
        return AnalysisResult(
            root_cause=self.root_cause or "",
            fix_steps=tuple(self.fix_steps),
            confidence=self.confidence if self.confidence is not None else 0.0,
            iterations_used=self.iteration,
            tools_used=frozenset(self.tools_used),
            forced=forced,
            converged=self.converged and not forced,
            error_message=self.source_error.message,
        )
