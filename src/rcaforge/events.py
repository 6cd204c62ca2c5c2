"""Progress events published while an analysis runs."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import ClassVar, Literal, Union

from rcaforge.state import ActionRequest, AnalysisResult

FailurePhase = Literal["thought", "action", "observation", "conclusion"]


@dataclass(frozen=True)
class IterationStarted:
    kind: ClassVar[str] = "iteration"

    iteration: int
    max_iterations: int
    timestamp: float = field(default_factory=time.time)

    @property
    def progress(self) -> float:
        if self.max_iterations <= 0:
            return 0.0
        return self.iteration / self.max_iterations


@dataclass(frozen=True)
class ThoughtFormed:
    kind: ClassVar[str] = "thought"

    thought: str
    iteration: int
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ActionStarted:
    kind: ClassVar[str] = "action"

    action: ActionRequest
    iteration: int
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ObservationReceived:
    kind: ClassVar[str] = "observation"

    observation: str
    iteration: int
    success: bool = True
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class Completed:
    kind: ClassVar[str] = "complete"

    result: AnalysisResult
    total_iterations: int
    duration: float = 0.0
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class Failed:
    kind: ClassVar[str] = "error"

    error: BaseException
    iteration: int
    phase: FailurePhase
    timestamp: float = field(default_factory=time.time)


ProgressEvent = Union[
    IterationStarted,
    ThoughtFormed,
    ActionStarted,
    ObservationReceived,
    Completed,
    Failed,
]
