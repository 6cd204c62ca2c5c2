"""Failure taxonomy and exception types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class FailureTag(str, Enum):
    """Standardized failure categories reported by the analysis loop."""

    INTERPRETATION_ERROR = "INTERPRETATION_ERROR"
    TOOL_VALIDATION_ERROR = "TOOL_VALIDATION_ERROR"
    TOOL_EXECUTION_ERROR = "TOOL_EXECUTION_ERROR"
    PROVIDER_FAILURE = "PROVIDER_FAILURE"
    BUDGET_EXHAUSTED = "BUDGET_EXHAUSTED"
    TIMED_OUT = "TIMED_OUT"
    CANCELLED = "CANCELLED"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


class ToolRegistrationError(ValueError):
    """Raised when a tool name is registered twice or is otherwise unusable."""


class ProviderError(RuntimeError):
    """Raised by inference providers on transport, timeout, or protocol failures."""

    def __init__(self, message: str, status_code: int | None = None, retryable: bool = False) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class AnalysisTimeout(RuntimeError):
    """Reported when the wall-clock budget runs out between iterations."""

    def __init__(self, elapsed: float, iteration: int, max_iterations: int) -> None:
        super().__init__(
            f"Analysis timed out after {elapsed:.1f}s "
            f"(iteration {iteration}/{max_iterations})"
        )
        self.elapsed = elapsed
        self.iteration = iteration
        self.max_iterations = max_iterations


class AnalysisCancelled(RuntimeError):
    """Reported when the caller requests early termination."""


class MalformedReply(ValueError):
    """Reported when a model reply cannot be interpreted."""


@dataclass(frozen=True)
class FailureEvent:
    """Structured failure record for traces."""

    tag: FailureTag
    reason: str
    details: dict[str, Any] | None = None
