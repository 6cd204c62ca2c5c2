"""Trace recorder for analysis runs."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from rcaforge.events import (
    ActionStarted,
    Completed,
    Failed,
    IterationStarted,
    ObservationReceived,
    ProgressEvent,
    ThoughtFormed,
)
from rcaforge.failures import (
    AnalysisCancelled,
    AnalysisTimeout,
    FailureEvent,
    FailureTag,
    MalformedReply,
    ProviderError,
)
from rcaforge.stream import ProgressStream
from rcaforge.util.logging import redact


@dataclass
class TraceRecorder:
    trace_id: str
    workspace_dir: str
    started_at: float = field(default_factory=time.time)
    events: list[dict[str, Any]] = field(default_factory=list)
    failures: list[FailureEvent] = field(default_factory=list)

    def attach(self, stream: ProgressStream) -> Callable[[], None]:
        return stream.subscribe(self.handle)

    def record(self, event_type: str, payload: dict[str, Any], timestamp: float | None = None) -> None:
        self.events.append(
            {
                "type": event_type,
                "timestamp": timestamp if timestamp is not None else time.time(),
                "payload": payload,
            }
        )

    def handle(self, event: ProgressEvent) -> None:
        self.record(event.kind, _payload_for(event), timestamp=event.timestamp)
        if isinstance(event, Failed):
            self.failures.append(
                FailureEvent(
                    tag=failure_tag(event.error),
                    reason=redact(str(event.error)),
                    details={"phase": event.phase, "iteration": event.iteration},
                )
            )

    def finalize(self, stats: dict[str, Any] | None = None) -> str:
        trace_dir = Path(self.workspace_dir) / "traces"
        trace_dir.mkdir(parents=True, exist_ok=True)
        trace_path = trace_dir / f"{self.trace_id}.json"
        payload = {
            "trace_id": self.trace_id,
            "started_at": self.started_at,
            "ended_at": time.time(),
            "stats": stats or {},
            "failures": [
                {"tag": failure.tag.value, "reason": failure.reason, "details": failure.details}
                for failure in self.failures
            ],
            "events": self.events,
        }
        trace_path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
        return str(trace_path)


def failure_tag(error: BaseException) -> FailureTag:
    if isinstance(error, MalformedReply):
        return FailureTag.INTERPRETATION_ERROR
    if isinstance(error, AnalysisTimeout):
        return FailureTag.TIMED_OUT
    if isinstance(error, AnalysisCancelled):
        return FailureTag.CANCELLED
    if isinstance(error, ProviderError):
        return FailureTag.PROVIDER_FAILURE
    return FailureTag.UNEXPECTED_ERROR


def _payload_for(event: ProgressEvent) -> dict[str, Any]:
    if isinstance(event, IterationStarted):
        return {
            "iteration": event.iteration,
            "max_iterations": event.max_iterations,
            "progress": event.progress,
        }
    if isinstance(event, ThoughtFormed):
        return {"iteration": event.iteration, "thought": redact(event.thought)}
    if isinstance(event, ActionStarted):
        return {
            "iteration": event.iteration,
            "tool_name": event.action.tool_name,
            "parameters": event.action.parameters,
        }
    if isinstance(event, ObservationReceived):
        return {
            "iteration": event.iteration,
            "success": event.success,
            "observation": redact(event.observation),
        }
    if isinstance(event, Completed):
        return {
            "total_iterations": event.total_iterations,
            "duration": event.duration,
            "result": event.result.model_dump(mode="json"),
        }
    return {
        "iteration": event.iteration,
        "phase": event.phase,
        "error_type": event.error.__class__.__name__,
        "error": redact(str(event.error)),
    }
