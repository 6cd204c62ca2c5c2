"""Per-run broadcast of analysis progress events.

Handlers are called synchronously in subscription order, once per published
event. The stream measures run duration lazily from the first
``IterationStarted`` event and resets that marker after ``Completed``, so a
single instance can be reused for consecutive, independent runs.
"""

from __future__ import annotations

import time
from dataclasses import replace
from typing import Callable, Iterable

from rcaforge.events import (
    ActionStarted,
    Completed,
    Failed,
    FailurePhase,
    IterationStarted,
    ObservationReceived,
    ProgressEvent,
    ThoughtFormed,
)
from rcaforge.state import ActionRequest, AnalysisResult
from rcaforge.util.logging import get_logger

logger = get_logger(__name__)

Handler = Callable[[ProgressEvent], None]


class ProgressStream:
    """Fan-out of progress events to subscribed handlers."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._subscribers: list[tuple[Handler, frozenset[str] | None]] = []
        self._started_at: float | None = None

    def subscribe(self, handler: Handler, kinds: Iterable[str] | None = None) -> Callable[[], None]:
        """Register ``handler``; pass ``kinds`` to receive only some event kinds.

        Returns a callable that removes this subscription.
        """
        entry = (handler, frozenset(kinds) if kinds is not None else None)
        self._subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def unsubscribe_all(self) -> None:
        self._subscribers.clear()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: ProgressEvent) -> None:
        if isinstance(event, IterationStarted) and self._started_at is None:
            self._started_at = self._clock()
        if isinstance(event, Completed):
            event = replace(event, duration=self.elapsed())
        for handler, kinds in list(self._subscribers):
            if kinds is not None and event.kind not in kinds:
                continue
            try:
                handler(event)
            except Exception:  # noqa: BLE001
                logger.exception("Progress subscriber failed on %s event.", event.kind)
        if isinstance(event, Completed):
            self.reset()

    def elapsed(self) -> float:
        """Seconds since the first iteration of the current run, or 0."""
        if self._started_at is None:
            return 0.0
        return max(0.0, self._clock() - self._started_at)

    def reset(self) -> None:
        self._started_at = None

    def dispose(self) -> None:
        self.unsubscribe_all()
        self.reset()

    def iteration_started(self, iteration: int, max_iterations: int) -> None:
        self.publish(IterationStarted(iteration=iteration, max_iterations=max_iterations))

    def thought_formed(self, thought: str, iteration: int) -> None:
        self.publish(ThoughtFormed(thought=thought, iteration=iteration))

    def action_started(self, action: ActionRequest, iteration: int) -> None:
        self.publish(ActionStarted(action=action, iteration=iteration))

    def observation_received(self, observation: str, iteration: int, success: bool = True) -> None:
        self.publish(ObservationReceived(observation=observation, iteration=iteration, success=success))

    def completed(self, result: AnalysisResult, total_iterations: int) -> None:
        self.publish(Completed(result=result, total_iterations=total_iterations))

    def failed(self, error: BaseException, iteration: int, phase: FailurePhase) -> None:
        self.publish(Failed(error=error, iteration=iteration, phase=phase))
