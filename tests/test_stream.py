from __future__ import annotations

from rcaforge.events import Completed, IterationStarted
from rcaforge.state import AnalysisResult
from rcaforge.stream import ProgressStream


class FakeClock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _result() -> AnalysisResult:
    return AnalysisResult(root_cause="r", fix_steps=("a",), confidence=0.5)


def test_stream_delivers_in_subscription_order():
    stream = ProgressStream()
    seen: list[str] = []
    stream.subscribe(lambda event: seen.append(f"first:{event.kind}"))
    stream.subscribe(lambda event: seen.append(f"second:{event.kind}"))
    stream.thought_formed("hypothesis", 1)
    assert seen == ["first:thought", "second:thought"]


def test_stream_kind_filter_and_unsubscribe():
    stream = ProgressStream()
    seen: list[str] = []
    unsubscribe = stream.subscribe(lambda event: seen.append(event.kind), kinds={"iteration"})
    stream.thought_formed("t", 1)
    stream.iteration_started(1, 4)
    unsubscribe()
    stream.iteration_started(2, 4)
    assert seen == ["iteration"]
    assert stream.subscriber_count == 0


def test_stream_progress_is_computed():
    event = IterationStarted(iteration=3, max_iterations=4)
    assert event.progress == 0.75
    assert IterationStarted(iteration=1, max_iterations=0).progress == 0.0


def test_stream_completed_duration_from_first_iteration_and_reset():
    clock = FakeClock()
    stream = ProgressStream(clock=clock)
    completed: list[Completed] = []
    stream.subscribe(lambda event: completed.append(event), kinds={"complete"})

    stream.iteration_started(1, 3)
    clock.now += 2.0
    stream.iteration_started(2, 3)
    clock.now += 1.5
    stream.completed(_result(), total_iterations=2)
    assert completed[0].duration == 3.5
    assert completed[0].total_iterations == 2
    assert stream.elapsed() == 0.0

    clock.now += 10.0
    stream.iteration_started(1, 3)
    clock.now += 1.0
    stream.completed(_result(), total_iterations=1)
    assert completed[1].duration == 1.0


def test_stream_completed_without_iterations_has_zero_duration():
    stream = ProgressStream()
    durations: list[float] = []
    stream.subscribe(lambda event: durations.append(event.duration), kinds={"complete"})
    stream.completed(_result(), total_iterations=0)
    assert durations == [0.0]


def test_stream_isolates_failing_subscribers():
    stream = ProgressStream()
    seen: list[str] = []

    def broken(event) -> None:
        raise RuntimeError("subscriber bug")

    stream.subscribe(broken)
    stream.subscribe(lambda event: seen.append(event.kind))
    stream.failed(ValueError("bad"), 2, "action")
    assert seen == ["error"]


def test_stream_dispose_releases_subscribers():
    stream = ProgressStream()
    stream.subscribe(lambda event: None)
    stream.subscribe(lambda event: None)
    stream.iteration_started(1, 2)
    stream.dispose()
    assert stream.subscriber_count == 0
    assert stream.elapsed() == 0.0
