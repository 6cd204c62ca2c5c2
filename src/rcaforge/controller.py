"""Loop controller: thought -> action -> observation until a root cause is concluded."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Sequence

from rcaforge.config import RunConfig
from rcaforge.events import FailurePhase
from rcaforge.failures import (
    AnalysisCancelled,
    AnalysisTimeout,
    FailureTag,
    MalformedReply,
    ProviderError,
)
from rcaforge.knowledge import ExampleSource, WorkedExample
from rcaforge.models.base import BaseInferenceProvider, GenerateOptions
from rcaforge.prompts import (
    build_final_prompt,
    build_initial_prompt,
    build_iteration_prompt,
    build_retry_prompt,
    malformed_reply_observation,
)
from rcaforge.protocol import (
    ActionDecision,
    ConclusionDecision,
    Interpretation,
    InterpretationFailure,
    interpret,
)
from rcaforge.state import AnalysisResult, AnalysisState, ParsedError, Phase, render_outcomes
from rcaforge.stream import ProgressStream
from rcaforge.tools.registry import ToolRegistry
from rcaforge.util.logging import clip, get_logger, redact

logger = get_logger(__name__)

BUDGET_CONFIDENCE = 0.2
ABORT_CONFIDENCE = 0.1
FALLBACK_CONFIDENCE = 0.3
INCONCLUSIVE_ROOT_CAUSE = "Analysis inconclusive: no hypothesis was formed before the analysis stopped."
MALFORMED_THOUGHT = "(reply could not be interpreted)"


@dataclass
class _Run:
    state: AnalysisState
    config: RunConfig
    stream: ProgressStream
    examples: Sequence[WorkedExample]
    tool_descriptions: str


class LoopController:
    """Drives one bounded investigation per ``run`` call.

    The controller holds no per-run state of its own, so one instance can
    serve several runs, each with its own ``ProgressStream``.
    """

    def __init__(
        self,
        provider: BaseInferenceProvider,
        registry: ToolRegistry,
        stream: ProgressStream | None = None,
        example_source: ExampleSource | None = None,
        example_limit: int = 2,
        observation_chars: int = 2000,
        generate_options: GenerateOptions | None = None,
        final_options: GenerateOptions | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.provider = provider
        self.registry = registry
        self.stream = stream or ProgressStream()
        self.example_source = example_source
        self.example_limit = example_limit
        self.observation_chars = observation_chars
        self.generate_options = generate_options or GenerateOptions()
        self.final_options = final_options or self.generate_options.model_copy(
            update={"temperature": 0.5}
        )
        self._clock = clock

    def run(
        self,
        error: ParsedError,
        config: RunConfig | None = None,
        stream: ProgressStream | None = None,
    ) -> AnalysisResult:
        """Analyse ``error``. Never raises; failures become forced results."""
        config = config or RunConfig()
        state = AnalysisState(
            source_error=error,
            max_iterations=config.max_iterations,
            deadline=config.timeout_seconds,
            started_at=self._clock(),
        )
        run = _Run(
            state=state,
            config=config,
            stream=stream or self.stream,
            examples=(),
            tool_descriptions="",
        )
        logger.info(
            "Analysis started (type=%s, max_iterations=%s, timeout=%.1fs).",
            error.type,
            config.max_iterations,
            config.timeout_seconds,
        )
        try:
            run.examples = self._examples_for(error, config)
            run.tool_descriptions = self.registry.describe()
            return self._loop(run)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Analysis failed unexpectedly at iteration %s.", state.iteration)
            state.phase = Phase.ABORTED
            run.stream.failed(exc, state.iteration, "thought")
            return self._settle(
                run,
                state.hypothesis or f"Analysis aborted: {exc.__class__.__name__}: {exc}",
                self._fallback_steps(error),
                ABORT_CONFIDENCE,
            )

    def _loop(self, run: _Run) -> AnalysisResult:
        state = run.state
        for iteration in range(1, state.max_iterations + 1):
            stopped = self._check_budget(run)
            if stopped is not None:
                return stopped
            state.iteration = iteration
            state.phase = Phase.THINKING
            run.stream.iteration_started(iteration, state.max_iterations)
            logger.info("Iteration %s/%s.", iteration, state.max_iterations)

            if iteration == 1:
                prompt = build_initial_prompt(
                    state.source_error, run.tool_descriptions, run.examples, state.max_iterations
                )
            else:
                prompt = build_iteration_prompt(
                    state.source_error, state, run.tool_descriptions, self.observation_chars
                )
            decision = self._decide(run, prompt)
            if isinstance(decision, ProviderError):
                return self._abort(run, decision)
            if isinstance(decision, InterpretationFailure):
                observation = malformed_reply_observation(decision.reason)
                state.record_step(MALFORMED_THOUGHT, None, observation)
                run.stream.observation_received(observation, iteration, success=False)
                continue

            state.hypothesis = decision.thought
            run.stream.thought_formed(decision.thought, iteration)
            if isinstance(decision, ConclusionDecision):
                return self._conclude(run, decision)
            self._act(run, decision)

        stopped = self._check_budget(run)
        if stopped is not None:
            return stopped
        return self._force_conclusion(run)

    def _decide(self, run: _Run, prompt: str) -> Interpretation | ProviderError:
        """Ask the model, re-asking once in the same iteration if the reply is unusable."""
        reply = self._complete(prompt, self.generate_options)
        if isinstance(reply, ProviderError):
            return reply
        interpretation = interpret(reply)
        if not isinstance(interpretation, InterpretationFailure):
            return interpretation
        self._report_malformed(run, interpretation, "thought")

        reply = self._complete(build_retry_prompt(prompt, interpretation.reason), self.generate_options)
        if isinstance(reply, ProviderError):
            return reply
        interpretation = interpret(reply)
        if isinstance(interpretation, InterpretationFailure):
            self._report_malformed(run, interpretation, "thought")
        return interpretation

    def _act(self, run: _Run, decision: ActionDecision) -> None:
        state = run.state
        state.phase = Phase.ACTING
        for action in decision.actions:
            run.stream.action_started(action, state.iteration)
            logger.info("Dispatching tool %s.", action.tool_name)
        outcomes = self.registry.dispatch_all(decision.actions)
        state.phase = Phase.OBSERVING
        state.tools_used.update(
            outcome.tool_name for outcome in outcomes if self.registry.has(outcome.tool_name)
        )
        observation = render_outcomes(outcomes)
        state.record_step(decision.thought, decision.action, observation, outcomes)
        run.stream.observation_received(
            observation, state.iteration, success=all(outcome.succeeded for outcome in outcomes)
        )
        state.phase = Phase.THINKING

    def _conclude(self, run: _Run, decision: ConclusionDecision) -> AnalysisResult:
        state = run.state
        state.phase = Phase.CONCLUDING
        state.record_step(decision.thought, None, None)
        state.conclude(decision.root_cause, list(decision.fix_steps), decision.confidence)
        state.phase = Phase.DONE
        logger.info(
            "Analysis concluded after %s iteration(s) (confidence=%.2f).",
            state.iteration,
            decision.confidence,
        )
        return self._finish(run, state.to_result())

    def _force_conclusion(self, run: _Run) -> AnalysisResult:
        state = run.state
        state.phase = Phase.CONCLUDING
        logger.warning(
            "%s: reached %s iteration(s) without a conclusion; forcing one.",
            FailureTag.BUDGET_EXHAUSTED.value,
            state.max_iterations,
        )
        reply = self._complete(build_final_prompt(state.source_error, state), self.final_options)
        if isinstance(reply, ProviderError):
            return self._abort(run, reply, "conclusion")
        interpretation = interpret(reply)
        if isinstance(interpretation, ConclusionDecision):
            state.hypothesis = interpretation.thought
            return self._settle(
                run,
                interpretation.root_cause,
                list(interpretation.fix_steps),
                interpretation.confidence,
                phase=Phase.DONE,
            )
        if isinstance(interpretation, InterpretationFailure):
            self._report_malformed(run, interpretation, "conclusion")
        else:
            self._report_malformed(
                run,
                InterpretationFailure(reason="final reply requested a tool", raw=reply),
                "conclusion",
            )
        return self._settle(
            run,
            state.hypothesis or "Analysis incomplete - reached max iterations",
            self._fallback_steps(state.source_error),
            FALLBACK_CONFIDENCE,
            phase=Phase.DONE,
        )

    def _check_budget(self, run: _Run) -> AnalysisResult | None:
        state = run.state
        elapsed = self._clock() - state.started_at
        if run.config.cancelled:
            state.phase = Phase.ABORTED
            failure: Exception = AnalysisCancelled("Analysis cancelled by caller")
            tag = FailureTag.CANCELLED
        elif elapsed >= state.deadline:
            state.phase = Phase.TIMED_OUT
            failure = AnalysisTimeout(elapsed, state.iteration, state.max_iterations)
            tag = FailureTag.TIMED_OUT
        else:
            return None
        logger.warning("%s: %s", tag.value, failure)
        run.stream.failed(failure, state.iteration, "thought")
        return self._settle(
            run,
            state.hypothesis or INCONCLUSIVE_ROOT_CAUSE,
            self._fallback_steps(state.source_error),
            BUDGET_CONFIDENCE if state.hypothesis else 0.0,
        )

    def _abort(
        self, run: _Run, error: ProviderError, phase: FailurePhase = "thought"
    ) -> AnalysisResult:
        state = run.state
        state.phase = Phase.ABORTED
        logger.error("%s: %s", FailureTag.PROVIDER_FAILURE.value, error)
        run.stream.failed(error, state.iteration, phase)
        return self._settle(
            run,
            state.hypothesis or f"Analysis aborted: inference provider failed ({error})",
            self._fallback_steps(state.source_error),
            ABORT_CONFIDENCE if state.hypothesis else 0.0,
        )

    def _settle(
        self,
        run: _Run,
        root_cause: str,
        fix_steps: list[str],
        confidence: float,
        phase: Phase | None = None,
    ) -> AnalysisResult:
        """Finish with a forced result; ``converged`` stays false."""
        state = run.state
        state.root_cause = root_cause
        state.fix_steps = fix_steps
        state.confidence = confidence
        if phase is not None:
            state.phase = phase
        return self._finish(run, state.to_result(forced=True))

    def _finish(self, run: _Run, result: AnalysisResult) -> AnalysisResult:
        logger.info(
            "Analysis finished (phase=%s, forced=%s, iterations=%s).",
            run.state.phase.value,
            result.forced,
            result.iterations_used,
        )
        run.stream.completed(result, run.state.iteration)
        return result

    def _complete(self, prompt: str, options: GenerateOptions) -> str | ProviderError:
        try:
            return self.provider.complete(prompt, options)
        except ProviderError as exc:
            return exc
        except Exception as exc:  # noqa: BLE001
            wrapped = ProviderError(f"Unexpected provider failure: {exc.__class__.__name__}: {exc}")
            wrapped.__cause__ = exc
            return wrapped

    def _report_malformed(
        self, run: _Run, failure: InterpretationFailure, phase: FailurePhase
    ) -> None:
        logger.warning(
            "%s: %s (reply: %s)",
            FailureTag.INTERPRETATION_ERROR.value,
            failure.reason,
            redact(clip(failure.raw, 200)),
        )
        run.stream.failed(MalformedReply(failure.reason), run.state.iteration, phase)

    def _examples_for(self, error: ParsedError, config: RunConfig) -> Sequence[WorkedExample]:
        if config.examples is not None:
            return list(config.examples)
        if self.example_source is None:
            return []
        try:
            return self.example_source.examples_for(error.type, self.example_limit)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Example retrieval failed; continuing without examples: %s", exc)
            return []

    def _fallback_steps(self, error: ParsedError) -> list[str]:
        return [
            f"Review the error message and the code at {error.location}",
            "Rerun the analysis with a larger iteration or time budget",
        ]
