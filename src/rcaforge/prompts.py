"""Prompt assembly for the analysis loop.

Every function here is pure: the same error, state, and context always
produce the same prompt text. Worked examples appear only in the initial
prompt so prompt size stays bounded as the history grows.
"""

from __future__ import annotations

import json
from typing import Sequence

from rcaforge.knowledge import WorkedExample
from rcaforge.state import AnalysisState, ParsedError, render_outcomes, truncate

SYSTEM_PROMPT = """You are an expert debugging assistant specializing in root cause analysis.

ROLE:
You help developers understand WHY an error occurs and HOW to fix it properly.

WORKFLOW:
1. THOUGHT: form a specific hypothesis about the cause of the error.
2. ACTION: use one of the available tools to gather evidence.
3. OBSERVATION: study the evidence the tool returned.
4. ITERATE: refine the hypothesis based on what you observed.
5. CONCLUDE: give the root cause and concrete fix steps.

QUALITY RULES:
- Reference exact file paths and line numbers.
- Reference actual variable and function names from the code you examined.
- Give actionable fix steps, and say how to verify the fix.
- Cite evidence from tool observations; admit uncertainty instead of guessing.
- When a tool call fails, read the failure message and adjust the call."""

OUTPUT_CONTRACT = """Respond ONLY with one JSON object (no other text):
{
  "thought": "Your current reasoning",
  "action": {"tool": "tool_name", "parameters": {...}} OR null when concluding,
  "rootCause": "Explanation of what went wrong" (only when action is null),
  "fixSteps": ["Step 1", "Step 2"] (only when action is null),
  "confidence": 0.0-1.0 (only when action is null)
}
To run several independent tools at once, use "actions": [{"tool": ..., "parameters": ...}, ...] instead of "action"."""

FINAL_CONTRACT = """Respond ONLY with one JSON object (no other text):
{
  "thought": "Your final reasoning",
  "action": null,
  "rootCause": "Clear explanation of what went wrong and why",
  "fixSteps": ["Step 1", "Step 2", "Step 3"],
  "confidence": 0.0-1.0
}
"rootCause" must be non-empty, "fixSteps" must contain at least one step, and "confidence" is required."""


def format_error(error: ParsedError, detailed: bool = True) -> str:
    lines = [
        f"Type: {error.type}",
        f"Message: {error.message}",
        f"Location: {error.location}",
    ]
    if detailed:
        lines.append(f"Language: {error.language}")
        if error.metadata:
            lines.append(f"Metadata: {json.dumps(error.metadata, indent=2, sort_keys=True, default=str)}")
    return "\n".join(lines)


def format_examples(examples: Sequence[WorkedExample]) -> str:
    blocks = []
    for index, example in enumerate(examples, start=1):
        steps = "\n".join(f"    - {step}" for step in example.fix_steps)
        blocks.append(
            f"Example {index}:\n"
            f"Error: {example.error}\n"
            f'Thought: "{example.thought}"\n'
            f"Action: {example.action}\n"
            f"Observation: {example.observation}\n"
            "Conclusion:\n"
            f"  Root Cause: {example.root_cause}\n"
            f"  Fix Steps:\n{steps}\n"
            f"  Confidence: {example.confidence}"
        )
    return "\n---\n".join(blocks)


def _flatten(text: str) -> str:
    return " ".join(text.split())


def format_history(state: AnalysisState, observation_chars: int | None = None) -> str:
    """Render prior iterations.

    With ``observation_chars`` set, each iteration is condensed to one thought
    line plus one observation; successful tool output is clipped while the
    text of every failed tool call is kept verbatim.
    """
    condensed = observation_chars is not None
    blocks: list[str] = []
    for index, thought in enumerate(state.thoughts):
        action = state.actions[index] if index < len(state.actions) else None
        observation = state.observations[index] if index < len(state.observations) else None
        outcomes = state.outcomes[index] if index < len(state.outcomes) else ()
        lines = [f"Iteration {index + 1}:"]
        lines.append(f"  Thought: {_flatten(thought) if condensed else thought}")
        if action is not None and not condensed:
            lines.append(f"  Action: {action.to_prompt_json()}")
        if observation is not None:
            label = "Observation"
            if condensed:
                if outcomes:
                    observation = render_outcomes(outcomes, observation_chars)
                else:
                    observation = truncate(observation, observation_chars)
                if len(outcomes) == 1:
                    label = f"Observation ({outcomes[0].tool_name})"
            lines.append(f"  {label}: {observation}")
        blocks.append("\n".join(lines))
    return "\n".join(blocks)


def _preamble(tool_descriptions: str) -> str:
    return f"{SYSTEM_PROMPT}\n\nTOOLS AVAILABLE:\n{tool_descriptions}"


def build_initial_prompt(
    error: ParsedError,
    tool_descriptions: str,
    examples: Sequence[WorkedExample],
    max_iterations: int,
) -> str:
    sections = [_preamble(tool_descriptions), OUTPUT_CONTRACT]
    if examples:
        sections.append(f"EXAMPLES OF SIMILAR ANALYSIS:\n{format_examples(examples)}")
    sections.append(f"ERROR TO ANALYZE:\n{format_error(error)}")
    sections.append(f"PROGRESS: Iteration 1/{max_iterations}")
    sections.append(
        "YOUR TASK:\n"
        "This is your first analysis. Form an initial hypothesis about what caused this error.\n"
        "Consider using a tool to examine the code at the error location before concluding."
    )
    return "\n\n".join(sections)


def build_iteration_prompt(
    error: ParsedError,
    state: AnalysisState,
    tool_descriptions: str,
    observation_chars: int = 2000,
) -> str:
    sections = [_preamble(tool_descriptions), OUTPUT_CONTRACT]
    sections.append(f"ERROR TO ANALYZE:\n{format_error(error, detailed=False)}")
    sections.append(f"PROGRESS: Iteration {state.iteration}/{state.max_iterations}")
    if state.thoughts:
        sections.append(f"ANALYSIS HISTORY:\n{format_history(state, observation_chars)}")
    sections.append(
        "YOUR TASK:\n"
        "Continue your analysis based on what you have learned.\n"
        "- If you have sufficient evidence, conclude: set action to null and give rootCause, fixSteps and confidence.\n"
        "- If you need more evidence, request the next tool."
    )
    return "\n\n".join(sections)


def build_final_prompt(error: ParsedError, state: AnalysisState) -> str:
    sections = [
        "FINAL ANALYSIS REQUIRED",
        "You have used all analysis iterations. No further tools are available; "
        "you must conclude now.",
        f"ERROR:\n{format_error(error, detailed=False)}",
    ]
    if state.thoughts:
        sections.append(f"COMPLETE ANALYSIS HISTORY:\n{format_history(state)}")
    sections.append(
        "YOUR TASK:\nSynthesize all information gathered and provide your final analysis."
    )
    sections.append(FINAL_CONTRACT)
    return "\n\n".join(sections)


def build_retry_prompt(prompt: str, reason: str) -> str:
    return (
        f"{prompt}\n\n"
        f"Your previous reply was rejected: {reason}.\n"
        "Reply again with exactly one valid JSON object that follows the format above."
    )


def malformed_reply_observation(reason: str) -> str:
    return f"Model reply could not be interpreted ({reason}); no tool was run."
