"""Scripted provider for offline runs and tests."""

from __future__ import annotations

import json

from rcaforge.models.base import BaseInferenceProvider, GenerateOptions


class ScriptedProvider(BaseInferenceProvider):
    """Replays queued replies in order and records every prompt it receives.

    A queued ``Exception`` instance is raised instead of returned. Once the
    script is exhausted, a generic low-confidence conclusion is returned.
    """

    def __init__(self, scripted: list[str | Exception] | None = None) -> None:
        self._scripted = list(scripted or [])
        self.prompts: list[str] = []
        self.options: list[GenerateOptions | None] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def complete(self, prompt: str, options: GenerateOptions | None = None) -> str:
        self.prompts.append(prompt)
        self.options.append(options)
        if self._scripted:
            reply = self._scripted.pop(0)
            if isinstance(reply, Exception):
                raise reply
            return reply
        return json.dumps(
            {
                "thought": "No scripted reply available; concluding with the error message alone.",
                "action": None,
                "rootCause": "Offline provider cannot analyse the error.",
                "fixSteps": ["Configure an inference provider and rerun the analysis."],
                "confidence": 0.1,
            }
        )

