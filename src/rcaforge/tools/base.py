"""Base capability definitions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel


class ToolExample(BaseModel):
    parameters: dict[str, Any]
    outcome: str


class Tool(ABC):
    """Abstract evidence-gathering capability.

    ``input_schema`` is the pydantic model parameters are validated against
    before ``execute`` is called. ``execute`` receives the validated model and
    may raise; the registry converts any exception into a failed outcome.
    """

    name: str
    description: str
    input_schema: type[BaseModel]
    examples: tuple[ToolExample, ...] = ()

    @abstractmethod
    def execute(self, params: BaseModel) -> Any:
        """Run the capability."""
        raise NotImplementedError

    def describe(self) -> str:
        return describe_signature(self.name, self.description, self.input_schema)


def describe_signature(name: str, description: str, schema: type[BaseModel]) -> str:
    """Render ``name(field: type, optional?: type): description`` from a schema."""
    json_schema = schema.model_json_schema()
    fields = json_schema.get("properties", {})
    required = set(json_schema.get("required", []))
    rendered = ", ".join(
        f"{field}{'' if field in required else '?'}: {spec.get('type', 'any')}"
        for field, spec in fields.items()
    )
    return f"{name}({rendered}): {description}"
