"""Worked-example sources used to seed the first analysis prompt."""

from __future__ import annotations

from typing import Iterable, Protocol

from pydantic import BaseModel, Field


class WorkedExample(BaseModel):
    """One solved analysis shown to the model as a pattern to imitate."""

    error: str
    thought: str
    action: str
    observation: str
    root_cause: str
    fix_steps: list[str] = Field(min_length=1)
    confidence: float = Field(ge=0.0, le=1.0)


class ExampleSource(Protocol):
    def examples_for(self, error_type: str, limit: int) -> list[WorkedExample]:
        ...


_BUILTIN_EXAMPLES: dict[str, list[WorkedExample]] = {
    "lateinit": [
        WorkedExample(
            error=(
                "kotlin.UninitializedPropertyAccessException: lateinit property user "
                "has not been initialized at UserActivity.kt:45"
            ),
            thought=(
                "A lateinit property is read before assignment. I need the declaration "
                "of 'user' and the place it should be initialized."
            ),
            action="read_file at UserActivity.kt:45",
            observation=(
                "Line 45 reads 'val name = user.name'. 'lateinit var user: User' is declared "
                "at line 12 and onCreate() never assigns it."
            ),
            root_cause=(
                "The lateinit property 'user' is accessed in onCreate() before any code "
                "assigns it, so the runtime throws on first access."
            ),
            fix_steps=[
                "Assign 'user' in onCreate() before line 45: user = intent.getParcelableExtra(...)",
                "Or declare it nullable: var user: User? = null and use user?.name",
                "Or guard the access with if (::user.isInitialized)",
            ],
            confidence=0.95,
        )
    ],
    "npe": [
        WorkedExample(
            error="NullPointerException at MainActivity.kt:67: textView.text = data",
            thought="'textView' is probably null at line 67. Check how it is initialized.",
            action="read_file at MainActivity.kt:67",
            observation=(
                "'private var textView: TextView? = null' at line 15; findViewById() is "
                "called with an id that is not in the inflated layout."
            ),
            root_cause=(
                "findViewById() returns null because the id does not exist in the layout set "
                "by setContentView(), and line 67 dereferences the result without a null check."
            ),
            fix_steps=[
                "Use the id declared in activity_main.xml in findViewById()",
                "Use a safe call at line 67: textView?.text = data",
                "Call setContentView() before looking up views",
            ],
            confidence=0.9,
        )
    ],
    "unresolved_reference": [
        WorkedExample(
            error="Unresolved reference: AppDatabase at DatabaseHelper.kt:23",
            thought="Either the import is missing or the class does not exist.",
            action="read_file at DatabaseHelper.kt:23",
            observation="No import for AppDatabase; AppDatabase.kt exists in another package.",
            root_cause=(
                "DatabaseHelper.kt references AppDatabase without importing it from "
                "com.example.app.database."
            ),
            fix_steps=[
                "Add 'import com.example.app.database.AppDatabase' to DatabaseHelper.kt",
                "Rebuild to confirm the reference resolves",
            ],
            confidence=0.85,
        )
    ],
    "type_mismatch": [
        WorkedExample(
            error="Type mismatch: inferred type is String but Int was expected at Calculator.kt:34",
            thought="A String is assigned where an Int is required. Look at the assignment.",
            action="read_file at Calculator.kt:34",
            observation="'val result: Int = userInput' where userInput comes from EditText text.",
            root_cause="A String from the text field is assigned to an Int without conversion.",
            fix_steps=[
                "Convert explicitly: val result: Int = userInput.toIntOrNull() ?: 0",
                "Show a validation error when toIntOrNull() returns null",
            ],
            confidence=0.92,
        )
    ],
}


class StaticExampleLibrary:
    """In-memory examples keyed by error type."""

    def __init__(self, examples: dict[str, Iterable[WorkedExample]] | None = None) -> None:
        source = _BUILTIN_EXAMPLES if examples is None else examples
        self._examples = {key.lower(): list(items) for key, items in source.items()}

    def add(self, error_type: str, example: WorkedExample) -> None:
        self._examples.setdefault(error_type.lower(), []).append(example)

    def examples_for(self, error_type: str, limit: int) -> list[WorkedExample]:
        if limit <= 0:
            return []
        return list(self._examples.get(error_type.lower(), []))[:limit]
