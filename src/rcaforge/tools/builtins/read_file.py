"""Read source code around an error location."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from rcaforge.tools.base import Tool, ToolExample

DEFAULT_CONTEXT_LINES = 25
MAX_FILE_BYTES = 10 * 1024 * 1024
_BINARY_SNIFF_BYTES = 8192


class ReadFileInput(BaseModel):
    file_path: str = Field(min_length=1, alias="filePath")
    line: int = Field(ge=0)
    context_lines: int = Field(default=DEFAULT_CONTEXT_LINES, ge=0, le=500, alias="contextLines")

    model_config = ConfigDict(populate_by_name=True)


class ReadFileTool(Tool):
    name = "read_file"
    description = "Read the code surrounding a line of a source file; the requested line is marked with '>'."
    input_schema = ReadFileInput
    examples = (
        ToolExample(
            parameters={"filePath": "MainActivity.kt", "line": 45, "contextLines": 25},
            outcome="Returns code around line 45",
        ),
    )

    def __init__(self, root_dir: str | None = None, max_file_bytes: int = MAX_FILE_BYTES) -> None:
        self.root_dir = Path(root_dir).resolve() if root_dir else None
        self.max_file_bytes = max_file_bytes

    def _resolve(self, file_path: str) -> Path:
        path = Path(file_path)
        if self.root_dir is None:
            return path
        target = (self.root_dir / path).resolve()
        if target != self.root_dir and self.root_dir not in target.parents:
            raise ValueError("Path traversal detected")
        return target

    def execute(self, params: BaseModel) -> str:
        payload = ReadFileInput.model_validate(params)
        target = self._resolve(payload.file_path)
        if not target.is_file():
            raise FileNotFoundError(f"File not found: {payload.file_path}")
        size = target.stat().st_size
        if size > self.max_file_bytes:
            raise ValueError(f"File too large ({size} bytes, limit {self.max_file_bytes})")
        with target.open("rb") as handle:
            if _looks_binary(handle.read(_BINARY_SNIFF_BYTES)):
                raise ValueError(f"Cannot read binary file: {payload.file_path}")
        lines = target.read_text(encoding="utf-8", errors="replace").split("\n")
        return format_excerpt(target.name, lines, payload.line, payload.context_lines)


def format_excerpt(label: str, lines: list[str], line: int, context_lines: int) -> str:
    start = max(0, line - 1 - context_lines)
    end = min(len(lines), line + context_lines)
    rendered = []
    for offset, text in enumerate(lines[start:end]):
        number = start + offset + 1
        marker = "> " if number == line else "  "
        rendered.append(f"{marker}{number:>4} | {text}")
    return f"Lines {start + 1}-{end} of {label}:\n" + "\n".join(rendered)


def _looks_binary(chunk: bytes) -> bool:
    return any(byte == 0 or (byte < 32 and byte not in (9, 10, 12, 13)) for byte in chunk)
