"""Value types shared by every analysis stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from faultline.constants import (
    DiagnosticKind,
    DiagnosticSource,
    ErrorCategory,
    Severity,
)


@dataclass(frozen=True)
class FragmentOrigin:
    """Where a fragment came from. Opaque to the analysis core."""

    file_path: str = "<memory>"
    start_offset: int = 0
    end_offset: int | None = None


@dataclass(frozen=True)
class SourceFragment:
    """A unit of source text submitted for analysis."""

    text: str
    language: str = "python"
    origin: FragmentOrigin = field(default_factory=FragmentOrigin)

    @property
    def byte_length(self) -> int:
        return len(self.text.encode("utf-8"))

    @property
    def lines(self) -> list[str]:
        return self.text.split("\n")


@dataclass(frozen=True)
class DelimiterFrame:
    """An open bracket awaiting its closer during one scan."""

    char: str
    line: int
    column: int
    expected: str


class Diagnostic(BaseModel):
    """One finding, produced by exactly one stage and never mutated.

    Positions are 0-based. ``end_line``/``end_column`` default to a
    one-character span starting at ``(line, column)``.
    """

    model_config = ConfigDict(frozen=True)

    kind: DiagnosticKind
    category: ErrorCategory
    severity: Severity
    message: str
    line: int
    column: int
    end_line: int
    end_column: int
    confidence: float
    rule_id: str
    suggestion: str = ""
    quick_fixes: tuple[str, ...] = ()
    context: str = ""
    source: DiagnosticSource

    @model_validator(mode="before")
    @classmethod
    def _normalize_span(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        values: dict[str, Any] = dict(data)  # pyright: ignore[reportUnknownArgumentType]
        line = max(0, int(values.get("line", 0)))
        column = max(0, int(values.get("column", 0)))
        end_line = values.get("end_line")
        end_column = values.get("end_column")
        end_line = line if end_line is None else max(line, int(end_line))
        if end_column is None:
            end_column = column + 1
        end_column = int(end_column)
        if end_line == line:
            end_column = max(column, end_column)
        values.update(
            line=line,
            column=column,
            end_line=end_line,
            end_column=max(0, end_column),
        )
        return values

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v: Any) -> float:
        return min(1.0, max(0.0, float(v)))

    @property
    def length(self) -> int:
        """Span width on a single line; 1 for multi-line spans."""
        if self.end_line != self.line:
            return 1
        return self.end_column - self.column

    @property
    def position(self) -> tuple[int, int]:
        return (self.line, self.column)
