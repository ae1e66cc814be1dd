from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

Severity = Literal["info", "warning", "error"]
Category = Literal["naming", "formatting", "resource", "type-safety", "interface", "error-handling", "engine"]
RunStatus = Literal["pass", "pass-with-warnings", "fail", "incomplete"]


@dataclass(frozen=True, slots=True)
class Location:
    path: Path | None = None
    start_line: int | None = None  # 1-based
    start_col: int | None = None  # 1-based
    end_line: int | None = None  # 1-based
    end_col: int | None = None  # 1-based
    start_offset: int | None = None  # index into the decoded source text
    end_offset: int | None = None


@dataclass(frozen=True, slots=True)
class FixEdit:
    """Replace `text[start:end]` with `replacement` (an insertion when start == end)."""

    start: int
    end: int
    replacement: str

    def overlaps(self, other: FixEdit) -> bool:
        # Two insertions at one offset have no defined order, and an insertion at
        # the start of a replaced range would be swallowed by it.
        if self.start == self.end:
            if other.start == other.end:
                return self.start == other.start
            return other.start <= self.start < other.end
        if other.start == other.end:
            return self.start <= other.start < self.end
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True, slots=True)
class Violation:
    rule_id: str
    severity: Severity
    message: str
    category: Category
    location: Location | None = None
    suggestion: str | None = None
    edits: tuple[FixEdit, ...] = ()
    autofix: bool = False
    related: tuple[Location, ...] = ()

    @property
    def line(self) -> int | None:
        return self.location.start_line if self.location is not None else None


def is_engine_note(violation: Violation) -> bool:
    return violation.rule_id.startswith("engine/")
