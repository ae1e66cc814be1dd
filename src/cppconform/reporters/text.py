from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from pathlib import Path

from rich.console import Console
from rich.text import Text

from cppconform.engine.types import RunStatus, Violation
from cppconform.utils import safe_relpath

_STATUS_STYLE = {
    "pass": "bold green",
    "pass-with-warnings": "bold yellow",
    "fail": "bold red",
    "incomplete": "bold magenta",
}


def format_violation(v: Violation, *, project_root: Path) -> str:
    loc = v.location
    if loc is None or loc.path is None:
        prefix = "<project>"
    else:
        prefix = safe_relpath(loc.path, project_root)
    if loc is not None and loc.start_line is not None:
        prefix += f":{loc.start_line}:{loc.start_col or 1}"
    return f"{prefix}: [{v.severity}] {v.rule_id}: {v.message}"


def render_text(violations: Iterable[Violation], *, project_root: Path) -> str:
    """One `path:line:col: [severity] rule_id: message` line per violation."""

    return "\n".join(format_violation(v, project_root=project_root) for v in violations)


def print_summary(
    violations: Iterable[Violation],
    *,
    files_checked: int,
    status: RunStatus,
    console: Console,
    incomplete: bool = False,
) -> None:
    counts = Counter(v.severity for v in violations)
    line = Text()
    line.append(f"Checked {files_checked} file(s): ", style="bold")
    line.append(_plural(counts["error"], "error"), style="red" if counts["error"] else "dim")
    line.append(", ")
    line.append(_plural(counts["warning"], "warning"), style="yellow" if counts["warning"] else "dim")
    line.append(", ")
    line.append(f"{counts['info']} info", style="dim")
    line.append(" -> ")
    line.append(status, style=_STATUS_STYLE.get(status, "bold"))
    if incomplete and status != "incomplete":
        line.append(" (incomplete: timeout reached)", style=_STATUS_STYLE["incomplete"])
    console.print(line)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"
