from __future__ import annotations

from collections.abc import Iterable

from cppconform.engine.types import RunStatus, Violation


def sort_key(v: Violation) -> tuple[str, int, int, str, int, int, str]:
    loc = v.location
    path = loc.path.as_posix() if loc is not None and loc.path is not None else ""
    line = loc.start_line if loc is not None and loc.start_line is not None else 0
    col = loc.start_col if loc is not None and loc.start_col is not None else 0
    end_line = loc.end_line if loc is not None and loc.end_line is not None else 0
    end_col = loc.end_col if loc is not None and loc.end_col is not None else 0
    return path, line, col, v.rule_id, end_line, end_col, v.message


def _identity(v: Violation) -> tuple[object, ...]:
    loc = v.location
    if loc is None:
        return (None, v.rule_id)
    path = loc.path.as_posix() if loc.path is not None else None
    return (path, loc.start_line, loc.start_col, loc.end_line, loc.end_col, v.rule_id)


def aggregate(per_file: Iterable[Iterable[Violation]]) -> tuple[Violation, ...]:
    """
    Merge per-file results into one deterministic report.

    Identical (path, span, rule) triples collapse to the first occurrence; the
    result is ordered by path, line, column and rule id.
    """

    seen: set[tuple[object, ...]] = set()
    merged: list[Violation] = []
    for violations in per_file:
        for v in violations:
            key = _identity(v)
            if key in seen:
                continue
            seen.add(key)
            merged.append(v)
    return tuple(sorted(merged, key=sort_key))


def compute_status(violations: Iterable[Violation], *, fail_on_error: bool = True, incomplete: bool = False) -> RunStatus:
    severities = {v.severity for v in violations}
    if fail_on_error and "error" in severities:
        return "fail"
    if incomplete:
        return "incomplete"
    if severities & {"error", "warning"}:
        return "pass-with-warnings"
    return "pass"
