from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from cppconform.engine.types import Location, Violation
from cppconform.utils import safe_relpath


def render_json(violations: Iterable[Violation], *, project_root: Path) -> str:
    """Render violations as a JSON array, one record per violation, in report order."""

    payload = [_violation_to_dict(v, project_root=project_root) for v in violations]
    return json.dumps(payload, indent=2, sort_keys=False)


def _violation_to_dict(v: Violation, *, project_root: Path) -> dict[str, Any]:
    loc = v.location or Location()
    return {
        "path": _path(loc, project_root=project_root),
        "line": loc.start_line,
        "column": loc.start_col,
        "end_line": loc.end_line,
        "end_column": loc.end_col,
        "severity": v.severity,
        "rule_id": v.rule_id,
        "category": v.category,
        "message": v.message,
        "suggestion": v.suggestion,
        "fixable": v.autofix,
        "edits": [
            {"start": edit.start, "end": edit.end, "replacement": edit.replacement}
            for edit in v.edits
        ],
        "related": [_span(r, project_root=project_root) for r in v.related],
    }


def _path(loc: Location, *, project_root: Path) -> str | None:
    if loc.path is None:
        return None
    return safe_relpath(loc.path, project_root)


def _span(loc: Location, *, project_root: Path) -> dict[str, Any]:
    return {
        "path": _path(loc, project_root=project_root),
        "line": loc.start_line,
        "column": loc.start_col,
        "end_line": loc.end_line,
        "end_column": loc.end_col,
    }
