from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

from helpers import make_file_ctx

from cppconform.config import RuleSettings
from cppconform.engine.aggregate import aggregate, compute_status
from cppconform.engine.context import FileContext
from cppconform.engine.detection import detect_file, enabled_rules
from cppconform.engine.types import Location, Violation
from cppconform.rules.base import BaseRule, RuleMeta
from cppconform.rules.naming import NamingCasing


@dataclass(frozen=True, slots=True)
class _ExplodingRule(BaseRule):
    meta = RuleMeta(
        rule_id="exploding-rule",
        title="Explodes",
        description="Always raises.",
        category="interface",
        default_severity="warning",
    )

    def check_file(self, ctx: FileContext) -> list[Violation]:
        raise ValueError("boom")


def _v(path: str, line: int, rule_id: str = "naming-casing", severity: str = "warning", col: int = 1) -> Violation:
    return Violation(
        rule_id=rule_id,
        severity=severity,  # type: ignore[arg-type]
        message=f"{rule_id} at {line}",
        category="naming",
        location=Location(path=Path(path), start_line=line, start_col=col, end_line=line, end_col=col + 1),
    )


def test_rule_failure_becomes_engine_note(project_ctx) -> None:
    ctx = make_file_ctx(project_ctx, relpath="src/a.cpp", content="int BadName = 1;\n")
    violations = detect_file(ctx, [_ExplodingRule(), NamingCasing()])
    assert [v.rule_id for v in violations] == ["engine/rule-error", "naming-casing"]
    note = violations[0]
    assert note.severity == "warning"
    assert "exploding-rule" in note.message and "ValueError: boom" in note.message
    assert note.location is not None and note.location.path == ctx.path


def test_severity_override_and_disabled_rules(project_ctx) -> None:
    rules = MappingProxyType(
        {
            "naming-casing": RuleSettings(severity="info"),
            "unscoped-enum": RuleSettings(enabled=False),
            "unparsed-region": RuleSettings(enabled=True),
        }
    )
    ctx = make_file_ctx(project_ctx, relpath="src/a.cpp", content="enum Color { Red };\nint BadName = 1;\n", rules=rules)
    ids = [r.meta.rule_id for r in enabled_rules(ctx.config)]
    assert "unscoped-enum" not in ids
    assert "unparsed-region" in ids

    violations = detect_file(ctx)
    assert [(v.rule_id, v.severity) for v in violations] == [("naming-casing", "info")]


def test_aggregate_dedups_and_sorts() -> None:
    first = _v("b.cpp", 3)
    duplicate = Violation(
        rule_id="naming-casing",
        severity="error",
        message="different text",
        category="naming",
        location=first.location,
    )
    merged = aggregate([[first, _v("a.cpp", 9)], [duplicate, _v("a.cpp", 2, rule_id="unscoped-enum")]])
    assert [(v.location.path.name, v.line) for v in merged if v.location and v.location.path] == [
        ("a.cpp", 2),
        ("a.cpp", 9),
        ("b.cpp", 3),
    ]
    assert merged[2] is first


def test_aggregate_orders_same_line_by_column_then_rule() -> None:
    merged = aggregate([[_v("a.cpp", 1, rule_id="z-rule", col=5), _v("a.cpp", 1, rule_id="b-rule", col=5), _v("a.cpp", 1, col=2)]])
    assert [(v.location.start_col, v.rule_id) for v in merged if v.location] == [
        (2, "naming-casing"),
        (5, "b-rule"),
        (5, "z-rule"),
    ]


def test_compute_status() -> None:
    assert compute_status([]) == "pass"
    assert compute_status([_v("a.cpp", 1, severity="info")]) == "pass"
    assert compute_status([_v("a.cpp", 1)]) == "pass-with-warnings"
    assert compute_status([_v("a.cpp", 1, severity="error")]) == "fail"
    assert compute_status([_v("a.cpp", 1, severity="error")], fail_on_error=False) == "pass-with-warnings"
    assert compute_status([], incomplete=True) == "incomplete"
    assert compute_status([_v("a.cpp", 1, severity="error")], incomplete=True) == "fail"
