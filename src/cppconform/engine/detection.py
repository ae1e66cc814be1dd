from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace

from cppconform.config import ConformConfig, compute_enabled_rule_ids
from cppconform.engine.context import FileContext
from cppconform.engine.types import Location, Violation, is_engine_note
from cppconform.rules.base import BaseRule
from cppconform.rules.registry import all_rules, default_enablement

logger = logging.getLogger(__name__)


def enabled_rules(config: ConformConfig) -> list[BaseRule]:
    """Registry rules (sorted by id) that are enabled for `config`."""

    enabled_ids = compute_enabled_rule_ids(config, available=default_enablement())
    return [r for r in all_rules() if r.meta.rule_id in enabled_ids]


def detect_file(ctx: FileContext, rules: Sequence[BaseRule] | None = None) -> list[Violation]:
    """
    Run `rules` over one file and drop suppressed results.

    A rule that raises is reported as an `engine/rule-error` note for this file
    and the remaining rules still run. Suppression markers that are malformed
    (a stray `disable-end`, a `disable-begin` that never closes) add notes.
    """

    if rules is None:
        rules = enabled_rules(ctx.config)

    violations: list[Violation] = []
    for rule in rules:
        rule_id = rule.meta.rule_id
        try:
            raw = rule.check_file(ctx)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Rule %s failed on %s: %s", rule_id, ctx.relative_path, exc)
            logger.debug("Rule failure details", exc_info=True)
            violations.append(_rule_error(ctx, rule_id, exc))
            continue
        for v in _apply_overrides(ctx.config, rule_id, raw):
            if _is_suppressed(ctx, v):
                continue
            violations.append(v)

    for note in ctx.suppressions.notes:
        location = note.location or Location()
        violations.append(replace(note, location=replace(location, path=ctx.path)))
    return violations


def _apply_overrides(config: ConformConfig, rule_id: str, violations: list[Violation]) -> list[Violation]:
    severity = config.rule_settings(rule_id).severity
    if severity is None:
        return violations
    return [replace(v, severity=severity) for v in violations]


def _is_suppressed(ctx: FileContext, violation: Violation) -> bool:
    if is_engine_note(violation):
        return False
    return ctx.suppressions.is_suppressed(violation.rule_id, line=violation.line)


def _rule_error(ctx: FileContext, rule_id: str, exc: Exception) -> Violation:
    return Violation(
        rule_id="engine/rule-error",
        severity="warning",
        message=f"Rule {rule_id} failed on this file: {type(exc).__name__}: {exc}",
        category="engine",
        location=Location(path=ctx.path, start_line=1, start_col=1, start_offset=0, end_offset=0),
    )
