from __future__ import annotations

import re
from collections.abc import Mapping
from functools import lru_cache
from types import MappingProxyType

from cppconform.rules.base import BaseRule, RuleMeta
from cppconform.rules.formatting import builtin_formatting_rules
from cppconform.rules.interface import builtin_interface_rules
from cppconform.rules.naming import builtin_naming_rules
from cppconform.rules.resource import builtin_resource_rules
from cppconform.rules.type_safety import builtin_type_safety_rules

_RULE_ID_RE = re.compile(r"^[a-z][a-z0-9]*(?:-[a-z0-9]+)*$")


@lru_cache(maxsize=1)
def builtin_rules() -> tuple[BaseRule, ...]:
    rules: list[BaseRule] = []
    rules.extend(builtin_naming_rules())
    rules.extend(builtin_resource_rules())
    rules.extend(builtin_type_safety_rules())
    rules.extend(builtin_interface_rules())
    rules.extend(builtin_formatting_rules())

    by_id: dict[str, BaseRule] = {}
    for rule in rules:
        rule_id = rule.meta.rule_id
        if not _RULE_ID_RE.match(rule_id):  # pragma: no cover
            raise RuntimeError(f"Rule id must be kebab-case: {rule_id!r}")
        if rule_id in by_id:  # pragma: no cover
            raise RuntimeError(f"Duplicate rule id: {rule_id}")
        by_id[rule_id] = rule

    return tuple(by_id[k] for k in sorted(by_id))


def all_rules() -> tuple[BaseRule, ...]:
    return builtin_rules()


def rule_ids() -> set[str]:
    return {r.meta.rule_id for r in all_rules()}


@lru_cache(maxsize=1)
def rule_meta_by_id() -> Mapping[str, RuleMeta]:
    return MappingProxyType({r.meta.rule_id: r.meta for r in all_rules()})


def rule_by_id(rule_id: str) -> BaseRule | None:
    for rule in all_rules():
        if rule.meta.rule_id == rule_id:
            return rule
    return None


def default_enablement() -> Mapping[str, bool]:
    return MappingProxyType({r.meta.rule_id: r.meta.default_enabled for r in all_rules()})
