from __future__ import annotations

import re

from cppconform.rules.registry import all_rules, default_enablement, rule_by_id, rule_ids, rule_meta_by_id

EXPECTED_IDS = {
    "adjacent-same-type-parameters",
    "long-parameter-list",
    "missing-include-guard",
    "naming-casing",
    "no-c-style-cast",
    "no-owning-raw-pointer",
    "unparsed-region",
    "unscoped-enum",
}


def test_builtin_rule_ids() -> None:
    assert rule_ids() == EXPECTED_IDS
    ids = [r.meta.rule_id for r in all_rules()]
    assert ids == sorted(ids)
    for rule_id in ids:
        assert re.fullmatch(r"[a-z][a-z0-9]*(?:-[a-z0-9]+)*", rule_id)


def test_default_enablement() -> None:
    enabled = default_enablement()
    assert enabled["unparsed-region"] is False
    assert all(enabled[r] for r in EXPECTED_IDS - {"unparsed-region"})


def test_lookup_helpers() -> None:
    rule = rule_by_id("naming-casing")
    assert rule is not None and rule.meta.fixable
    assert rule_by_id("no-such-rule") is None
    meta = rule_meta_by_id()
    assert meta["unscoped-enum"].category == "type-safety"
    assert meta["missing-include-guard"].fixable
    assert not meta["no-c-style-cast"].fixable
