from __future__ import annotations

from dataclasses import replace

from helpers import make_file_ctx

from cppconform.autofix import apply_fixes
from cppconform.config import NamingConfig
from cppconform.rules.naming import NamingCasing


def _check(project_ctx, content: str, **overrides):
    ctx = make_file_ctx(project_ctx, relpath="src/example.cpp", content=content, **overrides)
    return ctx, NamingCasing().check_file(ctx)


def test_variable_with_mixed_case_is_flagged(project_ctx) -> None:
    ctx, violations = _check(project_ctx, "int MAX_count = 5;\n")
    assert len(violations) == 1
    v = violations[0]
    assert v.rule_id == "naming-casing"
    assert v.severity == "error"
    assert v.message == "Variable `MAX_count` should be lower_snake_case (`max_count`)."
    assert v.suggestion == "rename to `max_count`"
    assert v.autofix
    assert v.location is not None and (v.location.start_line, v.location.start_col) == (1, 5)
    assert apply_fixes(ctx.text, violations) == "int max_count = 5;\n"


def test_constexpr_constant_in_upper_snake_passes(project_ctx) -> None:
    _ctx, violations = _check(project_ctx, "constexpr int MAX_COUNT = 5;\n")
    assert violations == []


def test_function_rename_covers_every_use_and_converges(project_ctx) -> None:
    content = (
        "void ComputeTotal(int itemCount) { int x = itemCount; }\n"
        "int main() { ComputeTotal(3); return 0; }\n"
    )
    ctx, violations = _check(project_ctx, content)
    names = [v.message.split("`")[1] for v in violations]
    assert names == ["ComputeTotal", "itemCount"]
    assert all(v.autofix for v in violations)

    fixed = apply_fixes(ctx.text, violations)
    assert "compute_total(3)" in fixed
    assert "int x = item_count;" in fixed

    _ctx2, again = _check(project_ctx, fixed)
    assert again == []


def test_acronym_in_class_name(project_ctx) -> None:
    _ctx, violations = _check(project_ctx, "class HTTPServer {};\nclass HttpClient {};\n")
    assert [v.message for v in violations] == ["Class `HTTPServer` should be UpperCamelCase (`HttpServer`)."]


def test_allow_list_skips_names(project_ctx) -> None:
    _ctx, violations = _check(
        project_ctx,
        "class HTTPServer {};\n",
        naming=NamingConfig(allow=("HTTPServer",)),
    )
    assert violations == []


def test_data_members_may_carry_trailing_underscore(project_ctx) -> None:
    _ctx, violations = _check(project_ctx, "class Cache {\n  int hitCount_;\n  int size_;\n};\n")
    assert [v.message for v in violations] == [
        "Data member `hitCount_` should be lower_snake_case (`hit_count_`)."
    ]


def test_enumerators_use_upper_camel(project_ctx) -> None:
    _ctx, violations = _check(project_ctx, "enum class Mode { fast_mode, Slow };\n")
    assert [v.message for v in violations] == ["Enumerator `fast_mode` should be UpperCamelCase (`FastMode`)."]


def test_rename_is_not_applied_when_target_name_exists(project_ctx) -> None:
    _ctx, violations = _check(project_ctx, "int maxCount = 1;\nint max_count = 2;\n")
    assert len(violations) == 1
    assert violations[0].suggestion == "rename to `max_count`"
    assert not violations[0].autofix


def test_rename_is_not_applied_when_macro_mentions_name(project_ctx) -> None:
    _ctx, violations = _check(project_ctx, "#define USE_IT() badName\nint badName = 1;\n")
    assert len(violations) == 1
    assert not violations[0].autofix


def test_macros_use_upper_snake(project_ctx) -> None:
    _ctx, violations = _check(project_ctx, "#define maxItems 3\n")
    assert [v.message for v in violations] == ["Macro `maxItems` should be UPPER_SNAKE_CASE (`MAX_ITEMS`)."]
    assert not violations[0].autofix


def test_multi_file_checks_only_fix_locals(project_ctx, tmp_path) -> None:
    multi = replace(project_ctx, files=(tmp_path / "a.cpp", tmp_path / "b.cpp"))
    ctx = make_file_ctx(multi, relpath="a.cpp", content="int GlobalCount = 0;\nvoid f() { int LocalCount = 1; }\n")
    violations = NamingCasing().check_file(ctx)
    by_name = {v.message.split("`")[1]: v for v in violations}
    assert set(by_name) == {"GlobalCount", "LocalCount"}
    assert not by_name["GlobalCount"].autofix
    assert by_name["LocalCount"].autofix


def test_low_confidence_entities_are_opt_in(project_ctx) -> None:
    content = "void (*OnEvent)(int);\n"
    _ctx, violations = _check(project_ctx, content)
    assert violations == []

    _ctx, violations = _check(project_ctx, content, naming=NamingConfig(check_low_confidence=True))
    assert [v.message.split("`")[1] for v in violations] == ["OnEvent"]


def test_overrides_special_members_and_main_are_skipped(project_ctx) -> None:
    content = (
        "class Base { public: virtual void Run(); };\n"
        "class Derived : public Base { public: void Run() override; Derived(); ~Derived(); };\n"
        "int main() { return 0; }\n"
    )
    _ctx, violations = _check(project_ctx, content)
    assert len(violations) == 1
    assert violations[0].location is not None and violations[0].location.start_line == 1


def test_rename_is_not_applied_when_a_member_access_shares_the_name(project_ctx) -> None:
    content = "int read_it(Config& cfg) { int Value = cfg.Value; return Value; }\n"
    ctx, violations = _check(project_ctx, content)
    assert [v.message.split("`")[1] for v in violations] == ["Value"]
    assert violations[0].suggestion == "rename to `value`"
    assert not violations[0].autofix
    assert apply_fixes(ctx.text, violations) == content


def test_rename_is_not_applied_through_a_foreign_qualifier(project_ctx) -> None:
    content = "void f() { int Limit = other::Limit; }\n"
    _ctx, violations = _check(project_ctx, content)
    assert len(violations) == 1
    assert not violations[0].autofix


def test_rename_follows_member_uses_of_its_own_class(project_ctx) -> None:
    content = (
        "class Counter { public: void Bump(); };\n"
        "void Counter::Bump() {}\n"
        "void use(Counter* c) { c->Bump(); }\n"
    )
    ctx, violations = _check(project_ctx, content)
    assert [v.message.split("`")[1] for v in violations] == ["Bump", "Bump"]
    assert all(v.autofix for v in violations)
    fixed = apply_fixes(ctx.text, violations)
    assert "void Counter::bump() {}" in fixed
    assert "c->bump();" in fixed


def test_single_letter_prefix_words_are_upper_camel(project_ctx) -> None:
    content = "template <typename TValue> class XAxis { TValue value_; };\nstruct Vec3 {};\n"
    _ctx, violations = _check(project_ctx, content)
    assert violations == []


def test_every_naming_violation_carries_a_suggestion(project_ctx) -> None:
    content = (
        "#define maxItems 3\n"
        "template <typename value_type> class http_server { int hitCount_; };\n"
        "enum class Mode { fast_mode };\n"
        "namespace NetIO { void SendAll(int PacketCount); }\n"
        "class ID {};\n"
    )
    _ctx, violations = _check(project_ctx, content)
    assert len(violations) >= 7
    assert all(v.suggestion is not None for v in violations)
