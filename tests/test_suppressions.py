from __future__ import annotations

from helpers import make_file_ctx

from cppconform.engine.detection import detect_file
from cppconform.lexer import tokenize
from cppconform.suppressions import parse_suppressions


def _parse(source: str):
    return parse_suppressions(tokenize(source))


def test_disable_line_and_next_line() -> None:
    s = _parse("int a; // cppconform: disable-line\n// cppconform: disable-next-line=naming-casing\nint B;\nint c;\n")
    assert s.is_suppressed("no-c-style-cast", line=1)
    assert s.is_suppressed("naming-casing", line=3)
    assert not s.is_suppressed("no-c-style-cast", line=3)
    assert not s.is_suppressed("naming-casing", line=4)
    assert s.notes == ()


def test_rule_ids_are_case_insensitive_and_comma_separated() -> None:
    s = _parse("// CPPCONFORM: disable-next-line = Naming-Casing, unscoped-enum\nenum bad_name {};\n")
    assert s.is_suppressed("naming-casing", line=2)
    assert s.is_suppressed("unscoped-enum", line=2)
    assert not s.is_suppressed("long-parameter-list", line=2)


def test_begin_end_region() -> None:
    source = "int a;\n/* cppconform: disable-begin=no-c-style-cast */\nint b;\nint c;\n// cppconform: disable-end\nint d;\n"
    s = _parse(source)
    assert not s.is_suppressed("no-c-style-cast", line=1)
    assert s.is_suppressed("no-c-style-cast", line=3)
    assert s.is_suppressed("no-c-style-cast", line=4)
    assert not s.is_suppressed("no-c-style-cast", line=6)
    assert not s.is_suppressed("naming-casing", line=3)


def test_unterminated_region_runs_to_eof_with_note() -> None:
    s = _parse("// cppconform: disable-begin\nint a;\n\n\nint z;\n")
    assert s.is_suppressed("naming-casing", line=5)
    assert [n.rule_id for n in s.notes] == ["engine/unterminated-suppression"]
    assert s.notes[0].severity == "info"
    assert "all rules" in s.notes[0].message


def test_stray_end_is_ignored_with_note() -> None:
    s = _parse("int a;\n// cppconform: disable-end=naming-casing\n")
    assert s.entries == ()
    assert [(n.rule_id, n.line) for n in s.notes] == [("engine/stray-suppression-end", 2)]


def test_markers_outside_comments_are_ignored() -> None:
    s = _parse('const char* text = "cppconform: disable-file";\n')
    assert s.entries == ()


def test_disable_file() -> None:
    s = _parse("int x;\n// cppconform: disable-file=naming-casing\n")
    assert s.is_suppressed("naming-casing", line=1)
    assert s.is_suppressed("naming-casing", line=None)
    assert not s.is_suppressed("unscoped-enum", line=1)


def test_detection_filters_suppressed_violations(project_ctx) -> None:
    content = "int BadOne = 1;  // cppconform: disable-line=naming-casing\nint BadTwo = 2;\n"
    ctx = make_file_ctx(project_ctx, relpath="src/s.cpp", content=content)
    violations = detect_file(ctx)
    assert [(v.rule_id, v.line) for v in violations] == [("naming-casing", 2)]


def test_suppression_notes_carry_the_file_path(project_ctx) -> None:
    ctx = make_file_ctx(project_ctx, relpath="src/s.cpp", content="// cppconform: disable-end\nint ok = 1;\n")
    violations = detect_file(ctx)
    assert [v.rule_id for v in violations] == ["engine/stray-suppression-end"]
    assert violations[0].location is not None and violations[0].location.path == ctx.path
