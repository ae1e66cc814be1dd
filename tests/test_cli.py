from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

import cppconform.cli as cli_mod
from cppconform import __version__
from cppconform.cli import app


def _write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def test_version() -> None:
    res = CliRunner().invoke(app, ["--version"])
    assert res.exit_code == 0
    assert res.stdout.strip() == __version__


def test_check_text_report_and_exit_code(tmp_path: Path) -> None:
    _write(tmp_path / "src" / "a.cpp", "int MAX_count = 5;\n")
    res = CliRunner().invoke(app, ["--no-progress", "check", str(tmp_path)])
    assert res.exit_code == 1, res.output
    assert res.stdout.splitlines() == [
        "src/a.cpp:1:5: [error] naming-casing: Variable `MAX_count` should be lower_snake_case (`max_count`)."
    ]
    assert "Checked 1 file(s): 1 error, 0 warnings, 0 info -> fail" in res.stderr


def test_check_clean_project_exits_zero(tmp_path: Path) -> None:
    _write(tmp_path / "a.cpp", "int value = 1;\n")
    res = CliRunner().invoke(app, ["check", str(tmp_path)])
    assert res.exit_code == 0, res.output
    assert res.stdout == ""
    assert "-> pass" in res.stderr


def test_quiet_suppresses_summary(tmp_path: Path) -> None:
    _write(tmp_path / "a.cpp", "int value = 1;\n")
    res = CliRunner().invoke(app, ["-q", "check", str(tmp_path)])
    assert res.exit_code == 0
    assert "Checked" not in res.output


def test_global_options_reach_the_check_command(tmp_path: Path, monkeypatch) -> None:
    _write(tmp_path / "a.cpp", "int MAX_count = 5;\n")
    seen: list[bool] = []
    real = cli_mod._check_with_optional_progress

    def spy(target, *, dry_run, backup, show_progress):
        seen.append(show_progress)
        return real(target, dry_run=dry_run, backup=backup, show_progress=False)

    monkeypatch.setattr(cli_mod, "_check_with_optional_progress", spy)
    CliRunner().invoke(app, ["check", str(tmp_path)])
    CliRunner().invoke(app, ["--no-progress", "check", str(tmp_path)])
    quiet = CliRunner().invoke(app, ["-q", "check", str(tmp_path)])
    assert seen == [True, False, False]
    assert quiet.exit_code == 1
    assert "Checked" not in quiet.stderr


def test_check_json_report(tmp_path: Path) -> None:
    _write(tmp_path / "a.h", "#pragma once\nenum Color { Red };\nint MAX_count = 5;\n")
    res = CliRunner().invoke(app, ["check", str(tmp_path), "--format", "JSON", "--no-fail-on-error"])
    assert res.exit_code == 0, res.output
    payload = json.loads(res.stdout)
    assert [(row["path"], row["line"], row["rule_id"]) for row in payload] == [
        ("a.h", 2, "unscoped-enum"),
        ("a.h", 3, "naming-casing"),
    ]
    assert payload[1]["fixable"] is True
    assert payload[1]["edits"] == [{"start": 37, "end": 46, "replacement": "max_count"}]


def test_fix_writes_files(tmp_path: Path) -> None:
    source = _write(tmp_path / "a.cpp", "enum Color { Red };\n")
    res = CliRunner().invoke(app, ["--no-progress", "check", str(tmp_path), "--fix"])
    assert res.exit_code == 0, res.output
    assert source.read_text(encoding="utf-8") == "enum class Color { Red };\n"
    assert "Fixed 1 file(s)." in res.stderr


def test_dry_run_prints_diff_only(tmp_path: Path) -> None:
    source = _write(tmp_path / "a.cpp", "enum Color { Red };\n")
    res = CliRunner().invoke(app, ["--no-progress", "check", str(tmp_path), "--fix", "--dry-run"])
    assert res.exit_code == 0, res.output
    assert source.read_text(encoding="utf-8") == "enum Color { Red };\n"
    assert "--- a/a.cpp" in res.stdout
    assert "+enum class Color { Red };" in res.stdout
    assert "a.cpp:1:6: [warning] unscoped-enum" in res.stdout
    assert "Fixed" not in res.stderr


def test_config_error_exits_two(tmp_path: Path) -> None:
    _write(tmp_path / ".cppconform.toml", "colour = true\n")
    _write(tmp_path / "a.cpp", "int value = 1;\n")
    res = CliRunner().invoke(app, ["check", str(tmp_path)])
    assert res.exit_code == 2
    assert "Configuration error" in res.stderr
    assert "colour" in res.stderr


def test_config_fail_on_error_false(tmp_path: Path) -> None:
    _write(tmp_path / ".cppconform.toml", "fail_on_error = false\n")
    _write(tmp_path / "a.cpp", "int MAX_count = 5;\n")
    res = CliRunner().invoke(app, ["--no-progress", "check", str(tmp_path)])
    assert res.exit_code == 0, res.output
    assert "-> pass-with-warnings" in res.stderr


def test_timeout_zero_is_incomplete(tmp_path: Path) -> None:
    _write(tmp_path / "a.cpp", "int value = 1;\n")
    res = CliRunner().invoke(app, ["--no-progress", "check", str(tmp_path), "--timeout", "0"])
    assert res.exit_code == 2
    assert "incomplete" in res.stderr


def test_unsupported_format_is_usage_error(tmp_path: Path) -> None:
    res = CliRunner().invoke(app, ["check", str(tmp_path), "--format", "sarif"])
    assert res.exit_code == 2


def test_verbose_and_quiet_conflict(tmp_path: Path) -> None:
    res = CliRunner().invoke(app, ["-v", "-q", "check", str(tmp_path)])
    assert res.exit_code == 2


def test_rules_json() -> None:
    res = CliRunner().invoke(app, ["rules", "--format", "json"])
    assert res.exit_code == 0, res.output
    rows = json.loads(res.stdout)
    assert [row["rule_id"] for row in rows] == sorted(row["rule_id"] for row in rows)
    naming = next(row for row in rows if row["rule_id"] == "naming-casing")
    assert naming == {
        "category": "naming",
        "default_enabled": True,
        "default_severity": "error",
        "description": naming["description"],
        "fixable": True,
        "rule_id": "naming-casing",
        "title": "Identifier casing",
    }


def test_rules_table() -> None:
    res = CliRunner().invoke(app, ["rules"], env={"COLUMNS": "200"})
    assert res.exit_code == 0
    assert "cppconform rules" in res.stdout
    assert "unscoped-enum" in res.stdout


def test_explain_rule() -> None:
    res = CliRunner().invoke(app, ["explain", "Naming-Casing"], env={"COLUMNS": "200"})
    assert res.exit_code == 0, res.output
    assert "naming-casing: Identifier casing" in res.stdout
    assert "Default severity: error" in res.stdout
    assert "[rules.naming-casing]" in res.stdout
    assert "disable-next-line=naming-casing" in res.stdout


def test_explain_unknown_rule_exits_non_zero() -> None:
    res = CliRunner().invoke(app, ["explain", "no-such-rule"])
    assert res.exit_code == 2
