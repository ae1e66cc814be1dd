from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from cppconform.formatter import FormatterError, first_difference_line, run_formatter


def _completed(args, returncode: int = 0, stdout: str = "", stderr: str = ""):
    return subprocess.CompletedProcess(args=args, returncode=returncode, stdout=stdout, stderr=stderr)


def test_run_formatter_returns_stdout(monkeypatch, tmp_path: Path) -> None:
    seen: list[list[str]] = []

    def fake_run(args, **kwargs):
        seen.append(args)
        return _completed(args, stdout="int x;\n")

    monkeypatch.setattr(subprocess, "run", fake_run)
    path = tmp_path / "a.cpp"
    assert run_formatter(("clang-format", "--style=file"), path) == "int x;\n"
    assert seen == [["clang-format", "--style=file", str(path)]]


def test_spawn_failure_is_retried_once(monkeypatch, tmp_path: Path) -> None:
    calls = {"count": 0}

    def flaky_run(args, **kwargs):
        calls["count"] += 1
        if calls["count"] == 1:
            raise OSError("resource temporarily unavailable")
        return _completed(args, stdout="ok\n")

    monkeypatch.setattr(subprocess, "run", flaky_run)
    assert run_formatter(("clang-format",), tmp_path / "a.cpp") == "ok\n"
    assert calls["count"] == 2


def test_missing_formatter_raises_after_retry(monkeypatch, tmp_path: Path) -> None:
    calls = {"count": 0}

    def missing(args, **kwargs):
        calls["count"] += 1
        raise FileNotFoundError("clang-format")

    monkeypatch.setattr(subprocess, "run", missing)
    with pytest.raises(FormatterError, match="could not run clang-format"):
        run_formatter(("clang-format",), tmp_path / "a.cpp")
    assert calls["count"] == 2


def test_nonzero_exit_is_not_retried(monkeypatch, tmp_path: Path) -> None:
    calls = {"count": 0}

    def failing(args, **kwargs):
        calls["count"] += 1
        return _completed(args, returncode=1, stderr="error: bad style\nmore\n")

    monkeypatch.setattr(subprocess, "run", failing)
    with pytest.raises(FormatterError, match="exited with status 1: error: bad style"):
        run_formatter(("clang-format",), tmp_path / "a.cpp")
    assert calls["count"] == 1


def test_timeout_raises(monkeypatch, tmp_path: Path) -> None:
    def slow(args, **kwargs):
        raise subprocess.TimeoutExpired(args, kwargs["timeout"])

    monkeypatch.setattr(subprocess, "run", slow)
    with pytest.raises(FormatterError, match="timed out"):
        run_formatter(("clang-format",), tmp_path / "a.cpp", timeout=1.0)


def test_empty_command() -> None:
    with pytest.raises(FormatterError):
        run_formatter((), Path("a.cpp"))


@pytest.mark.parametrize(
    ("before", "after", "expected"),
    [
        ("a\nb\n", "a\nb\n", None),
        ("a\nb\n", "a\nc\n", 2),
        ("a\nb\nc\n", "a\nb\n", 3),
        ("a\n", "a\nb\n", 1),
        ("a", "a\n", 1),
    ],
)
def test_first_difference_line(before: str, after: str, expected: int | None) -> None:
    assert first_difference_line(before, after) == expected
