from __future__ import annotations

import os
from pathlib import Path

from cppconform.config import ConformConfig
from cppconform.scanner import (
    CPPCONFORM_WORKERS_ENV,
    build_file_context,
    build_project_context,
    detect_project_root,
    discover_files,
    resolve_worker_count,
    worker_count_from_env,
)


def test_resolve_worker_count_default_uses_cpu_times_two(monkeypatch) -> None:
    monkeypatch.setattr(os, "cpu_count", lambda: 4)
    assert resolve_worker_count(None) == 8


def test_resolve_worker_count_default_is_clamped_to_max(monkeypatch) -> None:
    monkeypatch.setattr(os, "cpu_count", lambda: 64)
    assert resolve_worker_count(None) == 32


def test_resolve_worker_count_parses_values(monkeypatch) -> None:
    monkeypatch.setattr(os, "cpu_count", lambda: 2)
    assert resolve_worker_count("3") == 3
    assert resolve_worker_count(" auto ") == 4
    assert resolve_worker_count("0") == 4
    assert resolve_worker_count("many") == 4
    assert resolve_worker_count("500") == 32
    assert resolve_worker_count(None, default=1) == 1


def test_worker_count_from_env(monkeypatch) -> None:
    monkeypatch.setenv(CPPCONFORM_WORKERS_ENV, "2")
    assert worker_count_from_env() == 2


def _touch(path: Path, content: str = "int x;\n") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def test_discover_files_walks_sorted_and_skips_build_dirs(tmp_path: Path) -> None:
    _touch(tmp_path / "src" / "b.cpp")
    _touch(tmp_path / "src" / "a.h")
    _touch(tmp_path / "src" / "notes.md")
    _touch(tmp_path / "build" / "gen.cpp")
    _touch(tmp_path / ".git" / "hook.cpp")
    _touch(tmp_path / "third_party" / "lib.cpp")

    config = ConformConfig(exclude=("third_party/",))
    files = discover_files([tmp_path], project_root=tmp_path, config=config)
    assert [p.relative_to(tmp_path.resolve()).as_posix() for p in files] == ["src/a.h", "src/b.cpp"]


def test_explicit_files_are_always_included(tmp_path: Path) -> None:
    odd = _touch(tmp_path / "generated.txt")
    header = _touch(tmp_path / "a.h")
    files = discover_files([odd, header, header], project_root=tmp_path, config=ConformConfig())
    assert files == sorted([odd.resolve(), header.resolve()], key=lambda p: p.as_posix())


def test_detect_project_root(tmp_path: Path) -> None:
    nested = tmp_path / "src" / "core"
    nested.mkdir(parents=True)
    source = _touch(nested / "a.cpp")
    assert detect_project_root(source) == nested.resolve()

    (tmp_path / ".cppconform.toml").write_text("", encoding="utf-8")
    assert detect_project_root(source) == tmp_path.resolve()


def test_build_file_context(tmp_path: Path) -> None:
    source = _touch(tmp_path / "src" / "a.cpp", "// note\nint value = 1;\n")
    project = build_project_context(tmp_path, [source], ConformConfig())
    assert not project.multi_file

    ctx = build_file_context(project, source)
    assert ctx is not None
    assert ctx.relative_path == "src/a.cpp"
    assert [t.text for t in ctx.code] == ["int", "value", "=", "1", ";"]
    assert [e.name for e in ctx.model.entities] == ["value"]
    assert build_file_context(project, tmp_path / "missing.cpp") is None
