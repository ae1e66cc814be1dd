from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

from cppconform.config import ConformConfig, find_config_file, path_is_selected
from cppconform.declarations import extract
from cppconform.engine.context import FileContext, ProjectContext
from cppconform.lexer import LineIndex, code_tokens, decode_source, encode_source, tokenize
from cppconform.suppressions import parse_suppressions
from cppconform.utils import safe_relpath

DEFAULT_SKIP_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".idea",
    ".vscode",
    ".cache",
    "node_modules",
    "build",
    "cmake-build-debug",
    "cmake-build-release",
    "__pycache__",
}

CPPCONFORM_WORKERS_ENV = "CPPCONFORM_WORKERS"
DEFAULT_MAX_WORKERS = 32


def resolve_worker_count(
    raw_value: str | None,
    *,
    default: int | None = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> int:
    """
    Resolve a safe worker count from an env var-style string.

    - None/""/"auto" fall back to the default
    - Values <= 0 fall back to the default
    - Values above `max_workers` are clamped
    """

    cpu = os.cpu_count() or 1
    resolved_default = max(1, default if default is not None else (cpu * 2))
    if raw_value is None:
        return min(resolved_default, max_workers)

    normalized = raw_value.strip().lower()
    if not normalized or normalized in {"auto", "default"}:
        return min(resolved_default, max_workers)

    try:
        workers = int(normalized)
    except ValueError:
        return min(resolved_default, max_workers)

    if workers <= 0:
        return min(resolved_default, max_workers)
    return min(workers, max_workers)


def worker_count_from_env(*, default: int | None = None) -> int:
    return resolve_worker_count(os.environ.get(CPPCONFORM_WORKERS_ENV), default=default)


def detect_project_root(start: Path) -> Path:
    """
    Directory that relative report paths and include/exclude globs are based on.

    The directory holding the nearest configuration file wins; otherwise the
    input directory (or a file input's parent) is used.
    """

    start = start.resolve()
    found = find_config_file(start)
    if found is not None:
        return found[0].parent
    return start if start.is_dir() else start.parent


def discover_files(paths: Iterable[Path], *, project_root: Path, config: ConformConfig) -> list[Path]:
    """
    Expand inputs into a sorted, de-duplicated list of files to check.

    Explicit file arguments are always kept; directories are walked recursively
    (skipping VCS and build directories) and filtered by include/exclude globs.
    """

    files: set[Path] = set()
    for raw in paths:
        scan_path = Path(raw).resolve()
        if scan_path.is_file():
            files.add(scan_path)
            continue
        if not scan_path.is_dir():
            # Missing inputs surface as unreadable files.
            files.add(scan_path)
            continue

        for dirpath, dirnames, filenames in os.walk(scan_path, topdown=True):
            dirnames[:] = sorted(d for d in dirnames if d not in DEFAULT_SKIP_DIRS)
            base = Path(dirpath)
            for filename in filenames:
                path = base / filename
                if path_is_selected(path, project_root=project_root, config=config):
                    files.add(path)

    return sorted(files, key=lambda p: p.as_posix())


def build_project_context(project_root: Path, files: list[Path], config: ConformConfig) -> ProjectContext:
    return ProjectContext(project_root=project_root, files=tuple(files), config=config)


def read_source(path: Path) -> str:
    """Read `path` as text; raises OSError when the file cannot be read."""

    return decode_source(path.read_bytes())


def write_source(path: Path, text: str) -> None:
    """Write text produced by `read_source` back byte for byte."""

    path.write_bytes(encode_source(text))


def build_file_context(project: ProjectContext, path: Path) -> FileContext | None:
    try:
        text = read_source(path)
    except OSError:
        return None

    return build_file_context_from_text(project, path, text)


def build_file_context_from_text(project: ProjectContext, path: Path, text: str) -> FileContext:
    tokens = tuple(tokenize(text))
    code = tuple(code_tokens(tokens))
    return FileContext(
        project_root=project.project_root,
        path=path,
        relative_path=safe_relpath(path, project.project_root),
        text=text,
        tokens=tokens,
        code=code,
        model=extract(tokens),
        suppressions=parse_suppressions(tokens),
        line_index=LineIndex(text),
        config=project.config,
        multi_file=project.multi_file,
    )
