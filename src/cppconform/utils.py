from __future__ import annotations

from pathlib import Path

HEADER_SUFFIXES = frozenset({".h", ".hh", ".hpp", ".hxx", ".h++"})


def safe_relpath(path: Path, root: Path) -> str:
    """
    POSIX-style path for reports, relative to `root` when `path` lives under it.

    Paths outside the root (or that fail to resolve) are reported as given.
    """

    try:
        resolved_path = path.resolve()
        resolved_root = root.resolve()
    except OSError:
        return path.as_posix()

    try:
        return resolved_path.relative_to(resolved_root).as_posix()
    except ValueError:
        return path.as_posix()


def is_header(path: Path | str) -> bool:
    return Path(path).suffix.lower() in HEADER_SUFFIXES
