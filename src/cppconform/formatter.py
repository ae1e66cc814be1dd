from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from pathlib import Path

from cppconform.lexer import printable

logger = logging.getLogger(__name__)

SPAWN_ATTEMPTS = 2
FORMATTER_TIMEOUT_SECONDS = 60.0


class FormatterError(RuntimeError):
    """Raised when the external formatter cannot be run or reports failure."""


def run_formatter(command: Sequence[str], path: Path, *, timeout: float | None = FORMATTER_TIMEOUT_SECONDS) -> str:
    """
    Run `[*command, path]` and return the formatted text from stdout.

    Spawning is retried once when the process cannot be started; a non-zero
    exit status is not retried.
    """

    if not command:
        raise FormatterError("formatter command is empty")

    args = [*command, str(path)]
    last_error: OSError | None = None
    for attempt in range(1, SPAWN_ATTEMPTS + 1):
        try:
            proc = subprocess.run(
                args,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="surrogateescape",
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise FormatterError(f"{command[0]} timed out after {timeout}s") from exc
        except OSError as exc:
            logger.debug("formatter spawn attempt %d failed: %s", attempt, exc)
            last_error = exc
            continue

        if proc.returncode != 0:
            detail = printable(proc.stderr or "").strip().splitlines()
            suffix = f": {detail[0]}" if detail else ""
            raise FormatterError(f"{command[0]} exited with status {proc.returncode}{suffix}")
        return proc.stdout

    raise FormatterError(f"could not run {command[0]}: {last_error}") from last_error


def first_difference_line(before: str, after: str) -> int | None:
    """1-based line number of the first line that differs, or None if equal."""

    if before == after:
        return None
    old_lines = before.splitlines()
    new_lines = after.splitlines()
    for index, (old, new) in enumerate(zip(old_lines, new_lines), start=1):
        if old != new:
            return index
    return max(1, min(len(old_lines), len(new_lines) + 1))
