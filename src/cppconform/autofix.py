from __future__ import annotations

import difflib
import logging
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from cppconform.declarations import extract
from cppconform.engine.aggregate import aggregate
from cppconform.engine.types import FixEdit, Location, Violation, is_engine_note
from cppconform.lexer import decode_source, printable, tokenize
from cppconform.scanner import write_source
from cppconform.utils import safe_relpath

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".cppconform.bak"


class FixRejected(Exception):
    """A file's batch of edits could not be applied safely."""


@dataclass(frozen=True, slots=True)
class FileFixResult:
    path: Path
    original: str
    updated: str
    applied: tuple[Violation, ...]
    diff: str
    rejection: Violation | None = None

    @property
    def changed(self) -> bool:
        return self.original != self.updated


@dataclass(frozen=True, slots=True)
class AutoFixReport:
    file_results: tuple[FileFixResult, ...]
    violations: tuple[Violation, ...]
    dry_run: bool

    @property
    def changed_files(self) -> tuple[Path, ...]:
        return tuple(fr.path for fr in self.file_results if fr.changed)

    @property
    def diff(self) -> str:
        return "\n".join(fr.diff for fr in self.file_results if fr.diff)


def fixable_violations(violations: Iterable[Violation]) -> list[Violation]:
    out: list[Violation] = []
    for v in violations:
        if is_engine_note(v) or not v.autofix or not v.edits:
            continue
        if v.location is None or v.location.path is None:
            continue
        out.append(v)
    return out


def plan_edits(violations: Iterable[Violation], *, text_length: int) -> tuple[FixEdit, ...]:
    """
    Collect the edits of `violations` into one batch sorted by offset.

    Exact duplicates collapse (two renames of the same token agree); any other
    overlap, including two different insertions at one offset, rejects the batch.
    """

    unique = sorted({edit for v in violations for edit in v.edits}, key=lambda e: (e.start, e.end, e.replacement))
    previous: FixEdit | None = None
    widest: FixEdit | None = None
    for edit in unique:
        if edit.start < 0 or edit.end < edit.start or edit.end > text_length:
            raise FixRejected(f"edit {edit.start}..{edit.end} lies outside the file")
        for other in (previous, widest):
            if other is not None and edit.overlaps(other):
                raise FixRejected(f"edits at offsets {other.start} and {edit.start} overlap")
        previous = edit
        if widest is None or edit.end > widest.end:
            widest = edit
    return tuple(unique)


def apply_edits(text: str, edits: Sequence[FixEdit]) -> str:
    """Apply non-overlapping `edits` in one pass, highest offset first."""

    updated = text
    for edit in sorted(edits, key=lambda e: (e.start, e.end), reverse=True):
        updated = updated[: edit.start] + edit.replacement + updated[edit.end :]
    return updated


def entity_kinds(text: str) -> tuple[str, ...]:
    return tuple(entity.kind for entity in extract(tokenize(text)).entities)


def apply_fixes(text: str, violations: Iterable[Violation]) -> str:
    """
    Return `text` with every auto-fixable edit of `violations` applied.

    Raises FixRejected when the edits overlap, or when the fixed text no longer
    yields the same sequence of declared entity kinds as the original.
    """

    edits = plan_edits(fixable_violations(violations), text_length=len(text))
    if not edits:
        return text
    updated = apply_edits(text, edits)
    if entity_kinds(updated) != entity_kinds(text):
        raise FixRejected("fixed text no longer declares the same kinds of entities")
    return updated


def unified_diff(before: str, after: str, *, label: str) -> str:
    if before == after:
        return ""
    diff = difflib.unified_diff(
        before.splitlines(keepends=False),
        after.splitlines(keepends=False),
        fromfile=f"a/{label}",
        tofile=f"b/{label}",
        lineterm="",
    )
    return printable("\n".join(diff))


def fix_file(
    path: Path,
    violations: Sequence[Violation],
    *,
    label: str | None = None,
    dry_run: bool = False,
    backup: bool = False,
) -> FileFixResult:
    label = label or path.as_posix()
    try:
        raw = path.read_bytes()
    except OSError as exc:
        return _rejected(path, "", f"could not read file for fixing: {exc}")
    original = decode_source(raw)

    try:
        updated = apply_fixes(original, violations)
    except FixRejected as exc:
        logger.info("fixes for %s rejected: %s", label, exc)
        return _rejected(path, original, str(exc))

    diff = unified_diff(original, updated, label=label)
    if updated != original and not dry_run:
        try:
            if backup:
                backup_path = path.with_suffix(path.suffix + BACKUP_SUFFIX)
                if not backup_path.exists():
                    backup_path.write_bytes(raw)
            write_source(path, updated)
        except OSError as exc:
            return _rejected(path, original, f"could not write fixed file: {exc}")
        logger.debug("fixed %s (%d violations)", label, len(violations))

    return FileFixResult(
        path=path,
        original=original,
        updated=updated,
        applied=tuple(violations),
        diff=diff,
    )


def autofix_report(
    violations: Sequence[Violation],
    *,
    project_root: Path,
    dry_run: bool = False,
    backup: bool = False,
    workers: int = 1,
) -> AutoFixReport:
    """
    Fix every file that has auto-fixable violations and rebuild the report.

    Applied violations leave the report (unless `dry_run`); a rejected file
    keeps its violations and gains an `engine/fix-rejected` note.
    """

    by_path: dict[Path, list[Violation]] = {}
    for v in fixable_violations(violations):
        location = v.location
        if location is None or location.path is None:
            continue
        by_path.setdefault(location.path, []).append(v)

    paths = sorted(by_path, key=lambda p: p.as_posix())

    def run(path: Path) -> FileFixResult:
        return fix_file(
            path,
            by_path[path],
            label=safe_relpath(path, project_root),
            dry_run=dry_run,
            backup=backup,
        )

    if workers <= 1 or len(paths) <= 1:
        results = [run(p) for p in paths]
    else:
        with ThreadPoolExecutor(max_workers=min(workers, len(paths))) as executor:
            results = list(executor.map(run, paths))

    applied_ids: set[int] = set()
    notes: list[Violation] = []
    for result in results:
        if result.rejection is not None:
            notes.append(result.rejection)
        elif not dry_run:
            applied_ids.update(id(v) for v in result.applied)

    remaining = [v for v in violations if id(v) not in applied_ids]
    return AutoFixReport(
        file_results=tuple(results),
        violations=aggregate([remaining, notes]),
        dry_run=dry_run,
    )


def _rejected(path: Path, original: str, reason: str) -> FileFixResult:
    note = Violation(
        rule_id="engine/fix-rejected",
        severity="warning",
        message=f"Automatic fixes were not applied: {reason}",
        category="engine",
        location=Location(path=path, start_line=1, start_col=1, start_offset=0, end_offset=0),
    )
    return FileFixResult(path=path, original=original, updated=original, applied=(), diff="", rejection=note)
