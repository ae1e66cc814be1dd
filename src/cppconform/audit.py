from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from cppconform.autofix import AutoFixReport, autofix_report
from cppconform.config import ConformConfig, load_config, unknown_rule_ids
from cppconform.engine.aggregate import aggregate, compute_status
from cppconform.engine.context import ProjectContext
from cppconform.engine.detection import detect_file, enabled_rules
from cppconform.engine.types import Location, RunStatus, Severity, Violation
from cppconform.formatter import FormatterError, first_difference_line, run_formatter
from cppconform.rules.base import BaseRule
from cppconform.rules.registry import rule_ids
from cppconform.scanner import (
    build_file_context,
    build_project_context,
    detect_project_root,
    discover_files,
    read_source,
    worker_count_from_env,
    write_source,
)
from cppconform.utils import safe_relpath

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CheckTarget:
    project_root: Path
    paths: tuple[Path, ...]
    config: ConformConfig


@dataclass(frozen=True, slots=True)
class CheckCallbacks:
    on_files_discovered: Callable[[int], None] | None = None
    on_file_checked: Callable[[Path], None] | None = None


@dataclass(frozen=True, slots=True)
class CheckResult:
    target: CheckTarget
    files: tuple[Path, ...]
    violations: tuple[Violation, ...]
    status: RunStatus
    incomplete: bool = False
    fix: AutoFixReport | None = None

    @property
    def files_checked(self) -> int:
        return len(self.files)


def prepare_target(paths: Sequence[Path], *, config_file: Path | None = None) -> CheckTarget:
    """
    Resolve the project root and load configuration for `paths`.

    Configuration is searched upward from the first input path unless an
    explicit `config_file` is given. Raises ConfigError on invalid configuration.
    """

    if not paths:
        paths = [Path(".")]
    resolved = tuple(Path(p).resolve() for p in paths)
    config = load_config(resolved[0], config_file=config_file)
    if config.source is not None:
        project_root = config.source.parent
    else:
        project_root = detect_project_root(resolved[0])
    return CheckTarget(project_root=project_root, paths=resolved, config=config)


def check_paths(
    paths: Sequence[Path],
    *,
    config_file: Path | None = None,
    callbacks: CheckCallbacks | None = None,
) -> CheckResult:
    target = prepare_target(paths, config_file=config_file)
    return check_target(target, callbacks=callbacks)


def check_target(
    target: CheckTarget,
    *,
    workers: int | None = None,
    dry_run: bool = False,
    backup: bool = False,
    callbacks: CheckCallbacks | None = None,
) -> CheckResult:
    files = discover_files(target.paths, project_root=target.project_root, config=target.config)
    if callbacks is not None and callbacks.on_files_discovered is not None:
        callbacks.on_files_discovered(len(files))
    return check_files(target, files=files, workers=workers, dry_run=dry_run, backup=backup, callbacks=callbacks)


def check_files(
    target: CheckTarget,
    *,
    files: Sequence[Path],
    workers: int | None = None,
    dry_run: bool = False,
    backup: bool = False,
    callbacks: CheckCallbacks | None = None,
) -> CheckResult:
    """
    Run every enabled rule over `files` and build the final report.

    Files are checked on a thread pool; results are collected in input order so
    the report does not depend on the worker count. With a configured timeout,
    files whose turn comes after the deadline are skipped and the run is
    reported as incomplete.
    """

    config = target.config
    files = list(files)
    project = build_project_context(target.project_root, files, config)
    rules = enabled_rules(config)
    workers = worker_count_from_env() if workers is None else max(1, workers)
    deadline = time.monotonic() + config.timeout if config.timeout is not None else None
    on_checked = callbacks.on_file_checked if callbacks is not None else None

    notes = _unknown_rule_notes(config)

    def check_one(path: Path) -> list[Violation] | None:
        if deadline is not None and time.monotonic() >= deadline:
            return None
        return _check_file(project, rules, path)

    per_file: list[list[Violation] | None] = []
    if workers <= 1 or len(files) <= 1:
        for path in files:
            per_file.append(check_one(path))
            if on_checked is not None:
                on_checked(path)
    else:
        with ThreadPoolExecutor(max_workers=min(workers, len(files))) as executor:
            for path, result in zip(files, executor.map(check_one, files), strict=True):
                per_file.append(result)
                if on_checked is not None:
                    on_checked(path)

    checked = [path for path, result in zip(files, per_file, strict=True) if result is not None]
    incomplete = len(checked) < len(files)
    if incomplete:
        skipped = len(files) - len(checked)
        logger.warning("timeout reached: %d of %d file(s) were not checked", skipped, len(files))
        notes.append(
            _engine_note(
                "engine/incomplete-run",
                "warning",
                f"Timeout reached: {skipped} of {len(files)} file(s) were not checked.",
                path=None,
            )
        )

    violations = aggregate([*(r for r in per_file if r is not None), notes])

    fix_report: AutoFixReport | None = None
    if config.fix:
        fix_report = autofix_report(
            violations,
            project_root=target.project_root,
            dry_run=dry_run,
            backup=backup,
            workers=workers,
        )
        violations = fix_report.violations

    if config.formatter.enabled:
        write_back = config.fix and not dry_run
        formattable = [p for p in checked if p.is_file()]
        formatter_notes = _run_formatter_pass(target, formattable, write_back=write_back, workers=workers)
        violations = aggregate([violations, formatter_notes])

    status = compute_status(violations, fail_on_error=config.fail_on_error, incomplete=incomplete)
    return CheckResult(
        target=target,
        files=tuple(checked),
        violations=violations,
        status=status,
        incomplete=incomplete,
        fix=fix_report,
    )


def _check_file(project: ProjectContext, rules: Sequence[BaseRule], path: Path) -> list[Violation]:
    ctx = build_file_context(project, path)
    if ctx is None:
        logger.warning("could not read %s", safe_relpath(path, project.project_root))
        return [
            _engine_note(
                "engine/unreadable-file",
                "warning",
                "File could not be read; it was not checked.",
                path=path,
            )
        ]
    return detect_file(ctx, rules)


def _unknown_rule_notes(config: ConformConfig) -> list[Violation]:
    notes: list[Violation] = []
    for rule_id in unknown_rule_ids(config, known=rule_ids()):
        logger.warning("unknown rule id in configuration: %s", rule_id)
        notes.append(
            _engine_note(
                "engine/unknown-rule",
                "warning",
                f"Configuration refers to unknown rule `{rule_id}`.",
                path=config.source,
            )
        )
    return notes


def _run_formatter_pass(
    target: CheckTarget,
    files: Sequence[Path],
    *,
    write_back: bool,
    workers: int,
) -> list[Violation]:
    formatter = target.config.formatter
    failure_severity: Severity = "error" if formatter.required else "warning"

    def format_one(path: Path) -> list[Violation]:
        label = safe_relpath(path, target.project_root)
        try:
            current = read_source(path)
            formatted = run_formatter(formatter.command, path)
        except (OSError, FormatterError) as exc:
            logger.warning("formatter failed on %s: %s", label, exc)
            return [
                _engine_note(
                    "engine/formatter-failed",
                    failure_severity,
                    f"Formatter failed: {exc}",
                    path=path,
                )
            ]

        line = first_difference_line(current, formatted)
        if line is None:
            return []
        if write_back:
            try:
                write_source(path, formatted)
            except OSError as exc:
                return [
                    _engine_note(
                        "engine/formatter-failed",
                        failure_severity,
                        f"Could not write formatted file: {exc}",
                        path=path,
                    )
                ]
            logger.debug("formatted %s", label)
            return []
        return [
            _engine_note(
                "engine/format-drift",
                "info",
                "File differs from the formatter's output.",
                path=path,
                line=line,
            )
        ]

    if workers <= 1 or len(files) <= 1:
        results = [format_one(p) for p in files]
    else:
        with ThreadPoolExecutor(max_workers=min(workers, len(files))) as executor:
            results = list(executor.map(format_one, files))
    return [note for notes in results for note in notes]


def _engine_note(
    rule_id: str,
    severity: Severity,
    message: str,
    *,
    path: Path | None,
    line: int = 1,
) -> Violation:
    location = Location(path=path, start_line=line, start_col=1) if path is not None else None
    return Violation(rule_id=rule_id, severity=severity, message=message, category="engine", location=location)
