from __future__ import annotations

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from cppconform import __version__
from cppconform.audit import CheckCallbacks, CheckResult, CheckTarget, check_target, prepare_target
from cppconform.config import OUTPUT_FORMATS, ConfigError
from cppconform.logging_utils import configure_logging
from cppconform.reporters.json_reporter import render_json
from cppconform.reporters.text import print_summary, render_text

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="cppconform: C++ convention conformance checker.",
)
console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAIL = 1
EXIT_ERROR = 2


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def _main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Verbose logs (printed to stderr)."),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Reduce non-essential output."),
    ] = False,
    progress: Annotated[
        bool,
        typer.Option("--progress/--no-progress", help="Show a progress bar for long checks.", show_default=True),
    ] = True,
) -> None:
    """cppconform CLI."""

    if verbose and quiet:
        raise typer.BadParameter("Choose at most one: --verbose or --quiet.")
    configure_logging(verbose=verbose, quiet=quiet)
    ctx.obj = {"verbose": verbose, "quiet": quiet, "progress": progress}


def _cli_settings(ctx: typer.Context) -> dict[str, bool]:
    if not isinstance(ctx.obj, dict):
        return {"verbose": False, "quiet": False, "progress": True}
    verbose = bool(ctx.obj.get("verbose", False))
    quiet = bool(ctx.obj.get("quiet", False))
    progress = bool(ctx.obj.get("progress", True))
    return {"verbose": verbose, "quiet": quiet, "progress": progress}


def _normalize_format(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in OUTPUT_FORMATS:
        raise typer.BadParameter(f"Unsupported format. Use: {', '.join(OUTPUT_FORMATS)}.")
    return normalized


def _check_with_optional_progress(
    target: CheckTarget,
    *,
    dry_run: bool,
    backup: bool,
    show_progress: bool,
) -> CheckResult:
    if not show_progress:
        return check_target(target, dry_run=dry_run, backup=backup)

    from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeElapsedColumn

    progress = Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=Console(stderr=True),
        transient=True,
    )
    task = progress.add_task("Check", total=1)

    def _on_discovered(total: int) -> None:
        progress.update(task, total=total, completed=0)

    def _on_checked(_path: Path) -> None:
        progress.advance(task, 1)

    callbacks = CheckCallbacks(on_files_discovered=_on_discovered, on_file_checked=_on_checked)
    with progress:
        return check_target(target, dry_run=dry_run, backup=backup, callbacks=callbacks)


def _exit_code(result: CheckResult) -> int:
    if result.status == "fail":
        return EXIT_FAIL
    if result.status == "incomplete":
        return EXIT_ERROR
    return EXIT_OK


@app.command()
def check(
    ctx: typer.Context,
    paths: Annotated[
        list[Path] | None,
        typer.Argument(
            exists=True,
            file_okay=True,
            dir_okay=True,
            resolve_path=True,
            help="Files or directories to check (default: current directory).",
        ),
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", dir_okay=False, help="Configuration file (default: nearest .cppconform.toml)."),
    ] = None,
    fix: Annotated[
        bool | None,
        typer.Option("--fix/--no-fix", help="Apply safe automatic fixes (default: use config).", show_default=False),
    ] = None,
    output_format: Annotated[
        str | None,
        typer.Option("--format", help="Output format: text, json (default: use config).", show_default=False),
    ] = None,
    fail_on_error: Annotated[
        bool | None,
        typer.Option(
            "--fail-on-error/--no-fail-on-error",
            help="Exit 1 when an error-severity violation remains (default: use config).",
            show_default=False,
        ),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="With --fix: don't write changes; print a unified diff instead."),
    ] = False,
    backup: Annotated[
        bool,
        typer.Option("--backup", help="With --fix: keep a .cppconform.bak copy of each changed file."),
    ] = False,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", min=0.0, help="Stop scheduling files after this many seconds."),
    ] = None,
) -> None:
    """
    Check C++ sources against the naming, resource, type-safety, interface and
    formatting conventions.
    """

    settings = _cli_settings(ctx)
    try:
        target = prepare_target(paths or [Path(".")], config_file=config_file)
    except ConfigError as exc:
        err_console.print(f"Configuration error: {exc}", markup=False)
        raise typer.Exit(code=EXIT_ERROR) from exc

    config = target.config
    overrides: dict[str, object] = {}
    if fix is not None:
        overrides["fix"] = fix
    if fail_on_error is not None:
        overrides["fail_on_error"] = fail_on_error
    if timeout is not None:
        overrides["timeout"] = timeout
    if output_format is not None:
        overrides["format"] = _normalize_format(output_format)
    if overrides:
        config = replace(config, **overrides)
        target = replace(target, config=config)

    fmt = config.format
    result = _check_with_optional_progress(
        target,
        dry_run=dry_run,
        backup=backup,
        show_progress=settings["progress"] and not settings["quiet"] and fmt == "text",
    )

    project_root = target.project_root
    if result.fix is not None and result.fix.dry_run and result.fix.diff:
        if fmt == "json":
            err_console.print(result.fix.diff, markup=False, highlight=False)
        else:
            typer.echo(result.fix.diff)

    if fmt == "json":
        typer.echo(render_json(result.violations, project_root=project_root))
    elif result.violations:
        typer.echo(render_text(result.violations, project_root=project_root))

    if not settings["quiet"]:
        print_summary(
            result.violations,
            files_checked=result.files_checked,
            status=result.status,
            console=err_console,
            incomplete=result.incomplete,
        )
        if result.fix is not None and result.fix.changed_files and not result.fix.dry_run:
            err_console.print(f"Fixed {len(result.fix.changed_files)} file(s).")

    code = _exit_code(result)
    if code != EXIT_OK:
        raise typer.Exit(code=code)


@app.command()
def rules(
    output_format: Annotated[
        str,
        typer.Option("--format", help="Output format: text, json.", show_default=True),
    ] = "text",
) -> None:
    """
    List every built-in rule and its metadata.
    """

    from rich.table import Table

    from cppconform.rules.registry import all_rules

    rows = [
        {
            "rule_id": rule.meta.rule_id,
            "title": rule.meta.title,
            "category": rule.meta.category,
            "default_severity": rule.meta.default_severity,
            "fixable": rule.meta.fixable,
            "default_enabled": rule.meta.default_enabled,
            "description": rule.meta.description,
        }
        for rule in all_rules()
    ]

    if _normalize_format(output_format) == "json":
        typer.echo(json.dumps(rows, indent=2, sort_keys=True))
        return

    table = Table(title="cppconform rules")
    table.add_column("ID", style="bold")
    table.add_column("Category")
    table.add_column("Severity")
    table.add_column("Fixable", justify="center")
    table.add_column("Enabled", justify="center")
    table.add_column("Title")
    for row in rows:
        table.add_row(
            str(row["rule_id"]),
            str(row["category"]),
            str(row["default_severity"]),
            "yes" if row["fixable"] else "no",
            "yes" if row["default_enabled"] else "no",
            str(row["title"]),
        )
    console.print(table)


@app.command()
def explain(
    rule_id: Annotated[
        str,
        typer.Argument(help="Rule id to explain (e.g. naming-casing)."),
    ],
) -> None:
    """
    Explain a single rule (metadata, config override and suppression syntax).
    """

    from rich.panel import Panel
    from rich.syntax import Syntax
    from rich.text import Text

    from cppconform.rules.registry import rule_by_id

    rule = rule_by_id(rule_id.strip().lower())
    if rule is None:
        raise typer.BadParameter(f"Unknown rule id: {rule_id!r}. Use `cppconform rules` to list available rules.")

    meta = rule.meta
    header = Text()
    header.append(meta.rule_id, style="bold")
    header.append(": ", style="dim")
    header.append(meta.title)

    details = "\n".join(
        [
            meta.description,
            "",
            f"Category: {meta.category}",
            f"Default severity: {meta.default_severity}",
            f"Fixable: {'yes' if meta.fixable else 'no'}",
            f"Enabled by default: {'yes' if meta.default_enabled else 'no'}",
        ]
    )
    console.print(Panel(details, title=header, border_style="cyan"))

    console.print(Text("Config override (.cppconform.toml):", style="bold"))
    console.print(
        Syntax(
            f'[rules.{meta.rule_id}]\nenabled = true\nseverity = "info"  # or warning/error\n',
            "toml",
            word_wrap=True,
        )
    )
    console.print(Text("Suppressions (in-file):", style="bold"))
    console.print(
        Syntax(
            "\n".join(
                [
                    f"// cppconform: disable-file={meta.rule_id}",
                    f"int value = 1;  // cppconform: disable-line={meta.rule_id}",
                    f"// cppconform: disable-next-line={meta.rule_id}",
                    "int other = 2;",
                    "",
                ]
            ),
            "cpp",
            word_wrap=True,
        )
    )

    if meta.example is not None:
        console.print(Text("Example:", style="bold"))
        console.print(Syntax(meta.example, "cpp", word_wrap=True))
