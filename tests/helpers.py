from __future__ import annotations

from dataclasses import replace

from cppconform.engine.context import FileContext, ProjectContext
from cppconform.scanner import build_file_context


def make_file_ctx(project_ctx: ProjectContext, *, relpath: str, content: str, **config_overrides: object) -> FileContext:
    if config_overrides:
        project_ctx = replace(project_ctx, config=replace(project_ctx.config, **config_overrides))
    path = project_ctx.project_root / relpath
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    ctx = build_file_context(project_ctx, path)
    assert ctx is not None
    return ctx
