from __future__ import annotations

import re
from dataclasses import dataclass

from cppconform.engine.context import FileContext
from cppconform.engine.types import FixEdit, Violation
from cppconform.rules.base import BaseRule, RuleMeta, loc_from_line
from cppconform.utils import is_header

_PRAGMA_ONCE_RE = re.compile(r"^#\s*pragma\s+once\b")
_IFNDEF_RE = re.compile(r"^#\s*(?:ifndef\s+(?P<a>\w+)|if\s+!\s*defined\s*\(?\s*(?P<b>\w+))")
_DEFINE_RE = re.compile(r"^#\s*define\s+(?P<name>\w+)")

PRAGMA_ONCE = "#pragma once\n"


def has_include_guard(ctx: FileContext) -> bool:
    directives = [t.text for t in ctx.tokens if t.kind == "directive"]
    if any(_PRAGMA_ONCE_RE.match(d) for d in directives):
        return True
    if len(directives) < 2:
        return False
    match = _IFNDEF_RE.match(directives[0])
    if match is None:
        return False
    guard = match.group("a") or match.group("b")
    define = _DEFINE_RE.match(directives[1])
    return define is not None and define.group("name") == guard


def _is_unterminated_block(text: str) -> bool:
    return text.startswith("/*") and (len(text) < 4 or not text.endswith("*/"))


def pragma_once_edit(ctx: FileContext) -> FixEdit | None:
    """
    Insert `#pragma once` after the file's leading comment block.

    Returns None when that block is an unterminated `/*` comment.
    """

    last_comment = None
    for tok in ctx.tokens:
        if tok.kind != "comment":
            break
        last_comment = tok
    if last_comment is not None and _is_unterminated_block(last_comment.text):
        return None
    if last_comment is None:
        return FixEdit(start=0, end=0, replacement=PRAGMA_ONCE)

    text = ctx.text
    newline = text.find("\n", last_comment.end)
    if newline == -1:
        return FixEdit(start=len(text), end=len(text), replacement="\n" + PRAGMA_ONCE)
    if text[last_comment.end : newline].strip():
        return FixEdit(start=last_comment.end, end=last_comment.end, replacement="\n" + PRAGMA_ONCE)
    return FixEdit(start=newline + 1, end=newline + 1, replacement=PRAGMA_ONCE)


@dataclass(frozen=True, slots=True)
class MissingIncludeGuard(BaseRule):
    meta = RuleMeta(
        rule_id="missing-include-guard",
        title="Missing include guard",
        description="Headers need `#pragma once` or an `#ifndef`/`#define` guard so repeated inclusion is harmless.",
        category="formatting",
        default_severity="warning",
        fixable=True,
        example="// widget.h\n#pragma once\n",
    )

    def check_file(self, ctx: FileContext) -> list[Violation]:
        if not is_header(ctx.path) or has_include_guard(ctx):
            return []
        edit = pragma_once_edit(ctx)
        return [
            self._violation(
                message="Header has no include guard.",
                location=loc_from_line(ctx, line=1),
                suggestion="add `#pragma once` after the leading comment block",
                edits=() if edit is None else (edit,),
                autofix=True,
            )
        ]


@dataclass(frozen=True, slots=True)
class UnparsedRegion(BaseRule):
    meta = RuleMeta(
        rule_id="unparsed-region",
        title="Unparsed region",
        description="Code the declaration extractor could not classify; naming and interface rules skip it.",
        category="formatting",
        default_severity="info",
        default_enabled=False,
    )

    def check_file(self, ctx: FileContext) -> list[Violation]:
        return [
            self._violation(
                message="Could not parse this construct; it was skipped.",
                location=ctx.location(first.start, last.end),
            )
            for first, last in ctx.model.anomalies
        ]


def builtin_formatting_rules() -> list[BaseRule]:
    return [MissingIncludeGuard(), UnparsedRegion()]
