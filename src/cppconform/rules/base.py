from __future__ import annotations

from abc import ABC
from collections.abc import Iterable
from dataclasses import dataclass

from cppconform.engine.context import FileContext
from cppconform.engine.types import Category, FixEdit, Location, Severity, Violation
from cppconform.lexer import Token, printable


@dataclass(frozen=True, slots=True)
class RuleMeta:
    rule_id: str
    title: str
    description: str
    category: Category
    default_severity: Severity
    fixable: bool = False
    default_enabled: bool = True
    example: str | None = None  # C++ snippet shown by `cppconform explain`


class BaseRule(ABC):
    meta: RuleMeta

    def check_file(self, ctx: FileContext) -> list[Violation]:
        return []

    def _violation(
        self,
        *,
        message: str,
        location: Location | None = None,
        suggestion: str | None = None,
        edits: Iterable[FixEdit] = (),
        autofix: bool = False,
        related: Iterable[Location] = (),
        severity: Severity | None = None,
    ) -> Violation:
        edits_tuple = tuple(edits)
        return Violation(
            rule_id=self.meta.rule_id,
            severity=severity or self.meta.default_severity,
            message=printable(message),
            category=self.meta.category,
            location=location,
            suggestion=None if suggestion is None else printable(suggestion),
            edits=edits_tuple,
            autofix=autofix and bool(edits_tuple),
            related=tuple(related),
        )


def loc_from_token(ctx: FileContext, tok: Token) -> Location:
    return ctx.token_location(tok)


def loc_from_line(ctx: FileContext, *, line: int) -> Location:
    start = ctx.line_index.line_start(line)
    return ctx.location(start, start)
