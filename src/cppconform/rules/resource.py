from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from cppconform.declarations import DeclarationEntity
from cppconform.engine.context import FileContext
from cppconform.engine.types import Location, Violation
from cppconform.lexer import Token
from cppconform.rules.base import BaseRule, RuleMeta, loc_from_token
from cppconform.rules.naming import is_data_member

ALLOCATION_FUNCTIONS = frozenset({"malloc", "calloc", "realloc", "strdup"})
RELEASE_FUNCTIONS = frozenset({"free"})

_ALLOCATION_RE = re.compile(r"\bnew\b|\b(?:malloc|calloc|realloc|strdup)\s*\(")
_TRAILING_CV_RE = re.compile(r"(?:\s*\b(?:const|volatile)\b)+$")


def is_bare_pointer(type_text: str) -> bool:
    return _TRAILING_CV_RE.sub("", type_text).endswith("*")


def _allocates(tokens: Sequence[Token]) -> Token | None:
    for idx, tok in enumerate(tokens):
        if tok.is_keyword("new"):
            return tok
        if (
            tok.kind == "identifier"
            and tok.text in ALLOCATION_FUNCTIONS
            and idx + 1 < len(tokens)
            and tokens[idx + 1].is_punct("(")
        ):
            return tok
    return None


def _statement_rest(tokens: Sequence[Token], start: int) -> list[Token]:
    out: list[Token] = []
    depth = 0
    for tok in tokens[start:]:
        if tok.is_punct("(", "[", "{"):
            depth += 1
        elif tok.is_punct(")", "]", "}"):
            if depth == 0:
                break
            depth -= 1
        elif tok.is_punct(";", ",") and depth == 0:
            break
        out.append(tok)
    return out


@dataclass(frozen=True, slots=True)
class NoOwningRawPointer(BaseRule):
    meta = RuleMeta(
        rule_id="no-owning-raw-pointer",
        title="Owning raw pointer",
        description=(
            "A raw pointer that receives memory from new/malloc or is released with delete/free owns that memory; "
            "use std::unique_ptr, std::shared_ptr or a container instead."
        ),
        category="resource",
        default_severity="warning",
        example="Widget* w = new Widget();  // -> auto w = std::make_unique<Widget>();\n",
    )

    def check_file(self, ctx: FileContext) -> list[Violation]:
        violations: list[Violation] = []
        for entity in ctx.model.entities:
            if entity.kind not in {"variable", "parameter", "constant"} or entity.confidence == "low":
                continue
            if not is_bare_pointer(entity.type_text):
                continue
            evidence = self._ownership_evidence(ctx, entity)
            if evidence is None:
                continue
            what, where = evidence
            violations.append(
                self._violation(
                    message=f"Raw pointer `{entity.name}` ({entity.type_text}) owns memory: it is {what}.",
                    location=loc_from_token(ctx, entity.token),
                    suggestion="use std::unique_ptr, std::shared_ptr or a standard container",
                    related=(where,) if where is not None else (),
                )
            )
        return violations

    def _ownership_evidence(self, ctx: FileContext, entity: DeclarationEntity) -> tuple[str, Location | None] | None:
        if entity.initializer and _ALLOCATION_RE.search(entity.initializer):
            return "initialized from an allocation", None

        model = ctx.model
        if is_data_member(entity, model):
            lo, hi = 0, len(ctx.text)
        else:
            scope = model.scope(entity.scope)
            lo, hi = scope.start, scope.end
        code = [t for t in ctx.code if lo <= t.start < hi]
        name = entity.name

        for idx, tok in enumerate(code):
            if tok.kind != "identifier" or tok.text != name:
                continue
            prev = code[idx - 1] if idx > 0 else None
            if prev is not None and prev.is_punct("."):
                continue
            if prev is not None and prev.is_punct("->") and not (idx >= 2 and code[idx - 2].is_keyword("this")):
                continue

            nxt = code[idx + 1] if idx + 1 < len(code) else None
            if nxt is not None and nxt.is_punct("=") and tok.start > entity.token.start:
                source = _allocates(_statement_rest(code, idx + 2))
                if source is not None:
                    return "assigned an allocation", ctx.token_location(source)
            if (
                nxt is not None
                and nxt.is_punct("(", "{")
                and prev is not None
                and prev.is_punct(":", ",")
                and is_data_member(entity, model)
            ):
                # Constructor member initializer: `: buffer_(new char[n])`.
                source = _allocates(_statement_rest(code, idx + 2))
                if source is not None:
                    return "initialized from an allocation", ctx.token_location(source)

            release = self._released_by(code, idx)
            if release is not None:
                return f"released with `{release.text}`", ctx.token_location(release)
        return None

    @staticmethod
    def _released_by(code: Sequence[Token], idx: int) -> Token | None:
        j = idx - 1
        if j >= 1 and code[j].is_punct("->") and code[j - 1].is_keyword("this"):
            j -= 2
        if j >= 1 and code[j].is_punct("]") and code[j - 1].is_punct("["):
            j -= 2
        if j >= 0 and code[j].is_keyword("delete"):
            return code[j]
        if j >= 1 and code[j].is_punct("(") and code[j - 1].kind == "identifier" and code[j - 1].text in RELEASE_FUNCTIONS:
            closing = code[idx + 1] if idx + 1 < len(code) else None
            if closing is not None and closing.is_punct(")"):
                return code[j - 1]
        return None


def builtin_resource_rules() -> list[BaseRule]:
    return [NoOwningRawPointer()]
