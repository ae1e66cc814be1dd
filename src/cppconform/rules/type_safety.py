from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from cppconform.declarations import DeclarationEntity, join_tokens, parse_type
from cppconform.engine.context import FileContext
from cppconform.engine.types import FixEdit, Violation
from cppconform.lexer import TYPE_KEYWORDS, Token
from cppconform.rules.base import BaseRule, RuleMeta, loc_from_token
from cppconform.rules.resource import is_bare_pointer

# Tokens before `(` that make it a call, a declarator or an operator argument rather than a cast.
_NON_CAST_PREV_KEYWORDS = frozenset(
    {
        "sizeof",
        "alignof",
        "alignas",
        "decltype",
        "noexcept",
        "typeid",
        "operator",
        "static_assert",
        "if",
        "while",
        "for",
        "switch",
        "catch",
        "requires",
    }
    | TYPE_KEYWORDS
)
_EXPRESSION_KEYWORDS = frozenset({"this", "nullptr", "true", "false", "sizeof", "alignof", "new", "static_cast"})
_UNARY_OPERATORS = frozenset({"-", "+", "!", "~", "*", "&", "++", "--"})


def _matching_paren(tokens: Sequence[Token], idx: int, limit: int = 64) -> int | None:
    depth = 0
    for j in range(idx, min(len(tokens), idx + limit)):
        tok = tokens[j]
        if tok.is_punct("("):
            depth += 1
        elif tok.is_punct(")"):
            depth -= 1
            if depth == 0:
                return j
        elif tok.is_punct(";", "{", "}"):
            return None
    return None


@dataclass(frozen=True, slots=True)
class NoCStyleCast(BaseRule):
    meta = RuleMeta(
        rule_id="no-c-style-cast",
        title="C-style cast",
        description=(
            "C-style casts silently pick between static, const and reinterpret casts; "
            "spell out static_cast or reinterpret_cast. `(void)expr` is accepted."
        ),
        category="type-safety",
        default_severity="warning",
        example="double ratio = (double)count / total;  // -> static_cast<double>(count)\n",
    )

    def check_file(self, ctx: FileContext) -> list[Violation]:
        code = ctx.code
        value_names = {
            e.name for e in ctx.model.entities if e.kind in {"variable", "parameter", "constant", "function", "method"}
        }
        entity_types: dict[str, str] = {}
        for entity in ctx.model.entities:
            if entity.kind in {"variable", "parameter", "constant"}:
                entity_types.setdefault(entity.name, entity.type_text)

        violations: list[Violation] = []
        for idx, tok in enumerate(code):
            if not tok.is_punct("("):
                continue
            prev = code[idx - 1] if idx > 0 else None
            if prev is not None and (
                prev.kind in {"identifier", "literal"}
                or prev.is_punct(")", "]", ">")
                or (prev.kind == "keyword" and prev.text in _NON_CAST_PREV_KEYWORDS)
            ):
                continue
            close = _matching_paren(code, idx)
            if close is None or close == idx + 1 or close + 1 >= len(code):
                continue
            inner = list(code[idx + 1 : close])
            if len(inner) == 1 and inner[0].is_keyword("void"):
                continue
            if parse_type(inner, 0) != len(inner):
                continue
            simple_name = len(inner) == 1 and inner[0].kind == "identifier"
            if simple_name and inner[0].text in value_names:
                continue
            operand = code[close + 1]
            if not self._starts_operand(operand, allow_unary=not simple_name):
                continue

            target = join_tokens(inner)
            operand_type = entity_types.get(operand.text) if operand.kind == "identifier" else None
            cast = "static_cast"
            if operand_type is not None and is_bare_pointer(target) and is_bare_pointer(operand_type):
                if operand_type.replace(" ", "") != target.replace(" ", ""):
                    cast = "reinterpret_cast"

            edits: tuple[FixEdit, ...] = ()
            if self._single_token_operand(code, close + 1):
                edits = (
                    FixEdit(
                        start=tok.start,
                        end=operand.end,
                        replacement=f"{cast}<{target}>({operand.text})",
                    ),
                )
            violations.append(
                self._violation(
                    message=f"C-style cast to `{target}`; use {cast}<{target}>(...).",
                    location=ctx.location(tok.start, code[close].end),
                    suggestion=f"{cast}<{target}>({operand.text if edits else '...'})",
                    edits=edits,
                    autofix=False,
                )
            )
        return violations

    @staticmethod
    def _starts_operand(tok: Token, *, allow_unary: bool) -> bool:
        if tok.kind in {"identifier", "literal"}:
            return True
        if tok.kind == "keyword" and tok.text in _EXPRESSION_KEYWORDS:
            return True
        if tok.is_punct("("):
            return True
        return allow_unary and tok.kind == "punctuation" and tok.text in _UNARY_OPERATORS

    @staticmethod
    def _single_token_operand(code: Sequence[Token], idx: int) -> bool:
        tok = code[idx]
        if tok.kind not in {"identifier", "literal"}:
            return False
        nxt = code[idx + 1] if idx + 1 < len(code) else None
        return nxt is None or not nxt.is_punct("(", "[", ".", "->", "::", "++", "--", "<")


@dataclass(frozen=True, slots=True)
class UnscopedEnum(BaseRule):
    meta = RuleMeta(
        rule_id="unscoped-enum",
        title="Unscoped enum",
        description="Plain enums leak their enumerators into the enclosing scope and convert to int; use `enum class`.",
        category="type-safety",
        default_severity="warning",
        fixable=True,
        example="enum Color { Red, Green };  // -> enum class Color { Red, Green };\n",
    )

    def check_file(self, ctx: FileContext) -> list[Violation]:
        violations: list[Violation] = []
        for entity in ctx.model.entities:
            if entity.kind != "enum" or entity.is_scoped_enum:
                continue
            if entity.body_scope is None or entity.keyword_token is None:
                continue
            keyword = entity.keyword_token
            edit = FixEdit(start=keyword.end, end=keyword.end, replacement=" class")

            reason: str | None = None
            leaked = self._unqualified_use(ctx, entity)
            if leaked is not None:
                reason = f"enumerator `{leaked.text}` is used unqualified on line {leaked.line}"
            elif ctx.multi_file:
                reason = "other files in this check may use its enumerators unqualified"

            message = f"Enum `{entity.name}` is unscoped; declare it as `enum class {entity.name}`."
            if reason is not None:
                message += f" Not fixed automatically: {reason}."
            violations.append(
                self._violation(
                    message=message,
                    location=loc_from_token(ctx, entity.token),
                    suggestion=f"enum class {entity.name}",
                    edits=(edit,),
                    autofix=reason is None,
                )
            )
        return violations

    @staticmethod
    def _unqualified_use(ctx: FileContext, entity: DeclarationEntity) -> Token | None:
        if entity.body_scope is None:
            return None
        body = ctx.model.scope(entity.body_scope)
        enumerators = {e.name for e in ctx.model.entities_in_scope(body.index) if e.kind == "enum_variant"}
        if not enumerators:
            return None
        code = ctx.code
        for idx, tok in enumerate(code):
            if tok.kind != "identifier" or tok.text not in enumerators:
                continue
            if body.start <= tok.start < body.end:
                continue
            if idx > 0 and code[idx - 1].is_punct("::", ".", "->"):
                continue
            return tok
        return None


def builtin_type_safety_rules() -> list[BaseRule]:
    return [NoCStyleCast(), UnscopedEnum()]
