from __future__ import annotations

import re
from dataclasses import dataclass

from cppconform.declarations import DeclarationEntity, DeclarationModel
from cppconform.engine.context import FileContext
from cppconform.engine.types import FixEdit, Violation
from cppconform.naming import STYLE_LABELS, CasingStyle, convert, matches_style
from cppconform.rules.base import BaseRule, RuleMeta, loc_from_token

STYLE_BY_KIND: dict[str, CasingStyle] = {
    "class": "upper_camel",
    "struct": "upper_camel",
    "enum": "upper_camel",
    "enum_variant": "upper_camel",
    "type_alias": "upper_camel",
    "template_parameter": "upper_camel",
    "function": "lower_snake",
    "method": "lower_snake",
    "variable": "lower_snake",
    "parameter": "lower_snake",
    "namespace": "lower_snake",
    "constant": "upper_snake",
    "macro": "upper_snake",
}

_KIND_LABELS = {
    "enum_variant": "enumerator",
    "template_parameter": "template parameter",
    "type_alias": "type alias",
}

_WORD_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def is_data_member(entity: DeclarationEntity, model: DeclarationModel) -> bool:
    if entity.kind != "variable":
        return False
    if entity.qualifier is not None:
        return True
    return model.scope(entity.scope).kind == "class"


@dataclass(frozen=True, slots=True)
class NamingCasing(BaseRule):
    meta = RuleMeta(
        rule_id="naming-casing",
        title="Identifier casing",
        description=(
            "Types, enumerators and template parameters use UpperCamelCase; functions, variables, "
            "parameters and namespaces use lower_snake_case; constants and macros use UPPER_SNAKE_CASE."
        ),
        category="naming",
        default_severity="error",
        fixable=True,
        example="class http_server;      // -> HttpServer\nint MAX_count = 5;      // -> max_count\n",
    )

    def check_file(self, ctx: FileContext) -> list[Violation]:
        model = ctx.model
        naming = ctx.config.naming
        allow = set(naming.allow)

        identifiers = {t.text for t in ctx.code if t.kind == "identifier"}
        directive_words: set[str] = set()
        for tok in ctx.tokens:
            if tok.kind == "directive":
                directive_words.update(_WORD_RE.findall(tok.text))
        kinds_by_name: dict[str, set[str]] = {}
        for entity in model.entities:
            kinds_by_name.setdefault(entity.name, set()).add(entity.kind)

        violations: list[Violation] = []
        for entity in model.entities:
            style = STYLE_BY_KIND.get(entity.kind)
            if style is None or not self._should_check(entity, allow, check_low_confidence=naming.check_low_confidence):
                continue
            member = is_data_member(entity, model)
            if matches_style(entity.name, style, allow_trailing_underscore=member or entity.kind == "macro"):
                continue

            suggestion = convert(entity.name, style, keep_trailing_underscore=member)
            label = _KIND_LABELS.get(entity.kind, entity.kind)
            if member:
                label = "data member"
            message = f"{label.capitalize()} `{entity.name}` should be {STYLE_LABELS[style]}"

            edits: tuple[FixEdit, ...] = ()
            if suggestion is not None:
                message += f" (`{suggestion}`)"
                edits = tuple(
                    FixEdit(start=t.start, end=t.end, replacement=suggestion)
                    for t in ctx.code
                    if t.kind == "identifier" and t.text == entity.name
                )
            safe = suggestion is not None and self._rename_is_safe(
                ctx,
                entity,
                suggestion,
                identifiers=identifiers,
                directive_words=directive_words,
                kinds_by_name=kinds_by_name,
            )
            violations.append(
                self._violation(
                    message=message + ".",
                    location=loc_from_token(ctx, entity.token),
                    suggestion=f"rename to `{suggestion}`" if suggestion is not None else None,
                    edits=edits,
                    autofix=safe,
                )
            )
        return violations

    @staticmethod
    def _should_check(entity: DeclarationEntity, allow: set[str], *, check_low_confidence: bool) -> bool:
        if entity.name in allow:
            return False
        if entity.is_special or entity.is_override:
            return False
        if entity.kind == "function" and entity.name == "main":
            return False
        if entity.confidence == "low" and not check_low_confidence:
            return False
        return True

    @staticmethod
    def _rename_is_safe(
        ctx: FileContext,
        entity: DeclarationEntity,
        new_name: str,
        *,
        identifiers: set[str],
        directive_words: set[str],
        kinds_by_name: dict[str, set[str]],
    ) -> bool:
        model = ctx.model
        if any(other.name == new_name for other in model.entities_in_scope(entity.scope)):
            return False
        if new_name in identifiers or new_name in directive_words:
            return False
        # A rename cannot reach uses inside macro bodies.
        if entity.name in directive_words:
            return False
        if len(kinds_by_name.get(entity.name, ())) != 1:
            return False
        if ctx.multi_file and not model.is_local(entity):
            return False
        return _uses_are_own(ctx, entity)


_SCOPE_KINDS = frozenset({"class", "struct", "enum", "namespace"})


def _scope_names(model: DeclarationModel) -> set[str]:
    names = {e.name for e in model.entities if e.kind in _SCOPE_KINDS}
    names.update(s.name for s in model.scopes if s.name)
    for entity in model.entities:
        if entity.qualifier:
            names.update(entity.qualifier.split("::"))
    return names


def _uses_are_own(ctx: FileContext, entity: DeclarationEntity) -> bool:
    """
    True when every use of the name can refer to `entity`.

    A member access (`obj.name`, `ptr->name`) only reaches members, and a
    qualified use (`X::name`) only reaches names under a scope declared here.
    """

    member = entity.kind == "method" or is_data_member(entity, ctx.model)
    scopes: set[str] | None = None
    code = ctx.code
    for i, tok in enumerate(code):
        if tok.kind != "identifier" or tok.text != entity.name or i == 0:
            continue
        prev = code[i - 1]
        if prev.is_punct(".", "->", ".*", "->*"):
            if not member:
                return False
        elif prev.is_punct("::"):
            if i < 2 or not (code[i - 2].kind == "identifier" or code[i - 2].is_punct(">")):
                continue  # `::name` names the global scope
            if code[i - 2].kind != "identifier":
                return False
            if scopes is None:
                scopes = _scope_names(ctx.model)
            if code[i - 2].text not in scopes:
                return False
    return True


def builtin_naming_rules() -> list[BaseRule]:
    return [NamingCasing()]
