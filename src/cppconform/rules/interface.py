from __future__ import annotations

from dataclasses import dataclass

from cppconform.engine.context import FileContext
from cppconform.engine.types import Violation
from cppconform.rules.base import BaseRule, RuleMeta, loc_from_token

_FUNCTION_KINDS = frozenset({"function", "method"})


@dataclass(frozen=True, slots=True)
class LongParameterList(BaseRule):
    meta = RuleMeta(
        rule_id="long-parameter-list",
        title="Long parameter list",
        description=(
            "Functions taking more parameters than `parameter_count_threshold` (default 4) are hard to call "
            "correctly; group related parameters into a struct."
        ),
        category="interface",
        default_severity="warning",
        example="void draw(int x, int y, int w, int h, Color c);  // 5 > 4\n",
    )

    def check_file(self, ctx: FileContext) -> list[Violation]:
        threshold = ctx.config.parameter_count_threshold
        violations: list[Violation] = []
        for entity in ctx.model.entities:
            if entity.kind not in _FUNCTION_KINDS:
                continue
            count = entity.parameter_count
            if count <= threshold:
                continue
            violations.append(
                self._violation(
                    message=f"`{entity.name}` takes {count} parameters (limit {threshold}).",
                    location=loc_from_token(ctx, entity.token),
                    suggestion="group related parameters into a struct or split the function",
                )
            )
        return violations


@dataclass(frozen=True, slots=True)
class AdjacentSameTypeParameters(BaseRule):
    meta = RuleMeta(
        rule_id="adjacent-same-type-parameters",
        title="Adjacent parameters of the same type",
        description="Consecutive parameters with the same type are easy to swap at call sites without a compiler error.",
        category="interface",
        default_severity="info",
        example="Rect make_rect(int width, int height);  // make_rect(h, w) compiles\n",
    )

    def check_file(self, ctx: FileContext) -> list[Violation]:
        violations: list[Violation] = []
        for entity in ctx.model.entities:
            if entity.kind not in _FUNCTION_KINDS or entity.parameter_count < 2:
                continue
            types = entity.parameter_types
            tokens = entity.parameter_tokens or (None,) * len(types)

            start = 0
            while start < len(types):
                end = start + 1
                while end < len(types) and types[end] and types[end] == types[start]:
                    end += 1
                if end - start >= 2 and types[start]:
                    first = tokens[start]
                    location = loc_from_token(ctx, first if first is not None else entity.token)
                    related = tuple(loc_from_token(ctx, t) for t in tokens[start + 1 : end] if t is not None)
                    violations.append(
                        self._violation(
                            message=(
                                f"`{entity.name}` has {end - start} consecutive parameters of type "
                                f"`{types[start]}` (positions {start + 1}-{end})."
                            ),
                            location=location,
                            suggestion="use distinct types or a parameter struct so arguments cannot be swapped",
                            related=related,
                        )
                    )
                start = end
        return violations


def builtin_interface_rules() -> list[BaseRule]:
    return [LongParameterList(), AdjacentSameTypeParameters()]
