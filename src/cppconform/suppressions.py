from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from cppconform.engine.types import Location, Violation
from cppconform.lexer import Token


@dataclass(frozen=True, slots=True)
class Suppression:
    start_line: int
    end_line: int | None  # None runs to the end of the file
    rules: frozenset[str] = frozenset()  # empty suppresses every rule

    def covers(self, rule_id: str, line: int) -> bool:
        if line < self.start_line:
            return False
        if self.end_line is not None and line > self.end_line:
            return False
        return not self.rules or rule_id in self.rules


@dataclass(frozen=True, slots=True)
class Suppressions:
    """
    Rule suppressions extracted from comment markers.

    Supported markers (case-insensitive, only inside comments):
    - `cppconform: disable-file[=ids]` (the whole file)
    - `cppconform: disable-line[=ids]` or `cppconform: disable[=ids]` (the comment's line)
    - `cppconform: disable-next-line[=ids]` (the line after the comment)
    - `cppconform: disable-begin[=ids]` ... `cppconform: disable-end[=ids]` (a region)
    """

    entries: tuple[Suppression, ...] = ()
    notes: tuple[Violation, ...] = ()

    def is_suppressed(self, rule_id: str, *, line: int | None) -> bool:
        normalized_id = rule_id.lower()
        for entry in self.entries:
            if line is None:
                if entry.start_line <= 1 and entry.end_line is None and (not entry.rules or normalized_id in entry.rules):
                    return True
                continue
            if entry.covers(normalized_id, line):
                return True
        return False


_MARKER_RE = re.compile(
    r"cppconform:\s*(?P<kind>disable-next-line|disable-line|disable-begin|disable-end|disable-file|disable)(?![-\w])"
    r"(?:\s*=\s*(?P<ids>[a-z0-9_/\-]+(?:\s*,\s*[a-z0-9_/\-]+)*))?",
    re.IGNORECASE,
)
_ALL = "all"


def parse_suppressions(tokens: Iterable[Token]) -> Suppressions:
    entries: list[Suppression] = []
    notes: list[Violation] = []
    # Open regions keyed by rule id (or "all"), with the marker that opened them.
    open_regions: dict[str, Token] = {}

    for tok in tokens:
        if tok.kind != "comment":
            continue
        for match in _MARKER_RE.finditer(tok.text):
            kind = match.group("kind").lower()
            ids = _parse_ids(match.group("ids"))

            if kind == "disable-file":
                entries.append(Suppression(start_line=1, end_line=None, rules=_rules_filter(ids)))
            elif kind in {"disable-line", "disable"}:
                entries.append(Suppression(start_line=tok.line, end_line=tok.end_line, rules=_rules_filter(ids)))
            elif kind == "disable-next-line":
                target = tok.end_line + 1
                entries.append(Suppression(start_line=target, end_line=target, rules=_rules_filter(ids)))
            elif kind == "disable-begin":
                for key in ids or {_ALL}:
                    # Re-opening an open region keeps the original start.
                    open_regions.setdefault(key, tok)
            else:
                keys = ids or set(open_regions)
                closed_any = False
                for key in sorted(keys):
                    opener = open_regions.pop(key, None)
                    if opener is None:
                        continue
                    closed_any = True
                    entries.append(Suppression(start_line=opener.line, end_line=tok.end_line, rules=_rules_filter({key})))
                if not closed_any:
                    notes.append(
                        _note(
                            tok,
                            "engine/stray-suppression-end",
                            "`disable-end` has no matching `disable-begin`; ignored",
                        )
                    )

    for key, opener in sorted(open_regions.items(), key=lambda item: (item[1].start, item[0])):
        entries.append(Suppression(start_line=opener.line, end_line=None, rules=_rules_filter({key})))
        label = "all rules" if key == _ALL else key
        notes.append(
            _note(
                opener,
                "engine/unterminated-suppression",
                f"`disable-begin` for {label} is never closed; suppression extends to end of file",
            )
        )

    return Suppressions(entries=tuple(entries), notes=tuple(notes))


def _rules_filter(ids: set[str]) -> frozenset[str]:
    if not ids or _ALL in ids:
        return frozenset()
    return frozenset(ids)


def _parse_ids(value: str | None) -> set[str]:
    if not value:
        return set()
    ids = set()
    for token in re.split(r"[,\s]+", value.strip()):
        normalized = token.strip().lower()
        if normalized:
            ids.add(normalized)
    return ids


def _note(tok: Token, rule_id: str, message: str) -> Violation:
    return Violation(
        rule_id=rule_id,
        severity="info",
        message=message,
        category="engine",
        location=Location(
            start_line=tok.line,
            start_col=tok.col,
            end_line=tok.end_line,
            end_col=tok.end_col,
            start_offset=tok.start,
            end_offset=tok.end,
        ),
    )
