from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Literal

from cppconform.lexer import TYPE_KEYWORDS, Token, code_tokens

EntityKind = Literal[
    "class",
    "struct",
    "enum",
    "enum_variant",
    "function",
    "method",
    "variable",
    "parameter",
    "constant",
    "namespace",
    "template_parameter",
    "macro",
    "type_alias",
]
ScopeKind = Literal["file", "namespace", "linkage", "class", "enum", "function", "block"]
Confidence = Literal["high", "low"]

NAMESPACE_LEVEL_SCOPES = frozenset({"file", "namespace", "linkage"})
LOCAL_SCOPES = frozenset({"function", "block"})

_SPECIFIERS = frozenset(
    {
        "static",
        "inline",
        "constexpr",
        "consteval",
        "constinit",
        "extern",
        "virtual",
        "explicit",
        "mutable",
        "thread_local",
        "register",
    }
)
_ELABORATED = frozenset({"struct", "class", "union", "enum", "typename"})
_CONTROL_KEYWORDS = frozenset({"if", "while", "switch", "for", "catch", "else", "do", "try", "case", "default"})
_SKIPPED_STATEMENTS = frozenset({"static_assert", "friend", "concept", "asm", "export"})
_ATTRIBUTE_MACROS = frozenset({"__attribute__", "__declspec"})
_NON_PARAMETER_KEYWORDS = frozenset({"this", "nullptr", "true", "false", "new", "sizeof", "alignof", "typeid"})
_DEFINE_RE = re.compile(r"^#\s*define\s+(?P<name>[A-Za-z_][A-Za-z0-9_]*)")


@dataclass(slots=True)
class Scope:
    index: int
    kind: ScopeKind
    name: str | None
    parent: int | None
    start: int
    end: int
    # Closing this scope also closes its parent (`namespace a::b {`).
    chained: bool = False
    # Declarators after the closing brace are type aliases (`typedef struct {...} Name;`).
    trailing_alias: bool = False


@dataclass(frozen=True, slots=True)
class DeclarationEntity:
    kind: EntityKind
    name: str
    token: Token
    scope: int
    is_const: bool = False
    is_static: bool = False
    is_constexpr: bool = False
    is_scoped_enum: bool = False
    is_special: bool = False
    is_override: bool = False
    storage: str | None = None
    type_text: str = ""
    initializer: str = ""
    parameter_types: tuple[str, ...] = ()
    # Name token of each parameter, None when unnamed; aligned with parameter_types.
    parameter_tokens: tuple[Token | None, ...] = ()
    is_definition: bool = False
    qualifier: str | None = None
    confidence: Confidence = "high"
    keyword_token: Token | None = None
    body_scope: int | None = None

    @property
    def start(self) -> int:
        return self.token.start

    @property
    def end(self) -> int:
        return self.token.end

    @property
    def parameter_count(self) -> int:
        return len(self.parameter_types)


@dataclass(frozen=True, slots=True)
class DeclarationModel:
    """Declared entities of one file plus the scope tree they live in."""

    entities: tuple[DeclarationEntity, ...]
    scopes: tuple[Scope, ...]
    anomalies: tuple[tuple[Token, Token], ...] = field(default=())

    def scope(self, index: int) -> Scope:
        return self.scopes[index]

    def scope_chain(self, index: int) -> list[Scope]:
        """Innermost first, ending at the file root."""

        chain: list[Scope] = []
        current: int | None = index
        while current is not None:
            scope = self.scopes[current]
            chain.append(scope)
            current = scope.parent
        return chain

    def entities_in_scope(self, index: int) -> list[DeclarationEntity]:
        return [e for e in self.entities if e.scope == index]

    def entities_named(self, name: str) -> list[DeclarationEntity]:
        return [e for e in self.entities if e.name == name]

    def is_local(self, entity: DeclarationEntity) -> bool:
        """True for parameters and for names declared inside a function body."""

        if entity.kind == "parameter":
            return True
        return any(s.kind in LOCAL_SCOPES for s in self.scope_chain(entity.scope))


def extract(tokens: Iterable[Token]) -> DeclarationModel:
    """
    Build the declaration model for one file from its token stream.

    Recognition is pattern based and tolerant: anything that does not match a
    known declaration shape is skipped up to the next statement boundary.
    """

    all_tokens = list(tokens)
    extractor = _Extractor(code_tokens(all_tokens))
    extractor.run()
    for tok in all_tokens:
        if tok.kind == "directive":
            extractor.add_macro(tok)
    return extractor.model()


def join_tokens(tokens: Sequence[Token]) -> str:
    """Render a token run as normalized C++ text (`const std::vector<int>&`)."""

    out: list[str] = []
    prev: Token | None = None
    for tok in tokens:
        if prev is not None and _needs_space(prev, tok):
            out.append(" ")
        out.append(tok.text)
        prev = tok
    return "".join(out)


def _needs_space(prev: Token, tok: Token) -> bool:
    if tok.kind == "punctuation" and tok.text in {"::", "<", ">", ",", "*", "&", "&&", ")", "]", "(", "[", "..."}:
        return False
    if prev.kind == "punctuation" and prev.text in {"::", "<", "(", "[", "~"}:
        return False
    return True


def _matching(tokens: Sequence[Token], idx: int) -> int | None:
    """Index of the bracket closing the one at `idx`, or None when unbalanced."""

    opener = tokens[idx].text
    closer = {"(": ")", "[": "]", "{": "}"}[opener]
    depth = 0
    for j in range(idx, len(tokens)):
        tok = tokens[j]
        if tok.kind != "punctuation":
            continue
        if tok.text in {"(", "[", "{"}:
            depth += 1
        elif tok.text in {")", "]", "}"}:
            depth -= 1
            if depth == 0:
                return j if tok.text == closer else None
    return None


def _skip_angles(tokens: Sequence[Token], idx: int) -> int | None:
    """Index just past the `>` closing the `<` at `idx`, or None if it is not a template argument list."""

    depth = 0
    j = idx
    while j < len(tokens):
        tok = tokens[j]
        if tok.kind == "punctuation":
            if tok.text == "<":
                depth += 1
            elif tok.text == ">":
                depth -= 1
                if depth == 0:
                    return j + 1
            elif tok.text in {"(", "["}:
                close = _matching(tokens, j)
                if close is None:
                    return None
                j = close
            elif tok.text in {";", "{", "}", ")", "]", "&&", "||"}:
                return None
        j += 1
    return None


def _split_top_level(tokens: Sequence[Token], separator: str = ",", *, angles: bool = True) -> list[list[Token]]:
    parts: list[list[Token]] = [[]]
    depth = 0
    angle = 0
    for tok in tokens:
        if tok.kind == "punctuation":
            if tok.text in {"(", "[", "{"}:
                depth += 1
            elif tok.text in {")", "]", "}"}:
                depth = max(depth - 1, 0)
            elif angles and tok.text == "<" and depth == 0:
                angle += 1
            elif angles and tok.text == ">" and depth == 0:
                angle = max(angle - 1, 0)
            elif tok.text == separator and depth == 0 and angle == 0:
                parts.append([])
                continue
        parts[-1].append(tok)
    return parts


@dataclass(slots=True)
class _Flags:
    static: bool = False
    constexpr: bool = False
    extern: bool = False
    thread_local: bool = False

    @property
    def storage(self) -> str | None:
        if self.static:
            return "static"
        if self.extern:
            return "extern"
        if self.thread_local:
            return "thread_local"
        return None


@dataclass(slots=True)
class _QualifiedName:
    end: int
    segments: list[str]
    last: Token | None


def _skip_specifiers(tokens: Sequence[Token], p: int, flags: _Flags) -> int:
    n = len(tokens)
    while p < n:
        tok = tokens[p]
        if tok.kind == "keyword" and tok.text in _SPECIFIERS:
            if tok.text == "static":
                flags.static = True
            elif tok.text in {"constexpr", "consteval", "constinit"}:
                flags.constexpr = True
            elif tok.text == "extern":
                flags.extern = True
            elif tok.text == "thread_local":
                flags.thread_local = True
            p += 1
            continue
        if tok.is_punct("[") and p + 1 < n and tokens[p + 1].is_punct("["):
            close = _matching(tokens, p)
            if close is None:
                return p
            p = close + 1
            continue
        if (tok.is_keyword("alignas") or (tok.kind == "identifier" and tok.text in _ATTRIBUTE_MACROS)) and (
            p + 1 < n and tokens[p + 1].is_punct("(")
        ):
            close = _matching(tokens, p + 1)
            if close is None:
                return p
            p = close + 1
            continue
        break
    return p


def _parse_qualified_name(tokens: Sequence[Token], p: int) -> _QualifiedName | None:
    n = len(tokens)
    q = p
    if q < n and tokens[q].is_punct("::"):
        q += 1
    segments: list[str] = []
    last: Token | None = None
    while q < n:
        tok = tokens[q]
        if tok.is_punct("~") and q + 1 < n and tokens[q + 1].kind == "identifier":
            segments.append("~" + tokens[q + 1].text)
            last = tokens[q + 1]
            q += 2
            break
        if tok.kind != "identifier":
            break
        segments.append(tok.text)
        last = tok
        q += 1
        if q < n and tokens[q].is_punct("<"):
            after = _skip_angles(tokens, q)
            if after is None:
                return None
            q = after
        if (
            q + 1 < n
            and tokens[q].is_punct("::")
            and (tokens[q + 1].kind == "identifier" or tokens[q + 1].is_punct("~") or tokens[q + 1].is_keyword("template"))
        ):
            q += 1
            if tokens[q].is_keyword("template"):
                q += 1
            continue
        break
    if not segments:
        return None
    return _QualifiedName(end=q, segments=segments, last=last)


def parse_type(tokens: Sequence[Token], p: int) -> int | None:
    """Skip a type specifier plus pointer/reference operators; None when no type is present."""

    n = len(tokens)
    saw_type = False
    while p < n:
        tok = tokens[p]
        if tok.is_keyword("const", "volatile"):
            p += 1
            continue
        if tok.kind == "keyword" and tok.text in _ELABORATED:
            p += 1
            continue
        if tok.kind == "keyword" and tok.text in TYPE_KEYWORDS:
            saw_type = True
            p += 1
            continue
        if tok.is_keyword("decltype") and p + 1 < n and tokens[p + 1].is_punct("("):
            close = _matching(tokens, p + 1)
            if close is None:
                return None
            saw_type = True
            p = close + 1
            continue
        if (tok.kind == "identifier" or tok.is_punct("::")) and not saw_type:
            name = _parse_qualified_name(tokens, p)
            if name is None:
                return None
            saw_type = True
            p = name.end
            continue
        break
    if not saw_type:
        return None
    while p < n and (tokens[p].is_punct("*", "&", "&&", "...") or tokens[p].is_keyword("const", "volatile")):
        p += 1
    return p


def _operator_params_start(tokens: Sequence[Token], operator_idx: int) -> int | None:
    n = len(tokens)
    q = operator_idx + 1
    if q + 2 < n and tokens[q].is_punct("(") and tokens[q + 1].is_punct(")") and tokens[q + 2].is_punct("("):
        return q + 2
    while q < n:
        if tokens[q].is_punct("("):
            return q
        if tokens[q].is_punct(";", "{", "}"):
            return None
        q += 1
    return None


def _object_is_const(type_tokens: Sequence[Token]) -> bool:
    last_op = -1
    for idx, tok in enumerate(type_tokens):
        if tok.is_punct("*", "&", "&&"):
            last_op = idx
    if last_op == -1:
        return any(t.is_keyword("const") for t in type_tokens)
    if not type_tokens[last_op].is_punct("*"):
        return False
    return any(t.is_keyword("const") for t in type_tokens[last_op + 1 :])


class _Extractor:
    def __init__(self, tokens: list[Token]) -> None:
        self.toks = tokens
        self.i = 0
        end = tokens[-1].end if tokens else 0
        self.scopes: list[Scope] = [Scope(index=0, kind="file", name=None, parent=None, start=0, end=end)]
        self.stack: list[int] = [0]
        self.entities: list[DeclarationEntity] = []
        self.anomalies: list[tuple[Token, Token]] = []
        self.class_names: set[str] = set()
        self.namespace_names: set[str] = set()
        self.typedef_pending = False

    # -- model plumbing -------------------------------------------------

    @property
    def current(self) -> Scope:
        return self.scopes[self.stack[-1]]

    def model(self) -> DeclarationModel:
        ordered = sorted(self.entities, key=lambda e: (e.token.start, e.kind))
        return DeclarationModel(entities=tuple(ordered), scopes=tuple(self.scopes), anomalies=tuple(self.anomalies))

    def new_scope(self, kind: ScopeKind, name: str | None, start: int, *, parent: int | None = None) -> Scope:
        scope = Scope(
            index=len(self.scopes),
            kind=kind,
            name=name,
            parent=self.stack[-1] if parent is None else parent,
            start=start,
            end=start,
        )
        self.scopes.append(scope)
        return scope

    def push(self, scope: Scope) -> None:
        self.stack.append(scope.index)

    def add(self, kind: EntityKind, token: Token, *, scope: int | None = None, name: str | None = None, **attrs: object) -> None:
        self.entities.append(
            DeclarationEntity(
                kind=kind,
                name=token.text if name is None else name,
                token=token,
                scope=self.stack[-1] if scope is None else scope,
                **attrs,  # type: ignore[arg-type]
            )
        )

    def add_macro(self, directive: Token) -> None:
        match = _DEFINE_RE.match(directive.text)
        if match is None:
            return
        offset = match.start("name")
        prefix = directive.text[:offset]
        line = directive.line + prefix.count("\n")
        col = offset - prefix.rfind("\n") if "\n" in prefix else directive.col + offset
        name = match.group("name")
        token = Token(
            kind="identifier",
            text=name,
            start=directive.start + offset,
            end=directive.start + offset + len(name),
            line=line,
            col=col,
            end_line=line,
            end_col=col + len(name),
        )
        self.add("macro", token, scope=0)

    def anomaly(self, tokens: Sequence[Token]) -> None:
        if tokens:
            self.anomalies.append((tokens[0], tokens[-1]))

    # -- driver -------------------------------------------------------------

    def run(self) -> None:
        while self.i < len(self.toks):
            before = self.i
            self.statement()
            if self.i <= before:
                self.i = before + 1
        end = self.toks[-1].end if self.toks else 0
        for idx in self.stack:
            self.scopes[idx].end = end

    def statement(self) -> None:
        toks = self.toks
        tok = toks[self.i]
        nxt = toks[self.i + 1] if self.i + 1 < len(toks) else None
        scope = self.current

        if tok.is_punct("}"):
            self.close_scope(tok)
            return
        if tok.is_punct(";"):
            self.i += 1
            return
        if tok.is_punct("{"):
            self.push(self.new_scope("block", None, tok.start))
            self.i += 1
            return
        if scope.kind == "enum":
            self.enumerator()
            return
        if tok.is_keyword("inline") and nxt is not None and nxt.is_keyword("namespace"):
            self.i += 1
            self.namespace()
            return
        if tok.is_keyword("namespace"):
            self.namespace()
            return
        if tok.is_keyword("template"):
            self.template()
            return
        if tok.is_keyword("using"):
            self.using()
            return
        if tok.is_keyword("typedef"):
            self.typedef()
            return
        if tok.is_keyword("public", "private", "protected") and nxt is not None and nxt.is_punct(":"):
            self.i += 2
            return
        if tok.is_keyword("extern") and nxt is not None and nxt.kind == "literal" and nxt.text.startswith('"'):
            after = toks[self.i + 2] if self.i + 2 < len(toks) else None
            if after is not None and after.is_punct("{"):
                self.push(self.new_scope("linkage", None, after.start))
                self.i += 3
            else:
                self.i += 2
            return
        if tok.kind == "keyword" and tok.text in _SKIPPED_STATEMENTS:
            self.skip_statement()
            return
        if tok.is_keyword("class", "struct", "union") and self.class_head():
            return
        if tok.is_keyword("enum") and self.enum_head():
            return
        if scope.kind in LOCAL_SCOPES and tok.kind == "keyword" and tok.text in _CONTROL_KEYWORDS:
            self.control(tok)
            return
        self.declaration_or_expression()

    def close_scope(self, tok: Token) -> None:
        self.i += 1
        if len(self.stack) == 1:
            self.anomaly([tok])
            return
        closed = self.scopes[self.stack.pop()]
        closed.end = tok.end
        while closed.chained and len(self.stack) > 1:
            closed = self.scopes[self.stack.pop()]
            closed.end = tok.end
        if closed.kind in {"class", "enum"}:
            self.trailing_declarators(closed)

    def trailing_declarators(self, closed: Scope) -> None:
        if self.i >= len(self.toks):
            return
        first = self.toks[self.i]
        if not (first.kind == "identifier" or first.is_punct("*", "&")):
            return
        header_end, next_index, _term = self.scan_statement(self.i)
        header = self.toks[self.i : header_end]
        self.i = next_index
        if closed.trailing_alias:
            for part in _split_top_level(header):
                names = [t for t in part if t.kind == "identifier"]
                if names:
                    self.add("type_alias", names[0])
            return
        self.emit_variables(header, 0, base_type=[], flags=_Flags(), type_name=closed.name or "")

    def skip_statement(self) -> None:
        header_end, next_index, term = self.scan_statement(self.i)
        if term == "body":
            close = _matching(self.toks, header_end)
            self.i = len(self.toks) if close is None else close + 1
        else:
            self.i = next_index

    # -- statement scanning ---------------------------------------------

    def scan_statement(self, start: int) -> tuple[int, int, str]:
        """
        Find where the statement starting at `start` ends.

        Returns (header_end, next_index, terminator) with terminator one of
        ";", "body" (a `{` opening a body at header_end), "}" or "eof".
        """

        toks = self.toks
        depth = 0
        seen_eq = seen_paren = seen_ctor_colon = False
        j = start
        while j < len(toks):
            tok = toks[j]
            if tok.kind == "punctuation":
                text = tok.text
                if text in {"(", "["}:
                    depth += 1
                elif text in {")", "]"}:
                    depth = max(depth - 1, 0)
                    if depth == 0 and text == ")":
                        seen_paren = True
                elif depth == 0:
                    if text == ";":
                        return j, j + 1, ";"
                    if text == "}":
                        return j, j, "}"
                    if text == "=" and not (j > start and toks[j - 1].is_keyword("operator")):
                        seen_eq = True
                    elif text == ":" and seen_paren:
                        seen_ctor_colon = True
                    elif text == "{":
                        if self.brace_is_initializer(start, j, seen_eq, seen_paren, seen_ctor_colon):
                            close = _matching(toks, j)
                            if close is None:
                                return len(toks), len(toks), "eof"
                            j = close + 1
                            continue
                        return j, j + 1, "body"
            j += 1
        return len(toks), len(toks), "eof"

    def brace_is_initializer(self, start: int, j: int, seen_eq: bool, seen_paren: bool, seen_ctor_colon: bool) -> bool:
        if seen_eq:
            return True
        prev = self.toks[j - 1] if j > start else None
        if prev is None:
            return False
        if seen_paren and not seen_ctor_colon:
            return False
        return prev.kind == "identifier" or prev.is_punct(">")

    # -- specific shapes ------------------------------------------------

    def namespace(self) -> None:
        toks = self.toks
        j = self.i + 1
        names: list[Token] = []
        while j < len(toks) and toks[j].kind == "identifier":
            names.append(toks[j])
            j += 1
            if j < len(toks) and toks[j].is_punct("::"):
                j += 1
                if j < len(toks) and toks[j].is_keyword("inline"):
                    j += 1
                continue
            break
        nxt = toks[j] if j < len(toks) else None
        if nxt is not None and nxt.is_punct("="):
            for name in names:
                self.add("namespace", name)
                self.namespace_names.add(name.text)
            self.i = j
            self.skip_statement()
            return
        if nxt is None or not nxt.is_punct("{"):
            self.i = j
            self.skip_statement()
            return
        if not names:
            self.push(self.new_scope("namespace", None, nxt.start))
        for pos, name in enumerate(names):
            self.add("namespace", name)
            self.namespace_names.add(name.text)
            scope = self.new_scope("namespace", name.text, nxt.start)
            scope.chained = pos > 0
            self.push(scope)
        self.i = j + 1

    def template(self) -> None:
        toks = self.toks
        j = self.i + 1
        if j >= len(toks) or not toks[j].is_punct("<"):
            # Explicit instantiation: `template class Foo<int>;`
            self.skip_statement()
            return
        after = _skip_angles(toks, j)
        if after is None:
            self.i = j + 1
            return
        for part in _split_top_level(toks[j + 1 : after - 1]):
            self.template_parameter(part)
        self.i = after

    def template_parameter(self, part: list[Token]) -> None:
        if not part:
            return
        default_at = next((k for k, t in enumerate(part) if t.is_punct("=")), len(part))
        head = part[:default_at]
        if not head:
            return
        if head[0].is_keyword("template"):
            names = [t for t in head if t.kind == "identifier"]
            if names and head[-1].kind == "identifier":
                self.add("template_parameter", head[-1])
            return
        if head[-1].kind == "identifier" and len(head) > 1:
            self.add("template_parameter", head[-1])

    def using(self) -> None:
        toks = self.toks
        j = self.i + 1
        if j + 1 < len(toks) and toks[j].kind == "identifier" and toks[j + 1].is_punct("="):
            self.add("type_alias", toks[j])
        self.skip_statement()

    def typedef(self) -> None:
        toks = self.toks
        nxt = toks[self.i + 1] if self.i + 1 < len(toks) else None
        if nxt is not None and nxt.is_keyword("struct", "class", "union", "enum"):
            self.i += 1
            self.typedef_pending = True
            if (nxt.is_keyword("enum") and self.enum_head()) or (not nxt.is_keyword("enum") and self.class_head()):
                self.typedef_pending = False
                return
            self.typedef_pending = False
            self.i -= 1
        header_end, next_index, _term = self.scan_statement(self.i)
        header = toks[self.i + 1 : header_end]
        self.i = next_index
        for k in range(len(header) - 2):
            if header[k].is_punct("(") and header[k + 1].is_punct("*") and header[k + 2].kind == "identifier":
                self.add("type_alias", header[k + 2])
                return
        names = [t for t in _split_top_level(header)[0] if t.kind == "identifier"]
        if len(names) >= 1 and len(header) > 1:
            self.add("type_alias", names[-1])

    def class_head(self) -> bool:
        toks = self.toks
        keyword = toks[self.i]
        j = _skip_specifiers(toks, self.i + 1, _Flags())
        # Export macros: `class API_EXPORT Widget {`.
        while j + 1 < len(toks) and toks[j].kind == "identifier" and toks[j + 1].kind == "identifier":
            if toks[j + 1].text == "final":
                break
            j += 1
        name: Token | None = None
        specialization = False
        if j < len(toks) and toks[j].kind == "identifier":
            name = toks[j]
            j += 1
            while j + 1 < len(toks) and toks[j].is_punct("::") and toks[j + 1].kind == "identifier":
                name = toks[j + 1]
                j += 2
            if j < len(toks) and toks[j].is_punct("<"):
                after = _skip_angles(toks, j)
                if after is None:
                    return False
                specialization = True
                j = after
        if j < len(toks) and toks[j].kind == "identifier" and toks[j].text == "final":
            j += 1
        if j < len(toks) and toks[j].is_punct(":"):
            while j < len(toks) and not toks[j].is_punct("{", ";", "}"):
                j += 1
        if j >= len(toks):
            return False

        kind: EntityKind = "class" if keyword.text == "class" else "struct"
        terminator = toks[j]
        if terminator.is_punct(";") and name is not None and not self.typedef_pending:
            if not specialization:
                self.add(kind, name, keyword_token=keyword)
            self.i = j + 1
            return True
        if not terminator.is_punct("{"):
            return False

        scope = self.new_scope("class", name.text if name is not None else None, terminator.start)
        scope.trailing_alias = self.typedef_pending
        if name is not None and not specialization:
            self.add(kind, name, keyword_token=keyword, body_scope=scope.index)
            self.class_names.add(name.text)
        self.push(scope)
        self.i = j + 1
        return True

    def enum_head(self) -> bool:
        toks = self.toks
        keyword = toks[self.i]
        j = self.i + 1
        scoped = False
        if j < len(toks) and toks[j].is_keyword("class", "struct"):
            scoped = True
            j += 1
        j = _skip_specifiers(toks, j, _Flags())
        name: Token | None = None
        if j < len(toks) and toks[j].kind == "identifier":
            name = toks[j]
            j += 1
        if j < len(toks) and toks[j].is_punct(":"):
            while j < len(toks) and not toks[j].is_punct("{", ";", "}"):
                j += 1
        if j >= len(toks):
            return False
        terminator = toks[j]
        if terminator.is_punct(";") and name is not None and not self.typedef_pending:
            self.add("enum", name, is_scoped_enum=scoped, keyword_token=keyword)
            self.i = j + 1
            return True
        if not terminator.is_punct("{"):
            return False
        scope = self.new_scope("enum", name.text if name is not None else None, terminator.start)
        scope.trailing_alias = self.typedef_pending
        if name is not None:
            self.add("enum", name, is_scoped_enum=scoped, keyword_token=keyword, body_scope=scope.index)
        self.push(scope)
        self.i = j + 1
        return True

    def enumerator(self) -> None:
        toks = self.toks
        tok = toks[self.i]
        if tok.kind == "identifier":
            self.add("enum_variant", tok)
        depth = 0
        j = self.i + 1
        while j < len(toks):
            cur = toks[j]
            if cur.is_punct("(", "[", "{"):
                depth += 1
            elif cur.is_punct(")", "]"):
                depth = max(depth - 1, 0)
            elif cur.is_punct("}"):
                if depth == 0:
                    break
                depth -= 1
            elif cur.is_punct(",") and depth == 0:
                j += 1
                break
            j += 1
        self.i = j

    def control(self, tok: Token) -> None:
        toks = self.toks
        j = self.i + 1
        if tok.text in {"else", "do", "try"}:
            self.i = j
            return
        if tok.text in {"case", "default"}:
            while j < len(toks) and not toks[j].is_punct(":", ";", "{", "}"):
                j += 1
            self.i = j + 1 if j < len(toks) and toks[j].is_punct(":") else j
            return
        if j < len(toks) and toks[j].is_keyword("constexpr"):
            j += 1
        if j >= len(toks) or not toks[j].is_punct("("):
            self.i = j
            return
        close = _matching(toks, j)
        if close is None:
            self.i = len(toks)
            return
        if tok.text == "for":
            inner = toks[j + 1 : close]
            init = _split_top_level(inner, ";", angles=False)[0]
            if len(init) == len(inner):
                init = _split_top_level(inner, ":", angles=False)[0]
            if init:
                self.classify(init, local=True)
        self.i = close + 1

    def declaration_or_expression(self) -> None:
        header_end, next_index, term = self.scan_statement(self.i)
        header = self.toks[self.i : header_end]
        self.i = next_index
        recognized = self.classify(header, local=self.current.kind in LOCAL_SCOPES, body=term == "body")
        if recognized != "function" and term == "body":
            self.push(self.new_scope("block", None, self.toks[header_end].start))
        if recognized is None and header and self.current.kind not in LOCAL_SCOPES and term != "body":
            self.anomaly(header)

    # -- declaration classification -------------------------------------

    def classify(self, header: list[Token], *, local: bool, body: bool = False) -> str | None:
        """
        Record the entities declared by `header`.

        Returns "function" or "variable" when a declaration was recognized
        (a function with `body` also opens its scope), otherwise None.
        """

        if not header:
            return None
        flags = _Flags()
        p = _skip_specifiers(header, 0, flags)
        n = len(header)
        if p >= n:
            return None

        special = self.special_member(header, p)
        if special is not None:
            name_tok, display, qualifier, paren = special
            self.emit_function(header, paren, name_tok, display, qualifier, base_type=[], flags=flags, special=True, body=body)
            return "function"

        type_end = parse_type(header, p)
        if type_end is None or type_end >= n:
            return None
        base_type = header[p:type_end]
        tok = header[type_end]

        if tok.is_keyword("operator") or (
            tok.is_punct("::") and type_end + 1 < n and header[type_end + 1].is_keyword("operator")
        ):
            op_idx = type_end if tok.is_keyword("operator") else type_end + 1
            paren = _operator_params_start(header, op_idx)
            if paren is None:
                return None
            display = "operator" + "".join(t.text for t in header[op_idx + 1 : paren])
            self.emit_function(header, paren, header[op_idx], display, None, base_type=base_type, flags=flags, special=True, body=body)
            return "function"

        if tok.is_punct("(") and type_end + 1 < n and header[type_end + 1].is_punct("*", "&", "::") or (
            tok.is_punct("(") and type_end + 2 < n and header[type_end + 1].kind == "identifier" and header[type_end + 2].is_punct("::")
        ):
            if self.emit_variables(header, type_end, base_type=base_type, flags=flags, local=local):
                return "variable"
            return None

        if tok.kind != "identifier":
            return None
        name = _parse_qualified_name(header, type_end)
        if name is None or name.last is None:
            return None
        after = header[name.end] if name.end < n else None
        qualifier = "::".join(name.segments[:-1]) or None

        if after is not None and after.is_punct("(") and not self.is_direct_init(header, name.end, local=local):
            self.emit_function(header, name.end, name.last, name.last.text, qualifier, base_type=base_type, flags=flags, special=False, body=body)
            return "function"
        if self.emit_variables(header, type_end, base_type=base_type, flags=flags, local=local):
            return "variable"
        return None

    def special_member(self, header: list[Token], p: int) -> tuple[Token, str, str | None, int] | None:
        n = len(header)
        if header[p].is_keyword("operator"):
            paren = _operator_params_start(header, p)
            if paren is None:
                return None
            display = "operator" + "".join(t.text for t in header[p + 1 : paren])
            return header[p], display, None, paren
        name = _parse_qualified_name(header, p)
        if name is None or name.last is None or name.end >= n or not header[name.end].is_punct("("):
            return None
        last = name.segments[-1]
        qualifier = "::".join(name.segments[:-1]) or None
        if last.startswith("~"):
            return name.last, last, qualifier, name.end
        if len(name.segments) >= 2 and name.segments[-2] == last:
            return name.last, last, qualifier, name.end
        if len(name.segments) == 1 and self.current.kind == "class" and self.current.name == last:
            return name.last, last, None, name.end
        return None

    def is_direct_init(self, header: list[Token], paren: int, *, local: bool) -> bool:
        if self.current.kind == "class":
            return False
        if local:
            return True
        close = _matching(header, paren)
        if close is None:
            return False
        inner = header[paren + 1 : close]
        if not inner:
            return False
        for part in _split_top_level(inner):
            if not part:
                continue
            first = part[0]
            if first.kind == "literal" or (first.kind == "keyword" and first.text in _NON_PARAMETER_KEYWORDS):
                return True
            if first.kind == "punctuation" and first.text not in {"::", "[", "..."}:
                return True
            if parse_type(part, _skip_specifiers(part, 0, _Flags())) is None:
                return True
        return False

    def emit_function(
        self,
        header: list[Token],
        paren: int,
        name_tok: Token,
        display: str,
        qualifier: str | None,
        *,
        base_type: list[Token],
        flags: _Flags,
        special: bool,
        body: bool,
    ) -> None:
        close = _matching(header, paren)
        inner = header[paren + 1 : close] if close is not None else header[paren + 1 :]
        trailer = header[close + 1 :] if close is not None else []
        is_override = any(t.kind == "identifier" and t.text in {"override", "final"} for t in trailer)

        scope_kind = self.current.kind
        kind: EntityKind
        if scope_kind == "class":
            kind = "method"
        elif qualifier is not None:
            last = qualifier.split("::")[-1]
            kind = "function" if last in self.namespace_names and last not in self.class_names else "method"
        else:
            kind = "function"

        fn_scope = self.new_scope("function", display, header[paren].start)
        fn_scope.end = header[close].end if close is not None else header[-1].end
        params = self.parameters(inner, fn_scope.index)
        self.add(
            kind,
            name_tok,
            scope=self.stack[-1],
            name=display,
            is_static=flags.static,
            is_constexpr=flags.constexpr,
            is_special=special,
            is_override=is_override,
            storage=flags.storage,
            type_text=join_tokens(base_type),
            parameter_types=tuple(t for t, _ in params),
            parameter_tokens=tuple(n for _, n in params),
            is_definition=body,
            qualifier=qualifier,
            body_scope=fn_scope.index,
        )
        if body:
            self.push(fn_scope)

    def parameters(self, inner: list[Token], scope_index: int) -> list[tuple[str, Token | None]]:
        types: list[tuple[str, Token | None]] = []
        if not inner:
            return types
        parts = _split_top_level(inner)
        if len(parts) == 1 and len(parts[0]) == 1 and parts[0][0].is_keyword("void"):
            return types
        for part in parts:
            default_at = next((k for k, t in enumerate(part) if t.is_punct("=")), len(part))
            decl = part[:default_at]
            if not decl or (len(decl) == 1 and decl[0].is_punct("...")):
                continue
            p = _skip_specifiers(decl, 0, _Flags())
            type_end = parse_type(decl, p)
            if type_end is None:
                types.append((join_tokens(decl), None))
                continue
            type_tokens = list(decl[p:type_end])
            name_tok: Token | None = None
            confidence: Confidence = "high"
            if type_end < len(decl):
                tok = decl[type_end]
                if tok.kind == "identifier":
                    name_tok = tok
                    if type_end + 1 < len(decl) and decl[type_end + 1].is_punct("["):
                        type_tokens.append(decl[type_end + 1])
                        type_tokens.append(decl[-1] if decl[-1].is_punct("]") else decl[type_end + 1])
                elif tok.is_punct("("):
                    inside = [t for t in decl[type_end:] if t.kind == "identifier"]
                    if inside:
                        name_tok = inside[0]
                    confidence = "low"
                    type_tokens = list(decl[p:])
            type_text = join_tokens([t for t in type_tokens if t is not name_tok])
            types.append((type_text, name_tok))
            if name_tok is not None:
                self.add(
                    "parameter",
                    name_tok,
                    scope=scope_index,
                    type_text=type_text,
                    is_const=_object_is_const(type_tokens),
                    confidence=confidence,
                )
        return types

    def emit_variables(
        self,
        header: list[Token],
        p: int,
        *,
        base_type: list[Token],
        flags: _Flags,
        local: bool = False,
        type_name: str | None = None,
    ) -> bool:
        n = len(header)
        emitted = False
        scope_kind = self.current.kind
        while p < n:
            ops: list[Token] = []
            while p < n and (header[p].is_punct("*", "&", "&&") or header[p].is_keyword("const", "volatile")):
                ops.append(header[p])
                p += 1
            if p >= n:
                break
            confidence: Confidence = "high"
            name_tok: Token | None = None
            qualifier: str | None = None
            if header[p].is_punct("("):
                close = _matching(header, p)
                if close is None:
                    break
                inside = [t for t in header[p + 1 : close] if t.kind == "identifier"]
                if not inside:
                    break
                name_tok = inside[-1]
                confidence = "low"
                p = close + 1
                if p < n and header[p].is_punct("("):
                    close = _matching(header, p)
                    p = n if close is None else close + 1
            elif header[p].kind == "identifier":
                name = _parse_qualified_name(header, p)
                if name is None or name.last is None:
                    break
                name_tok = name.last
                qualifier = "::".join(name.segments[:-1]) or None
                p = name.end
            else:
                break

            array = False
            while p < n and header[p].is_punct("["):
                close = _matching(header, p)
                p = n if close is None else close + 1
                array = True

            init_start = p
            depth = 0
            while p < n:
                tok = header[p]
                if tok.is_punct("(", "[", "{"):
                    depth += 1
                elif tok.is_punct(")", "]", "}"):
                    depth = max(depth - 1, 0)
                elif tok.is_punct(",") and depth == 0:
                    break
                p += 1
            init_tokens = header[init_start:p]
            if init_tokens and init_tokens[0].kind != "punctuation":
                # Something other than an initializer follows the name.
                break
            if init_tokens and init_tokens[0].is_punct("=", ":"):
                init_tokens = init_tokens[1:]

            type_tokens = [*base_type, *ops]
            is_const = _object_is_const(type_tokens)
            kind: EntityKind = "variable"
            if confidence == "high" and (
                flags.constexpr
                or (is_const and scope_kind in NAMESPACE_LEVEL_SCOPES and qualifier is None)
                or (is_const and flags.static and scope_kind == "class")
            ):
                kind = "constant"
            type_text = join_tokens(type_tokens) if base_type else (type_name or "") + join_tokens(ops)
            if array:
                type_text += "[]"
            self.add(
                kind,
                name_tok,
                is_const=is_const,
                is_static=flags.static,
                is_constexpr=flags.constexpr,
                storage=flags.storage,
                type_text=type_text,
                initializer=join_tokens(init_tokens),
                qualifier=qualifier,
                confidence=confidence,
            )
            emitted = True
            if p < n and header[p].is_punct(","):
                p += 1
                continue
            break
        return emitted
