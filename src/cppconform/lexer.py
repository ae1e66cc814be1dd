from __future__ import annotations

import bisect
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Literal

TokenKind = Literal["identifier", "keyword", "literal", "punctuation", "comment", "directive", "unknown"]

CPP_KEYWORDS = frozenset(
    {
        "alignas", "alignof", "and", "and_eq", "asm", "auto", "bitand", "bitor", "bool", "break",
        "case", "catch", "char", "char8_t", "char16_t", "char32_t", "class", "compl", "concept",
        "const", "consteval", "constexpr", "constinit", "const_cast", "continue", "co_await",
        "co_return", "co_yield", "decltype", "default", "delete", "do", "double", "dynamic_cast",
        "else", "enum", "explicit", "export", "extern", "false", "float", "for", "friend", "goto",
        "if", "inline", "int", "long", "mutable", "namespace", "new", "noexcept", "not", "not_eq",
        "nullptr", "operator", "or", "or_eq", "private", "protected", "public", "register",
        "reinterpret_cast", "requires", "return", "short", "signed", "sizeof", "static",
        "static_assert", "static_cast", "struct", "switch", "template", "this", "thread_local",
        "throw", "true", "try", "typedef", "typeid", "typename", "union", "unsigned", "using",
        "virtual", "void", "volatile", "wchar_t", "while", "xor", "xor_eq",
    }
)

# Keywords that name (parts of) fundamental types.
TYPE_KEYWORDS = frozenset(
    {
        "void", "bool", "char", "char8_t", "char16_t", "char32_t", "wchar_t", "short", "int",
        "long", "signed", "unsigned", "float", "double", "auto",
    }
)

_STRING_PREFIXES = frozenset({"L", "u", "U", "u8"})
_RAW_STRING_PREFIXES = frozenset({"R", "LR", "uR", "UR", "u8R"})
_MAX_RAW_DELIMITER = 16

# `>` is deliberately absent from every multi-character operator so that
# template closers such as `>>` always arrive as separate tokens.
_PUNCTUATORS: tuple[str, ...] = (
    "<=>", "<<=", "->*", "...",
    "::", "->", "++", "--", "<<", "<=", "==", "!=", "&&", "||", "+=", "-=", "*=", "/=", "%=",
    "&=", "|=", "^=", ".*", "##",
    "{", "}", "[", "]", "(", ")", "<", ">", ";", ":", ",", ".", "?", "~", "!", "%", "^", "&",
    "*", "-", "+", "=", "|", "/", "#",
)


@dataclass(frozen=True, slots=True)
class Token:
    kind: TokenKind
    text: str
    start: int
    end: int
    line: int  # 1-based
    col: int  # 1-based
    end_line: int
    end_col: int  # column just past the last character

    def is_punct(self, *values: str) -> bool:
        return self.kind == "punctuation" and self.text in values

    def is_keyword(self, *values: str) -> bool:
        return self.kind == "keyword" and self.text in values


class LineIndex:
    """Map offsets in a text to 1-based (line, column) pairs."""

    def __init__(self, text: str) -> None:
        starts = [0]
        for idx, ch in enumerate(text):
            if ch == "\n":
                starts.append(idx + 1)
        self._starts = starts
        self._length = len(text)

    @property
    def line_count(self) -> int:
        return len(self._starts)

    def position(self, offset: int) -> tuple[int, int]:
        offset = max(0, min(offset, self._length))
        line = bisect.bisect_right(self._starts, offset)
        return line, offset - self._starts[line - 1] + 1

    def line_start(self, line: int) -> int:
        line = max(1, min(line, len(self._starts)))
        return self._starts[line - 1]


def decode_source(source: str | bytes) -> str:
    """Decode UTF-8 source. Invalid bytes become lone surrogates so `encode_source` restores them exactly."""

    if isinstance(source, bytes):
        return source.decode("utf-8", errors="surrogateescape")
    return source


def encode_source(text: str) -> bytes:
    return text.encode("utf-8", errors="surrogateescape")


def printable(text: str) -> str:
    """`text` with undecodable source bytes shown as U+FFFD, safe to print or serialize."""

    return encode_source(text).decode("utf-8", errors="replace")


def tokenize(source: str | bytes) -> Iterator[Token]:
    """
    Lazily split C++ source into classified tokens.

    Never raises: bytes that do not start any known token become `unknown`
    tokens. Calling `tokenize` again restarts from the beginning.
    """

    text = decode_source(source)
    index = LineIndex(text)
    n = len(text)
    i = 0
    at_line_start = True

    while i < n:
        ch = text[i]
        if ch == "\n":
            at_line_start = True
            i += 1
            continue
        if ch in " \t\r\f\v":
            i += 1
            continue
        if ch == "\\":
            splice = _line_splice_length(text, i)
            if splice:
                i += splice
                continue

        start = i
        kind: TokenKind
        if ch == "#" and at_line_start:
            kind, end = "directive", _scan_directive(text, i)
        elif text.startswith("//", i):
            kind, end = "comment", _scan_line_comment(text, i)
        elif text.startswith("/*", i):
            kind, end = "comment", _scan_block_comment(text, i)
        elif ch.isdigit() or (ch == "." and i + 1 < n and text[i + 1].isdigit()):
            kind, end = "literal", _scan_number(text, i)
        elif _is_identifier_start(ch):
            end = _scan_identifier(text, i)
            word = text[i:end]
            if end < n and text[end] == '"' and word in _RAW_STRING_PREFIXES:
                kind, end = "literal", _scan_raw_string(text, end)
            elif end < n and text[end] in "\"'" and word in _STRING_PREFIXES:
                kind, end = "literal", _scan_quoted(text, end)
            else:
                kind = "keyword" if word in CPP_KEYWORDS else "identifier"
        elif ch in "\"'":
            kind, end = "literal", _scan_quoted(text, i)
        else:
            punct = _match_punctuator(text, i)
            if punct is not None:
                kind, end = "punctuation", i + len(punct)
            else:
                kind, end = "unknown", i + 1

        if kind == "comment":
            if "\n" in text[start:end]:
                at_line_start = True
        else:
            at_line_start = False

        line, col = index.position(start)
        end_line, end_col = index.position(end)
        yield Token(
            kind=kind,
            text=text[start:end],
            start=start,
            end=end,
            line=line,
            col=col,
            end_line=end_line,
            end_col=end_col,
        )
        i = end


def code_tokens(tokens: Iterable[Token]) -> list[Token]:
    """Drop comments and preprocessor directives."""

    return [t for t in tokens if t.kind not in {"comment", "directive"}]


def _is_identifier_start(ch: str) -> bool:
    return ch == "_" or ch == "$" or ch.isalpha()


def _is_identifier_char(ch: str) -> bool:
    return ch == "_" or ch == "$" or ch.isalnum()


def _line_splice_length(text: str, i: int) -> int:
    if text.startswith("\\\n", i):
        return 2
    if text.startswith("\\\r\n", i):
        return 3
    return 0


def _scan_identifier(text: str, i: int) -> int:
    j = i + 1
    n = len(text)
    while j < n and _is_identifier_char(text[j]):
        j += 1
    return j


def _scan_number(text: str, i: int) -> int:
    # pp-number: digits, letters, `.`, `_`, digit separators and exponent signs.
    j = i + 1
    n = len(text)
    while j < n:
        c = text[j]
        if c.isalnum() or c in "._":
            j += 1
        elif c == "'" and j + 1 < n and text[j + 1].isalnum():
            j += 1
        elif c in "+-" and text[j - 1] in "eEpP":
            j += 1
        else:
            break
    return j


def _scan_quoted(text: str, i: int) -> int:
    quote = text[i]
    j = i + 1
    n = len(text)
    while j < n:
        c = text[j]
        if c == "\\":
            j += 2
            continue
        if c == quote:
            return j + 1
        if c == "\n":
            # Unterminated literal: stop at the end of the line.
            return j
        j += 1
    return n


def _scan_raw_string(text: str, quote_idx: int) -> int:
    n = len(text)
    open_paren = quote_idx + 1
    while open_paren < n and open_paren - quote_idx - 1 <= _MAX_RAW_DELIMITER:
        c = text[open_paren]
        if c == "(":
            break
        if c in ' )\\\t\n"':
            return _scan_quoted(text, quote_idx)
        open_paren += 1
    else:
        return _scan_quoted(text, quote_idx)

    delimiter = text[quote_idx + 1 : open_paren]
    closing = ")" + delimiter + '"'
    found = text.find(closing, open_paren + 1)
    if found == -1:
        return n
    return found + len(closing)


def _scan_line_comment(text: str, i: int) -> int:
    end = text.find("\n", i)
    if end == -1:
        end = len(text)
    while end > i and text[end - 1] == "\r":
        end -= 1
    return end


def _scan_block_comment(text: str, i: int) -> int:
    found = text.find("*/", i + 2)
    if found == -1:
        return len(text)
    return found + 2


def _scan_directive(text: str, i: int) -> int:
    j = i + 1
    n = len(text)
    while j < n:
        c = text[j]
        if c == "\n":
            k = j - 1
            if k > i and text[k] == "\r":
                k -= 1
            if k > i and text[k] == "\\":
                j += 1
                continue
            break
        if text.startswith("//", j):
            break
        if text.startswith("/*", j):
            j = _scan_block_comment(text, j)
            continue
        if c in "\"'":
            j = _scan_quoted(text, j)
            continue
        j += 1

    while j > i + 1 and text[j - 1] in " \t\r":
        j -= 1
    return j


def _match_punctuator(text: str, i: int) -> str | None:
    for punct in _PUNCTUATORS:
        if text.startswith(punct, i):
            return punct
    return None
