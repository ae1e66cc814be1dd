from __future__ import annotations

import re
from typing import Literal

from cppconform.lexer import CPP_KEYWORDS

CasingStyle = Literal["upper_camel", "lower_snake", "upper_snake"]

STYLE_LABELS: dict[str, str] = {
    "upper_camel": "UpperCamelCase",
    "lower_snake": "lower_snake_case",
    "upper_snake": "UPPER_SNAKE_CASE",
}

_IDENTIFIER_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_IDENTIFIER_ACRONYM_BOUNDARY_RE = re.compile(r"(?<=[A-Z])(?=[A-Z][a-z])")

_LOWER_SNAKE_RE = re.compile(r"^[a-z][a-z0-9]*(?:_[a-z0-9]+)*$")
_UPPER_SNAKE_RE = re.compile(r"^[A-Z][A-Z0-9]*(?:_[A-Z0-9]+)*$")
_UPPER_CAMEL_RE = re.compile(r"^[A-Z][a-zA-Z0-9]*$")
_VALID_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def split_words(name: str) -> list[str]:
    """
    Split an identifier into word fragments.

    Underscores always separate words. Inside a fragment a new word starts at a
    lowercase/digit -> uppercase transition, and before the last capital of an
    all-caps run that is followed by a lowercase letter, so `HTTPServer`
    becomes `HTTP`, `Server` while `HttpServer` becomes `Http`, `Server`.
    """

    words: list[str] = []
    for chunk in name.split("_"):
        if not chunk:
            continue
        spaced = _IDENTIFIER_ACRONYM_BOUNDARY_RE.sub(" ", _IDENTIFIER_CAMEL_BOUNDARY_RE.sub(" ", chunk))
        words.extend(w for w in spaced.split(" ") if w)
    return words


def _is_acronym(word: str) -> bool:
    return word.isupper() and sum(c.isalpha() for c in word) >= 2


def matches_style(name: str, style: CasingStyle, *, allow_trailing_underscore: bool = False) -> bool:
    if allow_trailing_underscore and name.endswith("_") and not name.endswith("__"):
        name = name[:-1]
    if style == "lower_snake":
        return bool(_LOWER_SNAKE_RE.match(name))
    if style == "upper_snake":
        return bool(_UPPER_SNAKE_RE.match(name))
    if not _UPPER_CAMEL_RE.match(name):
        return False
    # Acronyms are ordinary words: `Http` is fine, `HTTP` is not. A lone capital (`TValue`) is a word.
    return not any(_is_acronym(w) for w in split_words(name))


def convert(name: str, style: CasingStyle, *, keep_trailing_underscore: bool = False) -> str | None:
    """
    Return `name` rewritten in `style`, or None if no valid identifier results.

    The result always satisfies `matches_style(result, style)` and is never a
    C++ keyword.
    """

    suffix = ""
    if keep_trailing_underscore and name.endswith("_"):
        suffix = "_"
    words = split_words(name)
    if not words:
        return None

    if style == "lower_snake":
        candidate = "_".join(w.lower() for w in words)
    elif style == "upper_snake":
        candidate = "_".join(w.upper() for w in words)
    else:
        candidate = "".join(w[:1].upper() + w[1:].lower() for w in words)

    if not _VALID_IDENTIFIER_RE.match(candidate) or candidate in CPP_KEYWORDS:
        return None
    if not matches_style(candidate, style):
        return None
    return candidate + suffix
