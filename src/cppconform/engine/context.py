from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from cppconform.config import ConformConfig
from cppconform.declarations import DeclarationModel
from cppconform.engine.types import Location
from cppconform.lexer import LineIndex, Token
from cppconform.suppressions import Suppressions


@dataclass(frozen=True, slots=True)
class ProjectContext:
    project_root: Path
    files: tuple[Path, ...]
    config: ConformConfig

    @property
    def multi_file(self) -> bool:
        return len(self.files) > 1


@dataclass(frozen=True, slots=True)
class FileContext:
    project_root: Path
    path: Path
    relative_path: str
    text: str
    tokens: tuple[Token, ...]
    code: tuple[Token, ...]  # tokens without comments and directives
    model: DeclarationModel
    suppressions: Suppressions
    line_index: LineIndex
    config: ConformConfig
    multi_file: bool = False

    def location(self, start: int, end: int) -> Location:
        start_line, start_col = self.line_index.position(start)
        end_line, end_col = self.line_index.position(end)
        return Location(
            path=self.path,
            start_line=start_line,
            start_col=start_col,
            end_line=end_line,
            end_col=end_col,
            start_offset=start,
            end_offset=end,
        )

    def token_location(self, tok: Token) -> Location:
        return Location(
            path=self.path,
            start_line=tok.line,
            start_col=tok.col,
            end_line=tok.end_line,
            end_col=tok.end_col,
            start_offset=tok.start,
            end_offset=tok.end,
        )
