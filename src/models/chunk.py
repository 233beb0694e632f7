"""
Chunk data models

Typed structures produced by the chunk lexer and consumed by the include
resolver, the trim engine and the compiler.
"""

from enum import Enum
from dataclasses import dataclass, field, replace


class ChunkKind(Enum):
    """
    Kinds of lexed chunks

    TEXT is literal template text, the other kinds are directives.
    """
    TEXT = "text"               # literal text between directives
    CODE = "code"               # #{ statements }#
    EXPRESSION = "expression"   # #{= expr }#
    INCLUDE = "include"         # #{include: "path" }#


class TrimOverride(Enum):
    """
    Per-side whitespace override carried by a directive

    Derived from the optional marker right inside a delimiter:
    '-' forces trimming, '+' forces keeping, no marker defers to policy.
    """
    FORCE_TRIM = "-"
    FORCE_KEEP = "+"
    UNSET = ""

    @classmethod
    def marker_parse(cls, marker: str) -> "TrimOverride":
        """Map a '+', '-' or empty marker to its override"""
        return cls(marker)


@dataclass(frozen=True)
class Chunk:
    """
    One classified unit of a lexed template

    Attributes:
        kind: What the chunk is (text or one of the directive kinds)
        content: Raw text for TEXT, the directive body otherwise
                 (markers and delimiters excluded)
        trim_left: Override for the text chunk before this directive
        trim_right: Override for the text chunk after this directive

    Example:
        "#{- x = 1 +}#" lexes to
        Chunk(kind=ChunkKind.CODE, content=" x = 1 ",
              trim_left=TrimOverride.FORCE_TRIM,
              trim_right=TrimOverride.FORCE_KEEP)
    """
    kind: ChunkKind
    content: str
    trim_left: TrimOverride = field(default=TrimOverride.UNSET)
    trim_right: TrimOverride = field(default=TrimOverride.UNSET)

    @property
    def is_text(self) -> bool:
        return self.kind is ChunkKind.TEXT

    def content_replace(self, content: str) -> "Chunk":
        """Return a copy of this chunk holding different content"""
        return replace(self, content=content)


@dataclass(frozen=True)
class DirectiveSpan:
    """
    Position of a directive found by the lexer

    Attributes:
        start: Index of the first character of the start tag
        end: Index just past the end tag
        chunk: The classified directive chunk
    """
    start: int
    end: int
    chunk: Chunk
