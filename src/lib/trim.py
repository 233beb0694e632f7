"""
Whitespace trimming around directives

Decides, for every text chunk, whether to drop the newline a preceding
directive left behind ("trim right" of that directive) and whether to drop
the indentation before a following directive ("trim left" of that
directive), then applies the decision.

Decision precedence per side, highest first:
    1. The override marker on the neighbouring directive ('-' / '+')
    2. The global policy: all, none, code, expression

Example (trim_left = trim_right = "code"):
    "A\\n#{ x = 1 }#\\nB"  renders as  "A\\nB"
"""

import re
from typing import List, Optional, Sequence

from ..models.chunk import Chunk, ChunkKind, TrimOverride
from ..models.template import TemplateOptions
from .options import options_initialise
from .log import LOG


# Everything up to the last newline, when only whitespace follows it
THROUGH_LAST_NEWLINE = re.compile(r"(.*\n)\s*\Z", re.DOTALL)
# Leading newline, then everything up to the last newline before trailing whitespace
BETWEEN_NEWLINES = re.compile(r"\n(.*\n)\s*\Z", re.DOTALL)
NEWLINE_THEN_BLANK = re.compile(r"\n\s*\Z")
BLANK = re.compile(r"\s*\Z")


def indentation_strip(text: str) -> str:
    """Drop whitespace after the last newline, keeping the text otherwise"""
    match = THROUGH_LAST_NEWLINE.match(text)
    return match.group(1) if match else text


def newline_strip(text: str) -> str:
    """Drop one leading newline"""
    return text[1:] if text.startswith("\n") else text


class TrimEngine:
    """
    Applies the trimming policy to a lexed chunk sequence
    """

    def __init__(self, options: Optional[TemplateOptions] = None):
        self.options = options or options_initialise()

    @staticmethod
    def side_decide(neighbour: Optional[Chunk], override: TrimOverride, policy: str) -> bool:
        """
        Decide one side of the trimming for a text chunk

        Args:
            neighbour: Directive on that side (None at the template edge)
            override: That directive's marker for the side facing the text
            policy: Global policy for the side

        Returns:
            True if the side should be trimmed
        """
        if neighbour is not None:
            if override is TrimOverride.FORCE_TRIM:
                return True
            if override is TrimOverride.FORCE_KEEP:
                return False

        if policy == "all":
            return True
        if policy == "code":
            return neighbour is not None and neighbour.kind is ChunkKind.CODE
        if policy == "expression":
            return neighbour is not None and neighbour.kind is ChunkKind.EXPRESSION
        return False

    @staticmethod
    def text_trim(text: str, trim_right: bool, trim_left: bool, first: bool) -> str:
        """
        Apply a trimming decision to the content of one text chunk

        Args:
            text: Content of the text chunk
            trim_right: Drop the newline left by the previous directive
            trim_left: Drop the indentation before the next directive
            first: The chunk opens the template

        Returns:
            Trimmed text (possibly empty)
        """
        if trim_right and trim_left:
            if first:
                if "\n" in text:
                    return indentation_strip(text)
                if BLANK.match(text):
                    return ""
                return text
            if text.startswith("\n"):
                if text.count("\n") >= 2:
                    match = BETWEEN_NEWLINES.match(text)
                    return match.group(1) if match else text[1:]
                if NEWLINE_THEN_BLANK.match(text):
                    return ""
                return text[1:]
            return indentation_strip(text)

        if trim_left:
            if first and BLANK.match(text):
                return ""
            return indentation_strip(text)

        if trim_right:
            return newline_strip(text)

        return text

    def chunks_trim(self, chunks: Sequence[Chunk]) -> List[Chunk]:
        """
        Trim every text chunk of a sequence

        Directive chunks pass through unchanged; text chunks that end up
        empty are dropped. The input chunks are not modified.

        Args:
            chunks: Lexed chunks with includes already expanded

        Returns:
            New list of chunks
        """
        trimmed: List[Chunk] = []

        for i, chunk in enumerate(chunks):
            if not chunk.is_text:
                trimmed.append(chunk)
                continue

            previous = chunks[i - 1] if i > 0 else None
            following = chunks[i + 1] if i + 1 < len(chunks) else None

            trim_right = self.side_decide(
                previous,
                previous.trim_right if previous else TrimOverride.UNSET,
                self.options.trim_right,
            )
            trim_left = self.side_decide(
                following,
                following.trim_left if following else TrimOverride.UNSET,
                self.options.trim_left,
            )

            text = self.text_trim(chunk.content, trim_right, trim_left, first=(i == 0))
            if text != chunk.content:
                LOG(f"Trimmed text chunk {i}: {chunk.content!r} -> {text!r}", level=3)
            if text:
                trimmed.append(chunk.content_replace(text))

        return trimmed
