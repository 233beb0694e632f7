"""
Chunk lexer for #{ ... }# templates

Splits raw template text into a flat sequence of typed chunks.

Directives are flat delimited spans: the first end tag after a start tag
always closes the directive, and delimiters inside a directive body cannot
be escaped. Each directive is classified by its body:

    #{include: "path" }#    -> include
    #{= expression }#       -> expression
    #{ statements }#        -> code

A '+' or '-' right inside either delimiter is a trim override for that
side: '-' forces trimming of the neighbouring text, '+' forces keeping it.

Example:
    >>> lexer = ChunkLexer("Hello #{= name }#!")
    >>> [(c.kind.value, c.content) for c in lexer.chunks_scan()]
    [('text', 'Hello '), ('expression', ' name '), ('text', '!')]
"""

import re
from typing import Iterator, Optional, Pattern

from ..models.chunk import Chunk, ChunkKind, DirectiveSpan, TrimOverride
from ..models.template import TemplateOptions
from .options import options_initialise
from .log import LOG


INCLUDE_PATTERN = re.compile(r"include:(.*)", re.DOTALL)
EXPRESSION_PATTERN = re.compile(r"=(.*)", re.DOTALL)


def directive_pattern(start_tag: str, end_tag: str) -> Pattern[str]:
    """
    Build the pattern matching one directive span

    Groups: left marker, body, right marker. The body is non-greedy so the
    first end tag closes the directive, and the right marker is still
    captured when it sits right before the end tag.
    """
    return re.compile(
        re.escape(start_tag) + r"([+-]?)(.*?)([+-]?)" + re.escape(end_tag),
        re.DOTALL,
    )


class ChunkLexer:
    """
    Scanner turning template text into chunks

    Includes are not expanded here; the include resolver consumes the
    include chunks this lexer produces.
    """

    def __init__(self, template: str, options: Optional[TemplateOptions] = None):
        """
        Initialize the lexer

        Args:
            template: Raw template text
            options: Delimiters come from options.start_tag/end_tag
        """
        self.template = template
        self.options = options or options_initialise()
        self.pattern = directive_pattern(self.options.start_tag, self.options.end_tag)

    def chunks_scan(self) -> Iterator[Chunk]:
        """
        Lazily yield the chunks of the template, left to right

        Every call scans again from the beginning; no scan state survives
        between calls.

        Yields:
            Chunk objects. No empty text chunk is ever produced.
        """
        position = 0
        length = len(self.template)

        while position < length:
            span = self.directive_find(position)

            if span is None:
                yield Chunk(ChunkKind.TEXT, self.template[position:])
                return

            if span.start > position:
                yield Chunk(ChunkKind.TEXT, self.template[position:span.start])

            LOG(f"{span.chunk.kind.value} directive at {span.start}-{span.end}", level=3)
            yield span.chunk
            position = span.end

    def directive_find(self, position: int) -> Optional[DirectiveSpan]:
        """
        Find the next directive at or after position

        Args:
            position: Index to start searching from

        Returns:
            DirectiveSpan of the next directive, or None if there is none
        """
        match = self.pattern.search(self.template, position)
        if match is None:
            return None

        left, body, right = match.groups()
        chunk = self.directive_classify(body)
        chunk = Chunk(
            kind=chunk.kind,
            content=chunk.content,
            trim_left=TrimOverride.marker_parse(left),
            trim_right=TrimOverride.marker_parse(right),
        )
        return DirectiveSpan(start=match.start(), end=match.end(), chunk=chunk)

    @staticmethod
    def directive_classify(body: str) -> Chunk:
        """
        Classify a directive body

        The include and expression prefixes must follow the start tag (and
        its marker) directly; "#{ include: ... }#" is a code directive.

        Args:
            body: Directive body with delimiters and markers removed

        Returns:
            Chunk of kind include, expression or code
        """
        include = INCLUDE_PATTERN.match(body)
        if include:
            return Chunk(ChunkKind.INCLUDE, include.group(1))

        expression = EXPRESSION_PATTERN.match(body)
        if expression:
            return Chunk(ChunkKind.EXPRESSION, expression.group(1))

        return Chunk(ChunkKind.CODE, body)
