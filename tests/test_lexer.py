"""
Chunk lexer tests

Tests directive classification, trim markers, delimiters and text gaps.
"""

import pytest

from hashplate.lib.lexer import ChunkLexer
from hashplate.lib.options import options_initialise
from hashplate.lib.template import lex
from hashplate.models.chunk import Chunk, ChunkKind, TrimOverride


def scan(template, **options):
    return list(ChunkLexer(template, options_initialise(options)).chunks_scan())


class TestPlainText:
    """Templates without directives"""

    def test_empty_template(self):
        """Empty template lexes to no chunks"""
        assert scan("") == []
        assert lex("") == []

    def test_text_only(self):
        """Text without directives is a single text chunk"""
        source = "Just some text\nover two lines\n"
        assert scan(source) == [Chunk(ChunkKind.TEXT, source)]

    def test_lone_delimiters_are_text(self):
        """Unterminated start tag and stray end tag stay literal"""
        source = "a }# b #{ c"
        assert lex(source) == [Chunk(ChunkKind.TEXT, source)]


class TestClassification:
    """Directive kinds"""

    def test_expression(self):
        """'=' right after the start tag makes an expression"""
        chunks = scan("Hello #{= name }#!")
        assert chunks == [
            Chunk(ChunkKind.TEXT, "Hello "),
            Chunk(ChunkKind.EXPRESSION, " name "),
            Chunk(ChunkKind.TEXT, "!"),
        ]

    def test_code(self):
        """Any other body is code, kept whole"""
        chunks = scan("#{ x = 1 }#")
        assert chunks == [Chunk(ChunkKind.CODE, " x = 1 ")]

    def test_include(self):
        """include: right after the start tag captures the literal"""
        chunks = scan('#{include: "part.hp"}#')
        assert chunks == [Chunk(ChunkKind.INCLUDE, ' "part.hp"')]

    def test_include_needs_prefix_at_start(self):
        """Whitespace before include: makes it a code directive"""
        chunks = scan("#{ include: 'x' }#")
        assert chunks[0].kind is ChunkKind.CODE

    def test_expression_needs_prefix_at_start(self):
        """Whitespace before '=' makes it a code directive"""
        chunks = scan("#{ = x }#")
        assert chunks[0].kind is ChunkKind.CODE
        assert chunks[0].content == " = x "

    def test_multiline_body(self):
        """Directive bodies may span lines"""
        chunks = scan("#{\nfor i in items:\n}#")
        assert chunks == [Chunk(ChunkKind.CODE, "\nfor i in items:\n")]

    def test_first_end_tag_closes(self):
        """Directives do not nest: the first end tag closes"""
        chunks = scan("#{ a }# b }#")
        assert chunks == [
            Chunk(ChunkKind.CODE, " a "),
            Chunk(ChunkKind.TEXT, " b }#"),
        ]

    def test_adjacent_directives(self):
        """No empty text chunk between adjacent directives"""
        chunks = scan("#{ a = 1 }##{= a }#")
        assert [c.kind for c in chunks] == [ChunkKind.CODE, ChunkKind.EXPRESSION]


class TestTrimMarkers:
    """'+' and '-' right inside the delimiters"""

    def test_no_markers(self):
        """Without markers both sides are unset"""
        chunk = scan("#{ x }#")[0]
        assert chunk.trim_left is TrimOverride.UNSET
        assert chunk.trim_right is TrimOverride.UNSET

    def test_trim_and_keep(self):
        """'-' forces trimming, '+' forces keeping"""
        chunk = scan("#{- x = 1 +}#")[0]
        assert chunk.content == " x = 1 "
        assert chunk.trim_left is TrimOverride.FORCE_TRIM
        assert chunk.trim_right is TrimOverride.FORCE_KEEP

    def test_markers_on_expression(self):
        """Markers surround the '=' of an expression"""
        chunk = scan("#{+= value -}#")[0]
        assert chunk.kind is ChunkKind.EXPRESSION
        assert chunk.content == " value "
        assert chunk.trim_left is TrimOverride.FORCE_KEEP
        assert chunk.trim_right is TrimOverride.FORCE_TRIM

    def test_markers_on_include(self):
        """Markers are stripped from include literals too"""
        chunk = scan("#{-include: 'a.hp'-}#")[0]
        assert chunk.kind is ChunkKind.INCLUDE
        assert chunk.content == " 'a.hp'"
        assert chunk.trim_left is TrimOverride.FORCE_TRIM


class TestDelimiters:
    """Configurable delimiters"""

    def test_custom_tags(self):
        """Delimiters with regex metacharacters are matched literally"""
        chunks = scan("a{%= b %}c", start_tag="{%", end_tag="%}")
        assert chunks == [
            Chunk(ChunkKind.TEXT, "a"),
            Chunk(ChunkKind.EXPRESSION, " b "),
            Chunk(ChunkKind.TEXT, "c"),
        ]

    def test_default_tags_are_text_with_custom_tags(self):
        """Default delimiters are plain text once others are configured"""
        chunks = scan("#{= x }#", start_tag="<?", end_tag="?>")
        assert chunks == [Chunk(ChunkKind.TEXT, "#{= x }#")]


class TestScanning:
    """Lazy, restartable scanning"""

    def test_scan_is_lazy(self):
        """chunks_scan hands out chunks one at a time"""
        scanner = ChunkLexer("a#{ b }#c").chunks_scan()
        assert next(scanner) == Chunk(ChunkKind.TEXT, "a")
        assert next(scanner).kind is ChunkKind.CODE

    def test_scan_restarts(self):
        """Every call scans from the beginning"""
        lexer = ChunkLexer("a#{= b }#c")
        assert list(lexer.chunks_scan()) == list(lexer.chunks_scan())

    def test_no_adjacent_text_chunks(self):
        """Lexed output never holds two adjacent text chunks"""
        chunks = lex("a#{ b = 1 }#c#{= b }#d")
        for left, right in zip(chunks, chunks[1:]):
            assert not (left.is_text and right.is_text)


@pytest.mark.parametrize("source", ["x", "\n", "   \n\t", "#{", "}#", "{ } # #"])
def test_directive_free_templates_lex_to_one_chunk(source):
    """Text without a complete directive is returned whole"""
    assert lex(source) == [Chunk(ChunkKind.TEXT, source)]
