"""
Include resolution tests

Tests the include tree, path literals, path resolution and splicing of
included files, including cycle and diamond detection.
"""

import os

import pytest

from hashplate.lib.errors import CyclicIncludeError, IncludeIOError, SyntaxLiteralError
from hashplate.lib.includes import IncludeTree, literal_parse, path_resolve
from hashplate.lib.options import options_initialise
from hashplate.lib.template import compile, get_dependencies, lex, precompile, render
from hashplate.models.chunk import Chunk, ChunkKind


def write(directory, name, text):
    path = directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return str(path)


def read(path):
    with open(path, encoding="utf-8") as f:
        return f.read()


class TestIncludeTree:
    """Cycle detection over parent links"""

    def test_self_inclusion(self):
        """A template including itself is a cycle"""
        tree = IncludeTree("a.hp")
        with pytest.raises(CyclicIncludeError):
            tree.include_register(IncludeTree.ROOT, "a.hp")

    def test_indirect_cycle(self):
        """A includes B includes A is a cycle"""
        tree = IncludeTree("a.hp")
        b = tree.include_register(IncludeTree.ROOT, "b.hp")
        with pytest.raises(CyclicIncludeError) as info:
            tree.include_register(b, "a.hp")
        assert info.value.path == "a.hp"
        assert info.value.chain == ["a.hp", "b.hp"]

    def test_diamond_is_not_a_cycle(self):
        """B and C both including D is fine"""
        tree = IncludeTree("a.hp")
        b = tree.include_register(IncludeTree.ROOT, "b.hp")
        c = tree.include_register(IncludeTree.ROOT, "c.hp")
        tree.include_register(b, "d.hp")
        tree.include_register(c, "d.hp")
        assert tree.dependencies_list() == ["b.hp", "d.hp", "c.hp"]

    def test_sibling_is_not_a_cycle(self):
        """Including a file that is a sibling of an ancestor is fine"""
        tree = IncludeTree("a.hp")
        tree.include_register(IncludeTree.ROOT, "b.hp")
        c = tree.include_register(IncludeTree.ROOT, "c.hp")
        tree.include_register(c, "b.hp")
        assert tree.dependencies_list() == ["b.hp", "c.hp"]

    def test_unnamed_root(self):
        """A string template has no path and no dependencies"""
        tree = IncludeTree()
        assert tree.dependencies_list() == []
        assert tree.ancestry_get(IncludeTree.ROOT) == [None]


class TestLiteralParse:
    """Include path literals are evaluated without capabilities"""

    @pytest.mark.parametrize("literal,expected", [
        ('"a.hp"', "a.hp"),
        (" 'dir/b.hp' ", "dir/b.hp"),
        ('"a" "b.hp"', "ab.hp"),
        ("r'c:\\x'", "c:\\x"),
    ])
    def test_string_literals(self, literal, expected):
        """Quoted literals evaluate to their string"""
        assert literal_parse(literal) == expected

    @pytest.mark.parametrize("literal", [
        "name",
        "42",
        "'unterminated",
        "open('x')",
        "__import__('os')",
        "''.__class__",
    ])
    def test_rejected_literals(self, literal):
        """Names, calls, non-strings and bad syntax are rejected"""
        with pytest.raises(SyntaxLiteralError):
            literal_parse(literal)


class TestPathResolve:
    """Include path resolution"""

    def test_absolute(self):
        """Absolute paths are kept"""
        options = options_initialise({"base_path": "/base"})
        assert path_resolve("/abs/a.hp", options, "dir/main.hp") == os.path.normpath("/abs/a.hp")

    def test_base_path(self):
        """Relative paths join the configured base path"""
        options = options_initialise({"base_path": "/base"})
        assert path_resolve("a.hp", options, "dir/main.hp") == os.path.normpath("/base/a.hp")

    def test_relative_to_current(self):
        """Without base path, relative to the including file"""
        options = options_initialise()
        assert path_resolve("a.hp", options, "dir/main.hp") == os.path.normpath("dir/a.hp")

    def test_relative_without_current(self):
        """A string template includes relative to the working directory"""
        assert path_resolve("./a.hp", options_initialise(), None) == "a.hp"


class TestSplicing:
    """Included chunks replace the include directive"""

    def test_text_coalesced_across_include(self, tmp_path):
        """Text around and inside an include merges into one chunk"""
        main = write(tmp_path, "main.hp", 'A#{include: "part.hp"}#C')
        write(tmp_path, "part.hp", "B")
        assert lex(read(main), path=main) == [Chunk(ChunkKind.TEXT, "ABC")]

    def test_directives_inside_include(self, tmp_path):
        """Directives of the included file keep their position"""
        main = write(tmp_path, "main.hp", "x#{include: 'p.hp'}#y")
        write(tmp_path, "p.hp", "#{ a = 1 }#")
        kinds = [c.kind for c in lex(read(main), path=main)]
        assert kinds == [ChunkKind.TEXT, ChunkKind.CODE, ChunkKind.TEXT]

    def test_nested_relative_includes(self, tmp_path):
        """Includes resolve relative to the file that holds them"""
        main = write(tmp_path, "main.hp", "[#{include: 'sub/inner.hp'}#]")
        write(tmp_path, "sub/inner.hp", "<#{include: 'leaf.hp'}#>")
        write(tmp_path, "sub/leaf.hp", "leaf")
        assert precompile(read(main), path=main) == "[<leaf>]"

    def test_base_path_option(self, tmp_path):
        """base_path is used for every include, however deep"""
        write(tmp_path, "outer.hp", "o#{include: 'inner.hp'}#")
        write(tmp_path, "inner.hp", "i")
        text = precompile("#{include: 'outer.hp'}#", {"base_path": str(tmp_path)})
        assert text == "oi"

    def test_missing_file(self, tmp_path):
        """A missing include reports its path"""
        with pytest.raises(IncludeIOError) as info:
            lex("#{include: 'nope.hp'}#", {"base_path": str(tmp_path)})
        assert info.value.path == os.path.join(str(tmp_path), "nope.hp")

    def test_invalid_literal(self):
        """An unquoted include path is a literal error"""
        with pytest.raises(SyntaxLiteralError):
            lex("#{include: nope.hp}#")


class TestCyclesAndDiamonds:
    """Cycle detection through real files"""

    def test_file_cycle(self, tmp_path):
        """A includes B includes A fails"""
        a = write(tmp_path, "a.hp", "a#{include: 'b.hp'}#")
        write(tmp_path, "b.hp", "b#{include: 'a.hp'}#")
        with pytest.raises(CyclicIncludeError):
            compile(read(a), path=a)

    def test_file_cycle_from_string(self, tmp_path):
        """The cycle is caught even when the top level is a string"""
        write(tmp_path, "a.hp", "a#{include: 'b.hp'}#")
        write(tmp_path, "b.hp", "b#{include: './a.hp'}#")
        with pytest.raises(CyclicIncludeError):
            lex("#{include: 'a.hp'}#", {"base_path": str(tmp_path)})

    def test_self_inclusion_of_file(self, tmp_path):
        """A file including itself fails"""
        a = write(tmp_path, "a.hp", "#{include: 'a.hp'}#")
        with pytest.raises(CyclicIncludeError):
            lex(read(a), path=a)

    def test_diamond(self, tmp_path):
        """D is included twice and listed once"""
        a = write(tmp_path, "a.hp", "#{include: 'b.hp'}#|#{include: 'c.hp'}#")
        b = write(tmp_path, "b.hp", "b#{include: 'd.hp'}#")
        c = write(tmp_path, "c.hp", "c#{include: 'd.hp'}#")
        d = write(tmp_path, "d.hp", "D")
        source = read(a)

        assert render(compile(source, path=a)) == "bD|cD"
        assert get_dependencies(source, path=a) == [b, d, c]
