"""
End-to-end rendering tests

Tests the full pipeline: template text → lex → include → trim → compile →
run/render, with lazy execution, runtime faults and precompilation.
"""

import pytest

from hashplate import compile, compile_file, precompile, render, run
from hashplate.lib.errors import IncludeIOError, RuntimeFault


class TestRender:
    """Complete renders"""

    def test_hello_world(self):
        """Expression substitution"""
        compiled = compile("Hello #{= name }#!", "greeting")
        assert render(compiled, {"name": "World"}) == "Hello World!"

    def test_plain_text(self):
        """Text without directives renders as itself"""
        assert render(compile("just text\n")) == "just text\n"

    def test_empty_template(self):
        """An empty template renders to nothing"""
        assert render(compile("")) == ""

    def test_list_page(self):
        """A realistic page with a loop and a condition"""
        template = (
            "<h1>#{= title }#</h1>\n"
            "#{ if items: }#\n"
            "<ul>\n"
            "  #{ for item in items: }#\n"
            "  <li>#{= item.upper() }#</li>\n"
            "  #{ end }#\n"
            "</ul>\n"
            "#{ else: }#\n"
            "<p>empty</p>\n"
            "#{ end }#\n"
        )
        compiled = compile(template, "list")
        assert render(compiled, {"title": "T", "items": ["a", "b"]}) == (
            "<h1>T</h1>\n<ul>\n  <li>A</li>\n  <li>B</li>\n</ul>\n"
        )
        assert render(compiled, {"title": "T", "items": []}) == "<h1>T</h1>\n<p>empty</p>\n"

    def test_compile_file(self, tmp_path):
        """Files are compiled under their own name, includes relative to them"""
        (tmp_path / "parts").mkdir()
        (tmp_path / "parts" / "page.hp").write_text(
            "[#{include: 'head.hp'}#]", encoding="utf-8"
        )
        (tmp_path / "parts" / "head.hp").write_text("#{= 1 + 1 }#", encoding="utf-8")
        filename = str(tmp_path / "parts" / "page.hp")

        compiled = compile_file(filename)
        assert compiled.name == filename
        assert render(compiled) == "[2]"

    def test_compile_missing_file(self, tmp_path):
        """A missing template file is an include error"""
        with pytest.raises(IncludeIOError):
            compile_file(str(tmp_path / "absent.hp"))


class TestLazyRun:
    """run() produces fragments on demand"""

    def test_fragments_one_at_a_time(self):
        """Each next() resumes the program up to the next fragment"""
        fragments = run(compile("a#{= x }#b"), {"x": 1})
        assert next(fragments) == "a"
        assert next(fragments) == "1"
        assert next(fragments) == "b"
        with pytest.raises(StopIteration):
            next(fragments)

    def test_side_effects_follow_consumption(self):
        """Code after a fragment only runs once that fragment is consumed"""
        calls = []
        compiled = compile("#{ calls.append(1) }#a#{ calls.append(2) }#b")
        fragments = run(compiled, {"calls": calls})
        assert calls == []
        assert next(fragments) == "a"
        assert calls == [1]
        assert next(fragments) == "b"
        assert calls == [1, 2]

    def test_abandoned_run(self):
        """A consumer may stop early; nothing after that point runs"""
        calls = []
        compiled = compile("a#{ calls.append(1) }#b")
        fragments = run(compiled, {"calls": calls})
        next(fragments)
        fragments.close()
        assert calls == []

    def test_interleaved_runs(self):
        """Runs of one template are isolated from each other"""
        compiled = compile("#{ for i in range(n): }##{= label }##{= i }#,#{ end }#")
        first = run(compiled, {"n": 2, "label": "x"})
        second = run(compiled, {"n": 1, "label": "y"})
        assert next(first) == "x"
        assert next(second) == "y"
        assert next(first) == "0"
        assert "".join(second) == "0,"
        assert "".join(first) == ",x1,"

    def test_run_state_is_local(self):
        """Assignments of one run are not seen by the next"""
        compiled = compile("#{ count = len(seen) }##{= count }#")
        assert render(compiled, {"seen": [1]}) == "1"
        assert render(compiled, {"seen": []}) == "0"


class TestRuntimeFault:
    """Errors raised by template code"""

    def test_fault_after_partial_output(self):
        """Fragments before the failure are delivered, then the fault"""
        fragments = run(compile("before#{= 1 // zero }#after", "faulty"), {"zero": 0})
        assert next(fragments) == "before"
        with pytest.raises(RuntimeFault) as info:
            next(fragments)
        assert info.value.template_name == "faulty"
        assert isinstance(info.value.__cause__, ZeroDivisionError)
        assert info.value.error is info.value.__cause__

    def test_template_reusable_after_fault(self):
        """A failed run leaves the compiled template usable"""
        compiled = compile("#{= 10 // d }#")
        with pytest.raises(RuntimeFault):
            render(compiled, {"d": 0})
        assert render(compiled, {"d": 5}) == "2"

    def test_fault_in_code_directive(self):
        """Exceptions from statements are wrapped too"""
        compiled = compile("#{ raise ValueError('bad') }#")
        with pytest.raises(RuntimeFault) as info:
            render(compiled)
        assert "bad" in str(info.value)


class TestPrecompile:
    """Writing templates back with includes expanded"""

    def test_roundtrip_without_includes(self):
        """A template without includes comes back verbatim"""
        template = "A\n  #{- for i in x: +}#\n#{+= i -}#\n#{ end }#"
        assert precompile(template) == template

    def test_independent_of_trim_options(self):
        """No trimming is applied when precompiling"""
        template = "A\n#{ x = 1 }#\nB"
        assert precompile(template, {"trim_left": "all", "trim_right": "all"}) == template

    def test_custom_delimiters(self):
        """Custom delimiters are written back as they were"""
        template = "a{%= b -%}c{% d = 1 %}"
        assert precompile(template, {"start_tag": "{%", "end_tag": "%}"}) == template

    def test_includes_spliced(self, tmp_path):
        """Include directives are replaced by the included text"""
        (tmp_path / "part.hp").write_text("P#{= p }#", encoding="utf-8")
        text = precompile("<#{include: 'part.hp'}#>", {"base_path": str(tmp_path)})
        assert text == "<P#{= p }#>"

    def test_precompiled_renders_the_same(self, tmp_path):
        """Compiling the precompiled text gives the same output"""
        (tmp_path / "part.hp").write_text("#{ for i in range(2): }#-#{= i }##{ end }#", encoding="utf-8")
        template = "x#{include: 'part.hp'}#y"
        options = {"base_path": str(tmp_path)}
        expected = render(compile(template, options=options))
        assert render(compile(precompile(template, options))) == expected == "x-0-1y"
