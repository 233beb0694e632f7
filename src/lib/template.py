"""
Public template operations

Ties the stages together: lex (with includes expanded), trim, compile,
run/render. Each stage consumes the complete output of the previous one.

Example:
    >>> compiled = compile("Hello #{= name }#!", "greeting")
    >>> render(compiled, {"name": "World"})
    'Hello World!'
"""

from typing import Any, List, Mapping, Optional, Tuple, Union

from ..models.chunk import Chunk, ChunkKind
from ..models.template import CompiledTemplate, TemplateOptions
from .compiler import Compiler
from .errors import DisallowedCodeError
from .includes import IncludeResolver, IncludeTree, template_read
from .lexer import ChunkLexer
from .log import LOG
from .options import options_initialise
from .sandbox import Evaluator
from .trim import TrimEngine
from .engine import run, render


OptionsLike = Union[None, Mapping[str, Any], TemplateOptions]


def template_check(template: Any) -> str:
    """Templates are source text; bytes are treated as precompiled code"""
    if isinstance(template, (bytes, bytearray)):
        raise DisallowedCodeError("precompiled code is not permitted, only template text")
    if not isinstance(template, str):
        raise TypeError(f"template must be str, got {type(template).__name__}")
    return template


def lex_withTree(
    template: str, options: TemplateOptions, path: Optional[str]
) -> Tuple[List[Chunk], IncludeTree]:
    """Lex a template, expanding includes, and return the include tree too"""
    tree = IncludeTree(root_path=path)
    lexer = ChunkLexer(template_check(template), options)
    chunks = IncludeResolver(options, tree).chunks_expand(lexer.chunks_scan(), current_path=path)
    LOG(f"Lexed {len(chunks)} chunks, {len(tree.nodes) - 1} includes", level=2)
    return chunks, tree


def lex(template: str, options: OptionsLike = None, path: Optional[str] = None) -> List[Chunk]:
    """
    Split a template into chunks, with includes expanded

    Args:
        template: Template text
        options: Partial options merged over the defaults
        path: Path of the template, the base for relative includes

    Returns:
        List of text/code/expression chunks, no two text chunks adjacent

    Raises:
        SyntaxLiteralError, CyclicIncludeError, IncludeIOError
    """
    chunks, _ = lex_withTree(template, options_initialise(options), path)
    return chunks


def get_dependencies(
    template: str, options: OptionsLike = None, path: Optional[str] = None
) -> List[str]:
    """
    List the files a template includes, directly or not

    Returns:
        Distinct paths in first-visit order
    """
    _, tree = lex_withTree(template, options_initialise(options), path)
    return tree.dependencies_list()


def chunk_serialise(chunk: Chunk, options: TemplateOptions) -> str:
    """Write a chunk back in directive syntax, markers included"""
    if chunk.kind is ChunkKind.TEXT:
        return chunk.content

    body = "=" + chunk.content if chunk.kind is ChunkKind.EXPRESSION else chunk.content
    return (
        options.start_tag
        + chunk.trim_left.value
        + body
        + chunk.trim_right.value
        + options.end_tag
    )


def precompile(template: str, options: OptionsLike = None, path: Optional[str] = None) -> str:
    """
    Expand includes and write the template back as text

    Text, code and expression chunks round-trip verbatim, together with
    their trim markers. No trimming is applied at this stage.

    Returns:
        Template text without include directives
    """
    options = options_initialise(options)
    chunks, _ = lex_withTree(template, options, path)
    return "".join(chunk_serialise(chunk, options) for chunk in chunks)


def compile(
    template: str,
    name: Optional[str] = None,
    options: OptionsLike = None,
    path: Optional[str] = None,
    evaluator: Optional[Evaluator] = None,
) -> CompiledTemplate:
    """
    Compile a template

    Args:
        template: Template text
        name: Name of the compiled template (options.template_name when None)
        options: Partial options merged over the defaults
        path: Path of the template, the base for relative includes
        evaluator: Evaluator loading the program (PythonSandbox by default)

    Returns:
        Immutable CompiledTemplate

    Raises:
        TemplateError subclasses; no partial result is ever returned
    """
    options = options_initialise(options)
    if name is None:
        name = options.template_name

    chunks, _ = lex_withTree(template, options, path)
    chunks = TrimEngine(options).chunks_trim(chunks)
    return Compiler(chunks, name=name, evaluator=evaluator).compile()


def compile_file(
    filename: str, options: OptionsLike = None, evaluator: Optional[Evaluator] = None
) -> CompiledTemplate:
    """
    Read and compile a template file

    The file name is the template name and the base for relative includes.

    Raises:
        IncludeIOError: If the file cannot be read
    """
    return compile(template_read(filename), filename, options, path=filename, evaluator=evaluator)


__all__ = [
    "lex",
    "get_dependencies",
    "precompile",
    "compile",
    "compile_file",
    "run",
    "render",
]
