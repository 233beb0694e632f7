"""
hashplate - Template compiler with sandboxed Python directives

Compiles text templates with #{ ... }# directives into reusable programs
that render lazily against an environment.
"""

__version__ = "1.0.0"

from .lib import (
    lex,
    get_dependencies,
    precompile,
    compile,
    compile_file,
    run,
    render,
    TemplateError,
    SyntaxLiteralError,
    CyclicIncludeError,
    IncludeIOError,
    TemplateSyntaxError,
    DisallowedCodeError,
    RuntimeFault,
    LOG,
    state_connectToLogger,
)
from .models import Chunk, ChunkKind, TrimOverride, CompiledTemplate, TemplateOptions

__all__ = [
    "lex",
    "get_dependencies",
    "precompile",
    "compile",
    "compile_file",
    "run",
    "render",
    "TemplateError",
    "SyntaxLiteralError",
    "CyclicIncludeError",
    "IncludeIOError",
    "TemplateSyntaxError",
    "DisallowedCodeError",
    "RuntimeFault",
    "Chunk",
    "ChunkKind",
    "TrimOverride",
    "CompiledTemplate",
    "TemplateOptions",
    "LOG",
    "state_connectToLogger",
    "__version__",
]
