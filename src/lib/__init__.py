"""
hashplate - Template compiler with sandboxed Python directives

Compiles text templates with #{ ... }# directives into reusable programs.
"""

__version__ = "1.0.0"

from .template import lex, get_dependencies, precompile, compile, compile_file, run, render
from .lexer import ChunkLexer
from .includes import IncludeResolver, IncludeTree
from .trim import TrimEngine
from .compiler import Compiler
from .sandbox import PythonSandbox, Evaluator, DEFAULT_CAPABILITIES
from .options import options_merge, options_initialise, DEFAULT_OPTIONS
from .errors import (
    TemplateError,
    SyntaxLiteralError,
    CyclicIncludeError,
    IncludeIOError,
    TemplateSyntaxError,
    DisallowedCodeError,
    RuntimeFault,
)
from .log import LOG, state_connectToLogger

__all__ = [
    "lex",
    "get_dependencies",
    "precompile",
    "compile",
    "compile_file",
    "run",
    "render",
    "ChunkLexer",
    "IncludeResolver",
    "IncludeTree",
    "TrimEngine",
    "Compiler",
    "PythonSandbox",
    "Evaluator",
    "DEFAULT_CAPABILITIES",
    "options_merge",
    "options_initialise",
    "DEFAULT_OPTIONS",
    "TemplateError",
    "SyntaxLiteralError",
    "CyclicIncludeError",
    "IncludeIOError",
    "TemplateSyntaxError",
    "DisallowedCodeError",
    "RuntimeFault",
    "LOG",
    "state_connectToLogger",
    "__version__",
]
