"""
Custom Pygments lexer for hashplate syntax highlighting

Highlights templates written with the default #{ ... }# delimiters, e.g.
when showing precompiled templates on a terminal.

Token types:
- Punctuation: Directive delimiters (#{ and }#)
- Operator: Trim markers (+ / -) and the '=' of expressions
- Keyword.Namespace: The include: prefix
- String: Include path literals
- Python tokens: Bodies of code and expression directives
- Text: Literal template text
"""

import re

from pygments import highlight
from pygments.formatters import TerminalFormatter
from pygments.lexer import RegexLexer, bygroups, using
from pygments.lexers.python import PythonLexer
from pygments.token import Keyword, Operator, Punctuation, String, Text


class HashplateLexer(RegexLexer):
    """
    Lexer for hashplate templates

    Example:
        Hello #{= name }#!

    Tokens:
        Hello  → Text
        #{     → Punctuation
        =      → Operator
        name   → Name (via PythonLexer)
        }#     → Punctuation
        !      → Text
    """

    name = 'Hashplate'
    aliases = ['hashplate', 'hp']
    filenames = ['*.hp']

    flags = re.DOTALL

    tokens = {
        'root': [
            # Include directives: the path is a string literal
            (r'(#\{)([+-]?)(include:)(.*?)([+-]?)(\}#)',
             bygroups(Punctuation, Operator, Keyword.Namespace, String, Operator, Punctuation)),

            # Expression directives
            (r'(#\{)([+-]?)(=)(.*?)([+-]?)(\}#)',
             bygroups(Punctuation, Operator, Operator, using(PythonLexer), Operator, Punctuation)),

            # Code directives
            (r'(#\{)([+-]?)(.*?)([+-]?)(\}#)',
             bygroups(Punctuation, Operator, using(PythonLexer), Operator, Punctuation)),

            # Everything else is literal text
            (r'[^#]+', Text),
            (r'#', Text),
        ],
    }


def get_lexer() -> HashplateLexer:
    """
    Get the HashplateLexer instance

    Returns:
        HashplateLexer instance ready for use with Pygments
    """
    return HashplateLexer()


def source_highlight(source: str) -> str:
    """
    Highlight template text for a terminal

    Args:
        source: Template text using the default delimiters

    Returns:
        Text with ANSI color sequences
    """
    return highlight(source, get_lexer(), TerminalFormatter())
