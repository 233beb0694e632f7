"""
Exceptions raised by the hashplate pipeline

Every condition here is fatal to the call that raised it: no partially
compiled template is ever returned.
"""

from typing import Optional, Sequence


class TemplateError(Exception):
    """Base class for all hashplate errors"""
    pass


class SyntaxLiteralError(TemplateError):
    """Raised when an include path is not a valid string literal"""

    def __init__(self, literal: str, reason: str = "not a string literal"):
        self.literal = literal
        super().__init__(f"Invalid include path {literal.strip()!r}: {reason}")


class CyclicIncludeError(TemplateError):
    """
    Raised when an include ancestry revisits a path

    Attributes:
        path: The path that would have been included again
        chain: Include ancestry from the top-level template down to the
               offending include
    """

    def __init__(self, path: str, chain: Sequence[Optional[str]] = ()):
        self.path = path
        self.chain = [p for p in chain if p is not None]
        trail = " -> ".join(self.chain + [path])
        super().__init__(f"Cyclic inclusion detected: {trail}")


class IncludeIOError(TemplateError):
    """Raised when an included file is missing or unreadable"""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Cannot read included template '{path}': {reason}")


class TemplateSyntaxError(TemplateError):
    """Raised when embedded code does not form a valid program"""
    pass


class DisallowedCodeError(TemplateError):
    """
    Raised when embedded code reaches outside the capability whitelist

    Also raised for precompiled code where only source text is accepted.
    Always raised before any template code has run.
    """
    pass


class RuntimeFault(TemplateError):
    """
    Raised when template code fails while being run

    The original exception is chained as __cause__. The compiled template
    is unaffected and can be run again.
    """

    def __init__(self, template_name: str, error: BaseException):
        self.template_name = template_name
        self.error = error
        super().__init__(
            f"Error while rendering '{template_name}': "
            f"{type(error).__name__}: {error}"
        )
