"""
Execution engine

Runs compiled templates. Output is produced lazily: the program suspends
after every fragment and resumes only when the consumer asks for the next
one. A consumer that stops asking has cancelled the run.
"""

from typing import Any, Iterator, Mapping, Optional

from ..models.template import CompiledTemplate
from .errors import RuntimeFault
from .log import LOG
from .sandbox import Evaluator, PythonSandbox, fragment_make


def run(
    compiled: CompiledTemplate,
    environment: Optional[Mapping[str, Any]] = None,
    evaluator: Optional[Evaluator] = None,
) -> Iterator[str]:
    """
    Start a compiled template, returning its fragments as an iterator

    Names are checked eagerly, so disallowed code fails here rather than on
    the first next().

    Args:
        compiled: Template from compile()
        environment: Names visible to the template, over the capabilities
        evaluator: Evaluator starting the program (by default the one the
                   template was compiled with)

    Returns:
        Iterator yielding one fragment per resume

    Raises:
        DisallowedCodeError: If the template needs names outside the
                             capabilities and the environment
    """
    evaluator = evaluator or compiled.evaluator or PythonSandbox()
    generator = evaluator.program_start(compiled.program, environment)
    LOG(f"Running '{compiled.name}'", level=2)
    return fragments_iterate(compiled.name, generator)


def fragments_iterate(name: str, generator: Iterator[str]) -> Iterator[str]:
    """
    Relay fragments from a program, wrapping its failures

    Fragments already handed out stay handed out when the program fails.
    Values a code directive yields itself go through the same conversion
    as expression results.

    Raises:
        RuntimeFault: If the template code raises
    """
    try:
        for fragment in generator:
            yield fragment_make(fragment)
    except Exception as e:
        LOG(f"Template '{name}' failed: {e}", level=2)
        raise RuntimeFault(name, e) from e


def render(
    compiled: CompiledTemplate,
    environment: Optional[Mapping[str, Any]] = None,
    evaluator: Optional[Evaluator] = None,
) -> str:
    """
    Run a compiled template to completion

    Args:
        compiled: Template from compile()
        environment: Names visible to the template

    Returns:
        All fragments concatenated

    Example:
        >>> render(compile("Hello #{= name }#!"), {"name": "World"})
        'Hello World!'
    """
    return "".join(run(compiled, environment, evaluator))
