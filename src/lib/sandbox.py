"""
Restricted evaluator for embedded Python

The compiler and the execution engine only talk to an Evaluator: something
that can load a procedure into a runnable program, start that program
against an environment, and evaluate a standalone expression. PythonSandbox
is the implementation used by default.

PythonSandbox lowers a procedure into the source of one generator function:

    Hello #{= name }#!          def __template__():
                                    yield 'Hello '
                                    yield __fragment__(name)
                                    yield '!'

Code directives are copied in as statements. A code directive whose last
line ends with ':' opens a block that stays open over the following chunks
until a code directive holding the line 'end':

    #{ for item in items: }#    for item in items:
    - #{= item }#                   yield '- '
    #{ end }#                       yield __fragment__(item)

'else:', 'elif ...:', 'except ...:' and 'finally:' close the current block
and open the next one. Blocks left open at the end of the template are
closed implicitly, and an empty block gets a 'pass'.

Names the template assigns at its own level are declared global in the
generated function, so code directives read and rebind environment names
in the namespace of the run.

Programs run with emptied builtins. The only names they can reach are the
capabilities plus the caller's environment; anything else is rejected
before the program runs, as are imports, global/nonlocal statements,
dunder names and private or frame-internal attributes.
"""

import io
import ast
import math
import time
import builtins
import tokenize
from dataclasses import dataclass
from types import CodeType, MappingProxyType, SimpleNamespace
from typing import Any, Dict, FrozenSet, Iterator, List, Mapping, Optional, Protocol, Set, Tuple

from ..models.template import Procedure, StepAction
from .errors import DisallowedCodeError, TemplateSyntaxError
from .options import options_merge
from .log import LOG


ENTRY_POINT = "__template__"
FRAGMENT_FUNCTION = "__fragment__"
RESERVED_NAMES = frozenset({ENTRY_POINT, FRAGMENT_FUNCTION})

INDENT = "    "
BLOCK_END = "end"
BLOCK_CONTINUATIONS = ("else", "elif", "except", "finally")

# Attributes of frames, generators, coroutines and tracebacks lead back to
# the real globals and builtins
HIDDEN_ATTRIBUTE_PREFIXES = ("_", "gi_", "cr_", "ag_", "f_", "tb_")

# Nodes opening a scope of their own inside the template function
SCOPE_NODES = (
    ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef, ast.Lambda,
    ast.ListComp, ast.SetComp, ast.DictComp, ast.GeneratorExp,
)


def fragment_make(value: Any) -> str:
    """Turn the value of an expression into an output fragment"""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


SAFE_BUILTINS = (
    "abs", "all", "any", "bool", "chr", "dict", "divmod", "enumerate",
    "filter", "float", "format", "frozenset", "int", "isinstance", "iter",
    "len", "list", "map", "max", "min", "next", "ord", "range", "repr",
    "reversed", "round", "set", "sorted", "str", "sum", "tuple", "zip",
    "Exception", "ValueError", "TypeError", "KeyError", "IndexError",
)

DEFAULT_CAPABILITIES: Mapping[str, Any] = MappingProxyType({
    **{name: getattr(builtins, name) for name in SAFE_BUILTINS},
    "math": math,
    "time": SimpleNamespace(
        time=time.time,
        strftime=time.strftime,
        localtime=time.localtime,
        gmtime=time.gmtime,
    ),
})


class Evaluator(Protocol):
    """Interface the compiler and the execution engine depend on"""

    def program_load(self, procedure: Procedure, name: str) -> Any:
        ...

    def program_start(self, program: Any, environment: Optional[Mapping[str, Any]]) -> Iterator[str]:
        ...

    def expression_evaluate(self, text: str, environment: Optional[Mapping[str, Any]] = None) -> Any:
        ...


@dataclass(frozen=True)
class SandboxProgram:
    """
    A procedure lowered to Python and compiled

    Attributes:
        name: Template name, used as the code object's filename
        source: Generated Python source of the generator function
        code: Compiled module code defining the generator function
        names: Free names the program reads, checked before each run
    """
    name: str
    source: str
    code: CodeType
    names: FrozenSet[str]


def layout_scan(code: str) -> Tuple[Set[int], Set[int], Dict[int, int]]:
    """
    Find the physical lines of a code directive that need care when indented

    Args:
        code: Body of a code directive

    Returns:
        opening: Rows where a token spanning several rows starts (a
                 multi-line string), whose trailing text is content
        verbatim: Rows continuing such a token, copied without re-indenting
        comments: Column of the trailing comment, by row
    """
    opening: Set[int] = set()
    verbatim: Set[int] = set()
    comments: Dict[int, int] = {}

    try:
        for token in tokenize.generate_tokens(io.StringIO(code).readline):
            (start_row, start_col), (end_row, _) = token.start, token.end
            if token.type == tokenize.COMMENT:
                comments[start_row] = start_col
            elif end_row > start_row and token.type not in (tokenize.NEWLINE, tokenize.NL):
                opening.add(start_row)
                verbatim.update(range(start_row + 1, end_row + 1))
    except (tokenize.TokenError, SyntaxError) as e:
        # the layout found so far is kept; ast.parse reports the error itself
        LOG(f"Code directive does not tokenize: {e}", level=3)

    return opening, verbatim, comments


def names_shared(function: ast.FunctionDef) -> List[str]:
    """
    Names the template function binds at its own level

    These are declared global in the generated program so that assignments
    land in the run's namespace, where environment names live.
    Annotated assignments stay local: Python forbids them on globals.
    """
    bound: Set[str] = set()
    annotated: Set[str] = set()
    pending: List[ast.AST] = list(function.body)

    while pending:
        node = pending.pop()
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            bound.add(node.name)
            continue
        if isinstance(node, SCOPE_NODES):
            continue
        if isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name):
            annotated.add(node.target.id)
        elif isinstance(node, ast.Name) and not isinstance(node.ctx, ast.Load):
            bound.add(node.id)
        elif isinstance(node, ast.ExceptHandler) and node.name:
            bound.add(node.name)
        pending.extend(ast.iter_child_nodes(node))

    return sorted(bound - annotated - RESERVED_NAMES)


def header_declare(source: str, names: List[str]) -> str:
    """Add a global declaration of names as the first line of the function"""
    if not names:
        return source
    lines = source.split("\n")
    lines.insert(1, INDENT + "global " + ", ".join(names))
    return "\n".join(lines)


class ProgramWriter:
    """
    Builds the source of the template generator function step by step

    Keeps the indentation depth and, for each open block, the number of
    statements written into it so far.
    """

    def __init__(self, name: str):
        self.name = name
        self.lines: List[str] = [f"def {ENTRY_POINT}():"]
        self.depth = 1
        self.blocks: List[int] = []

    def statement_write(self, text: str) -> None:
        """Write one line at the current depth"""
        self.lines.append(INDENT * self.depth + text)
        if self.blocks:
            self.blocks[-1] += 1

    def block_open(self) -> None:
        self.blocks.append(0)
        self.depth += 1

    def block_close(self) -> None:
        """Close the innermost block, giving it a 'pass' if it is empty"""
        if not self.blocks:
            raise TemplateSyntaxError(f"'{BLOCK_END}' without an open block in '{self.name}'")
        if self.blocks.pop() == 0:
            self.lines.append(INDENT * self.depth + "pass")
        self.depth -= 1

    def emit_write(self, text: str) -> None:
        self.statement_write(f"yield {text!r}")

    def expression_write(self, expression: str) -> None:
        self.statement_write(f"yield {FRAGMENT_FUNCTION}({expression.strip()})")

    def code_write(self, code: str) -> None:
        """
        Write the statements of a code directive

        The indentation of the first non-blank line is the base of the
        directive; lines indented past it form blocks that are complete
        within the directive. Only base-level lines take part in blocks that
        span directives.
        """
        opening, verbatim, comments = layout_scan(code)

        rows: List[Tuple[int, str]] = []
        for row, line in enumerate(code.split("\n"), start=1):
            if row in verbatim or row in opening:
                rows.append((row, line))
            elif line.strip() and not line.strip().startswith("#"):
                rows.append((row, line.rstrip()))

        first = next((line for row, line in rows if row not in verbatim), None)
        if first is None:
            return

        base = first[: len(first) - len(first.lstrip())]
        pending = False        # last base-level line opened a block
        closed_inline = False  # that block got its body within the directive

        for row, line in rows:
            if row in verbatim:
                # inside a multi-line string: indentation is content
                self.lines.append(line)
                continue

            relative = line[len(base):] if line.startswith(base) else line.lstrip()
            stripped = relative.lstrip() if row in opening else relative.strip()
            head = line[: comments[row]].strip() if row in comments else stripped

            if relative[:1].isspace():
                if pending:
                    self.blocks.pop()
                    self.depth -= 1
                    pending = False
                    closed_inline = True
                self.lines.append(INDENT * self.depth + relative)
                continue

            keyword = (head.split(None, 1) or [""])[0].rstrip(":")
            if head == BLOCK_END:
                if not closed_inline:
                    self.block_close()
                closed_inline = False
                pending = False
            elif keyword in BLOCK_CONTINUATIONS and head.endswith(":"):
                if not closed_inline:
                    self.block_close()
                self.statement_write(stripped)
                self.block_open()
                pending, closed_inline = True, False
            elif head.endswith(":"):
                self.statement_write(stripped)
                self.block_open()
                pending, closed_inline = True, False
            else:
                self.statement_write(stripped)
                pending, closed_inline = False, False

    def source_finish(self) -> str:
        """Close every open block and return the complete source"""
        while self.blocks:
            self.block_close()
        # an unreachable yield keeps the function a generator
        self.lines.append(INDENT + "return")
        self.lines.append(INDENT + "yield")
        return "\n".join(self.lines) + "\n"


def tree_check(tree: ast.AST) -> FrozenSet[str]:
    """
    Reject constructs that reach outside the sandbox

    Args:
        tree: Parsed program or expression

    Returns:
        Names read by the code that it never binds itself

    Raises:
        DisallowedCodeError: On import, global/nonlocal, dunder names or
                             private and frame-internal attributes
    """
    loaded: Set[str] = set()
    bound: Set[str] = set()

    for node in ast.walk(tree):
        if isinstance(node, (ast.Import, ast.ImportFrom)):
            raise DisallowedCodeError("import statements are not permitted in templates")
        if isinstance(node, (ast.Global, ast.Nonlocal)):
            raise DisallowedCodeError("global and nonlocal statements are not permitted in templates")
        if isinstance(node, ast.Attribute) and node.attr.startswith(HIDDEN_ATTRIBUTE_PREFIXES):
            raise DisallowedCodeError(f"access to attribute '{node.attr}' is not permitted")
        if isinstance(node, ast.Name):
            if node.id.startswith("__") and node.id not in RESERVED_NAMES:
                raise DisallowedCodeError(f"access to name '{node.id}' is not permitted")
            if isinstance(node.ctx, ast.Load):
                loaded.add(node.id)
            else:
                bound.add(node.id)
        elif isinstance(node, ast.arg):
            bound.add(node.arg)
        elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            bound.add(node.name)
        elif isinstance(node, ast.ExceptHandler) and node.name:
            bound.add(node.name)

    return frozenset(loaded - bound - RESERVED_NAMES)


def source_reject(source: Any) -> None:
    """Only accept source text: bytes and code objects are precompiled code"""
    if isinstance(source, (bytes, bytearray, CodeType)):
        raise DisallowedCodeError("precompiled code is not permitted, only source text")
    if not isinstance(source, str):
        raise DisallowedCodeError(f"expected source text, got {type(source).__name__}")


class PythonSandbox:
    """
    Evaluator running embedded Python against a capability whitelist

    Attributes:
        capabilities: Names available to every program, before the caller's
                      environment is merged over them
    """

    def __init__(self, capabilities: Optional[Mapping[str, Any]] = None):
        self.capabilities = DEFAULT_CAPABILITIES if capabilities is None else capabilities

    def namespace_build(self, environment: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Fresh globals for one run: capabilities, then the environment"""
        namespace = options_merge(self.capabilities, environment)
        namespace["__builtins__"] = {}
        namespace[FRAGMENT_FUNCTION] = fragment_make
        return namespace

    @staticmethod
    def names_check(names: FrozenSet[str], namespace: Mapping[str, Any]) -> None:
        missing = sorted(name for name in names if name not in namespace)
        if missing:
            raise DisallowedCodeError(
                f"names outside the capability whitelist: {', '.join(missing)}"
            )

    def source_lower(self, procedure: Procedure, name: str) -> str:
        """
        Generate the generator function source for a procedure

        Raises:
            TemplateSyntaxError: On an 'end' without an open block
        """
        writer = ProgramWriter(name)
        for step in procedure:
            if step.action is StepAction.EMIT:
                writer.emit_write(step.content)
            elif step.action is StepAction.EVALUATE:
                writer.expression_write(step.content)
            else:
                source_reject(step.content)
                writer.code_write(step.content)
        return writer.source_finish()

    def program_load(self, procedure: Procedure, name: str) -> SandboxProgram:
        """
        Lower, check and compile a procedure

        Args:
            procedure: Steps produced by the compiler
            name: Template name

        Returns:
            SandboxProgram ready to be started any number of times

        Raises:
            TemplateSyntaxError: If the embedded code is not valid Python
            DisallowedCodeError: If it uses a forbidden construct
        """
        source = self.source_lower(procedure, name)

        try:
            tree = ast.parse(source, filename=name, mode="exec")
        except SyntaxError as e:
            line = source.split("\n")[e.lineno - 1].strip() if e.lineno else ""
            raise TemplateSyntaxError(f"Invalid code in '{name}': {e.msg}: {line}") from e

        # checked before the generated global declaration goes in
        names = tree_check(tree)
        source = header_declare(source, names_shared(tree.body[0]))
        LOG(f"Generated program for '{name}':\n{source}", level=3)

        code = builtins.compile(source, filename=name, mode="exec")
        return SandboxProgram(name=name, source=source, code=code, names=names)

    def program_start(
        self, program: SandboxProgram, environment: Optional[Mapping[str, Any]] = None
    ) -> Iterator[str]:
        """
        Start a program, returning its suspended generator

        The name check happens here, before any template code runs.

        Raises:
            DisallowedCodeError: If the program reads a name that neither the
                                 capabilities nor the environment provide
        """
        if not isinstance(program, SandboxProgram):
            raise DisallowedCodeError("precompiled code is not permitted, only loaded templates")
        namespace = self.namespace_build(environment)
        self.names_check(program.names, namespace)
        exec(program.code, namespace)
        generator: Iterator[str] = namespace[ENTRY_POINT]()
        return generator

    def expression_evaluate(self, text: str, environment: Optional[Mapping[str, Any]] = None) -> Any:
        """
        Evaluate one standalone expression

        With empty capabilities and no environment only literals can be
        built; this is how include paths are read.

        Raises:
            TemplateSyntaxError: If text is not an expression
            DisallowedCodeError: If it reaches outside the sandbox
        """
        source_reject(text)
        try:
            tree = ast.parse(text.strip(), mode="eval")
        except SyntaxError as e:
            raise TemplateSyntaxError(f"Invalid expression {text.strip()!r}: {e.msg}") from e

        names = tree_check(tree)
        namespace = self.namespace_build(environment)
        self.names_check(names, namespace)
        return eval(builtins.compile(tree, filename="<expression>", mode="eval"), namespace)
