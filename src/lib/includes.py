"""
Include resolution

Expands include chunks in place by lexing the referenced files, recursively.

Cycle detection works on an include tree kept as an arena of nodes, each
node pointing at its parent by index. Registering an include walks the
parent links of the including file only, so a file reached twice through
different branches (a diamond) is fine, while a file that appears among its
own ancestors is a cycle.

Example:
    a.hp:  #{include: "b.hp"}# #{include: "c.hp"}#
    b.hp:  #{include: "d.hp"}#
    c.hp:  #{include: "d.hp"}#

    Tree:  root(a.hp) -> b.hp -> d.hp
                      -> c.hp -> d.hp
    Dependencies: ['b.hp', 'd.hp', 'c.hp']
"""

import os
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..config import appsettings
from ..models.chunk import Chunk, ChunkKind
from ..models.template import TemplateOptions
from .errors import (
    CyclicIncludeError, DisallowedCodeError, IncludeIOError, SyntaxLiteralError, TemplateSyntaxError,
)
from .lexer import ChunkLexer
from .log import LOG
from .sandbox import PythonSandbox


@dataclass(frozen=True)
class IncludeNode:
    """
    One visited path in the include tree

    Attributes:
        path: Normalised path of the template (None for a string template)
        parent: Arena index of the including node (None for the root)
    """
    path: Optional[str]
    parent: Optional[int]


class IncludeTree:
    """
    Arena of include nodes with parent back-links

    Lives for the duration of one top-level lex call. Node 0 is the root,
    standing for the top-level template.
    """

    ROOT = 0

    def __init__(self, root_path: Optional[str] = None):
        self.nodes: List[IncludeNode] = [IncludeNode(path=path_normalise(root_path), parent=None)]

    def ancestry_get(self, index: int) -> List[Optional[str]]:
        """
        Paths from the root down to the node at index

        Args:
            index: Arena index of a node

        Returns:
            List of paths, root first
        """
        chain = []
        current: Optional[int] = index
        while current is not None:
            node = self.nodes[current]
            chain.append(node.path)
            current = node.parent
        return list(reversed(chain))

    def include_register(self, parent: int, path: str) -> int:
        """
        Add an include of path below parent, rejecting cycles

        Walks from parent up through the parent links; if path is already
        one of those nodes the include would recurse forever.

        Args:
            parent: Arena index of the including template
            path: Normalised path being included

        Returns:
            Arena index of the new node

        Raises:
            CyclicIncludeError: If path is among the ancestors of the include
        """
        current: Optional[int] = parent
        while current is not None:
            node = self.nodes[current]
            if node.path == path:
                raise CyclicIncludeError(path, self.ancestry_get(parent))
            current = node.parent

        self.nodes.append(IncludeNode(path=path, parent=parent))
        return len(self.nodes) - 1

    def children_get(self, index: int) -> List[int]:
        """Arena indexes of the nodes included directly by index, in order"""
        return [i for i, node in enumerate(self.nodes) if node.parent == index]

    def dependencies_list(self) -> List[str]:
        """
        Distinct included paths, in first-visit order

        The root (the top-level template itself) is not a dependency. A path
        included from several places is listed once.

        Returns:
            List of paths
        """
        dependencies: List[str] = []
        seen = set()
        pending = list(reversed(self.children_get(self.ROOT)))

        while pending:
            index = pending.pop()
            path = self.nodes[index].path
            if path is not None and path not in seen:
                seen.add(path)
                dependencies.append(path)
            pending.extend(reversed(self.children_get(index)))

        return dependencies


def path_normalise(path: Optional[str]) -> Optional[str]:
    """Normalise a path so equivalent spellings compare equal"""
    if path is None:
        return None
    return os.path.normpath(path)


def literal_parse(literal: str) -> str:
    """
    Evaluate the captured text of an include directive

    The text is evaluated with no capabilities at all: only literal
    construction works, any name or call is rejected.

    Args:
        literal: Raw text after "include:", e.g. ' "header.hp" '

    Returns:
        The path string

    Raises:
        SyntaxLiteralError: If the text does not evaluate to a str
    """
    try:
        value = PythonSandbox(capabilities={}).expression_evaluate(literal.strip())
    except (TemplateSyntaxError, DisallowedCodeError) as e:
        raise SyntaxLiteralError(literal, str(e)) from e
    except Exception as e:
        raise SyntaxLiteralError(literal, f"{type(e).__name__}: {e}") from e

    if not isinstance(value, str):
        raise SyntaxLiteralError(literal, f"evaluates to {type(value).__name__}, not str")
    return value


def path_resolve(path: str, options: TemplateOptions, current_path: Optional[str]) -> str:
    """
    Build the full path of an include

    Args:
        path: Path given in the include directive
        options: base_path, when set, is the root for relative paths
        current_path: Path of the template holding the directive

    Returns:
        Normalised path: absolute paths are kept, relative ones are joined
        onto base_path or onto the directory of current_path
    """
    if os.path.isabs(path):
        resolved = path
    elif options.base_path:
        resolved = os.path.join(options.base_path, path)
    else:
        resolved = os.path.join(os.path.dirname(current_path or "."), path)
    return os.path.normpath(resolved)


def template_read(path: str) -> str:
    """
    Read a whole template file

    Raises:
        IncludeIOError: If the file is missing or unreadable
    """
    try:
        with open(path, "r", encoding=appsettings.template_encoding) as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise IncludeIOError(path, str(e)) from e


def chunk_append(output: List[Chunk], chunk: Chunk) -> None:
    """
    Append a chunk, merging it into a preceding text chunk

    Keeps the invariant that no two text chunks are adjacent, including at
    the boundaries of spliced includes.
    """
    if chunk.is_text and output and output[-1].is_text:
        output[-1] = output[-1].content_replace(output[-1].content + chunk.content)
    else:
        output.append(chunk)


class IncludeResolver:
    """
    Splices included templates into a chunk sequence

    All files are lexed with the same options; only the current path
    changes as the resolver descends.
    """

    def __init__(self, options: TemplateOptions, tree: IncludeTree):
        """
        Args:
            options: Options shared by every lexed file
            tree: Include tree of the current top-level lex call
        """
        self.options = options
        self.tree = tree

    def chunks_expand(
        self,
        chunks: Iterable[Chunk],
        current_path: Optional[str] = None,
        node: int = IncludeTree.ROOT,
        output: Optional[List[Chunk]] = None,
    ) -> List[Chunk]:
        """
        Expand every include chunk, recursively, preserving order

        Args:
            chunks: Chunks of the template at current_path
            current_path: Path of that template (None for a string template)
            node: Arena index of that template in the include tree
            output: List to append to (a new one when None)

        Returns:
            Flat list of text/code/expression chunks

        Raises:
            SyntaxLiteralError: Include path is not a string literal
            CyclicIncludeError: Include ancestry revisits a path
            IncludeIOError: Included file cannot be read
        """
        if output is None:
            output = []

        for chunk in chunks:
            if chunk.kind is not ChunkKind.INCLUDE:
                chunk_append(output, chunk)
                continue

            path = path_resolve(literal_parse(chunk.content), self.options, current_path)
            child = self.tree.include_register(node, path)
            LOG(f"Including {path}", level=2)

            included = ChunkLexer(template_read(path), self.options).chunks_scan()
            self.chunks_expand(included, current_path=path, node=child, output=output)

        return output
