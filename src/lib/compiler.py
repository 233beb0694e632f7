"""
Compiler for lexed templates

Lowers a chunk sequence (lexed, includes expanded, trimmed) into a flat
procedure and loads it through an evaluator.
"""

from typing import List, Optional, Sequence

from ..config import appsettings
from ..models.chunk import Chunk, ChunkKind
from ..models.template import CompiledTemplate, Procedure, Step, StepAction
from .errors import TemplateError
from .log import LOG
from .sandbox import Evaluator, PythonSandbox


STEP_ACTIONS = {
    ChunkKind.TEXT: StepAction.EMIT,
    ChunkKind.EXPRESSION: StepAction.EVALUATE,
    ChunkKind.CODE: StepAction.EXECUTE,
}


class Compiler:
    """
    Compiles a chunk sequence into a CompiledTemplate

    Responsibilities:
    - Map each chunk to one procedure step, in order
    - Hand the procedure to the evaluator for loading
    - Return the immutable compiled template
    """

    def __init__(
        self,
        chunks: Sequence[Chunk],
        name: str = "default_name",
        evaluator: Optional[Evaluator] = None,
    ) -> None:
        """
        Initialize compiler

        Args:
            chunks: Chunks ready for compilation (no include chunks left)
            name: Name of the compiled template
            evaluator: Evaluator loading the procedure (PythonSandbox by default)
        """
        self.chunks = chunks
        self.name = name
        self.evaluator = evaluator or PythonSandbox()

    def procedure_build(self) -> Procedure:
        """
        Map chunks to steps

        text -> emit the literal, expression -> evaluate and emit,
        code -> execute. Control flow stays inside code steps.

        Returns:
            Tuple of steps

        Raises:
            TemplateError: If an include chunk was not expanded
        """
        steps: List[Step] = []
        for chunk in self.chunks:
            action = STEP_ACTIONS.get(chunk.kind)
            if action is None:
                raise TemplateError(
                    f"Unexpanded {chunk.kind.value} chunk in '{self.name}': {chunk.content!r}"
                )
            steps.append(Step(action=action, content=chunk.content))
        return tuple(steps)

    def compile(self) -> CompiledTemplate:
        """
        Compile the chunks

        Returns:
            CompiledTemplate holding the procedure and the loaded program

        Raises:
            TemplateSyntaxError: Embedded code is not valid
            DisallowedCodeError: Embedded code uses a forbidden construct
        """
        procedure = self.procedure_build()
        LOG(f"Compiling '{self.name}': {len(procedure)} steps", level=2)

        program = self.evaluator.program_load(procedure, self.name)
        if appsettings.debug_mode:
            LOG(f"Program for '{self.name}':\n{getattr(program, 'source', program)}", level=1)

        return CompiledTemplate(
            name=self.name, procedure=procedure, program=program, evaluator=self.evaluator
        )
