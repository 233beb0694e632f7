"""
State carried by the hashplate command

ProgramState collects CLI options and the results of every stage; pipeline()
chains the stages, each returning an updated copy.
"""

from pathlib import Path
from argparse import Namespace
from typing import Any, Optional, Type, TypeVar, List, Dict, Callable
from dataclasses import dataclass, field


PS = TypeVar("PS", bound="ProgramState")


@dataclass
class ProgramState:
    """
    Central state container for the CLI pipeline (state bus pattern).

    Each CLI stage receives the state left by the previous one and fills in
    its own fields on a copy.

    Pipeline stages and their state additions:
        - Initial: inputdir, outputdir, verbosity, CLI options
        - env_check: inputSourceFile, environmentSourceFile, outputTarget, envOK
        - environment_load: environment
        - template_compile: compiledTemplate, dependencyList, precompiledText
        - output_write: renderResult
        - results_report: (no additions, terminal stage)

    Attributes:
        inputdir: Directory containing the template
        outputdir: Base output directory
        verbosity: Logging verbosity level (1-3)
        inputFile: Template filename (relative to inputdir)
        envFile: Optional YAML file (relative to inputdir) with the environment
        outputFile: Output filename (relative to outputdir)
        startTag: Opening directive delimiter
        endTag: Closing directive delimiter
        trimLeft: Trim policy before directives
        trimRight: Trim policy after directives
        precompile: Write the include-expanded template instead of rendering
        dependencies: Also write the list of included files
        highlight: Print the precompiled template highlighted on stdout
        envOK: Environment validation passed
        inputSourceFile: Resolved path to the template
        environmentSourceFile: Resolved path to the environment file
        outputTarget: Resolved path of the output file
        environment: Names made visible to the template
        compiledTemplate: Result of compile()
        dependencyList: Paths included by the template
        precompiledText: Result of precompile()
        renderResult: Output summary (output_file, fragment_count, status)
    """

    # CLI arguments
    inputdir: Optional[Path] = field(default=None)
    outputdir: Optional[Path] = field(default=None)
    verbosity: int = field(default=1)
    inputFile: str = field(default="")
    envFile: Optional[str] = field(default=None)
    outputFile: Optional[str] = field(default=None)
    startTag: str = field(default="#{")
    endTag: str = field(default="}#")
    trimLeft: str = field(default="code")
    trimRight: str = field(default="code")
    precompile: bool = field(default=False)
    dependencies: bool = field(default=False)
    highlight: bool = field(default=False)

    # Pipeline state
    envOK: bool = field(default=False)
    inputSourceFile: Path = field(default=Path("/"))
    environmentSourceFile: Optional[Path] = field(default=None)
    outputTarget: Path = field(default=Path("/"))
    environment: Dict[str, Any] = field(default_factory=dict)
    compiledTemplate: Optional[Any] = field(default=None)  # CompiledTemplate at runtime
    dependencyList: List[str] = field(default_factory=list)
    precompiledText: Optional[str] = field(default=None)
    renderResult: Optional[Dict] = field(default=None)

    @classmethod
    def state_createFromNamespace(
        cls: Type["ProgramState"], options: Namespace, inputdir: Path, outputdir: Path
    ) -> "ProgramState":
        """
        Create ProgramState from argparse Namespace and directory paths.

        Args:
            options: Parsed CLI arguments
            inputdir: Directory containing source files
            outputdir: Directory for output

        Returns:
            ProgramState instance with all CLI options as attributes
        """
        options_dict = vars(options)

        import dataclasses
        valid_fields = {f.name for f in dataclasses.fields(cls)}

        # Only keep options that are ProgramState fields
        filtered_options = {k: v for k, v in options_dict.items() if k in valid_fields}

        merged_args = {**filtered_options, "inputdir": inputdir, "outputdir": outputdir}

        return cls(**merged_args)

    def template_options(self) -> Dict[str, Any]:
        """Template options selected on the command line"""
        return {
            "start_tag": self.startTag,
            "end_tag": self.endTag,
            "trim_left": self.trimLeft,
            "trim_right": self.trimRight,
        }

    def copy(self: PS) -> PS:
        """
        Creates a shallow copy of the ProgramState instance.

        Returns:
            A new ProgramState instance.
        """
        return type(self)(**self.__dict__)


def pipeline(
    initial_state: ProgramState, *stages: Callable[[ProgramState], ProgramState]
) -> ProgramState:
    """
    Run the CLI stages in order, threading the state through them

    A stage takes a ProgramState and returns the state for the next stage.

    Args:
        initial_state: Starting ProgramState
        *stages: Variable number of stage functions to execute in order

    Returns:
        Final ProgramState after all transformations

    Example:
        final_state = pipeline(
            initial_state,
            env_check,
            environment_load,
            template_compile,
            output_write,
            results_report
        )
    """
    from functools import reduce
    return reduce(lambda state, stage: stage(state), stages, initial_state)
