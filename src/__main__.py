#!/usr/bin/env python3
"""
hashplate - Template compiler with sandboxed Python directives

Renders a template file from an input directory into an output directory,
following the ChRIS "plugin" pattern (inputdir/ outputdir/ positional
arguments).

Template syntax:
    Literal text                 copied to the output
    #{ statements }#             Python statements (blocks close with 'end')
    #{= expression }#            Python expression, its value is written
    #{include: "file.hp" }#      another template, spliced in place
    #{- ... -}# / #{+ ... +}#    force trimming / keeping of neighbouring
                                 whitespace on that side

Usage:
    hashplate inputdir/ outputdir/ --inputFile page.hp --envFile vars.yaml

Examples:
    # Render page.hp with variables from vars.yaml into outputdir/page
    hashplate . out/ --inputFile page.hp --envFile vars.yaml

    # Write the template with all includes expanded, and list them
    hashplate . out/ --inputFile page.hp --precompile --dependencies

    # Verbose output
    hashplate . out/ --inputFile page.hp -vv
"""

import sys
from pathlib import Path
from argparse import ArgumentParser, Namespace, ArgumentDefaultsHelpFormatter

import yaml
from pydantic import ValidationError
from chris_plugin import chris_plugin

from .lib import (
    __version__,
    LOG,
    state_connectToLogger,
    compile_file,
    get_dependencies,
    precompile,
    run,
    TemplateError,
)
from .lib.includes import template_read
from .lib.syntax import source_highlight
from .models import ProgramState, pipeline


DISPLAY_TITLE = r"""
  _               _           _       _
 | |__   __ _ ___| |__  _ __ | | __ _| |_ ___
 | '_ \ / _` / __| '_ \| '_ \| |/ _` | __/ _ \
 | | | | (_| \__ \ | | | |_) | | (_| | ||  __/
 |_| |_|\__,_|___/_| |_| .__/|_|\__,_|\__\___|
                       |_|
  Template compiler with sandboxed Python directives
"""

TRIM_CHOICES = ["none", "all", "code", "expression"]

# Define CLI arguments
parser = ArgumentParser(
    description="hashplate - render #{ ... }# templates with sandboxed Python directives",
    formatter_class=ArgumentDefaultsHelpFormatter,
)

parser.add_argument(
    "--inputFile", required=True, type=str, help="Template file (relative to inputdir)"
)

parser.add_argument(
    "--envFile",
    default=None,
    type=str,
    help="YAML file (relative to inputdir) whose top-level mapping is the template environment",
)

parser.add_argument(
    "--outputFile",
    default=None,
    type=str,
    help="Output filename (relative to outputdir). Defaults to inputFile without its .hp suffix",
)

parser.add_argument("--startTag", default="#{", type=str, help="Opening directive delimiter")
parser.add_argument("--endTag", default="}#", type=str, help="Closing directive delimiter")

parser.add_argument(
    "--trimLeft", default="code", choices=TRIM_CHOICES, help="Trim policy before directives"
)
parser.add_argument(
    "--trimRight", default="code", choices=TRIM_CHOICES, help="Trim policy after directives"
)

parser.add_argument(
    "--precompile",
    action="store_true",
    help="Write the template with includes expanded instead of rendering it",
)

parser.add_argument(
    "--dependencies",
    action="store_true",
    help="Report the files included by the template",
)

parser.add_argument(
    "--highlight",
    action="store_true",
    help="Print the include-expanded template with syntax highlighting (default delimiters)",
)

parser.add_argument(
    "-v",
    "--verbosity",
    action="count",
    default=1,
    help="Increase output verbosity (can be repeated: -v, -vv, -vvv)",
)

parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")


def outputName_default(input_file: str) -> str:
    """Output name for a template: the input name without its .hp suffix"""
    path = Path(input_file)
    if path.suffix == ".hp":
        return path.with_suffix("").name
    return path.name + ".out"


def env_check(inputstate: ProgramState) -> ProgramState:
    """
    Validate environment and resolve all file paths.

    Args:
        inputstate: Initial program state with CLI options

    Returns:
        ProgramState with added fields:
            - inputSourceFile: Resolved path to the template
            - environmentSourceFile: Resolved path to the YAML environment
            - outputTarget: Path of the file to write
            - envOK: True if environment is valid

    Exits:
        1 if the template or the environment file is not found
    """

    state = inputstate.copy()

    if state.verbosity >= 2:
        LOG(DISPLAY_TITLE, level=2)

    LOG("Checking environment...", level=2)

    input_file = state.inputdir / state.inputFile
    if not input_file.exists():
        print(f"Error: Input file not found: {input_file}", file=sys.stderr)
        state.envOK = False
        sys.exit(1)

    state.inputSourceFile = input_file
    LOG(f"Input file: {input_file}", level=2)

    if state.envFile:
        env_file = state.inputdir / state.envFile
        if not env_file.exists():
            print(f"Error: Environment file not found: {env_file}", file=sys.stderr)
            state.envOK = False
            sys.exit(1)
        state.environmentSourceFile = env_file
        LOG(f"Environment file: {env_file}", level=2)

    output_name = state.outputFile or outputName_default(state.inputFile)
    state.outputTarget = state.outputdir / output_name
    state.outputTarget.parent.mkdir(parents=True, exist_ok=True)
    LOG(f"Output file: {state.outputTarget}", level=2)

    state.envOK = True
    return state


def environment_load(inputstate: ProgramState) -> ProgramState:
    """
    Load the template environment from the YAML file, if one was given.

    Returns:
        ProgramState with added field:
            - environment: dict of names visible to the template

    Exits:
        1 if the file is not valid YAML or is not a mapping
    """

    state = inputstate.copy()

    if state.environmentSourceFile is None:
        state.environment = {}
        return state

    LOG("Loading environment...", level=1)
    try:
        with open(state.environmentSourceFile, "r", encoding="utf-8") as f:
            environment = yaml.safe_load(f)
    except yaml.YAMLError as e:
        print(f"Error parsing environment file: {e}", file=sys.stderr)
        sys.exit(1)

    if environment is None:
        environment = {}
    if not isinstance(environment, dict):
        print("Error: Environment file must hold a mapping at top level", file=sys.stderr)
        sys.exit(1)

    state.environment = environment
    LOG(f"Loaded {len(environment)} environment names", level=2)
    return state


def template_compile(inputstate: ProgramState) -> ProgramState:
    """
    Compile (or precompile) the template.

    Returns:
        ProgramState with added fields:
            - compiledTemplate: CompiledTemplate (render mode)
            - precompiledText: include-expanded template (precompile/highlight)
            - dependencyList: included paths (with --dependencies)

    Exits:
        1 on invalid options or any template error
    """

    state = inputstate.copy()
    path = str(state.inputSourceFile)
    options = state.template_options()

    LOG("Compiling template...", level=1)
    try:
        if state.precompile or state.highlight:
            state.precompiledText = precompile(template_read(path), options, path=path)
        if not state.precompile:
            state.compiledTemplate = compile_file(path, options)
        if state.dependencies:
            state.dependencyList = get_dependencies(template_read(path), options, path=path)
    except (TemplateError, ValidationError) as e:
        print(f"Template error: {e}", file=sys.stderr)
        sys.exit(1)

    if state.highlight and state.precompiledText is not None:
        print(source_highlight(state.precompiledText))

    return state


def output_write(inputstate: ProgramState) -> ProgramState:
    """
    Write the rendered (or precompiled) template to the output file.

    Rendering streams fragments to the file as the template produces them.

    Returns:
        ProgramState with added field:
            - renderResult: Dict containing:
                - status: bool
                - output_file: str
                - fragment_count: int

    Exits:
        1 if the template fails while rendering
    """

    state = inputstate.copy()
    fragment_count = 0

    try:
        with open(state.outputTarget, "w", encoding="utf-8") as f:
            if state.precompile:
                f.write(state.precompiledText or "")
            else:
                LOG("Rendering template...", level=1)
                for fragment in run(state.compiledTemplate, state.environment):
                    f.write(fragment)
                    fragment_count += 1
    except TemplateError as e:
        print(f"Render error: {e}", file=sys.stderr)
        if state.verbosity >= 3:
            import traceback

            traceback.print_exc()
        sys.exit(1)

    state.renderResult = {
        "status": True,
        "output_file": str(state.outputTarget),
        "fragment_count": fragment_count,
    }
    return state


def results_report(inputstate: ProgramState) -> ProgramState:
    """
    Display results to the user.

    Returns:
        ProgramState unchanged (terminal pipeline stage)

    Exits:
        1 if renderResult is None
    """
    state: ProgramState = inputstate.copy()
    if not state.renderResult:
        print("Error: Rendering failed", file=sys.stderr)
        sys.exit(1)

    LOG("\n✓ Done!", level=1)
    LOG(f"  Output: {state.renderResult['output_file']}", level=1)
    if not state.precompile:
        LOG(f"  Fragments: {state.renderResult['fragment_count']}", level=1)
    if state.dependencies:
        LOG(f"  Dependencies: {len(state.dependencyList)}", level=1)
        for dependency in state.dependencyList:
            LOG(f"    {dependency}", level=1)
    return state


@chris_plugin(
    parser=parser,
    title="hashplate - template compiler",
    category="Utility",
    min_memory_limit="100Mi",
    min_cpu_limit="500m",
)
def main(options: Namespace, inputdir: Path, outputdir: Path):
    """
    Main entry point - render a template from inputdir into outputdir.

    Orchestrates the pipeline:
        1. env_check: Validate paths
        2. environment_load: Read the YAML environment
        3. template_compile: Lex, include, trim and compile the template
        4. output_write: Render (or precompile) into the output file
        5. results_report: Display results to user

    Note:
        This function is wrapped by @chris_plugin which handles CLI
        argument parsing and invokes this function with parsed values.
    """

    state: ProgramState = ProgramState.state_createFromNamespace(
        options=options, inputdir=inputdir, outputdir=outputdir
    )

    state_connectToLogger(state)

    pipeline(state, env_check, environment_load, template_compile, output_write, results_report)


if __name__ == "__main__":
    main()  # type: ignore  # @chris_plugin decorator transforms signature
