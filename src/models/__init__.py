"""
Models package for hashplate

Contains data structures and type definitions for the compilation pipeline.
"""

from .state import ProgramState, pipeline
from .chunk import Chunk, ChunkKind, TrimOverride, DirectiveSpan
from .template import TemplateOptions, CompiledTemplate, Step, StepAction, Procedure

__all__ = [
    "ProgramState",
    "pipeline",
    "Chunk",
    "ChunkKind",
    "TrimOverride",
    "DirectiveSpan",
    "TemplateOptions",
    "CompiledTemplate",
    "Step",
    "StepAction",
    "Procedure",
]
