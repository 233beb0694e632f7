"""
Option and compilation result models

TemplateOptions is the validated, immutable per-call configuration. Step,
Procedure and CompiledTemplate describe what the compiler hands to the
execution engine.
"""

from enum import Enum
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


TRIM_POLICIES = ("none", "all", "code", "expression")

# Longer spellings accepted for the two neighbour-dependent policies
TRIM_ALIASES = {
    "code-only": "code",
    "expression-only": "expression",
}


class TemplateOptions(BaseModel):
    """
    Configuration of one lex/compile call.

    Built by options_initialise() from a user mapping merged over the
    defaults. Instances are frozen.

    Attributes:
        start_tag: Opening directive delimiter
        end_tag: Closing directive delimiter
        template_name: Name attached to the compiled template
        trim_left: Policy for whitespace before a directive
        trim_right: Policy for the newline after a directive
        base_path: Root for relative include paths (None: relative to the
                   including file)
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    start_tag: str = Field(default="#{", min_length=1)
    end_tag: str = Field(default="}#", min_length=1)
    template_name: str = Field(default="default_name")
    trim_left: str = Field(default="code")
    trim_right: str = Field(default="code")
    base_path: Optional[str] = Field(default=None)

    @field_validator("trim_left", "trim_right", mode="before")
    @classmethod
    def policy_normalise(cls, value: Any) -> str:
        """Accept the policy names and their '-only' spellings"""
        if value is None or value is False:
            return "none"
        if value is True:
            return "all"
        value = TRIM_ALIASES.get(value, value)
        if value not in TRIM_POLICIES:
            raise ValueError(
                f"trim policy must be one of {', '.join(TRIM_POLICIES)}, got {value!r}"
            )
        return value


class StepAction(Enum):
    """What a procedure step does when run"""
    EMIT = "emit"           # emit a literal fragment
    EVALUATE = "evaluate"   # evaluate an expression, emit its value
    EXECUTE = "execute"     # run statements (they may emit on their own)


@dataclass(frozen=True)
class Step:
    """One step of a compiled procedure"""
    action: StepAction
    content: str


Procedure = Tuple[Step, ...]


@dataclass(frozen=True)
class CompiledTemplate:
    """
    Result of compiling a template

    Immutable. The same instance can be run any number of times, from
    several consumers at once, as long as each run gets its own
    environment.

    Attributes:
        name: Template name (used in error messages)
        procedure: Flat ordered list of steps
        program: Evaluator-specific loaded form of the procedure
        evaluator: Evaluator that loaded the program; run() starts it with
                   this one unless given another
    """
    name: str
    procedure: Procedure
    program: Any
    evaluator: Any = None

    @property
    def source(self) -> str:
        """Program text produced by the evaluator, when it keeps one"""
        return getattr(self.program, "source", "")
