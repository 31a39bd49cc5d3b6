# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

DEBUG_HELP = "help: place a + before the line to enable debug mode"


@dataclass
class HayError(Exception):
    """
    Base error for everything haymaker reports to the user.

    kind is one of:
      Structure, Subcall, Include, Cycle, ParseError, Dependency, Execution
    """
    kind: str
    message: str

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


@dataclass
class SourceError(HayError):
    """An error tied to one line of a Hayfile."""
    filename: str = "<hayfile>"
    text: str = ""
    lineno: int = 0
    column: int = 0
    notes: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        return f"{self.kind}: {self.message} ({self.filename}:{self.lineno}:{self.column + 1})"


@dataclass
class DerivationError(HayError):
    """A reference inside a line could not be resolved."""
    reference: str = ""
    trace: List[str] = field(default_factory=list)

    def __init__(self, message: str, reference: str = "", trace: Optional[List[str]] = None):
        super().__init__("Subcall", message)
        self.reference = reference
        self.trace = list(trace or [])


@dataclass
class RuleSyntaxError(HayError):
    """Raised by the rule parser for malformed rule lines."""
    column: int = 0

    def __init__(self, message: str, column: int = 0):
        super().__init__("ParseError", message)
        self.column = column


@dataclass
class CycleError(HayError):
    stuck: List[str] = field(default_factory=list)

    def __init__(self, stuck: List[str]):
        super().__init__("Cycle", f"dependency cycle between recipes: {', '.join(stuck)}")
        self.stuck = list(stuck)


@dataclass
class DependencyError(HayError):
    target: str = ""
    prerequisite: str = ""

    def __init__(self, target: str, prerequisite: str):
        super().__init__(
            "Dependency",
            f"recipe '{target}' needs '{prerequisite}', which no recipe builds and no file provides",
        )
        self.target = target
        self.prerequisite = prerequisite


@dataclass
class CommandFailure(HayError):
    recipe: str = ""
    cmd: str = ""
    exit_code: int = 0

    def __init__(self, recipe: str, cmd: str, exit_code: int):
        super().__init__("Execution", f"[{recipe}] command failed (exit={exit_code}): {cmd}")
        self.recipe = recipe
        self.cmd = cmd
        self.exit_code = exit_code
