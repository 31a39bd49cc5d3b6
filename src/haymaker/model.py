# model.py
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from .derive import VarMap, derive
from .errors import DEBUG_HELP, DerivationError, SourceError
from .runner import run_command
from .ui.console import get_console


@dataclass(frozen=True)
class Rule:
    """A parsed rule line: `targets: prerequisites`."""
    targets: List[str]
    prerequisites: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Command:
    """
    A single shell command (one TAB-indented line) inside a recipe.

    text is kept underived until the recipe runs. The remaining fields
    locate the line for diagnostics.
    """
    text: str
    debug: bool = False
    lineno: int = 0
    neglect: bool = False
    filename: str = "<hayfile>"
    source: str = ""
    column: int = 0

    def derivation_error(self, e: DerivationError) -> SourceError:
        column = self.column + max(self.text.find(e.reference), 0) if e.reference else self.column
        notes = [f"note: this was {self.text}"]
        if not self.debug:
            notes.append(DEBUG_HELP)
        return SourceError(
            kind=e.kind,
            message=e.message,
            filename=self.filename,
            text=self.source or self.text,
            lineno=self.lineno,
            column=column,
            notes=notes,
        )


@dataclass
class Recipe:
    """
    A compiled build target: what it builds, what it needs, how to build it.

    Commands are appended while the loader is still inside the recipe's
    block and run in source order.
    """
    targets: List[str]
    prerequisites: List[str] = field(default_factory=list)
    commands: List[Command] = field(default_factory=list)

    @classmethod
    def from_rule(cls, rule: Rule) -> Recipe:
        return cls(targets=list(rule.targets), prerequisites=list(rule.prerequisites))

    @property
    def name(self) -> str:
        return " ".join(self.targets)

    def add_command(
        self,
        text: str,
        debug: bool = False,
        lineno: int = 0,
        *,
        neglect: bool = False,
        filename: str = "<hayfile>",
        source: str = "",
        column: int = 0,
    ) -> None:
        self.commands.append(
            Command(
                text=text,
                debug=debug,
                lineno=lineno,
                neglect=neglect,
                filename=filename,
                source=source,
                column=column,
            )
        )

    def execute(
        self,
        variables: Mapping[str, str],
        *,
        environment: Optional[Mapping[str, str]] = None,
        shell: str = "/bin/sh",
        cancel: Optional[threading.Event] = None,
    ) -> bool:
        """
        Derive and run every command in order, stopping at the first failure.

        Args:
            variables: raw variables every command is derived against
            environment: derived values exported to each command; computed
                from `variables` when not given
            shell: shell executable used for each command
            cancel: once set, no further command of this recipe is started

        Returns:
            True if all commands ran, False if cancelled part way.

        Raises:
            SourceError: a command without the neglect marker failed to derive
            CommandFailure: a command exited non-zero
        """
        console = get_console()
        if environment is None:
            environment = VarMap(variables).resolved()

        for command in self.commands:
            if cancel is not None and cancel.is_set():
                console.print_debug(f"[{self.name}] cancelled before: {command.text}")
                return False

            try:
                cmd = derive(command.text, variables, command.debug)
            except DerivationError as e:
                error = command.derivation_error(e)
                if not command.neglect:
                    raise error from e
                console.print_source_error(error)
                continue

            if command.debug:
                console.print_command_debug(self.name, command.lineno, cmd, environment)
            run_command(self.name, cmd, environment, shell=shell)
        return True

    def render(self) -> str:
        lines = [f"{self.name}: {' '.join(self.prerequisites)}".rstrip()]
        lines.extend(f"    {c.text}" for c in self.commands)
        return "\n".join(lines)

    def print(self) -> None:
        get_console().print_recipe(self)
