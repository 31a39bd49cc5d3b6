"""Console output formatting utilities for haymaker."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Dict, Mapping, Optional

import click

if TYPE_CHECKING:
    from haymaker.derive import VarMap
    from haymaker.errors import SourceError
    from haymaker.model import Recipe


class Console:
    """
    Centralized console output formatting.

    Recipes run on worker threads, so every write takes the lock and emits
    whole blocks at once.
    """

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug
        self._lock = threading.Lock()

    def _echo(self, text: str = "", err: bool = False) -> None:
        with self._lock:
            click.echo(text, err=err)

    # ------------------------------------------------------------------
    # Startup summary
    # ------------------------------------------------------------------

    def print_variables(self, variables: VarMap) -> None:
        """Print every variable, derived where possible, then a blank line."""
        from haymaker.derive import add_derivation_highlights, derive_spans
        from haymaker.errors import DerivationError

        lines = []
        for name, raw in variables.items():
            try:
                value, spans = derive_spans(raw, variables)
            except DerivationError:
                value, spans = raw, []
            lines.append(f"{name} {click.style('≡', fg='magenta')} {add_derivation_highlights(value, spans)}")
        lines.append("")
        self._echo("\n".join(lines))

    def print_recipe(self, recipe: Recipe) -> None:
        head, *body = recipe.render().splitlines()
        targets, _, prereqs = head.partition(":")
        lines = [f"{click.style(targets, fg='green', bold=True)}:{prereqs}"]
        lines.extend(click.style(line, fg="bright_black") for line in body)
        lines.append("")
        self._echo("\n".join(lines))

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def print_frontier(self, index: int, names: list[str]) -> None:
        """Print the recipes about to run together."""
        self._echo(click.style(f"=== Frontier {index}: {', '.join(names)} ===", bold=True))

    def print_command(self, recipe: str, cmd: str) -> None:
        self._echo(f"[{recipe}] ▶ {cmd}")

    def print_command_debug(self, recipe: str, lineno: int, cmd: str, variables: Mapping[str, str]) -> None:
        """Echo a debug-marked command with the context it runs in."""
        lines = [click.style(f"[{recipe}] debug: line {lineno}", fg="yellow")]
        lines.append(f"  command: {cmd}")
        for name, value in variables.items():
            lines.append(f"  {name}={value}")
        self._echo("\n".join(lines), err=True)

    def print_output(self, recipe: str, stdout: str, stderr: str) -> None:
        """Print captured command output, prefixed by recipe."""
        out = [f"[{recipe}] {line}" for line in stdout.splitlines()]
        err = [f"[{recipe}] {line}" for line in stderr.splitlines()]
        with self._lock:
            if out:
                click.echo("\n".join(out))
            if err:
                click.echo("\n".join(err), err=True)

    def print_success(self, name: str) -> None:
        self._echo(f"{click.style('✓', fg='green')} {name}")

    def print_failure(self, name: str, reason: str) -> None:
        self._echo(f"{click.style('✗', fg='red')} {name}: {reason}", err=True)

    def print_results(self, results: Dict[str, str]) -> None:
        """Print final results summary."""
        lines = ["", "=" * 40, "RESULTS", "=" * 40]
        for name, status in results.items():
            status_display = status.upper() if status != "ok" else "SUCCESS"
            lines.append(f"  {name}: {status_display}")
        self._echo("\n".join(lines))

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def print_source_error(self, error: SourceError) -> None:
        """
        Print a diagnostic pointing into a Hayfile line.

            error[Subcall]: `$(Z)` names no known variable `Z`
              --> Hayfile:3:1
               |
             3 | all: $(Z)
               | ^
               = note: this was all: $(Z)
        """
        gutter = " " * len(str(error.lineno))
        text = error.text.replace("\t", " ")
        lines = [
            click.style(f"error[{error.kind}]", fg="red", bold=True) + f": {error.message}",
            f"{gutter}{click.style('-->', fg='blue')} {error.filename}:{error.lineno}:{error.column + 1}",
            f"{gutter} {click.style('|', fg='blue')}",
            f"{click.style(str(error.lineno), fg='blue')} {click.style('|', fg='blue')} {text}",
            f"{gutter} {click.style('|', fg='blue')} {' ' * error.column}{click.style('^', fg='red', bold=True)}",
        ]
        for note in error.notes:
            label, _, rest = note.partition(": ")
            lines.append(f"{gutter} {click.style('=', fg='blue')} {click.style(label, bold=True)}: {rest}")
        self._echo("\n".join(lines), err=True)

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        lines = [f"\n{click.style('ERROR', fg='red', bold=True)}: {title}", message]
        if details:
            lines.extend(f"  {detail}" for detail in details)
        if suggestion:
            lines.append(f"\n{suggestion}")
        self._echo("\n".join(lines), err=True)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            with self._lock:
                traceback.print_exc()
        else:
            self._echo(f"Error: {exc}", err=True)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        self._echo(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            self._echo(f"[DEBUG] {message}", err=True)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
