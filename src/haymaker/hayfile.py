# hayfile.py
# Turns Hayfile source into variables and recipes, one line at a time.
#
# Hayfiles are context sensitive: a TAB-indented line is a command of the
# recipe opened by the closest rule line above it. That context is the one
# piece of state carried from line to line (BuildContext.open_recipe).
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from .derive import VAR, VarMap, derive, unescape_dollars
from .errors import DEBUG_HELP, DerivationError, RuleSyntaxError, SourceError
from .line import LineInfo, is_blank
from .model import Recipe
from .rules import parse_rule
from .text import find_unescaped, split_unescaped, split_when_balanced_with_offsets, uncomment, unquote
from .ui.console import get_console

logger = logging.getLogger(__name__)

INCLUDE = "include"


@dataclass
class BuildContext:
    """
    Everything accumulated while reading a Hayfile.

    open_recipe is the recipe TAB lines attach to; None outside a recipe
    block. skipping is set when a neglected rule line failed, so its
    commands are dropped instead of being reported as stray.
    """
    filename: str = "<hayfile>"
    variables: VarMap = field(default_factory=VarMap)
    recipes: List[Recipe] = field(default_factory=list)
    open_recipe: Optional[Recipe] = None
    skipping: bool = False
    include_stack: List[str] = field(default_factory=list)

    def close_recipe(self) -> None:
        self.open_recipe = None
        self.skipping = False


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def load_hayfile(path: str | Path) -> BuildContext:
    """
    Read and process a Hayfile from disk.

    Raises:
        OSError: the file cannot be read
        SourceError: a fatal error on some line
    """
    ctx = BuildContext(filename=str(path))
    _process_file(ctx, Path(path))
    return ctx


def load_source(source: str, filename: str = "<hayfile>") -> BuildContext:
    """Process Hayfile text that is already in memory."""
    ctx = BuildContext(filename=filename)
    process_lines(ctx, uncomment(source))
    return ctx


def process_lines(ctx: BuildContext, lines: Iterable[str]) -> None:
    for index, line in enumerate(lines):
        process_line(ctx, line, index + 1)


def process_line(ctx: BuildContext, source: str, lineno: int) -> None:
    """
    Classify one comment-free line and apply it to the context.

    Raises:
        SourceError: Structure and ParseError always; Subcall and Include
            unless the line carries the neglect marker.
    """
    if is_blank(source):
        return

    info = LineInfo.from_line(source)
    line = info.sans_flags.strip()

    if info.shell:
        _shell_line(ctx, info, source, lineno)
        return

    ctx.close_recipe()

    if find_unescaped(line, "=") != -1:
        _assign(ctx, line)
        return

    raw = line
    try:
        line = unescape_dollars(derive(line.replace("\\=", "="), ctx.variables, info.debug))
    except DerivationError as e:
        column = info.split + max(raw.find(e.reference), 0) if e.reference else info.split
        error = _error(ctx, "Subcall", e.message, source, lineno, column, info, raw=raw)
        _raise_or_neglect(error, info)
        # an include line never opens a recipe, so it has no commands to drop
        ctx.skipping = not _is_include(raw)
        return

    if _is_include(line):
        _include(ctx, info, source, raw, line, lineno)
        return

    try:
        rule = parse_rule(line)
    except RuleSyntaxError as e:
        # not subject to the neglect marker
        text, column = (source, info.split + e.column) if line == raw else (line, e.column)
        raise SourceError(
            kind=e.kind,
            message=e.message,
            filename=ctx.filename,
            text=text,
            lineno=lineno,
            column=column,
            notes=[] if line == raw else [f"note: this was {raw}"],
        ) from e

    if rule is None:
        return

    recipe = Recipe.from_rule(rule)
    ctx.recipes.append(recipe)
    ctx.open_recipe = recipe
    logger.debug(f"{ctx.filename}:{lineno}: recipe {recipe.name} <- {recipe.prerequisites}")


# ----------------------------------------------------------------------
# Line kinds
# ----------------------------------------------------------------------

def _shell_line(ctx: BuildContext, info: LineInfo, source: str, lineno: int) -> None:
    if ctx.open_recipe is None:
        if ctx.skipping:
            return
        raise SourceError(
            kind="Structure",
            message="stray shell code outside of a recipe",
            filename=ctx.filename,
            text=source,
            lineno=lineno,
            column=info.split,
        )

    ctx.open_recipe.add_command(
        info.sans_flags.strip(),
        info.debug,
        lineno,
        neglect=info.neglect,
        filename=ctx.filename,
        source=source,
        column=info.split,
    )


def _assign(ctx: BuildContext, line: str) -> None:
    """
    `a = b = value` is handled as the pairs (value, b) then (b, a): every
    name on a left side is bound to the raw text right of its `=`, so `a`
    ends up holding the text "b".
    """
    sides = list(reversed(split_unescaped(line, "=")))
    for value, dest in zip(sides, sides[1:]):
        names = VAR.findall(dest)
        ctx.variables.assign(names, value.strip())
        logger.debug(f"{names} = {value.strip()!r}")


def _is_include(line: str) -> bool:
    return line == INCLUDE or line.startswith(INCLUDE + " ")


def _include(ctx: BuildContext, info: LineInfo, source: str, raw: str, line: str, lineno: int) -> None:
    pieces = split_when_balanced_with_offsets(line, " ", "'")[1:]

    for offset, piece in pieces:
        path = unquote(piece)
        resolved = os.path.abspath(path)

        if not os.path.exists(path):
            message = f"file {path} does not exist"
        elif os.path.isdir(path):
            message = f"{path} is a directory"
        elif resolved in ctx.include_stack:
            message = f"file {path} is already being included"
        else:
            _process_file(ctx, Path(path))
            continue

        if line == raw:
            error = _error(ctx, "Include", message, source, lineno, info.split + offset, info)
        else:
            error = _error(ctx, "Include", message, line, lineno, offset, info, raw=raw)
        _raise_or_neglect(error, info)


def _process_file(ctx: BuildContext, path: Path) -> None:
    source = path.read_text()
    outer = ctx.filename
    ctx.filename = str(path)
    ctx.include_stack.append(os.path.abspath(path))
    try:
        process_lines(ctx, uncomment(source))
    finally:
        ctx.include_stack.pop()
        ctx.filename = outer
    ctx.close_recipe()


# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------

def _error(
    ctx: BuildContext,
    kind: str,
    message: str,
    text: str,
    lineno: int,
    column: int,
    info: LineInfo,
    raw: Optional[str] = None,
) -> SourceError:
    notes: List[str] = []
    if raw is not None:
        notes.append(f"note: this was {raw}")
        if not info.debug:
            notes.append(DEBUG_HELP)
    return SourceError(
        kind=kind,
        message=message,
        filename=ctx.filename,
        text=text,
        lineno=lineno,
        column=column,
        notes=notes,
    )


def _raise_or_neglect(error: SourceError, info: LineInfo) -> None:
    if not info.neglect:
        raise error
    get_console().print_source_error(error)
