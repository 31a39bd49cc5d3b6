# cli.py
from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from haymaker import settings
from haymaker.dag import build_graph, plan, run_graph
from haymaker.errors import HayError, SourceError
from haymaker.hayfile import load_hayfile
from haymaker.ui.console import Console, get_console, set_console


def discover_hayfile(hayfile_arg: str | None) -> Path:
    """
    Discover the Hayfile from argument or default names.

    Args:
        hayfile_arg: Optional HAYFILE argument from CLI

    Returns:
        Path to the Hayfile

    Raises:
        SystemExit: If no Hayfile can be found
    """
    console = get_console()

    if hayfile_arg:
        path = Path(hayfile_arg)
        if not path.exists():
            console.print_error(
                "Hayfile not found",
                f"Could not find hayfile: {hayfile_arg}",
            )
            sys.exit(1)
        return path

    for name in settings.DEFAULT_HAYFILES:
        path = Path(name)
        if path.exists():
            return path

    console.print_error(
        "No hayfile found",
        "No hayfile in current directory.",
        details=["Looked for:", *(f"  {name}" for name in settings.DEFAULT_HAYFILES)],
        suggestion="Create a hayfile or name one explicitly:\n  haymaker path/to/hayfile",
    )
    sys.exit(1)


@click.command()
@click.argument("hayfile", required=False)
@click.option("--workers", default=settings.WORKERS, type=int, show_default=True, help="Number of parallel workers")
@click.option(
    "--fail-fast/--keep-going",
    default=not settings.KEEP_GOING,
    show_default=True,
    help="Stop scheduling recipes after the first failure, or keep building unrelated ones",
)
@click.option("--dry-run", is_flag=True, default=False, help="Print the build plan without running anything")
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.option("--verbose", is_flag=True, default=False, help="Log internal decisions to stderr")
def cli(hayfile, workers, fail_fast, dry_run, debug, verbose):
    """Haymaker, a fearlessly parallel build system."""
    console = Console(debug=debug)
    set_console(console)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    path = discover_hayfile(hayfile)

    try:
        ctx = load_hayfile(path)
    except SourceError as e:
        console.print_source_error(e)
        sys.exit(1)
    except OSError as e:
        console.print_error("Could not open hayfile", f"Could not open {path}", details=[str(e)])
        sys.exit(1)

    console.print_variables(ctx.variables)
    for recipe in ctx.recipes:
        recipe.print()

    try:
        graph = build_graph(ctx.recipes)
        levels = plan(graph)

        if dry_run:
            for index, level in enumerate(levels, start=1):
                console.print_frontier(index, level)
            return

        results = run_graph(
            graph,
            ctx.variables,
            max_workers=workers,
            fail_fast=fail_fast,
            shell=settings.SHELL,
        )
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except HayError as e:
        console.print_error(e.kind, e.message)
        sys.exit(1)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    console.print_results(results)

    if any(v != "ok" for v in results.values()):
        sys.exit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
