# runner.py
from __future__ import annotations

import logging
import os
import subprocess
from typing import Mapping

from .derive import unescape_dollars
from .errors import CommandFailure
from .ui.console import get_console

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def command_env(variables: Mapping[str, str]) -> dict:
    """The process environment plus every variable, with `$$` escapes undone."""
    env = os.environ.copy()
    env.update({name: unescape_dollars(value) for name, value in variables.items()})
    return env


def run_command(recipe: str, cmd: str, variables: Mapping[str, str], *, shell: str = "/bin/sh") -> None:
    """
    Run one derived recipe command through the shell.

    `$$` escapes are undone here, right before the shell sees the text.
    Output is captured and written to the console in one piece so that
    concurrently running recipes do not interleave mid-line.

    Raises:
        CommandFailure: the command exited non-zero
    """
    cmd = unescape_dollars(cmd)
    console = get_console()
    console.print_command(recipe, cmd)
    logger.debug(f"[{recipe}] running with {shell}: {cmd}")

    proc = subprocess.run(
        cmd,
        shell=True,
        executable=shell,
        env=command_env(variables),
        text=True,
        capture_output=True,
    )

    console.print_output(recipe, proc.stdout, proc.stderr)

    if proc.returncode != 0:
        raise CommandFailure(recipe=recipe, cmd=cmd, exit_code=proc.returncode)
