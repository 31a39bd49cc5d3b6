# line.py
from __future__ import annotations

from dataclasses import dataclass

SHELL_MARKER = "\t"
DEBUG_MARKER = "+"
NEGLECT_MARKER = "-"


@dataclass(frozen=True)
class LineInfo:
    """
    What the leading characters of one Hayfile line say about it.

    shell:      line starts with a TAB and is a recipe command
    debug:      `+` marker, verbose diagnostics for this line
    neglect:    `-` marker, report errors on this line and carry on
    split:      column where the content starts (after TAB and markers)
    sans_flags: the line without TAB and markers
    """
    shell: bool
    debug: bool
    neglect: bool
    split: int
    sans_flags: str

    @classmethod
    def from_line(cls, line: str) -> LineInfo:
        shell = line.startswith(SHELL_MARKER)
        if shell:
            split = len(SHELL_MARKER)
        else:
            split = len(line) - len(line.lstrip(" "))

        debug = neglect = False
        while split < len(line) and line[split] in (DEBUG_MARKER, NEGLECT_MARKER):
            if line[split] == DEBUG_MARKER:
                debug = True
            else:
                neglect = True
            split += 1

        return cls(
            shell=shell,
            debug=debug,
            neglect=neglect,
            split=split,
            sans_flags=line[split:],
        )


def is_blank(line: str) -> bool:
    return line.strip() == ""
