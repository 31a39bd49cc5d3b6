# derive.py
"""
Derivation: macro-style expansion of `$(...)` references against a VarMap.

    $(NAME) / ${NAME}      value of NAME, itself derived recursively
    $(fn arg,arg,...)      built-in call, arguments derived first
    $(CC_$(MODE))          nested: the reference body is derived before lookup
    $$                     a literal `$`, kept as `$$` until a shell sees it

Any other `$` is left alone so that shell text like `$HOME` passes through.
"""
from __future__ import annotations

import glob
import logging
import os
import re
import subprocess
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import click

from .errors import DerivationError

logger = logging.getLogger(__name__)

VAR = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
CALL = re.compile(r"([a-z][a-z-]*)\s+", re.S)

# Self-referencing variables (A = $(A)) would otherwise expand forever.
MAX_DEPTH = 32

_CLOSERS = {"(": ")", "{": "}"}


class VarMap(dict):
    """
    Ordered variable store: name -> raw, underived text.

    Re-assigning a name keeps its original position; new names go last.
    """

    def assign(self, names: List[str], value: str) -> None:
        for name in names:
            self[name] = value

    def resolved(self) -> Dict[str, str]:
        """Derived value of every variable that derives cleanly."""
        out: Dict[str, str] = {}
        for name, raw in self.items():
            try:
                out[name] = derive(raw, self)
            except DerivationError as e:
                logger.debug(f"Variable {name} does not derive: {e.message}")
        return out


# ----------------------------------------------------------------------
# Scanning
# ----------------------------------------------------------------------

def _find_close(text: str, start: int, opener: str) -> int:
    """Index of the bracket closing the one at text[start], or -1."""
    closer = _CLOSERS[opener]
    level = 0
    for i in range(start, len(text)):
        if text[i] == opener:
            level += 1
        elif text[i] == closer:
            level -= 1
            if level == 0:
                return i
    return -1


def _split_args(text: str) -> List[str]:
    """Split call arguments on commas that are not inside a reference."""
    args: List[str] = []
    level = 0
    start = 0
    for i, ch in enumerate(text):
        if ch in "({":
            level += 1
        elif ch in ")}":
            level -= 1
        elif ch == "," and level == 0:
            args.append(text[start:i])
            start = i + 1
    args.append(text[start:])
    return args


class _Deriver:
    def __init__(self, variables: Dict[str, str], debug: bool):
        self.variables = variables
        self.debug = debug

    def expand(
        self,
        text: str,
        depth: int,
        trace: Tuple[str, ...],
        spans: Optional[List[Tuple[int, int]]] = None,
    ) -> str:
        """
        Expand references in `text`. `$$` is kept as is; it is unescaped
        once, when a command is handed to the shell.

        If `spans` is given, the (start, end) offsets of every substituted
        piece of the result are appended to it.
        """
        out: List[str] = []
        length = 0
        i = 0
        while i < len(text):
            ch = text[i]
            nxt = text[i + 1] if i + 1 < len(text) else ""

            if ch == "$" and nxt == "$":
                piece = "$$"
                i += 2
            elif ch == "$" and nxt in _CLOSERS:
                end = _find_close(text, i + 1, nxt)
                if end == -1:
                    raise self._error(f"unterminated reference `{text[i:]}`", text[i:], trace)
                body = text[i + 2:end]
                piece = self.resolve(body, text[i:end + 1], depth, trace)
                i = end + 1
                if spans is not None and piece:
                    spans.append((length, length + len(piece)))
            else:
                piece = ch
                i += 1

            out.append(piece)
            length += len(piece)

        return "".join(out)

    def resolve(self, body: str, ref: str, depth: int, trace: Tuple[str, ...]) -> str:
        if depth >= MAX_DEPTH:
            raise self._error(
                f"derivation did not converge after {MAX_DEPTH} nested expansions at `{ref}`",
                ref,
                trace,
            )

        call = CALL.match(body)
        if call and call.group(1) in BUILTINS:
            name = call.group(1)
            args = _split_args(body[call.end():])
            result = BUILTINS[name](self, args, depth + 1, trace + (ref,))
            if self.debug:
                logger.debug(f"{ref} => {result!r}")
            return result

        name = self.expand(body, depth + 1, trace).strip()
        if name not in self.variables:
            what = "call" if " " in name else "variable"
            raise self._error(f"`{ref}` names no known {what} `{name}`", ref, trace)

        result = self.expand(self.variables[name], depth + 1, trace + (ref,))
        if self.debug:
            logger.debug(f"{ref} => {result!r}")
        return result

    def arg(self, text: str, depth: int, trace: Tuple[str, ...]) -> str:
        return self.expand(text, depth, trace)

    def _error(self, message: str, ref: str, trace: Tuple[str, ...]) -> DerivationError:
        if self.debug and trace:
            message = f"{message}\n  while deriving {' -> '.join(trace)}"
        return DerivationError(message, reference=ref, trace=list(trace))


def derive(line: str, variables: Dict[str, str], debug: bool = False) -> str:
    """
    Expand every reference in `line`.

    Raises:
        DerivationError: a reference names no variable or call, a `shell`
            call failed, or expansion nested deeper than MAX_DEPTH.
    """
    return _Deriver(variables, debug).expand(line, 0, ())


def derive_spans(
    line: str, variables: Dict[str, str], debug: bool = False
) -> Tuple[str, List[Tuple[int, int]]]:
    """Like `derive`, also returning the spans of the result that were substituted."""
    spans: List[Tuple[int, int]] = []
    return _Deriver(variables, debug).expand(line, 0, (), spans), spans


def unescape_dollars(text: str) -> str:
    return text.replace("$$", "$")


# ----------------------------------------------------------------------
# Built-in calls
# ----------------------------------------------------------------------

Builtin = Callable[[_Deriver, List[str], int, Tuple[str, ...]], str]


def _derived(fn: Callable[..., str], arity: Optional[int] = None) -> Builtin:
    """Wrap a plain function of derived string arguments as a builtin."""
    def call(d: _Deriver, args: List[str], depth: int, trace: Tuple[str, ...]) -> str:
        if arity is not None and len(args) != arity:
            # the last argument soaks up extra commas, as in make
            if len(args) > arity:
                args = args[:arity - 1] + [",".join(args[arity - 1:])]
            else:
                raise d._error(
                    f"`{trace[-1]}` expects {arity} argument(s), got {len(args)}",
                    trace[-1],
                    trace,
                )
        return fn(*[d.arg(a, depth, trace) for a in args])
    return call


def _pattern_stem(pattern: str, word: str) -> Optional[str]:
    if "%" not in pattern:
        return "" if pattern == word else None
    prefix, _, suffix = pattern.partition("%")
    if len(word) >= len(prefix) + len(suffix) and word.startswith(prefix) and word.endswith(suffix):
        return word[len(prefix):len(word) - len(suffix)]
    return None


def _patsubst(pattern: str, replacement: str, text: str) -> str:
    out = []
    for word in text.split():
        stem = _pattern_stem(pattern.strip(), word)
        if stem is None:
            out.append(word)
        elif "%" in replacement:
            out.append(replacement.strip().replace("%", stem, 1))
        else:
            out.append(replacement.strip())
    return " ".join(out)


def _filter(patterns: str, text: str, keep: bool = True) -> str:
    pats = patterns.split()
    return " ".join(
        w for w in text.split()
        if any(_pattern_stem(p, w) is not None for p in pats) == keep
    )


def _word(n: str, text: str) -> str:
    words = text.split()
    try:
        index = int(n.strip())
    except ValueError:
        raise DerivationError(f"`word` needs a number, got `{n.strip()}`", reference="word")
    return words[index - 1] if 0 < index <= len(words) else ""


def _dir(text: str) -> str:
    return " ".join((os.path.dirname(w) or ".") + "/" for w in text.split())


def _suffix(text: str) -> str:
    return " ".join(os.path.splitext(w)[1] for w in text.split() if os.path.splitext(w)[1])


def _join(a: str, b: str) -> str:
    left, right = a.split(), b.split()
    n = max(len(left), len(right))
    left += [""] * (n - len(left))
    right += [""] * (n - len(right))
    return " ".join(x + y for x, y in zip(left, right))


def _wildcard(patterns: str) -> str:
    return " ".join(sorted(p for pat in patterns.split() for p in glob.glob(pat)))


def _if(d: _Deriver, args: List[str], depth: int, trace: Tuple[str, ...]) -> str:
    # only the chosen branch is derived
    cond = d.arg(args[0], depth, trace).strip()
    if cond:
        return d.arg(args[1], depth, trace) if len(args) > 1 else ""
    return d.arg(",".join(args[2:]), depth, trace) if len(args) > 2 else ""


def _shell(d: _Deriver, args: List[str], depth: int, trace: Tuple[str, ...]) -> str:
    cmd = unescape_dollars(d.arg(",".join(args), depth, trace))
    proc = subprocess.run(cmd, shell=True, text=True, capture_output=True)
    if proc.returncode != 0:
        detail = proc.stderr.strip().splitlines()
        raise d._error(
            f"`{trace[-1]}` exited with {proc.returncode}" + (f": {detail[-1]}" if detail else ""),
            trace[-1],
            trace,
        )
    return " ".join(proc.stdout.splitlines()).strip()


BUILTINS: Dict[str, Builtin] = {
    "subst": _derived(lambda a, b, text: text.replace(a, b), 3),
    "patsubst": _derived(_patsubst, 3),
    "strip": _derived(lambda text: " ".join(text.split()), 1),
    "findstring": _derived(lambda needle, text: needle if needle in text else "", 2),
    "filter": _derived(lambda pats, text: _filter(pats, text), 2),
    "filter-out": _derived(lambda pats, text: _filter(pats, text, keep=False), 2),
    "sort": _derived(lambda text: " ".join(sorted(set(text.split()))), 1),
    "word": _derived(_word, 2),
    "words": _derived(lambda text: str(len(text.split())), 1),
    "firstword": _derived(lambda text: (text.split() or [""])[0], 1),
    "lastword": _derived(lambda text: (text.split() or [""])[-1], 1),
    "dir": _derived(_dir, 1),
    "notdir": _derived(lambda text: " ".join(os.path.basename(w) for w in text.split()), 1),
    "suffix": _derived(_suffix, 1),
    "basename": _derived(lambda text: " ".join(os.path.splitext(w)[0] for w in text.split()), 1),
    "addprefix": _derived(lambda pre, text: " ".join(pre.strip() + w for w in text.split()), 2),
    "addsuffix": _derived(lambda suf, text: " ".join(w + suf.strip() for w in text.split()), 2),
    "join": _derived(_join, 2),
    "wildcard": _derived(_wildcard, 1),
    "upper": _derived(lambda text: text.upper(), 1),
    "lower": _derived(lambda text: text.lower(), 1),
    "if": _if,
    "shell": _shell,
}


# ----------------------------------------------------------------------
# Display
# ----------------------------------------------------------------------

def add_derivation_highlights(value: str, substituted: Sequence[Tuple[int, int]] = ()) -> str:
    """
    Colour `value` for terminal display.

    `substituted` holds the (start, end) spans of `value` that derivation
    filled in (see `derive_spans`); those are styled so they stand apart
    from the literal text around them. Leftover `$(...)` references and
    `$$` escapes are styled too. Nothing is substituted here and malformed
    input is returned unstyled.
    """
    starts = {start: end for start, end in substituted if end > start}
    out: List[str] = []
    i = 0
    while i < len(value):
        if i in starts:
            end = starts[i]
            out.append(click.style(value[i:end], fg="green"))
            i = end
            continue
        if value.startswith("$$", i):
            out.append(click.style("$$", dim=True))
            i += 2
            continue
        if value[i] == "$" and i + 1 < len(value) and value[i + 1] in _CLOSERS:
            end = _find_close(value, i + 1, value[i + 1])
            if end != -1:
                out.append(click.style(value[i:end + 1], fg="cyan", bold=True))
                i = end + 1
                continue
        out.append(value[i])
        i += 1
    return "".join(out)
