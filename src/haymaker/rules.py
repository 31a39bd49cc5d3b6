# rules.py
# Grammar for derived rule lines:  target [target ...] : [prerequisite ...]
from __future__ import annotations

from typing import List, Optional

from lark import Lark, Transformer
from lark.exceptions import UnexpectedInput

from .errors import RuleSyntaxError
from .model import Rule
from .text import unquote

GRAMMAR = r"""
    start: rule?

    rule: targets ":" prerequisites

    targets: NAME+
    prerequisites: NAME*

    NAME: /'[^']*'/ | /[^\s:']+/

    %import common.WS_INLINE
    %ignore WS_INLINE
"""


class _RuleBuilder(Transformer):
    def start(self, items) -> Optional[Rule]:
        return items[0] if items else None

    def rule(self, items) -> Rule:
        targets, prerequisites = items
        return Rule(targets=targets, prerequisites=prerequisites)

    def targets(self, items) -> List[str]:
        return [unquote(str(t)) for t in items]

    def prerequisites(self, items) -> List[str]:
        return [unquote(str(t)) for t in items]


_parser = Lark(GRAMMAR, parser="lalr", transformer=_RuleBuilder())


def parse_rule(line: str) -> Optional[Rule]:
    """
    Parse one fully derived rule line.

    Returns:
        The Rule, or None when the line designates nothing (empty after
        derivation).

    Raises:
        RuleSyntaxError: the line is not `targets: prerequisites`.
    """
    try:
        return _parser.parse(line)
    except UnexpectedInput as e:
        column = max(getattr(e, "column", 1) or 1, 1) - 1
        summary = str(e).strip().splitlines()[0]
        raise RuleSyntaxError(f"malformed rule: {summary}", column=column) from e
