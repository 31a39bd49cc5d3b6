from .dag import RecipeGraph, build_graph, plan, run_graph
from .derive import VarMap, add_derivation_highlights, derive
from .errors import HayError, SourceError
from .hayfile import BuildContext, load_hayfile, load_source, process_line
from .line import LineInfo
from .model import Command, Recipe, Rule
from .rules import parse_rule

__all__ = [
    "RecipeGraph", "build_graph", "plan", "run_graph",
    "VarMap", "add_derivation_highlights", "derive",
    "HayError", "SourceError",
    "BuildContext", "load_hayfile", "load_source", "process_line",
    "LineInfo", "Command", "Recipe", "Rule", "parse_rule",
]
