# dag.py
from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Iterable, List, Mapping, Set

from .derive import VarMap
from .errors import CycleError, DependencyError, HayError, SourceError
from .model import Recipe
from .ui.console import get_console

logger = logging.getLogger(__name__)


class RecipeGraph:
    """
    Recipes with stable integer handles and "depends on" edges.

    An edge a -> b means recipe a needs recipe b first. Out-degrees are kept
    up to date on removal so the frontier (nodes with nothing left to wait
    for) is always at hand without scanning the graph.
    """

    def __init__(self) -> None:
        self._recipes: Dict[int, Recipe] = {}
        self._needs: Dict[int, Set[int]] = {}       # node -> nodes it depends on
        self._needed_by: Dict[int, Set[int]] = {}   # node -> nodes depending on it
        self._ready: Set[int] = set()
        self._next = 0

    def __len__(self) -> int:
        return len(self._recipes)

    def __getitem__(self, node: int) -> Recipe:
        return self._recipes[node]

    def __contains__(self, node: int) -> bool:
        return node in self._recipes

    def nodes(self) -> List[int]:
        return sorted(self._recipes)

    def add_node(self, recipe: Recipe) -> int:
        node = self._next
        self._next += 1
        self._recipes[node] = recipe
        self._needs[node] = set()
        self._needed_by[node] = set()
        self._ready.add(node)
        return node

    def add_edge(self, node: int, prerequisite: int) -> None:
        if prerequisite in self._needs[node]:
            return
        self._needs[node].add(prerequisite)
        self._needed_by[prerequisite].add(node)
        self._ready.discard(node)

    def needs(self, node: int) -> Set[int]:
        return set(self._needs[node])

    def needed_by(self, node: int) -> Set[int]:
        return set(self._needed_by[node])

    def frontier(self) -> List[int]:
        """Nodes with no outgoing edge left, in insertion order."""
        return sorted(self._ready)

    def remove_node(self, node: int) -> Recipe:
        recipe = self._recipes.pop(node)
        for dependent in self._needed_by.pop(node):
            needs = self._needs[dependent]
            needs.discard(node)
            if not needs:
                self._ready.add(dependent)
        for prerequisite in self._needs.pop(node):
            self._needed_by[prerequisite].discard(node)
        self._ready.discard(node)
        return recipe


def build_graph(recipes: Iterable[Recipe], exists: Callable[[str], bool] = os.path.exists) -> RecipeGraph:
    """
    One node per recipe, one edge per satisfied prerequisite.

    A prerequisite no recipe builds is accepted when `exists(name)` (a plain
    source file); anything else cannot be satisfied.

    Raises:
        DependencyError: a prerequisite names neither a target nor a file
    """
    graph = RecipeGraph()
    by_target: Dict[str, List[int]] = {}

    for recipe in recipes:
        node = graph.add_node(recipe)
        for target in recipe.targets:
            by_target.setdefault(target, []).append(node)

    for node in graph.nodes():
        recipe = graph[node]
        for prerequisite in recipe.prerequisites:
            providers = by_target.get(prerequisite)
            if not providers:
                if exists(prerequisite):
                    logger.debug(f"{recipe.name}: '{prerequisite}' is a source file")
                    continue
                raise DependencyError(recipe.name, prerequisite)
            for provider in providers:
                graph.add_edge(node, provider)

    return graph


def plan(graph: RecipeGraph) -> List[List[str]]:
    """
    Frontiers the graph drains in, by recipe name, without running anything.

    Raises:
        CycleError: some recipes can never become ready
    """
    needs = {node: len(graph.needs(node)) for node in graph.nodes()}
    ready = [node for node, count in needs.items() if count == 0]
    levels: List[List[str]] = []
    done = 0

    while ready:
        levels.append([graph[node].name for node in ready])
        done += len(ready)
        nxt: List[int] = []
        for node in ready:
            for dependent in sorted(graph.needed_by(node)):
                needs[dependent] -= 1
                if needs[dependent] == 0:
                    nxt.append(dependent)
        ready = sorted(nxt)

    if done != len(graph):
        raise CycleError(sorted(graph[node].name for node, count in needs.items() if count > 0))

    return levels


def result_labels(graph: RecipeGraph) -> Dict[int, str]:
    """
    A distinct label per node for reporting results.

    Recipes sharing a name (the same target written twice) are numbered
    from the second one on: `all`, `all#2`, ...
    """
    labels: Dict[int, str] = {}
    seen: Dict[str, int] = {}
    for node in graph.nodes():
        name = graph[node].name
        seen[name] = seen.get(name, 0) + 1
        labels[node] = name if seen[name] == 1 else f"{name}#{seen[name]}"
    return labels


def _drop_with_dependents(
    graph: RecipeGraph, node: int, labels: Mapping[int, str], results: Dict[str, str]
) -> None:
    stack = [node]
    while stack:
        current = stack.pop()
        if current not in graph:
            continue
        stack.extend(graph.needed_by(current))
        graph.remove_node(current)
        results.setdefault(labels[current], "skipped")


def run_graph(
    graph: RecipeGraph,
    variables: Mapping[str, str],
    *,
    max_workers: int | None = None,
    fail_fast: bool = True,
    shell: str = "/bin/sh",
) -> Dict[str, str]:
    """
    Drain the graph frontier by frontier.

    - Every recipe of a frontier is submitted to the pool at once.
    - The next frontier starts only after the whole current one finished.
    - On a failure with fail_fast, siblings finish their running command but
      start no new one, and nothing further is dispatched.
    - Without fail_fast, recipes depending on a failed one are skipped and
      everything else still runs.

    Commands are derived against `variables` when they run; the derived
    values are exported to every command's environment.

    Returns:
        recipe label (see `result_labels`) -> "ok" | "failed" | "cancelled" | "skipped"

    Raises:
        CycleError: recipes remain but none is ready
    """
    console = get_console()
    labels = result_labels(graph)
    environment = VarMap(variables).resolved()
    results: Dict[str, str] = {}
    cancel = threading.Event()
    round_no = 0

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        while len(graph):
            frontier = graph.frontier()
            if not frontier:
                raise CycleError(sorted(graph[node].name for node in graph.nodes()))

            round_no += 1
            console.print_frontier(round_no, [graph[node].name for node in frontier])

            futures = {
                pool.submit(
                    graph[node].execute,
                    variables,
                    environment=environment,
                    shell=shell,
                    cancel=cancel,
                ): node
                for node in frontier
            }
            failed: List[int] = []

            for future in as_completed(futures):
                node = futures[future]
                label = labels[node]
                try:
                    completed = future.result()
                except HayError as e:
                    results[label] = "failed"
                    if isinstance(e, SourceError):
                        console.print_source_error(e)
                    console.print_failure(label, str(e))
                    failed.append(node)
                    if fail_fast:
                        cancel.set()
                    continue

                results[label] = "ok" if completed else "cancelled"
                if completed:
                    console.print_success(label)

            for node in frontier:
                if node not in failed:
                    graph.remove_node(node)

            if failed and fail_fast:
                for node in graph.nodes():
                    results.setdefault(labels[node], "skipped")
                break

            for node in failed:
                _drop_with_dependents(graph, node, labels, results)

    return results
