"""DAG utilities for ordering tables by their references."""

from __future__ import annotations

from typing import TYPE_CHECKING

from modelsync.exceptions import SchemaCycleError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

WHITE, GRAY, BLACK = 0, 1, 2


def creation_order(dependencies: Mapping[str, Iterable[str]]) -> list[str]:
    """Order nodes so that every node comes after the nodes it depends on.

    Uses iterative DFS with white/gray/black coloring and emits nodes in
    post-order. O(V+E) time. Self-dependencies are ignored, as are
    dependencies on nodes not present as keys. Ties keep the key order of
    ``dependencies``.

    Args:
        dependencies: node -> nodes it depends on (must be created first).

    Raises:
        SchemaCycleError: if the graph has a cycle; ``cycle`` lists the nodes
            on it, starting and ending with the same node.
    """
    adj: dict[str, list[str]] = {}
    for node, deps in dependencies.items():
        adj[node] = sorted({d for d in deps if d != node and d in dependencies})

    color: dict[str, int] = {n: WHITE for n in adj}
    order: list[str] = []

    for start in adj:
        if color[start] != WHITE:
            continue
        # Stack entries: (node, dep_index). dep_index tracks iteration
        # progress through adj[node].
        stack: list[tuple[str, int]] = [(start, 0)]
        color[start] = GRAY
        while stack:
            node, idx = stack[-1]
            deps = adj[node]
            if idx < len(deps):
                stack[-1] = (node, idx + 1)
                dep = deps[idx]
                if color[dep] == GRAY:
                    path = [n for n, _ in stack]
                    cycle = path[path.index(dep) :]
                    raise SchemaCycleError([*cycle, dep])
                if color[dep] == WHITE:
                    color[dep] = GRAY
                    stack.append((dep, 0))
            else:
                color[node] = BLACK
                order.append(node)
                stack.pop()

    return order
