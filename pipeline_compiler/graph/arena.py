"""
Read-only view over the node arena of a `LayeredGraph`.

Nodes reference their parent by key, so every ancestry question is answered
by walking keys up to the root.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence

from pipeline_compiler.errors import StructuralError
from pipeline_compiler.schema.models import GraphNode, LayeredGraph


class GraphArena:
    def __init__(self, graph: LayeredGraph) -> None:
        self._nodes: Dict[str, GraphNode] = dict(graph.nodes)
        self.root = graph.root
        self._check_consistency()

    def _check_consistency(self) -> None:
        if self.root not in self._nodes:
            raise StructuralError(f"Root node '{self.root}' is not part of the graph")
        for key, node in self._nodes.items():
            if node.key != key:
                raise StructuralError(f"Node registered under '{key}' declares key '{node.key}'")
            if node.parent is None:
                if key != self.root:
                    raise StructuralError(f"Node '{key}' has no parent but is not the root")
                continue
            if node.parent not in self._nodes:
                raise StructuralError(f"Node '{key}' references unknown parent '{node.parent}'")
            for child in node.children:
                if child not in self._nodes:
                    raise StructuralError(f"Node '{key}' references unknown child '{child}'")

    def get(self, key: str) -> GraphNode:
        try:
            return self._nodes[key]
        except KeyError as exc:
            raise StructuralError(f"Node '{key}' is not part of the graph") from exc

    def __contains__(self, key: object) -> bool:
        return key in self._nodes

    def root_path(self, key: str) -> List[str]:
        """
        Keys from the root down to (and including) `key`.
        """

        path = [key]
        seen = {key}
        node = self.get(key)
        while node.parent is not None:
            if node.parent in seen:
                raise StructuralError(f"Cycle detected in parent chain of '{key}'")
            seen.add(node.parent)
            path.append(node.parent)
            node = self.get(node.parent)
        path.reverse()
        return path

    def ancestor_path(self, key: str, up_to: str) -> List[str]:
        """
        Keys from just below `up_to` down to `key`. If `up_to` is not an
        ancestor the full root path is returned.
        """

        path = self.root_path(key)
        if up_to in path[:-1]:
            return path[path.index(up_to) + 1:]
        return path

    def common_ancestor(self, keys: Iterable[str]) -> str:
        paths = [self.root_path(key) for key in keys]
        if not paths:
            raise StructuralError("Cannot find common ancestor between an empty set of nodes")

        if len(paths) == 1:
            path = paths[0]
            if len(path) < 2:
                raise StructuralError(f"Cannot find ancestor of node without ancestor: {path[0]}")
            return path[-2]

        depth = 0
        while all(len(path) >= depth + 2 for path in paths) and _same_at(paths, depth + 1):
            depth += 1

        if any(len(path) < depth + 2 for path in paths):
            rendered = ", ".join("/".join(path) for path in paths)
            raise StructuralError(f"Could not determine a shared parent between nodes: {rendered}")
        return paths[0][depth]

    def is_container(self, key: str) -> bool:
        return self.get(key).is_container


def _same_at(paths: Sequence[Sequence[str]], index: int) -> bool:
    first = paths[0][index]
    return all(path[index] == first for path in paths)
