"""
Programmatic construction of a `LayeredGraph`.

Keys are derived from the id path (`Root/Stage/Leaf`), so callers only deal
with ids and parent keys.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from pipeline_compiler.errors import StructuralError
from pipeline_compiler.schema.models import (
    FileSet,
    GraphNode,
    GroupPayload,
    LayeredContainer,
    LayeredGraph,
    NodePayload,
)

KEY_SEPARATOR = "/"


class LayeredGraphBuilder:
    def __init__(self, root_id: str = "Pipeline") -> None:
        self.root = root_id
        self._nodes: Dict[str, GraphNode] = {root_id: GraphNode(key=root_id, id=root_id)}
        self._containers: List[LayeredContainer] = []
        self._cloud_assembly: Optional[FileSet] = None

    def add_container(self, node_id: str, *, parent: Optional[str] = None, data: Optional[NodePayload] = None) -> str:
        return self._add(node_id, parent, data if data is not None else GroupPayload())

    def add_leaf(self, node_id: str, data: NodePayload, *, parent: Optional[str] = None) -> str:
        return self._add(node_id, parent, data)

    def layer(self, container_key: str, tranches: Sequence[Sequence[str]]) -> LayeredGraphBuilder:
        if container_key not in self._nodes:
            raise StructuralError(f"Unknown container '{container_key}'")
        self._containers.append(
            LayeredContainer(node=container_key, tranches=[list(tranche) for tranche in tranches])
        )
        return self

    def with_cloud_assembly(self, file_set: FileSet) -> LayeredGraphBuilder:
        self._cloud_assembly = file_set
        return self

    def build(self) -> LayeredGraph:
        return LayeredGraph(
            root=self.root,
            nodes=dict(self._nodes),
            containers=list(self._containers),
            cloud_assembly_file_set=self._cloud_assembly,
        )

    def _add(self, node_id: str, parent: Optional[str], data: Optional[NodePayload]) -> str:
        parent_key = parent or self.root
        if parent_key not in self._nodes:
            raise StructuralError(f"Unknown parent '{parent_key}' for node '{node_id}'")
        key = f"{parent_key}{KEY_SEPARATOR}{node_id}"
        if key in self._nodes:
            raise StructuralError(f"Duplicate node '{key}'")

        parent_node = self._nodes[parent_key]
        self._nodes[parent_key] = parent_node.model_copy(update={"children": [*parent_node.children, key]})
        self._nodes[key] = GraphNode(key=key, id=node_id, parent=parent_key, data=data)
        return key
