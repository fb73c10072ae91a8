"""
Export a class forest as a NetworkX graph.

Nodes are classes keyed by their class loader name (``Outer$Inner``),
edges are CONTAINS relations from an outer class to its inner classes.
Useful for visualization and for tools that want graph queries
(ancestors, depth) instead of walking JavaClass nodes.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

import networkx as nx

from .parser import JavaClass, ParsedDocument


class ClassGraphBuilder:
    def __init__(self) -> None:
        self.graph = nx.DiGraph()

    def build_from_classes(
        self,
        classes: Iterable[JavaClass],
        *,
        file_path: Optional[str] = None,
        package_name: str = "",
    ) -> None:
        for root in classes:
            for java_class in root.iter_classes():
                self._add_class(java_class, file_path=file_path, package_name=package_name)

    def build_from_document(self, doc: ParsedDocument, *, file_path: Optional[str] = None) -> None:
        self.build_from_classes(doc.classes, file_path=file_path, package_name=doc.package_name)

    def _add_class(self, java_class: JavaClass, *, file_path: Optional[str], package_name: str) -> None:
        node_id = java_class.get_name_used_by_class_loader()
        qualified = f"{package_name}.{node_id}" if package_name else node_id
        self.graph.add_node(
            node_id,
            id=node_id,
            name=java_class.name,
            type="Class",
            qualified_name=qualified,
            file_path=file_path,
            scope=java_class.get_scope(),
            signature_start=java_class.signature_interval.start,
            signature_end=java_class.signature_interval.end,
            body_start=java_class.body_interval.start,
            body_end=java_class.body_interval.end,
        )
        outer = java_class.outer_class
        if outer is not None:
            self.graph.add_edge(
                outer.get_name_used_by_class_loader(),
                node_id,
                relation="CONTAINS",
                type="CONTAINS",
            )

    def get_graph(self) -> nx.DiGraph:
        return self.graph

    def top_level_classes(self) -> List[str]:
        return sorted(n for n, deg in self.graph.in_degree() if deg == 0)

    def to_dict(self) -> Dict:
        return {
            "nodes": [attrs for _, attrs in self.graph.nodes(data=True)],
            "edges": [{"source": u, "target": v, **data} for u, v, data in self.graph.edges(data=True)],
        }
