"""
Instantiation graph metrics.

Collapses the edges recorded by a hierarchy build into a module-level
``networkx.DiGraph`` (parent module -> instantiated module, weighted by the
number of instantiation sites) and derives fan-in, fan-out, cycles and depth.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

import networkx as nx

logger = logging.getLogger(__name__)


class InstantiationGraph:
    """
    Module-level view of one hierarchy build.

    Attributes:
        graph (nx.DiGraph): Edge attribute ``count`` holds the number of
            instantiation sites of the child inside the parent
        top (str): Top module the build started from, if known
    """

    def __init__(self, edges: Iterable[Tuple[str, str]], top: Optional[str] = None) -> None:
        self.graph = nx.DiGraph()
        self.top = top

        if top is not None:
            self.graph.add_node(top)

        for parent, child in edges:
            if self.graph.has_edge(parent, child):
                self.graph[parent][child]["count"] += 1
            else:
                self.graph.add_edge(parent, child, count=1)

    @classmethod
    def from_builder(cls, builder, top: Optional[str] = None) -> "InstantiationGraph":
        """
        Build from a ModuleHierarchyBuilder after ``build()`` has run.

        Args:
            builder (ModuleHierarchyBuilder): Supplies ``edges``
            top (str, optional): Top module name (adds it even if it has no children)

        Returns:
            InstantiationGraph
        """
        return cls(builder.edges, top=top)

    def fan_in(self, module: str) -> int:
        """Number of distinct modules instantiating ``module``."""
        return self.graph.in_degree(module) if module in self.graph else 0

    def fan_out(self, module: str) -> int:
        """Number of distinct modules instantiated by ``module``."""
        return self.graph.out_degree(module) if module in self.graph else 0

    def instance_count(self, module: str) -> int:
        """Instantiation sites of ``module`` across all parents."""
        if module not in self.graph:
            return 0
        return sum(data["count"] for _, _, data in self.graph.in_edges(module, data=True))

    def leaf_modules(self) -> List[str]:
        return sorted(n for n in self.graph if self.graph.out_degree(n) == 0)

    def root_modules(self) -> List[str]:
        return sorted(n for n in self.graph if self.graph.in_degree(n) == 0)

    def cycles(self) -> List[List[str]]:
        """Circular instantiation paths (each a list of module names)."""
        return [list(c) for c in nx.simple_cycles(self.graph)]

    def max_depth(self, top: Optional[str] = None) -> int:
        """
        Number of hierarchy levels below and including ``top``.

        Falls back to breadth-first levels when the graph has cycles.
        """
        top = top or self.top
        if top is None or top not in self.graph:
            return 0

        reachable = nx.descendants(self.graph, top) | {top}
        sub = self.graph.subgraph(reachable)

        if nx.is_directed_acyclic_graph(sub):
            return nx.dag_longest_path_length(sub) + 1

        logger.warning("Instantiation graph below %s has cycles; reporting breadth-first depth", top)
        return max(nx.single_source_shortest_path_length(sub, top).values()) + 1

    def summary(self) -> Dict[str, Any]:
        """Metrics in a JSON-ready dict."""
        modules = sorted(self.graph)
        return {
            "top": self.top,
            "modules": len(modules),
            "edges": self.graph.number_of_edges(),
            "instantiations": sum(d["count"] for _, _, d in self.graph.edges(data=True)),
            "max_depth": self.max_depth(),
            "leaf_modules": self.leaf_modules(),
            "cycles": self.cycles(),
            "fan_in": {m: self.fan_in(m) for m in modules},
            "fan_out": {m: self.fan_out(m) for m in modules},
        }
