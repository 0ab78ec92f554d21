"""
Hierarchy Outline Adapter.

Flattens a HierarchyNode tree into an ordered outline for display. Shared
subtrees are expanded so that every instantiation site gets its own entry;
each entry carries the instantiation site and the module declaration site.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from rich.markup import escape
from rich.tree import Tree

from . import HierarchyNode, Location
from .module_catalog import ModuleCatalog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutlineEntry:
    """One displayed instance line."""
    index: int
    depth: int
    parent_index: Optional[int]
    inst_name: str
    mod_name: str
    instantiation: Location
    declaration: Optional[Location]
    declaration_line: str = ""
    resolved: bool = True


class HierarchyOutlineAdapter:
    """
    Renders hierarchy trees built against one catalog.

    Attributes:
        catalog (ModuleCatalog): Supplies declaration sites
    """

    def __init__(self, catalog: ModuleCatalog) -> None:
        self.catalog = catalog

    def to_outline(self, root: HierarchyNode) -> List[OutlineEntry]:
        """
        Preorder outline of ``root``.

        Args:
            root (HierarchyNode): Tree from ModuleHierarchyBuilder.build()

        Returns:
            List[OutlineEntry]: One entry per instantiation site
        """
        entries: List[OutlineEntry] = []
        self._append(root, 0, None, entries)
        return entries

    def _append(
        self,
        node: HierarchyNode,
        depth: int,
        parent_index: Optional[int],
        entries: List[OutlineEntry],
    ) -> None:
        record = self.catalog.get(node.mod_name)
        declaration = None
        declaration_line = ""
        if record is not None:
            declaration = Location(file=record.file, line=record.line, offset=record.offset)
            declaration_line = record.declaration_line

        index = len(entries)
        entries.append(
            OutlineEntry(
                index=index,
                depth=depth,
                parent_index=parent_index,
                inst_name=node.inst_name,
                mod_name=node.mod_name,
                instantiation=Location(file=node.instance.file, line=node.instance.line),
                declaration=declaration,
                declaration_line=declaration_line,
                resolved=node.resolved,
            )
        )
        for child in node.children:
            self._append(child, depth + 1, index, entries)

    def to_rich_tree(self, root: HierarchyNode) -> Tree:
        """Build a ``rich`` tree of the hierarchy, one label per instance."""
        entries = self.to_outline(root)
        trees: Dict[int, Tree] = {}
        top: Optional[Tree] = None

        for entry in entries:
            label = _rich_label(entry)
            if entry.parent_index is None:
                top = Tree(label, guide_style="dim")
                trees[entry.index] = top
            else:
                trees[entry.index] = trees[entry.parent_index].add(label)

        return top


def _rich_label(entry: OutlineEntry) -> str:
    name = f"[bold]{escape(entry.inst_name)}[/bold]"
    if entry.inst_name != entry.mod_name:
        name += f" ([cyan]{escape(entry.mod_name)}[/cyan])"
    if not entry.resolved:
        return f"{name} [red]module not found[/red] [dim]{escape(str(entry.instantiation))}[/dim]"
    return f"{name} [dim]{escape(str(entry.instantiation))}[/dim]"


def format_outline(entries: List[OutlineEntry], indent: str = "  ") -> str:
    """
    Plain-text outline: one ``*`` line per entry, indented by depth.

    Each line shows the instance, its module, the instantiation site and the
    declaration site (or "module not found").
    """
    lines = []
    for entry in entries:
        declared = str(entry.declaration) if entry.declaration else "module not found"
        lines.append(
            f"{indent * entry.depth}* {entry.inst_name} ({entry.mod_name}) "
            f"{entry.instantiation} -> {declared}"
        )
    return "\n".join(lines)


def to_dict(entries: List[OutlineEntry]) -> List[Dict[str, Any]]:
    """JSON-ready form of an outline."""
    return [asdict(entry) for entry in entries]
