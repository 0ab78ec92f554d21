import json

from rich.tree import Tree

from hdlnav.services.hierarchy_outline_adapter import (
    HierarchyOutlineAdapter,
    format_outline,
    to_dict,
)
from hdlnav.services.module_hierarchy_builder import build_hierarchy


def test_shared_subtrees_expanded_per_site(diamond):
    entries = HierarchyOutlineAdapter(diamond).to_outline(build_hierarchy(diamond, "A"))

    assert [e.inst_name for e in entries] == ["A", "u_b1", "u_d", "u_c", "u_b2", "u_d"]
    assert [e.depth for e in entries] == [0, 1, 2, 1, 2, 3]
    assert [e.parent_index for e in entries] == [None, 0, 1, 0, 3, 4]
    assert [e.index for e in entries] == list(range(6))


def test_entries_carry_both_sites(diamond):
    entries = HierarchyOutlineAdapter(diamond).to_outline(build_hierarchy(diamond, "A"))
    u_b2 = entries[4]

    assert u_b2.mod_name == "B"
    assert u_b2.instantiation.file.endswith("c.v")
    assert u_b2.instantiation.line == 2
    assert u_b2.declaration.file.endswith("b.v")
    assert u_b2.declaration.line == 1
    assert u_b2.declaration_line == "module B"


def test_unresolved_entry(catalog_of):
    catalog = catalog_of({"top.v": "module top;\n  ghost g0 ();\nendmodule\n"})
    entries = HierarchyOutlineAdapter(catalog).to_outline(build_hierarchy(catalog, "top"))

    ghost = entries[1]
    assert not ghost.resolved
    assert ghost.declaration is None
    assert "module not found" in format_outline(entries).splitlines()[1]


def test_format_outline_indents_by_depth(diamond):
    entries = HierarchyOutlineAdapter(diamond).to_outline(build_hierarchy(diamond, "A"))
    lines = format_outline(entries).splitlines()

    assert lines[0].startswith("* A (A) ")
    assert lines[1].startswith("  * u_b1 (B) ")
    assert lines[5].startswith("      * u_d (D) ")
    assert lines[1].endswith("b.v:1")


def test_rich_tree_mirrors_outline(diamond):
    tree = HierarchyOutlineAdapter(diamond).to_rich_tree(build_hierarchy(diamond, "A"))

    assert isinstance(tree, Tree)
    assert len(tree.children) == 2
    assert "u_b1" in str(tree.children[0].label)
    assert len(tree.children[1].children[0].children) == 1


def test_to_dict_is_json_ready(diamond):
    entries = HierarchyOutlineAdapter(diamond).to_outline(build_hierarchy(diamond, "A"))
    data = json.loads(json.dumps(to_dict(entries)))

    assert data[1]["inst_name"] == "u_b1"
    assert data[1]["instantiation"]["line"] == 2
    assert data[0]["parent_index"] is None
