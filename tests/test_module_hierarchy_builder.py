import pytest

from hdlnav.services import (
    BuildCancelledError,
    CircularReferenceError,
    ModuleNotFoundInCatalog,
)
from hdlnav.services.module_hierarchy_builder import ModuleHierarchyBuilder, build_hierarchy


def test_top_with_one_sub_instance(catalog_of):
    catalog = catalog_of({
        "top.v": "module top; sub inst1(); endmodule\n",
        "sub.v": "module sub; endmodule\n",
    })
    root = build_hierarchy(catalog, "top")

    assert root.inst_name == "top"
    assert root.mod_name == "top"
    assert [(c.inst_name, c.mod_name) for c in root.children] == [("inst1", "sub")]
    assert root.children[0].children == ()
    assert root.children[0].resolved


def test_missing_top_raises(catalog_of):
    catalog = catalog_of({"sub.v": "module sub; endmodule\n"})
    with pytest.raises(ModuleNotFoundInCatalog):
        ModuleHierarchyBuilder(catalog).build("top")


def test_shared_module_body_scanned_once(diamond):
    builder = ModuleHierarchyBuilder(diamond)
    root = builder.build("A")

    u_b1 = root.find("u_b1")
    u_b2 = root.find("u_c", "u_b2")
    assert builder.bodies_scanned["B"] == 1
    assert all(count == 1 for count in builder.bodies_scanned.values())
    assert u_b1.children is u_b2.children
    assert u_b1.inst_name != u_b2.inst_name
    assert [c.signature() for c in u_b1.children] == [c.signature() for c in u_b2.children]


def test_build_is_idempotent(diamond):
    builder = ModuleHierarchyBuilder(diamond)
    first = builder.build("A")
    second = builder.build("A")
    assert first.signature() == second.signature()
    assert builder.bodies_scanned["B"] == 1


def test_instantiations_in_comments_and_blocks_rejected(catalog_of):
    catalog = catalog_of({
        "top.v": (
            "module top (input clk);\n"
            "  // foo bar (x);\n"
            "  always @(posedge clk) begin\n"
            "    foo baz (y);\n"
            "  end\n"
            "  real_sub keep (.a(clk));\n"
            "endmodule\n"
        ),
        "real_sub.v": "module real_sub (input a); endmodule\n",
    })
    root = build_hierarchy(catalog, "top")
    assert [c.inst_name for c in root.children] == ["keep"]


def test_keywords_and_macros_are_not_instances(catalog_of):
    catalog = catalog_of({
        "top.sv": (
            "module top;\n"
            "  function automatic int twice(input int v);\n"
            "    return v * 2;\n"
            "  endfunction\n"
            "  `MOD u_macro ();\n"
            "  wire w;\n"
            "  assign w = twice (1);\n"
            "endmodule\n"
        ),
    })
    root = build_hierarchy(catalog, "top")
    assert root.children == ()


def test_parameterized_instance_line_recovered(catalog_of):
    catalog = catalog_of({
        "top.v": (
            "module top;\n"
            "  wire a;\n"
            "  sub #(\n"
            "    .W(8)\n"
            "  ) u_sub (\n"
            "    .x(a)\n"
            "  );\n"
            "  sub u_two (.x(a));\n"
            "endmodule\n"
        ),
        "sub.v": "module sub #(parameter W = 1) (input [W-1:0] x);\nendmodule\n",
    })
    root = build_hierarchy(catalog, "top")

    assert [(c.inst_name, c.instance.line) for c in root.children] == [("u_sub", 3), ("u_two", 8)]


def test_repeated_instantiations_get_increasing_lines(catalog_of):
    catalog = catalog_of({
        "top.v": "module top;\n  leaf u0 ();\n  leaf u1 ();\n  leaf u2 ();\nendmodule\n",
        "leaf.v": "module leaf;\nendmodule\n",
    })
    root = build_hierarchy(catalog, "top")
    assert [c.instance.line for c in root.children] == [2, 3, 4]


def test_missing_module_becomes_unresolved_leaf(catalog_of):
    catalog = catalog_of({
        "top.v": "module top;\n  ghost g0 ();\n  ghost g1 ();\nendmodule\n",
    })
    builder = ModuleHierarchyBuilder(catalog)
    root = builder.build("top")

    assert [(c.inst_name, c.resolved) for c in root.children] == [("g0", False), ("g1", False)]
    assert builder.missing == {"ghost"}
    assert "ghost" in builder.cached_modules()


def test_unbalanced_instance_stops_scan_keeps_accepted(catalog_of):
    catalog = catalog_of({
        "top.v": "module top;\n  leaf u0 ();\n  leaf u1 (.a(b);\n  leaf u2 ();\nendmodule\n",
        "leaf.v": "module leaf;\nendmodule\n",
    })
    root = build_hierarchy(catalog, "top")
    assert [c.inst_name for c in root.children] == ["u0"]


def test_body_ends_at_endmodule(catalog_of):
    catalog = catalog_of({
        "both.v": "module top;\n  leaf u0 ();\nendmodule\nmodule other;\n  leaf u9 ();\nendmodule\n",
        "leaf.v": "module leaf;\nendmodule\n",
    })
    root = build_hierarchy(catalog, "top")
    assert [c.inst_name for c in root.children] == ["u0"]


def test_circular_instantiation_fails_fast(catalog_of):
    catalog = catalog_of({
        "a.v": "module a;\n  b u_b ();\nendmodule\n",
        "b.v": "module b;\n  a u_a ();\nendmodule\n",
    })
    with pytest.raises(CircularReferenceError) as info:
        build_hierarchy(catalog, "a")
    assert info.value.path == ["a", "b", "a"]


def test_self_instantiation_detected(catalog_of):
    catalog = catalog_of({"a.v": "module a;\n  a u_again ();\nendmodule\n"})
    with pytest.raises(CircularReferenceError) as info:
        build_hierarchy(catalog, "a")
    assert info.value.path == ["a", "a"]


def test_circular_instantiation_kept_as_leaf_when_allowed(catalog_of):
    catalog = catalog_of({
        "a.v": "module a;\n  b u_b ();\nendmodule\n",
        "b.v": "module b;\n  a u_a ();\nendmodule\n",
    })
    builder = ModuleHierarchyBuilder(catalog, {"fail_on_cycle": False})
    root = builder.build("a")

    u_a = root.find("u_b", "u_a")
    assert u_a is not None
    assert u_a.children == ()
    assert builder.cycles == [["a", "b", "a"]]


def test_yield_hook_does_not_change_result(diamond):
    calls = []
    plain = build_hierarchy(diamond, "A")
    hooked = build_hierarchy(diamond, "A", yield_hook=lambda: calls.append(1))

    assert plain.signature() == hooked.signature()
    # one call per recursive entry plus four per scanned body
    assert len(calls) >= 4 * len(diamond)


def test_cancelled_build_leaves_builder_reusable(diamond):
    state = {"cancel": True}

    def hook():
        if state["cancel"]:
            raise BuildCancelledError("stop")

    builder = ModuleHierarchyBuilder(diamond, yield_hook=hook)
    with pytest.raises(BuildCancelledError):
        builder.build("A")

    state["cancel"] = False
    root = builder.build("A")
    assert root.signature() == build_hierarchy(diamond, "A").signature()


def test_edges_recorded_per_instantiation(diamond):
    builder = ModuleHierarchyBuilder(diamond)
    builder.build("A")
    assert sorted(builder.edges) == [("A", "B"), ("A", "C"), ("B", "D"), ("C", "B")]


def test_endmodule_inside_comment_does_not_end_body(catalog_of):
    catalog = catalog_of({
        "top.v": "module top;\n  // instances below, endmodule follows later\n  leaf u0 ();\nendmodule\n",
        "leaf.v": "module leaf;\nendmodule\n",
    })
    root = build_hierarchy(catalog, "top")
    assert [(c.inst_name, c.instance.line) for c in root.children] == [("u0", 3)]


def test_line_recovery_skips_procedural_blocks(catalog_of):
    catalog = catalog_of({
        "top.v": (
            "module top (input clk);\n"
            "  initial begin\n"
            "    leaf u0 ();\n"
            "  end\n"
            "  leaf u0 ();\n"
            "endmodule\n"
        ),
        "leaf.v": "module leaf;\nendmodule\n",
    })
    root = build_hierarchy(catalog, "top")
    assert [(c.inst_name, c.instance.line) for c in root.children] == [("u0", 5)]
