from hdlnav.services.instantiation_graph import InstantiationGraph
from hdlnav.services.module_hierarchy_builder import ModuleHierarchyBuilder


def _graph(catalog, top):
    builder = ModuleHierarchyBuilder(catalog, {"fail_on_cycle": False})
    builder.build(top)
    return InstantiationGraph.from_builder(builder, top=top)


def test_diamond_metrics(diamond):
    graph = _graph(diamond, "A")

    assert graph.fan_in("B") == 2
    assert graph.fan_out("A") == 2
    assert graph.fan_in("A") == 0
    assert graph.instance_count("B") == 2
    assert graph.max_depth("A") == 4
    assert graph.cycles() == []
    assert graph.leaf_modules() == ["D"]
    assert graph.root_modules() == ["A"]


def test_summary(diamond):
    summary = _graph(diamond, "A").summary()

    assert summary["top"] == "A"
    assert summary["modules"] == 4
    assert summary["edges"] == 4
    assert summary["instantiations"] == 4
    assert summary["max_depth"] == 4
    assert summary["fan_in"]["B"] == 2


def test_cycles_reported(catalog_of):
    catalog = catalog_of({
        "a.v": "module a;\n  b u_b ();\nendmodule\n",
        "b.v": "module b;\n  a u_a ();\nendmodule\n",
    })
    graph = _graph(catalog, "a")

    cycles = graph.cycles()
    assert len(cycles) == 1
    assert set(cycles[0]) == {"a", "b"}
    assert graph.max_depth() == 2


def test_repeated_edges_counted():
    graph = InstantiationGraph([("x", "y"), ("x", "y"), ("x", "z")])

    assert graph.fan_out("x") == 2
    assert graph.instance_count("y") == 2
    assert graph.fan_in("unknown") == 0
    assert graph.max_depth("unknown") == 0


def test_top_without_children():
    graph = InstantiationGraph([], top="solo")
    assert graph.max_depth() == 1
    assert graph.leaf_modules() == ["solo"]
