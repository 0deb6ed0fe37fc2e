"""Tests for attributed CFG construction and graph serialization."""

import json

import pytest
from networkx.readwrite import json_graph

from binml.analysis.features import Scheme
from binml.corpus.walks import walk
from binml.graphs.cfg import build_cfg, build_skeleton
from binml.graphs.model import Graph, GraphEdge, GraphKind, GraphNode
from binml.records.parser import build_function


def test_worked_example_node_zero(worked_example):
    cfg = build_cfg(worked_example, Scheme.GEMINI, "x86_64")
    node = cfg.nodes[0]
    assert node.features.as_dict() == {
        "num_calls": 1.0,
        "num_transfer": 0.0,
        "num_arith": 0.0,
        "num_ins": 1.0,
        "numeric_consts": 0.0,
        "string_consts": 0.0,
        "num_offspring": 2.0,
    }
    assert cfg.successors(0) == (1, 2)
    assert [e.weight for e in cfg.adjacency[0]] == [1, 2]


def test_worked_example_shape(worked_example):
    cfg = build_cfg(worked_example, "gemini", "x86_64")
    assert cfg.kind is GraphKind.CFG
    assert cfg.num_nodes == 9
    assert cfg.num_edges == 11
    assert cfg.out_degree(6) == 0
    for node in cfg.nodes:
        assert node.features["num_offspring"] == cfg.out_degree(node.id)


def test_string_reference_counted(worked_example):
    cfg = build_cfg(worked_example, Scheme.DISCOVRE, "x86_64")
    # block 7 loads str.hello
    assert cfg.nodes[7].features["string_consts"] == 1.0
    assert len(cfg.nodes[7].features) == 6


def test_zero_block_function_gives_single_node():
    func = build_function({"name": "thunk", "offset": 0})
    cfg = build_cfg(func, Scheme.DGIS, "arm32")
    assert cfg.num_nodes == 1
    assert cfg.num_edges == 0
    assert sum(cfg.nodes[0].features.values) == 0.0
    assert len(cfg.nodes[0].features) == 8


def test_document_layout(worked_example):
    doc = build_cfg(worked_example, Scheme.GEMINI, "x86_64").to_document()
    assert doc["directed"] is True
    assert doc["multigraph"] is False
    assert doc["graph"] == []
    assert doc["adjacency"][0] == [{"id": 1, "weight": 1}, {"id": 2, "weight": 2}]
    assert doc["nodes"][0]["id"] == 0
    assert doc["nodes"][0]["num_offspring"] == 2.0


def test_document_loads_with_networkx(worked_example):
    doc = json.loads(json.dumps(build_cfg(worked_example, Scheme.GEMINI, "x86_64").to_document()))
    g = json_graph.adjacency_graph(doc)
    assert g.is_directed()
    assert g.number_of_nodes() == 9
    assert g.number_of_edges() == 11
    assert g[0][2]["weight"] == 2


def test_to_networkx(worked_example):
    g = build_cfg(worked_example, Scheme.GEMINI, "x86_64").to_networkx()
    assert g.graph["kind"] == "cfg"
    assert g.nodes[0]["num_calls"] == 1.0
    assert set(g.successors(3)) == {4, 5}


def test_parallel_edges_keep_lower_weight():
    graph = Graph(
        kind=GraphKind.CFG,
        name="f",
        nodes=(GraphNode(0), GraphNode(1)),
        adjacency=((GraphEdge(1, 1), GraphEdge(1, 2)), ()),
    )
    assert graph.to_networkx()[0][1]["weight"] == 1


def test_graph_rejects_sparse_ids():
    with pytest.raises(ValueError, match="dense"):
        Graph(kind=GraphKind.CFG, name="f", nodes=(GraphNode(1),), adjacency=((),))


def test_graph_rejects_out_of_range_edge():
    with pytest.raises(ValueError, match="out of range"):
        Graph(kind=GraphKind.CFG, name="f", nodes=(GraphNode(0),), adjacency=((GraphEdge(3, 1),),))


def test_graph_rejects_missing_vectors():
    with pytest.raises(ValueError, match="gemini"):
        Graph(
            kind=GraphKind.CFG,
            name="f",
            nodes=(GraphNode(0),),
            adjacency=((),),
            scheme=Scheme.GEMINI,
        )


def test_skeleton_matches_cfg_structure(worked_example):
    skeleton = build_skeleton(worked_example)
    cfg = build_cfg(worked_example, Scheme.GEMINI, "x86_64")
    assert skeleton.scheme is None
    assert all(node.features is None for node in skeleton.nodes)
    assert skeleton.adjacency == cfg.adjacency
    assert walk(skeleton, 6, 4, seed=3) == walk(cfg, 6, 4, seed=3)


def test_skeleton_of_empty_function():
    skeleton = build_skeleton(build_function({"name": "thunk", "blocks": []}))
    assert [n.id for n in skeleton.nodes] == [0]
    assert skeleton.adjacency == ((),)
