import stat
import struct

import pytest

from kmergraph.edges import DirectedEdge, OutEdgeRecord
from kmergraph.memory_map import GraphCache, GraphMemoryMap, external_sort_by_content
from kmergraph.node import EdgeType

NODES = [
    (0, "ACG", [OutEdgeRecord(EdgeType.FF, 1), OutEdgeRecord(EdgeType.RF, 2)]),
    (1, "CGT", [OutEdgeRecord(EdgeType.FR, 2)]),
    (2, "AAA", []),
    (3, "TTG", [OutEdgeRecord(EdgeType.RR, 0), OutEdgeRecord(EdgeType.FF, 3), OutEdgeRecord(EdgeType.FR, 1)]),
]


def _finished_cache(tmp_path, nodes=NODES):
    cache = GraphCache.create(tmp_path)
    for node_id, label, edges in nodes:
        cache.write_node(node_id, edges, label)
    cache.make_readonly()
    return cache


def _expected_edges(node_ids):
    return [DirectedEdge(node_id, edge) for node_id, _, edges in NODES if node_id in node_ids for edge in edges]


def test_external_sort_orders_by_second_column(tmp_path):
    temp = tmp_path / "in.tmp"
    temp.write_text("1\tGGA\n0\tAAC\n2\tCTT\n", encoding="utf-8")
    out = tmp_path / "out.tmp"
    external_sort_by_content(temp, out)
    assert out.read_text(encoding="utf-8").splitlines() == ["0\tAAC", "2\tCTT", "1\tGGA"]


def test_size_and_width(tmp_path):
    with GraphMemoryMap(_finished_cache(tmp_path)) as graph:
        assert graph.size() == len(NODES)
        assert graph.width() == sum(len(edges) for _, _, edges in NODES)


def test_neighbours_match_written_edges(tmp_path):
    with GraphMemoryMap(_finished_cache(tmp_path)) as graph:
        for node_id, _, edges in NODES:
            assert list(graph.neighbours(node_id)) == [DirectedEdge(node_id, e) for e in edges]
            assert graph.node_degree(node_id) == len(edges)


def test_index_ranges_are_contiguous(tmp_path):
    with GraphMemoryMap(_finished_cache(tmp_path)) as graph:
        ranges = [graph.index_node(n) for n in range(graph.size())]
        assert ranges[0].start == 0
        for before, after in zip(ranges, ranges[1:]):
            assert before.stop == after.start
        assert ranges[-1].stop == graph.width()


def test_index_file_layout(tmp_path):
    cache = _finished_cache(tmp_path)
    data = cache.index_path.read_bytes()
    offsets = [value for (value,) in struct.iter_unpack("<Q", data)]
    assert offsets == [0, 2, 3, 3, 6]
    graph_bytes = cache.graph_path.read_bytes()
    assert graph_bytes[:8] == OutEdgeRecord(EdgeType.FF, 1).to_bytes()


def test_edges_and_ranges(tmp_path):
    with GraphMemoryMap(_finished_cache(tmp_path)) as graph:
        assert list(graph.edges()) == _expected_edges({0, 1, 2, 3})
        assert list(graph.edges_in_range(1, 4)) == _expected_edges({1, 2, 3})
        assert list(graph.edges_in_range(2, 2)) == []


def test_range_errors(tmp_path):
    with GraphMemoryMap(_finished_cache(tmp_path)) as graph:
        with pytest.raises(ValueError):
            graph.edges_in_range(3, 1)
        with pytest.raises(IndexError):
            graph.edges_in_range(0, graph.size() + 1)
        with pytest.raises(IndexError):
            graph.neighbours(graph.size())
        with pytest.raises(IndexError):
            graph.node_degree(-1)


def test_kmer_lookup(tmp_path):
    with GraphMemoryMap(_finished_cache(tmp_path)) as graph:
        for node_id, label, _ in NODES:
            assert graph.node_id_from_kmer(label) == node_id
        with pytest.raises(KeyError):
            graph.node_id_from_kmer("GGGG")


def test_duplicate_kmer_rejected(tmp_path):
    cache = GraphCache.create(tmp_path)
    cache.write_node(0, [], "ACG")
    cache.write_node(1, [], "ACG")
    with pytest.raises(ValueError):
        cache.make_readonly()
    cache.close()


def test_nodes_must_be_in_order(tmp_path):
    cache = GraphCache.create(tmp_path)
    cache.write_node(0, [], "A")
    with pytest.raises(ValueError):
        cache.write_node(2, [], "C")
    assert cache.index_bytes == 8
    cache.close()


def test_memory_map_requires_readonly(tmp_path):
    cache = GraphCache.create(tmp_path)
    with pytest.raises(ValueError):
        GraphMemoryMap(cache)
    cache.close()


def test_readonly_cache(tmp_path):
    cache = _finished_cache(tmp_path)
    index_bytes = cache.index_bytes
    cache.make_readonly()
    assert cache.index_bytes == index_bytes
    for path in (cache.graph_path, cache.index_path, cache.kmer_path):
        assert path.stat().st_mode & (stat.S_IWUSR | stat.S_IWGRP | stat.S_IWOTH) == 0
    with pytest.raises(ValueError):
        cache.write_node(len(NODES), [], "GGG")


def test_open_round_trip(tmp_path):
    cache = _finished_cache(tmp_path)
    reopened = GraphCache.open(cache.name, tmp_path)
    assert reopened.readonly
    assert reopened.index_bytes == cache.index_bytes
    assert reopened.edge_count == cache.edge_count
    with GraphMemoryMap(reopened) as graph:
        assert list(graph.edges()) == _expected_edges({0, 1, 2, 3})
        assert graph.node_id_from_kmer("TTG") == 3


def test_open_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        GraphCache.open("missing", tmp_path)


def test_getitem_records(tmp_path):
    with GraphMemoryMap(_finished_cache(tmp_path)) as graph:
        all_records = [edge for _, _, edges in NODES for edge in edges]
        assert graph[:] == all_records
        assert graph[1] == all_records[1]
        assert graph[-1] == all_records[-1]
        with pytest.raises(IndexError):
            graph[graph.width()]


def test_empty_graph(tmp_path):
    with GraphMemoryMap(_finished_cache(tmp_path, nodes=[])) as graph:
        assert graph.size() == 0
        assert list(graph.edges()) == []


def test_reprs_name_files(tmp_path):
    cache = _finished_cache(tmp_path)
    assert str(cache.graph_path) in repr(cache)
    with GraphMemoryMap(cache) as graph:
        text = repr(graph)
        assert str(cache.index_path) in text
        assert f"size: {len(NODES)}" in text