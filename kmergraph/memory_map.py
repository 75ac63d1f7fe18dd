"""On-disk graph cache and a memory-mapped read-only view over it."""

from __future__ import annotations

import mmap
import os
import random
import stat
import struct
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any

from .edges import DirectedEdge, OutEdgeRecord

CACHE_DIR = Path("cache")
_U64 = struct.Struct("<Q")
_WRITE_BITS = stat.S_IWUSR | stat.S_IWGRP | stat.S_IWOTH


def external_sort_by_content(temp: str | os.PathLike, sorted_path: str | os.PathLike) -> None:
    """Sort the tab-separated lines of ``temp`` by their second column into ``sorted_path``."""
    with open(temp, encoding="utf-8", newline="\n") as src:
        lines = [line.rstrip("\n") for line in src]
    lines.sort(key=lambda line: (line.partition("\t")[2], line))
    with open(sorted_path, "w", encoding="utf-8", newline="\n") as dst:
        dst.writelines(f"{line}\n" for line in lines)


def _build_kmer_map(sorted_path: Path, map_path: Path) -> None:
    """Write a k-mer to node id map from lines sorted by k-mer; keys must be unique."""
    previous: str | None = None
    with open(sorted_path, encoding="utf-8", newline="\n") as src, open(
        map_path, "w", encoding="utf-8", newline="\n"
    ) as dst:
        for line in src:
            id_value, sep, kmer = line.rstrip("\n").partition("\t")
            if not sep:
                continue
            if not (id_value.isascii() and id_value.isdigit()):
                raise ValueError(f'failed to parse node id "{id_value}"')
            if previous is not None and kmer <= previous:
                raise ValueError(f"couldn't insert k-mer for node (id {id_value}): duplicate k-mer {kmer!r}")
            previous = kmer
            dst.write(f"{kmer}\t{int(id_value)}\n")


def _load_kmer_map(map_path: Path) -> dict[str, int]:
    kmers: dict[str, int] = {}
    with open(map_path, encoding="utf-8", newline="\n") as src:
        for line in src:
            kmer, sep, id_value = line.rstrip("\n").rpartition("\t")
            if sep:
                kmers[kmer] = int(id_value)
    return kmers


def _map_file(path: Path) -> mmap.mmap | bytes:
    with open(path, "rb") as handle:
        if os.fstat(handle.fileno()).st_size == 0:
            return b""
        return mmap.mmap(handle.fileno(), 0, access=mmap.ACCESS_READ)


@dataclass(eq=False, repr=False)
class GraphCache:
    """Files backing a graph: packed edges, per-node offsets and node labels."""

    name: str
    cache_dir: Path
    graph_path: Path
    index_path: Path
    kmer_path: Path
    edge_count: int = 0
    index_bytes: int = 0
    readonly: bool = False
    _handles: list[IO[Any]] = field(default_factory=list)

    @classmethod
    def create(cls, cache_dir: str | os.PathLike = CACHE_DIR) -> GraphCache:
        """Create a fresh, writable cache with a random name inside ``cache_dir``."""
        directory = Path(cache_dir)
        directory.mkdir(parents=True, exist_ok=True)
        name = str(random.getrandbits(64))
        cache = cls(
            name=name,
            cache_dir=directory,
            graph_path=directory / f"{name}.mmap",
            index_path=directory / f"index_{name}.mmap",
            kmer_path=directory / f"{name}.tmp",
        )
        cache._graph_file = open(cache.graph_path, "w+b")
        cache._index_file = open(cache.index_path, "w+b")
        cache._kmer_file = open(cache.kmer_path, "w+", encoding="utf-8", newline="\n")
        cache._handles = [cache._graph_file, cache._index_file, cache._kmer_file]
        return cache

    @classmethod
    def open(cls, name: str, cache_dir: str | os.PathLike = CACHE_DIR) -> GraphCache:
        """Open an existing, finished cache by name."""
        directory = Path(cache_dir)
        graph_path = directory / f"{name}.mmap"
        index_path = directory / f"index_{name}.mmap"
        kmer_path = directory / f"fst_{name}.fst"
        for path in (graph_path, index_path, kmer_path):
            if not path.is_file():
                raise FileNotFoundError(f"couldn't open file {path}")
        graph_len = graph_path.stat().st_size
        index_len = index_path.stat().st_size
        if graph_len % OutEdgeRecord.SIZE or index_len % _U64.size:
            raise ValueError(f"cache files for {name} are truncated")
        return cls(
            name=name,
            cache_dir=directory,
            graph_path=graph_path,
            index_path=index_path,
            kmer_path=kmer_path,
            edge_count=graph_len // OutEdgeRecord.SIZE,
            index_bytes=index_len,
            readonly=True,
        )

    def write_node(self, node_id: int, edges: Iterable[OutEdgeRecord], label: str) -> None:
        """Append a node's outgoing edges and label; nodes must come in ascending id order."""
        if self.readonly or not self._handles:
            raise ValueError("cache is read-only")
        expected = self.index_bytes // _U64.size
        if node_id != expected:
            raise ValueError(
                f"nodes must be written in ascending order (id: {node_id}, expected id: {expected})"
            )
        if "\n" in label:
            raise ValueError(f"label for node {node_id} contains a newline")
        records = list(edges)
        self._kmer_file.write(f"{node_id}\t{label}\n")
        self._index_file.write(_U64.pack(self.edge_count))
        self.index_bytes += _U64.size
        self._graph_file.write(b"".join(record.to_bytes() for record in records))
        self.edge_count += len(records)

    def make_readonly(self) -> None:
        """Finish the cache: build the k-mer map, close the index and drop write permission."""
        if self.readonly:
            return
        self._kmer_file.flush()
        sorted_path = self.cache_dir / f"sorted_{self.kmer_path.name}"
        map_path = self.cache_dir / f"fst_{self.name}.fst"
        external_sort_by_content(self.kmer_path, sorted_path)
        _build_kmer_map(sorted_path, map_path)
        self.kmer_path = map_path

        self._index_file.write(_U64.pack(self.edge_count))
        self.index_bytes += _U64.size
        self.close()

        for path in (self.index_path, self.graph_path, self.kmer_path):
            path.chmod(path.stat().st_mode & ~_WRITE_BITS)
        self.readonly = True

    def close(self) -> None:
        """Close any open file handles."""
        for handle in self._handles:
            handle.close()
        self._handles = []

    def __enter__(self) -> GraphCache:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"{{\n\tgraph filename: {self.graph_path}\n\tindex filename: {self.index_path}"
            f"\n\tkmer filename: {self.kmer_path}\n}}"
        )


class GraphMemoryMap:
    """Read-only, memory-mapped view of a finished graph cache."""

    def __init__(self, cache: GraphCache) -> None:
        if not cache.readonly:
            raise ValueError("cache must be read-only to be memory mapped")
        self.cache = cache
        self._graph = _map_file(cache.graph_path)
        self._index = _map_file(cache.index_path)
        if len(self._index) < _U64.size:
            self.close()
            raise ValueError(f"index file {cache.index_path} is empty")
        self._kmers = _load_kmer_map(cache.kmer_path)
        self._nodes = len(self._index) // _U64.size - 1

    def _offset(self, position: int) -> int:
        return _U64.unpack_from(self._index, position * _U64.size)[0]

    def _check(self, node_id: int) -> None:
        if not 0 <= node_id < self._nodes:
            raise IndexError(f"node {node_id} out of range (size {self._nodes})")

    def _record(self, position: int) -> OutEdgeRecord:
        start = position * OutEdgeRecord.SIZE
        return OutEdgeRecord.from_bytes(bytes(self._graph[start:start + OutEdgeRecord.SIZE]))

    def _iter_nodes(self, start: int, end: int) -> Iterator[DirectedEdge]:
        for node_id in range(start, end):
            for position in self.index_node(node_id):
                yield DirectedEdge(node_id, self._record(position))

    def node_degree(self, node_id: int) -> int:
        """Number of edges leaving ``node_id``."""
        return len(self.index_node(node_id))

    def node_id_from_kmer(self, kmer: str) -> int:
        """Node id whose label is ``kmer``; raises KeyError when there is none."""
        try:
            return self._kmers[kmer]
        except KeyError:
            raise KeyError(f"k-mer {kmer} not found") from None

    def index_node(self, node_id: int) -> range:
        """Positions of ``node_id``'s edges in the edge file."""
        self._check(node_id)
        return range(self._offset(node_id), self._offset(node_id + 1))

    def neighbours(self, node_id: int) -> Iterator[DirectedEdge]:
        """Iterate over the edges leaving ``node_id``."""
        self._check(node_id)
        return self._iter_nodes(node_id, node_id + 1)

    def edges(self) -> Iterator[DirectedEdge]:
        """Iterate over every edge, grouped by origin node in ascending order."""
        return self._iter_nodes(0, self._nodes)

    def edges_in_range(self, start_node: int, end_node: int) -> Iterator[DirectedEdge]:
        """Iterate over the edges leaving nodes ``start_node`` up to, not including, ``end_node``."""
        if start_node > end_node:
            raise ValueError("invalid range, beginning after end")
        if start_node < 0 or end_node > self._nodes:
            raise IndexError(f"invalid range {start_node}..{end_node} (size {self._nodes})")
        return self._iter_nodes(start_node, end_node)

    def size(self) -> int:
        """Number of nodes."""
        return self._nodes

    def width(self) -> int:
        """Number of edges."""
        return self.cache.edge_count

    def __getitem__(self, key: int | slice) -> OutEdgeRecord | list[OutEdgeRecord]:
        positions = range(self.width())
        if isinstance(key, slice):
            return [self._record(position) for position in positions[key]]
        return self._record(positions[key])

    def close(self) -> None:
        """Release the mappings."""
        for mapped in (self._graph, self._index):
            if isinstance(mapped, mmap.mmap):
                mapped.close()
        self._graph = b""
        self._index = b""
        self.cache.close()

    def __enter__(self) -> GraphMemoryMap:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"MemoryMappedData {{ filename: {self.cache.graph_path}, "
            f"index_filename: {self.cache.index_path}, size: {self._nodes}, width: {self.width()} }}"
        )