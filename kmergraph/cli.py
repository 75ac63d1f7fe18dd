"""Command-line entry point: parse k-mer graph files into an in-memory or memory-mapped graph."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Iterator
from enum import Enum
from pathlib import Path
from typing import TextIO

import lz4.frame
import networkx as nx

from .edges import OutEdgeRecord
from .memory_map import CACHE_DIR, GraphCache, GraphMemoryMap
from .node import EdgeType

_U64_LIMIT = 1 << 64


class ParsingError(ValueError):
    """Raised when an input graph file is malformed."""


class InputType(Enum):
    """Encodings accepted for textual graph input."""

    TXT = "txt"
    LZ4 = "lz4"


def read_file(path: str | Path, mode: InputType) -> bytes:
    """Read ``path`` whole, decompressing it first when ``mode`` is LZ4."""
    raw = Path(path).read_bytes()
    if InputType(mode) is InputType.LZ4:
        try:
            return lz4.frame.decompress(raw)
        except RuntimeError as exc:
            raise OSError(f"couldn't decompress {path}: {exc}") from exc
    return raw


def _parse_u64(text: str, what: str) -> int:
    digits = text[1:] if text.startswith("+") else text
    if not (digits.isascii() and digits.isdigit()):
        raise ParsingError(f'invalid {what}: "{text}"')
    value = int(digits)
    if value >= _U64_LIMIT:
        raise ParsingError(f'invalid {what}: "{text}" does not fit in 64 bits')
    return value


def parse_link(link: str) -> tuple[EdgeType, int]:
    """Parse a link token such as ``L:+:12:-`` into its edge type and destination node."""
    fields = link.split(":")[1:]
    if len(fields) < 3:
        raise ParsingError(f'malformed link: "{link}"')
    origin_dir, dest_text, dest_dir = fields[0], fields[1], fields[2]
    dest = _parse_u64(dest_text, "destination node")
    try:
        edge_type = EdgeType.from_directions(origin_dir, dest_dir)
    except ValueError as exc:
        raise ParsingError(str(exc)) from exc
    return edge_type, dest


def _decode(raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ParsingError(f"invalid UTF-8 in input: {exc}") from exc


def _records(data: bytes) -> Iterator[tuple[str, bytes | None]]:
    """Yield each header (without its leading marker) with the line that follows it."""
    lines = iter(data.split(b"\n"))
    for line in lines:
        if not line:
            continue
        yield _decode(line[1:]), next(lines, None)


def _parse_header(header: str) -> tuple[int, list[tuple[EdgeType, int]]]:
    tokens = header.split()
    if not tokens:
        raise ParsingError("missing node id in header line")
    node_id = _parse_u64(tokens[0], "node id")
    # tokens[1] is the length and tokens[2] the colour value; neither is used.
    return node_id, [parse_link(token) for token in tokens[3:]]


def parse_bytes_petgraph(data: bytes) -> nx.DiGraph:
    """Build a directed graph whose edges carry their orientation under ``edge_type``."""
    graph = nx.DiGraph()
    for header, _sequence in _records(data):
        node_id, links = _parse_header(header)
        for edge_type, dest in links:
            graph.add_edge(node_id, dest, edge_type=edge_type)
    return graph


def parse_bytes_mmapped(data: bytes, cache_dir: str | Path = CACHE_DIR) -> GraphMemoryMap:
    """Write the graph into a new cache under ``cache_dir`` and map it read-only."""
    cache = GraphCache.create(cache_dir)
    try:
        for header, sequence in _records(data):
            if sequence is None:
                raise ParsingError(f"no k-mer sequence for node {header}")
            kmer = _decode(sequence)
            node_id, links = _parse_header(header)
            edges = [OutEdgeRecord(edge_type, dest) for edge_type, dest in links]
            cache.write_node(node_id, edges, kmer)
        cache.make_readonly()
    except BaseException:
        cache.close()
        raise
    return GraphMemoryMap(cache)


def mmap_from_file(name: str, cache_dir: str | Path = CACHE_DIR) -> GraphMemoryMap:
    """Map a previously finished cache called ``name`` inside ``cache_dir``."""
    return GraphMemoryMap(GraphCache.open(name, cache_dir))


def lookup_loop(graph: GraphMemoryMap, stdin: TextIO, stdout: TextIO) -> None:
    """Answer k-mer lookups read line by line until an empty line or end of input."""
    while True:
        stdout.write("Enter something (empty to quit): ")
        stdout.flush()
        query = stdin.readline().rstrip()
        if not query:
            break
        try:
            value = graph.node_id_from_kmer(query)
        except KeyError:
            stdout.write(f"Key {query} not found\n")
        else:
            stdout.write(f"Value for key {query} is {value}\n")
        stdout.write(f"You entered: {query}\n")


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kmergraph", description="Named 'The Tool'")
    parser.add_argument("-V", "--version", action="version", version="%(prog)s 0.1")
    parser.add_argument("-d", "--debug", action="store_true", help="enable debugging mode")
    parser.add_argument("-m", "--mmap", action="store_true", help="enable graph memory mapping mode")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable verbose mode")
    parser.add_argument(
        "-f", "--file", required=True, help="input file (.txt, .lz4, .mmap are accepted)"
    )
    parser.add_argument(
        "--cache-dir", default=str(CACHE_DIR), help="directory holding graph caches"
    )
    return parser


def _run(args: argparse.Namespace) -> None:
    path = Path(args.file)
    extension = path.suffix[1:] if path.suffix else None

    if extension in ("txt", "lz4"):
        data = read_file(path, InputType(extension))
        if args.mmap:
            with parse_bytes_mmapped(data, args.cache_dir) as graph:
                print(f"graph cache: {graph.cache!r}")
                lookup_loop(graph, sys.stdin, sys.stdout)
        else:
            graph = parse_bytes_petgraph(data)
            print(f"graph: {graph.number_of_nodes()} nodes, {graph.number_of_edges()} edges")
    elif extension == "mmap":
        index = path.with_name(f"index_{path.name}")
        if not index.exists():
            raise ValueError(
                "input file <filename>.mmap requires a valid .mmap index file "
                'with name "index_<filename>.mmap"'
            )
        if not args.mmap:
            raise ValueError("input file of type .mmap requires setting the -m --mmap flag")
        with mmap_from_file(path.stem, path.parent) as graph:
            print(repr(graph))
    else:
        raise ValueError(f"invalid input file extension {extension!r}")


def main(argv: list[str] | None = None) -> int:
    """Run the command line; returns the process exit status."""
    args = _parser().parse_args(argv)
    try:
        _run(args)
    except (OSError, ValueError, KeyError) as exc:
        print(f"error {exc}", file=sys.stderr)
        return 1
    return 0