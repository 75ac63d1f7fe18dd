# kmergraph

kmergraph loads k-mer graphs that are written in a FASTA-like unitig format. It can
build the graph in two ways:

- an in-memory `networkx.DiGraph`
- a cache on disk that is then memory-mapped read-only. The cache gives you neighbour
  iteration and lets you look up a node id from its k-mer.

## Input format

Each node takes two lines. The first line is a header and the second is the sequence
(the k-mer):

```
>0 LN:i:31 KC:i:5 L:+:1:+ L:+:2:-
ACGTACGTACGTACGTACGTACGTACGTACG
>1 LN:i:31 KC:i:3 L:-:0:-
...
```

The header has these parts, in order:

- the marker character
- the node id
- two fields, which are read and ignored
- any number of links of the form `L:<origin dir>:<dest id>:<dest dir>`

Each direction is `+` or `-`. A link becomes an edge of type `EdgeType.FF`, `FR`,
`RF` or `RR`. Blank lines are skipped.

In memory-mapped mode there are extra rules:

- Node ids must start at 0 and go up by one with each node.
- Every k-mer must be unique.

A malformed header raises `kmergraph.cli.ParsingError`, which is a subclass of
`ValueError`.

## Installation

```
pip install .
```

## Command line

```
kmergraph --file graph.txt                 # parse into an in-memory graph and print node/edge counts
kmergraph --file graph.lz4                 # same, from an lz4-frame-compressed file
kmergraph --mmap --file graph.txt          # build a memory-mapped cache, then look up k-mers
kmergraph --mmap --file cache/<name>.mmap  # reopen a finished cache and print its summary
```

Options:

- `-f`, `--file`: the input file. Required. It must end in `.txt`, `.lz4` or `.mmap`.
- `-m`, `--mmap`: use the memory-mapped graph. A `.mmap` input requires this flag.
- `--cache-dir`: the directory where new caches are written. The default is `cache`.
- `-v`, `--verbose` and `-d`, `--debug`: accepted, but they have no effect.
- `-V`, `--version`: print the version.

After a memory-mapped build, the command prompts for k-mers on standard input. For each
one it prints the node id, or says that the k-mer was not found. An empty line or end of
input ends the prompt.

To reopen a cache, give its `<name>.mmap` file. Two more files must sit in the same
directory: `index_<name>.mmap` and `fst_<name>.fst`.

When there is an error, the command prints `error ...` to standard error and exits
with status 1.

## Cache layout

A cache called `<name>`, where the name is a random 64-bit number, consists of these files:

- `<name>.mmap`: the packed outgoing edges. Each edge is 8 bytes, little-endian, with the
  edge type in bits 0–1 and the destination node in bits 2–63.
- `index_<name>.mmap`: one little-endian u64 edge offset per node, plus a final end offset.
- `fst_<name>.fst`: a text table with one line per node, in the form `kmer<TAB>node id`,
  sorted by k-mer.

The build also leaves two intermediate files, `<name>.tmp` and `sorted_<name>.tmp`. When
a cache is finished, write permission is removed from its three main files.

## Library use

```python
from kmergraph.cli import parse_bytes_petgraph, parse_bytes_mmapped, read_file, InputType
from kmergraph.edges import OutEdgeRecord
from kmergraph.memory_map import GraphCache, GraphMemoryMap
from kmergraph.node import EdgeType

data = read_file("graph.txt", InputType.TXT)
digraph = parse_bytes_petgraph(data)        # edges carry an EdgeType under "edge_type"

with parse_bytes_mmapped(data, "cache") as graph:
    print(graph.size(), graph.width())      # node count, edge count
    for edge in graph.neighbours(0):        # DirectedEdge objects
        print(edge.origin, edge.dest, edge.edge_type)
    print(graph.node_id_from_kmer("ACGTACGTACGTACGTACGTACGTACGTACG"))
```

To build a cache by hand:

```python
cache = GraphCache.create("cache")
cache.write_node(0, [OutEdgeRecord(EdgeType.FF, 1)], "ACG")
cache.write_node(1, [], "CGT")
cache.make_readonly()
with GraphMemoryMap(cache) as graph:
    print(list(graph.edges()))
```

To reopen a finished cache, call `GraphCache.open(name, cache_dir)` or
`kmergraph.cli.mmap_from_file(name, cache_dir)`.

`GraphMemoryMap` provides the following:

- `node_degree`
- `index_node`, which returns a range of edge positions
- `neighbours`
- `edges`
- `edges_in_range`, where the end is exclusive
- `size`
- `width`
- indexing and slicing over the edge records

`node_id_from_kmer` raises `KeyError` when the k-mer is unknown. Node ids that are out of
range raise `IndexError`.

## What it does not do

kmergraph only builds and loads graphs. It runs no graph algorithms on them, such as
traversal, compaction or statistics, beyond the counts and lookups described above.

The k-mer table is a plain sorted text file that is read into memory when the cache is
mapped. It is not a compressed on-disk index.