"""Load k-mer graphs into an in-memory directed graph or a memory-mapped on-disk cache."""

__version__ = "0.1.0"
__all__ = ["node", "edges", "memory_map", "cli"]