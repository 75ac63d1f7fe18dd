"""Fixed-size binary edge records stored in the graph file."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import ClassVar, Protocol

from .node import EdgeType

_U64 = struct.Struct("<Q")
_PAIR = struct.Struct("<QQ")
_DEST_LIMIT = 1 << 62
_U64_LIMIT = 1 << 64


class _OutEdge(Protocol):
    @property
    def dest(self) -> int: ...

    @property
    def edge_type(self) -> EdgeType: ...


@dataclass(frozen=True, repr=False)
class OutEdgeRecord:
    """An outgoing edge packed into 64 bits: type in bits 0-1, destination in bits 2-63."""

    SIZE: ClassVar[int] = 8

    edge_type: EdgeType
    dest: int

    def __post_init__(self) -> None:
        if not isinstance(self.edge_type, EdgeType):
            object.__setattr__(self, "edge_type", EdgeType(self.edge_type))
        if not 0 <= self.dest < _DEST_LIMIT:
            raise ValueError(f"destination node {self.dest} does not fit in 62 bits")

    def to_int(self) -> int:
        """Return the packed 64-bit value."""
        return (self.dest << 2) | self.edge_type.value

    @classmethod
    def from_int(cls, value: int) -> OutEdgeRecord:
        """Unpack a 64-bit value."""
        if not 0 <= value < _U64_LIMIT:
            raise ValueError(f"value {value} is not an unsigned 64-bit integer")
        return cls(EdgeType(value & 0b11), value >> 2)

    def to_bytes(self) -> bytes:
        """Return the little-endian 8-byte encoding."""
        return _U64.pack(self.to_int())

    @classmethod
    def from_bytes(cls, data: bytes) -> OutEdgeRecord:
        """Decode an 8-byte little-endian record."""
        if len(data) != cls.SIZE:
            raise ValueError(f"expected {cls.SIZE} bytes, got {len(data)}")
        (value,) = _U64.unpack(data)
        return cls.from_int(value)

    def __str__(self) -> str:
        return f"{{{self.edge_type}, {self.dest}}}"

    def __repr__(self) -> str:
        return f"Edge(type: {self.edge_type}, dest: {self.dest})"


@dataclass(frozen=True, repr=False)
class DirectedEdge:
    """An edge together with the node it leaves from."""

    SIZE: ClassVar[int] = 16

    origin: int
    edge: OutEdgeRecord

    def __post_init__(self) -> None:
        if not 0 <= self.origin < _U64_LIMIT:
            raise ValueError(f"origin node {self.origin} is not an unsigned 64-bit integer")

    @property
    def dest(self) -> int:
        return self.edge.dest

    @property
    def edge_type(self) -> EdgeType:
        return self.edge.edge_type

    @classmethod
    def from_out_edge(cls, origin: int, out_edge: _OutEdge) -> DirectedEdge:
        """Attach an origin node to any object with ``dest`` and ``edge_type``."""
        return cls(origin, OutEdgeRecord(out_edge.edge_type, out_edge.dest))

    def to_bytes(self) -> bytes:
        """Return the 16-byte encoding: origin followed by the packed edge."""
        return _PAIR.pack(self.origin, self.edge.to_int())

    @classmethod
    def from_bytes(cls, data: bytes) -> DirectedEdge:
        """Decode a 16-byte record."""
        if len(data) != cls.SIZE:
            raise ValueError(f"expected {cls.SIZE} bytes, got {len(data)}")
        origin, packed = _PAIR.unpack(data)
        return cls(origin, OutEdgeRecord.from_int(packed))

    def __str__(self) -> str:
        return f"{{{self.edge_type}, {self.origin}, {self.dest}}}"

    def __repr__(self) -> str:
        return f"Edge(type: {self.edge_type}, origin: {self.origin}, dest: {self.dest})"