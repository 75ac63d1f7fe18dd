"""Orientation types for edges between k-mer nodes."""

from __future__ import annotations

from enum import Enum


class EdgeType(Enum):
    """Orientation of an edge: forward/reverse at the origin and at the destination."""

    FF = 0
    FR = 1
    RF = 2
    RR = 3

    def __str__(self) -> str:
        return self.name

    @classmethod
    def from_directions(cls, origin: str, dest: str) -> EdgeType:
        """Build an edge type from origin and destination strand signs ('+' or '-')."""
        table = {
            ("+", "+"): cls.FF,
            ("+", "-"): cls.FR,
            ("-", "+"): cls.RF,
            ("-", "-"): cls.RR,
        }
        if origin not in ("+", "-"):
            raise ValueError(f'invalid origin direction: "{origin}"')
        if dest not in ("+", "-"):
            raise ValueError(f'invalid destination direction: "{dest}"')
        return table[(origin, dest)]