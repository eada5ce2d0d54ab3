"""A segment tree for fast lookups of values inside a set of intervals."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, NamedTuple, Optional


class _Interval(NamedTuple):
    id: int
    start: int
    end: int


@dataclass
class _Node:
    start: int
    end: int
    left: Optional["_Node"] = None
    right: Optional["_Node"] = None
    overlap: List[_Interval] = field(default_factory=list)

    def subset_of(self, start: int, end: int) -> bool:
        return start <= self.start and end >= self.end

    def intersects(self, start: int, end: int) -> bool:
        return start <= self.end and self.start <= end

    def disjoint(self, start: int, end: int) -> bool:
        return start > self.end or end < self.start

    def insert_interval(self, iv: _Interval) -> None:
        if self.subset_of(iv.start, iv.end):
            self.overlap.append(iv)
            return
        for child in (self.left, self.right):
            if child is not None and child.intersects(iv.start, iv.end):
                child.insert_interval(iv)

    def query(self, start: int, end: int, result: Dict[int, _Interval]) -> None:
        if self.disjoint(start, end):
            return
        for iv in self.overlap:
            result[iv.id] = iv
        if self.right is not None:
            self.right.query(start, end, result)
        if self.left is not None:
            self.left.query(start, end, result)


def dedup(values: Iterable[int]) -> List[int]:
    """Return the values sorted with duplicates removed."""
    return sorted(set(values))


def _elementary_intervals(endpoints: List[int]) -> List[tuple]:
    intervals = []
    for i, p in enumerate(endpoints):
        intervals.append((p, p))
        if i < len(endpoints) - 1:
            intervals.append((p, endpoints[i + 1]))
    return intervals


def _insert_nodes(leaves: List[tuple]) -> _Node:
    if len(leaves) == 1:
        start, end = leaves[0]
        return _Node(start, end)
    node = _Node(leaves[0][0], leaves[-1][1])
    center = len(leaves) // 2
    node.left = _insert_nodes(leaves[:center])
    node.right = _insert_nodes(leaves[center:])
    return node


class SegmentTree:
    """Intervals are added with :meth:`add_range`, then :meth:`build` is called."""

    def __init__(self) -> None:
        self.clear()

    def add_range(self, start: int, end: int) -> None:
        """Queue the closed interval [start, end]."""
        self._base.append(_Interval(self._count, start, end))
        self._count += 1

    def clear(self) -> None:
        """Drop all intervals and the built tree."""
        self._count = 0
        self._root: Optional[_Node] = None
        self._base: List[_Interval] = []
        self.min = 0
        self.max = 0

    def build(self) -> None:
        """Build the tree from the queued intervals."""
        if not self._base:
            return
        endpoints = dedup(v for iv in self._base for v in (iv.start, iv.end))
        self.min, self.max = endpoints[0], endpoints[-1]
        self._root = _insert_nodes(_elementary_intervals(endpoints))
        for iv in self._base:
            self._root.insert_interval(iv)

    def query(self, start: int, end: int) -> List[_Interval]:
        """Return the intervals that overlap [start, end]."""
        if self._root is None:
            return []
        result: Dict[int, _Interval] = {}
        self._root.query(start, end, result)
        return list(result.values())

    def contains(self, value: int) -> bool:
        """Return True if ``value`` falls inside any interval."""
        return bool(self.query(value, value))

    def __contains__(self, value: int) -> bool:
        return self.contains(value)