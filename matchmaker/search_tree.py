"""k-d tree used to look up clients whose self-data falls inside a search box.

Only the two operations the matcher needs are supported: inserting a point
with an attached value, and an axis-aligned, inclusive range query. Inserts are
buffered; the first query after an insert rebuilds a balanced tree by median
split, so a tree filled once per cycle and then queried many times is built
exactly once.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, List, Optional, Sequence, TypeVar

import numpy as np


T = TypeVar("T")


@dataclass
class _Node:
    axis: int = -1
    split: float = 0.0
    left: Optional["_Node"] = None
    right: Optional["_Node"] = None
    indices: Optional[np.ndarray] = None

    @property
    def is_leaf(self) -> bool:
        return self.indices is not None


class KDTree(Generic[T]):
    """Multi-dimensional point index with inclusive box queries.

    Duplicate coordinates are allowed; every inserted value is kept and returned
    by any query whose box contains its coordinate.
    """

    def __init__(self, leaf_size: int = 16) -> None:
        if leaf_size < 1:
            raise ValueError(f"leaf_size must be >= 1, got {leaf_size}")
        self._leaf_size = leaf_size
        self._dimensions: Optional[int] = None
        self._pending: List[np.ndarray] = []
        self._values: List[T] = []
        self._points = np.zeros((0, 0), dtype=float)
        self._root: Optional[_Node] = None

    def __len__(self) -> int:
        return len(self._values)

    @property
    def dimensions(self) -> Optional[int]:
        return self._dimensions

    def _as_vector(self, coordinate: Sequence[float], what: str) -> np.ndarray:
        vec = np.asarray(coordinate, dtype=float)
        if vec.ndim != 1 or vec.shape[0] == 0:
            raise ValueError(f"{what} must be a non-empty 1-d sequence, got shape {vec.shape}")
        if self._dimensions is not None and vec.shape[0] != self._dimensions:
            raise ValueError(
                f"{what} has {vec.shape[0]} dimensions, tree has {self._dimensions}"
            )
        if np.isnan(vec).any():
            raise ValueError(f"{what} contains NaN: {coordinate}")
        return vec

    def insert(self, coordinate: Sequence[float], value: T) -> None:
        """Add ``value`` at ``coordinate``."""
        point = self._as_vector(coordinate, "coordinate")
        if not np.isfinite(point).all():
            raise ValueError(f"coordinate must be finite: {coordinate}")
        if self._dimensions is None:
            self._dimensions = point.shape[0]
        self._pending.append(point)
        self._values.append(value)

    def range(self, lower: Sequence[float], upper: Sequence[float]) -> List[T]:
        """Return every value whose coordinate lies in ``[lower, upper]`` on all axes."""
        lo = self._as_vector(lower, "lower bound")
        hi = self._as_vector(upper, "upper bound")
        if lo.shape != hi.shape:
            raise ValueError(f"bounds differ in length: {lo.shape[0]} != {hi.shape[0]}")
        if not self._values:
            return []
        self._rebuild_if_needed()

        found: List[T] = []
        stack = [self._root]
        while stack:
            node = stack.pop()
            if node is None:
                continue
            if node.is_leaf:
                pts = self._points[node.indices]
                keep = np.all((pts >= lo) & (pts <= hi), axis=1)
                found.extend(self._values[i] for i in node.indices[keep])
                continue
            # left subtree holds coords <= split, right subtree holds coords >= split
            if lo[node.axis] <= node.split:
                stack.append(node.left)
            if hi[node.axis] >= node.split:
                stack.append(node.right)
        return found

    def _rebuild_if_needed(self) -> None:
        if not self._pending:
            return
        new_points = np.vstack(self._pending)
        if self._points.size:
            self._points = np.vstack([self._points, new_points])
        else:
            self._points = new_points
        self._pending = []
        self._root = self._build(np.arange(len(self._values)), depth=0)

    def _build(self, idx: np.ndarray, depth: int) -> _Node:
        if len(idx) <= self._leaf_size:
            return _Node(indices=idx)
        axis = depth % self._points.shape[1]
        mid = len(idx) // 2
        order = np.argpartition(self._points[idx, axis], mid)
        idx = idx[order]
        split = float(self._points[idx[mid], axis])
        return _Node(
            axis=axis,
            split=split,
            left=self._build(idx[:mid], depth + 1),
            right=self._build(idx[mid:], depth + 1),
        )
