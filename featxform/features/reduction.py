"""
Column-wise reductions over the rows of a sparse matrix.

Each reduction runs in two phases:

1. Rows are split into chunks and every chunk is reduced into its own
   partial aggregate (min/max arrays, bounded heaps, squared deviations).
2. After all chunks have returned, the partials are merged by the caller.

No accumulator is shared between workers, so the results do not depend on
the order in which rows are processed (variance sums differ only by
floating-point summation order).
"""
from typing import Dict, List, Optional, Sequence, Tuple
import heapq
import logging

import numpy as np

from ..config.parallel import ParallelConfig, map_row_chunks
from ..linalg import SparseMatrix
from ..linalg.vector import INDEX_DTYPE, VALUE_DTYPE

logger = logging.getLogger(__name__)


def chunk_entries(matrix: SparseMatrix, rows: Sequence[int]) -> Tuple[np.ndarray, np.ndarray]:
    """Concatenated column indexes and values of the present rows in ``rows``."""
    indexes = []
    values = []
    for i in rows:
        row = matrix.get_row(i)
        if row is None or row.is_empty():
            continue
        indexes.append(row.indexes)
        values.append(row.values)
    if not indexes:
        return np.zeros(0, dtype=INDEX_DTYPE), np.zeros(0, dtype=VALUE_DTYPE)
    return np.concatenate(indexes), np.concatenate(values)


def first_present_row_dense(matrix: SparseMatrix) -> np.ndarray:
    """Dense expansion of the first present row, zero-padded to ``n_cols``.

    Returns zeros when the matrix has no present row.
    """
    seed = np.zeros(matrix.n_cols, dtype=VALUE_DTYPE)
    for row in matrix.rows:
        if row is None:
            continue
        dense = row.to_dense()[:matrix.n_cols]
        seed[:dense.shape[0]] = dense
        break
    return seed


# ----------------------------------------------------------------------
# Min / max
# ----------------------------------------------------------------------

def column_min_max(
    matrix: SparseMatrix,
    seed_min: np.ndarray,
    seed_max: np.ndarray,
    config: Optional[ParallelConfig] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Per-column min and max of the non-zero entries, starting from seeds.

    Args:
        matrix: Matrix to scan.
        seed_min: Initial minimum per column.
        seed_max: Initial maximum per column.
        config: Parallel configuration.

    Returns:
        Tuple of (min, max) float arrays of length ``n_cols``.
    """
    n_cols = matrix.n_cols

    def reduce_chunk(rows):
        indexes, values = chunk_entries(matrix, rows)
        col_min = np.full(n_cols, np.inf, dtype=VALUE_DTYPE)
        col_max = np.full(n_cols, -np.inf, dtype=VALUE_DTYPE)
        np.minimum.at(col_min, indexes, values)
        np.maximum.at(col_max, indexes, values)
        return col_min, col_max

    col_min = np.asarray(seed_min, dtype=VALUE_DTYPE).copy()
    col_max = np.asarray(seed_max, dtype=VALUE_DTYPE).copy()
    for part_min, part_max in map_row_chunks(matrix.n_rows, reduce_chunk, config, "column_min_max"):
        np.minimum(col_min, part_min, out=col_min)
        np.maximum(col_max, part_max, out=col_max)
    return col_min, col_max


# ----------------------------------------------------------------------
# Bounded heaps
# ----------------------------------------------------------------------

class BoundedHeap:
    """Fixed-capacity heap retaining the ``capacity`` largest or smallest values.

    ``top()`` is the worst retained value: the k-th largest when
    ``largest=True``, the k-th smallest otherwise.
    """

    __slots__ = ("capacity", "largest", "_heap")

    def __init__(self, capacity: int, largest: bool):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.capacity = int(capacity)
        self.largest = largest
        # min-heap of keys; keys are negated values when retaining the smallest
        self._heap: List[float] = []

    def _push_key(self, key: float) -> None:
        if len(self._heap) < self.capacity:
            heapq.heappush(self._heap, key)
        elif self._heap[0] < key:
            heapq.heapreplace(self._heap, key)

    def push(self, value: float) -> None:
        self._push_key(value if self.largest else -value)

    def extend(self, values) -> None:
        for value in values:
            self.push(float(value))

    def merge(self, other: "BoundedHeap") -> None:
        """Fold another heap with the same orientation into this one."""
        if other.largest != self.largest:
            raise ValueError("Cannot merge heaps of different orientation")
        for key in other._heap:
            self._push_key(key)

    def top(self) -> float:
        key = self._heap[0]
        return key if self.largest else -key

    def __len__(self) -> int:
        return len(self._heap)

    def __repr__(self) -> str:
        kind = "largest" if self.largest else "smallest"
        return f"BoundedHeap({kind}, {len(self)}/{self.capacity})"


def column_bounded_heaps(
    matrix: SparseMatrix,
    capacities: np.ndarray,
    config: Optional[ParallelConfig] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Per-column k-th smallest and k-th largest non-zero values.

    ``capacities[c]`` is the k of column c. Columns without observations get
    0 for both cutoffs.

    Returns:
        Tuple of (min_cutoffs, max_cutoffs) float arrays of length ``n_cols``.
    """
    n_cols = matrix.n_cols
    capacities = np.asarray(capacities, dtype=np.int64)

    def reduce_chunk(rows) -> Dict[int, Tuple[BoundedHeap, BoundedHeap]]:
        indexes, values = chunk_entries(matrix, rows)
        partial = {}
        if indexes.size == 0:
            return partial
        # sort by column, then value, so each column is a contiguous sorted run
        order = np.lexsort((values, indexes))
        indexes = indexes[order]
        values = values[order]
        cols, starts = np.unique(indexes, return_index=True)
        ends = np.append(starts[1:], indexes.shape[0])
        for col, start, end in zip(cols.tolist(), starts.tolist(), ends.tolist()):
            k = int(capacities[col])
            lo = BoundedHeap(k, largest=False)
            hi = BoundedHeap(k, largest=True)
            lo.extend(values[start:min(end, start + k)])
            hi.extend(values[max(start, end - k):end])
            partial[col] = (lo, hi)
        return partial

    merged: Dict[int, Tuple[BoundedHeap, BoundedHeap]] = {}
    for partial in map_row_chunks(matrix.n_rows, reduce_chunk, config, "column_bounded_heaps"):
        for col, (lo, hi) in partial.items():
            if col not in merged:
                merged[col] = (lo, hi)
                continue
            merged[col][0].merge(lo)
            merged[col][1].merge(hi)

    logger.debug(f"Bounded heaps built for {len(merged)}/{n_cols} columns")

    min_cutoffs = np.zeros(n_cols, dtype=VALUE_DTYPE)
    max_cutoffs = np.zeros(n_cols, dtype=VALUE_DTYPE)
    for col, (lo, hi) in merged.items():
        if len(lo) > 0:
            min_cutoffs[col] = lo.top()
        if len(hi) > 0:
            max_cutoffs[col] = hi.top()
    return min_cutoffs, max_cutoffs


# ----------------------------------------------------------------------
# Variance
# ----------------------------------------------------------------------

def column_squared_deviation(
    matrix: SparseMatrix,
    mean: np.ndarray,
    config: Optional[ParallelConfig] = None,
) -> np.ndarray:
    """Per-column sum of ``(value - mean[col]) ** 2`` over non-zero entries."""
    n_cols = matrix.n_cols

    def reduce_chunk(rows):
        indexes, values = chunk_entries(matrix, rows)
        diff = values - mean[indexes]
        return np.bincount(indexes, weights=diff * diff, minlength=n_cols)

    total = np.zeros(n_cols, dtype=VALUE_DTYPE)
    for partial in map_row_chunks(matrix.n_rows, reduce_chunk, config, "column_squared_deviation"):
        total += partial
    return total
