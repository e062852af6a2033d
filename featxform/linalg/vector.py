"""
Sparse row vector used by the transform engine.

A SparseVector stores its non-zeros as two parallel numpy arrays:
``indexes`` (strictly increasing int64 column indices) and ``values``
(float64). ``length`` is the logical dimension of the row. Operations mutate
the vector in place.
"""
from typing import Dict, Mapping, Union

import numpy as np

INDEX_DTYPE = np.int64
VALUE_DTYPE = np.float64


def vector_norm(values: np.ndarray, degree: Union[int, float]) -> float:
    """L_p norm of a value array (``degree`` >= 1 or ``np.inf``)."""
    if values.size == 0:
        return 0.0
    return float(np.linalg.norm(values, ord=degree))


class SparseVector:
    """Sparse row with parallel index/value arrays."""

    __slots__ = ("indexes", "values", "length")

    def __init__(self, indexes, values, length: int):
        self.indexes = np.asarray(indexes, dtype=INDEX_DTYPE)
        self.values = np.asarray(values, dtype=VALUE_DTYPE)
        self.length = int(length)
        if self.indexes.shape != self.values.shape:
            raise ValueError(
                f"indexes and values must have the same shape, got "
                f"{self.indexes.shape} and {self.values.shape}"
            )
        if self.indexes.ndim != 1:
            raise ValueError(f"indexes must be 1-D, got shape {self.indexes.shape}")
        if (np.diff(self.indexes) <= 0).any():
            raise ValueError("indexes must be strictly increasing")

    @classmethod
    def from_dense(cls, dense) -> "SparseVector":
        """Build a vector from a dense array, keeping only non-zeros."""
        dense = np.asarray(dense, dtype=VALUE_DTYPE).ravel()
        nz = np.flatnonzero(dense)
        return cls(nz, dense[nz], dense.shape[0])

    @classmethod
    def from_dict(cls, entries: Mapping[int, float], length: int) -> "SparseVector":
        """Build a vector from an ``{index: value}`` mapping."""
        items = sorted((int(k), float(v)) for k, v in entries.items())
        indexes = [k for k, _ in items]
        values = [v for _, v in items]
        return cls(indexes, values, length)

    @property
    def nnz(self) -> int:
        return int(self.indexes.shape[0])

    def is_empty(self) -> bool:
        return self.indexes.shape[0] == 0

    def set_indexes(self, indexes) -> None:
        self.indexes = np.asarray(indexes, dtype=INDEX_DTYPE)

    def set_values(self, values) -> None:
        self.values = np.asarray(values, dtype=VALUE_DTYPE)

    def copy(self) -> "SparseVector":
        return SparseVector(self.indexes.copy(), self.values.copy(), self.length)

    def to_dense(self) -> np.ndarray:
        dense = np.zeros(self.length, dtype=VALUE_DTYPE)
        dense[self.indexes] = self.values
        return dense

    def norm(self, degree: Union[int, float]) -> float:
        return vector_norm(self.values, degree)

    def apply_norm(self, norm: Union[int, float, np.ndarray]) -> None:
        """Divide the values by a norm.

        Args:
            norm: Either a norm degree, in which case the vector is divided by
                its own L_p norm, or a per-column norm array indexed by column,
                in which case each value is divided by the norm of its column.
                Zero norms leave the affected values unchanged.
        """
        if self.is_empty():
            return

        if isinstance(norm, np.ndarray):
            col_norm = norm[self.indexes]
            nonzero = col_norm != 0
            self.values[nonzero] = self.values[nonzero] / col_norm[nonzero]
            return

        row_norm = self.norm(norm)
        if row_norm != 0:
            self.values /= row_norm

    def apply_index_selector(self, selected_map: Dict[int, int], n_cols_selected: int) -> None:
        """Keep entries whose index is in ``selected_map`` and renumber them."""
        keep = []
        new_indexes = []
        for pos, index in enumerate(self.indexes.tolist()):
            new_index = selected_map.get(index)
            if new_index is not None:
                keep.append(pos)
                new_indexes.append(new_index)

        new_indexes = np.asarray(new_indexes, dtype=INDEX_DTYPE)
        new_values = self.values[np.asarray(keep, dtype=INDEX_DTYPE)]
        order = np.argsort(new_indexes, kind="stable")

        self.indexes = new_indexes[order]
        self.values = new_values[order]
        self.length = int(n_cols_selected)

    def __repr__(self) -> str:
        return f"SparseVector(length={self.length}, nnz={self.nnz})"

