"""
Row-oriented sparse matrix used by the transform engine.

Rows are stored as SparseVector objects, or None for rows without entries.
Column statistics (non-zero counts, sums, norms) are computed on demand from
the rows, and the ``apply_*`` helpers mutate rows in place.
"""
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
from scipy import sparse

from .vector import INDEX_DTYPE, VALUE_DTYPE, SparseVector


class SparseMatrix:
    """R x C matrix made of optional sparse rows."""

    def __init__(self, rows: Sequence[Optional[SparseVector]], n_cols: int):
        self.rows: List[Optional[SparseVector]] = list(rows)
        self.n_cols = int(n_cols)

    # ------------------------------------------------------------------
    # Construction / conversion
    # ------------------------------------------------------------------

    @classmethod
    def empty(cls, n_rows: int, n_cols: int) -> "SparseMatrix":
        return cls([None] * n_rows, n_cols)

    @classmethod
    def from_dense(cls, dense) -> "SparseMatrix":
        """Build a matrix from a 2-D array; all-zero rows become absent rows."""
        dense = np.asarray(dense, dtype=VALUE_DTYPE)
        if dense.ndim != 2:
            raise ValueError(f"Expected a 2-D array, got shape {dense.shape}")
        rows = []
        for values in dense:
            row = SparseVector.from_dense(values)
            rows.append(None if row.is_empty() else row)
        return cls(rows, dense.shape[1])

    @classmethod
    def from_scipy(cls, matrix) -> "SparseMatrix":
        """Build a matrix from any scipy.sparse matrix (converted to CSR).

        Explicitly stored zeros are dropped.
        """
        csr = sparse.csr_matrix(matrix, dtype=VALUE_DTYPE, copy=True)
        csr.sum_duplicates()
        csr.eliminate_zeros()
        csr.sort_indices()
        n_rows, n_cols = csr.shape
        rows = []
        for i in range(n_rows):
            start, end = csr.indptr[i], csr.indptr[i + 1]
            if start == end:
                rows.append(None)
                continue
            rows.append(SparseVector(csr.indices[start:end], csr.data[start:end], n_cols))
        return cls(rows, n_cols)

    def to_scipy(self) -> sparse.csr_matrix:
        indptr = [0]
        indices = []
        data = []
        for row in self.rows:
            if row is not None:
                indices.append(row.indexes)
                data.append(row.values)
                indptr.append(indptr[-1] + row.nnz)
            else:
                indptr.append(indptr[-1])
        indices = np.concatenate(indices) if indices else np.zeros(0, dtype=INDEX_DTYPE)
        data = np.concatenate(data) if data else np.zeros(0, dtype=VALUE_DTYPE)
        return sparse.csr_matrix((data, indices, np.asarray(indptr)), shape=(self.n_rows, self.n_cols))

    def to_dense(self) -> np.ndarray:
        dense = np.zeros((self.n_rows, self.n_cols), dtype=VALUE_DTYPE)
        for i, row in enumerate(self.rows):
            if row is not None:
                dense[i, row.indexes] = row.values
        return dense

    def copy(self) -> "SparseMatrix":
        return SparseMatrix([None if row is None else row.copy() for row in self.rows], self.n_cols)

    # ------------------------------------------------------------------
    # Row access
    # ------------------------------------------------------------------

    @property
    def n_rows(self) -> int:
        return len(self.rows)

    @property
    def shape(self):
        return self.n_rows, self.n_cols

    @property
    def nnz(self) -> int:
        return sum(row.nnz for row in self.rows if row is not None)

    def get_row(self, index: int) -> Optional[SparseVector]:
        return self.rows[index]

    def set_row(self, row: Optional[SparseVector], index: int) -> None:
        self.rows[index] = row

    def _entries(self):
        """Concatenated (indexes, values) of every present row."""
        present = [row for row in self.rows if row is not None]
        if not present:
            return np.zeros(0, dtype=INDEX_DTYPE), np.zeros(0, dtype=VALUE_DTYPE)
        return (
            np.concatenate([row.indexes for row in present]),
            np.concatenate([row.values for row in present]),
        )

    # ------------------------------------------------------------------
    # Column / row statistics
    # ------------------------------------------------------------------

    def get_col_nnz(self) -> np.ndarray:
        indexes, _ = self._entries()
        return np.bincount(indexes, minlength=self.n_cols).astype(np.int64)

    def get_col_sum(self) -> np.ndarray:
        indexes, values = self._entries()
        return np.bincount(indexes, weights=values, minlength=self.n_cols).astype(VALUE_DTYPE)

    def get_col_norm(self, degree: Union[int, float]) -> np.ndarray:
        indexes, values = self._entries()
        if np.isinf(degree):
            col_norm = np.zeros(self.n_cols, dtype=VALUE_DTYPE)
            np.maximum.at(col_norm, indexes, np.abs(values))
            return col_norm
        powered = np.bincount(indexes, weights=np.abs(values) ** degree, minlength=self.n_cols)
        return np.power(powered, 1.0 / degree).astype(VALUE_DTYPE)

    def get_row_norm(self, degree: Union[int, float]) -> np.ndarray:
        row_norm = np.zeros(self.n_rows, dtype=VALUE_DTYPE)
        for i, row in enumerate(self.rows):
            if row is not None:
                row_norm[i] = row.norm(degree)
        return row_norm

    def select_cols(self, nnz_cutoff: int) -> Dict[int, int]:
        """Map columns with at least ``nnz_cutoff`` (and at least one) non-zeros
        to dense new indices, in ascending order of the original index."""
        col_nnz = self.get_col_nnz()
        selected = np.flatnonzero(col_nnz >= max(int(nnz_cutoff), 1))
        return {int(old): new for new, old in enumerate(selected)}

    # ------------------------------------------------------------------
    # In-place application
    # ------------------------------------------------------------------

    def apply_col_norm(self, col_norm: np.ndarray) -> None:
        for row in self.rows:
            if row is not None:
                row.apply_norm(col_norm)

    def apply_col_selector(self, selected_map: Dict[int, int], n_cols_selected: int) -> None:
        for row in self.rows:
            if row is not None:
                row.apply_index_selector(selected_map, n_cols_selected)
        self.n_cols = int(n_cols_selected)

    def apply_row_norm(self, row_norm: np.ndarray) -> None:
        for i, row in enumerate(self.rows):
            if row is not None and not row.is_empty() and row_norm[i] != 0:
                row.values /= row_norm[i]

    def __repr__(self) -> str:
        return f"SparseMatrix(n_rows={self.n_rows}, n_cols={self.n_cols}, nnz={self.nnz})"
