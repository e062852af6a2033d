"""Sparse matrix/vector substrate the transforms operate on."""

from .vector import SparseVector, vector_norm
from .matrix import SparseMatrix

__all__ = [
    "SparseVector",
    "SparseMatrix",
    "vector_norm",
]
