"""
Base classes for feature transforms.

Every transform follows the same two-mode contract:

- ``fit_transform`` learns its parameters from a training matrix and then
  transforms that matrix in place.
- ``transform`` applies the already fitted parameters to a matrix, a feature
  container or a single sparse row, without refitting.

Fitted parameters are plain numpy arrays or dicts listed in
``fitted_parameters`` so they can be exported with ``get_state`` and
restored in another process with ``from_state``.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
import logging

import numpy as np

from ..config.parallel import ParallelConfig, map_row_chunks
from ..linalg import SparseMatrix, SparseVector

logger = logging.getLogger(__name__)


class FeatureTransformError(Exception):
    """Exception raised when a transform cannot be fitted or applied."""
    pass


class NotFittedError(FeatureTransformError, RuntimeError):
    """Exception raised when inference is requested before fitting."""
    pass


class FeatureTransform(ABC):
    """Abstract base class for sparse feature transforms.

    Subclasses implement ``_fit`` and ``_transform_vector``. The matrix path
    defaults to a row-parallel map over ``_transform_vector`` and may be
    overridden when the matrix substrate offers a direct operation.

    Attributes:
        name: Registry name of the transform.
        hyperparameters: Constructor arguments kept in the exported state.
        fitted_parameters: Attributes set by ``_fit``; None until fitted.
        parallel: Parallel configuration for row-wise passes.
    """

    name: str = "base_transform"
    hyperparameters: Tuple[str, ...] = ()
    fitted_parameters: Tuple[str, ...] = ()

    def __init__(self, parallel: Optional[ParallelConfig] = None):
        self.parallel = parallel or ParallelConfig.default()
        for attr in self.fitted_parameters:
            setattr(self, attr, None)

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    def fit_transform(self, data) -> SparseMatrix:
        """Fit parameters on ``data`` and transform it in place.

        Calling this again re-fits and overwrites the parameters.

        Args:
            data: SparseMatrix or feature container exposing
                ``feat_matrix_transformed``.

        Returns:
            The same matrix object, transformed.
        """
        matrix = _matrix_of(data)
        self._fit(matrix)
        logger.debug(f"{self!r} fitted on {matrix.n_rows}x{matrix.n_cols} matrix (nnz={matrix.nnz})")
        self._transform_matrix(matrix)
        return matrix

    def transform(self, data):
        """Apply fitted parameters to a matrix, container or single row.

        None and empty rows are returned unchanged.

        Raises:
            NotFittedError: If the transform has not been fitted yet.
        """
        if data is None:
            return None

        if isinstance(data, SparseVector):
            if data.is_empty():
                return data
            self._check_fitted()
            self._check_vector(data)
            self._transform_vector(data)
            return data

        matrix = _matrix_of(data)
        self._check_fitted()
        self._check_matrix(matrix)
        self._transform_matrix(matrix)
        return matrix

    def remap_feature_names(self, feature_names: Sequence[str]) -> List[str]:
        """Return the feature names aligned to this transform's output columns."""
        return list(feature_names)

    @property
    def is_fitted(self) -> bool:
        return all(getattr(self, attr, None) is not None for attr in self.fitted_parameters)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def get_state(self) -> Dict[str, Any]:
        """Get hyperparameters and fitted parameters as plain data."""
        parameters = {}
        for attr in self.fitted_parameters:
            value = getattr(self, attr)
            if isinstance(value, np.ndarray):
                value = value.copy()
            elif isinstance(value, dict):
                value = dict(value)
            parameters[attr] = value

        return {
            "type": self.name,
            "hyperparameters": {attr: getattr(self, attr) for attr in self.hyperparameters},
            "parameters": parameters,
        }

    @classmethod
    def from_state(
        cls,
        state: Dict[str, Any],
        parallel: Optional[ParallelConfig] = None,
    ) -> "FeatureTransform":
        """Rebuild a transform from the output of ``get_state``."""
        if state.get("type") != cls.name:
            raise FeatureTransformError(
                f"State of type {state.get('type')!r} cannot be loaded into {cls.__name__}"
            )
        transform = cls(parallel=parallel, **state.get("hyperparameters", {}))
        for attr, value in state.get("parameters", {}).items():
            if attr not in cls.fitted_parameters:
                raise FeatureTransformError(f"Unknown parameter {attr!r} for {cls.__name__}")
            setattr(transform, attr, None if value is None else transform._restore_parameter(attr, value))
        return transform

    def _restore_parameter(self, attr: str, value: Any) -> Any:
        """Convert a stored parameter back to its in-memory type."""
        return np.asarray(value, dtype=np.float64)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _fit(self, matrix: SparseMatrix) -> None:
        """Compute and store the fitted parameters from ``matrix``."""
        pass

    @abstractmethod
    def _transform_vector(self, vector: SparseVector) -> None:
        """Transform a single non-empty row in place."""
        pass

    def _transform_matrix(self, matrix: SparseMatrix) -> None:
        """Transform every present row, fanning rows out across workers."""

        def apply_chunk(rows):
            transformed = []
            for i in rows:
                row = matrix.get_row(i)
                if row is None or row.is_empty():
                    continue
                self._transform_vector(row)
                transformed.append((i, row))
            return transformed

        chunks = map_row_chunks(
            matrix.n_rows,
            apply_chunk,
            config=self.parallel,
            stage_name=f"{self.__class__.__name__}.transform",
        )
        for chunk in chunks:
            for i, row in chunk:
                matrix.set_row(row, i)

    def _expected_n_cols(self) -> Optional[int]:
        """Number of input columns the fitted parameters cover, if fixed."""
        return None

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _check_fitted(self) -> None:
        if not self.is_fitted:
            raise NotFittedError(
                f"{self.__class__.__name__} must be fit before transform"
            )

    def _check_matrix(self, matrix: SparseMatrix) -> None:
        expected = self._expected_n_cols()
        if expected is not None and matrix.n_cols != expected:
            raise FeatureTransformError(
                f"{self.__class__.__name__} was fitted on {expected} columns, "
                f"got a matrix with {matrix.n_cols}"
            )

    def _check_vector(self, vector: SparseVector) -> None:
        expected = self._expected_n_cols()
        if expected is not None and int(vector.indexes[-1]) >= expected:
            raise FeatureTransformError(
                f"{self.__class__.__name__} was fitted on {expected} columns, "
                f"got a row with index {int(vector.indexes[-1])}"
            )

    def __repr__(self) -> str:
        params = ", ".join(f"{attr}={getattr(self, attr)!r}" for attr in self.hyperparameters)
        return f"{self.__class__.__name__}({params})"


def _matrix_of(data: Union[SparseMatrix, Any]) -> SparseMatrix:
    """Resolve a matrix or a feature container to the matrix to transform."""
    if isinstance(data, SparseMatrix):
        return data
    matrix = getattr(data, "feat_matrix_transformed", None)
    if isinstance(matrix, SparseMatrix):
        return matrix
    raise TypeError(
        f"Expected a SparseMatrix or a feature container with a transformed matrix, "
        f"got {type(data).__name__}"
    )
