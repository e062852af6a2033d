"""Concrete sparse feature transforms.

All transforms are fit once on training data and then applied to new rows or
matrices with the frozen parameters, so training and serving produce the
same values.
"""

from typing import List, Optional, Sequence, Union
import logging
import math

import numpy as np

from ..config.parallel import ParallelConfig
from ..linalg import SparseMatrix, SparseVector
from .base import FeatureTransform
from .reduction import (
    column_bounded_heaps,
    column_min_max,
    column_squared_deviation,
    first_present_row_dense,
)

logger = logging.getLogger(__name__)

# Entries this close to their column mean are dropped by StandardizeTransform
MEAN_PRUNE_TOLERANCE = 1e-5


def _validate_norm_degree(norm_degree: Union[int, float]) -> None:
    if not (norm_degree >= 1):
        raise ValueError(f"norm_degree must be >= 1 or inf, got {norm_degree}")


class ColumnNormTransform(FeatureTransform):
    """Divide every entry by the L_p norm of its column.

    Columns with a zero norm are left unchanged.

    Attributes:
        norm_degree: Degree p of the column norm.
        col_norm: Fitted norm per column.
    """

    name = "col_norm"
    hyperparameters = ("norm_degree",)
    fitted_parameters = ("col_norm",)

    def __init__(self, norm_degree: Union[int, float] = 2, parallel: Optional[ParallelConfig] = None):
        _validate_norm_degree(norm_degree)
        self.norm_degree = norm_degree
        super().__init__(parallel)

    def _fit(self, matrix: SparseMatrix) -> None:
        self.col_norm = matrix.get_col_norm(self.norm_degree)

    def _transform_matrix(self, matrix: SparseMatrix) -> None:
        matrix.apply_col_norm(self.col_norm)

    def _transform_vector(self, vector: SparseVector) -> None:
        vector.apply_norm(self.col_norm)

    def _expected_n_cols(self) -> Optional[int]:
        return self.col_norm.shape[0]


class ColumnSelectorTransform(FeatureTransform):
    """Drop columns with too few non-zeros and renumber the rest densely.

    Attributes:
        min_nonzero_count: Minimum number of non-zeros a column needs to be kept.
        selected_col_map: Fitted ``{old_index: new_index}`` map.
        n_cols_selected: Number of output columns.
    """

    name = "col_selector"
    hyperparameters = ("min_nonzero_count",)
    fitted_parameters = ("selected_col_map", "n_cols_selected")

    def __init__(self, min_nonzero_count: int = 1, parallel: Optional[ParallelConfig] = None):
        if min_nonzero_count < 0:
            raise ValueError(f"min_nonzero_count cannot be negative, got {min_nonzero_count}")
        self.min_nonzero_count = int(min_nonzero_count)
        super().__init__(parallel)

    def _fit(self, matrix: SparseMatrix) -> None:
        self.selected_col_map = matrix.select_cols(self.min_nonzero_count)
        self.n_cols_selected = max(self.selected_col_map.values(), default=-1) + 1

        if self.n_cols_selected == 0:
            logger.warning(
                f"No column reached {self.min_nonzero_count} non-zeros; "
                f"all {matrix.n_cols} columns are dropped"
            )
        else:
            logger.debug(f"Selected {self.n_cols_selected}/{matrix.n_cols} columns")

    def _transform_matrix(self, matrix: SparseMatrix) -> None:
        matrix.apply_col_selector(self.selected_col_map, self.n_cols_selected)

    def _transform_vector(self, vector: SparseVector) -> None:
        vector.apply_index_selector(self.selected_col_map, self.n_cols_selected)

    def remap_feature_names(self, feature_names: Sequence[str]) -> List[str]:
        """Names of the selected columns, placed at their new indices.

        The output has one slot per map entry. Slots no original column maps
        to stay empty strings.
        """
        self._check_fitted()
        selected_names = [""] * len(self.selected_col_map)
        for i, feature_name in enumerate(feature_names):
            new_index = self.selected_col_map.get(i)
            if new_index is None:
                continue
            if new_index >= len(selected_names):
                logger.warning(
                    f"Column {i} maps to {new_index}, outside {len(selected_names)} selected names; skipped"
                )
                continue
            selected_names[new_index] = feature_name
        return selected_names

    def _restore_parameter(self, attr: str, value):
        if attr == "selected_col_map":
            return {int(k): int(v) for k, v in value.items()}
        return int(value)


class MinMaxTransform(FeatureTransform):
    """Scale every non-zero entry to ``(v - min) / (max - min)`` of its column.

    Columns whose max equals their min map to 1. The initial bounds of every
    column are taken from the dense form of the first present row, so a
    column absent from that row starts from 0.

    Attributes:
        min_values: Fitted minimum per column.
        max_values: Fitted maximum per column.
    """

    name = "min_max"
    fitted_parameters = ("min_values", "max_values")

    def _fit(self, matrix: SparseMatrix) -> None:
        seed = first_present_row_dense(matrix)
        self.min_values, self.max_values = column_min_max(matrix, seed, seed, self.parallel)

    def _transform_vector(self, vector: SparseVector) -> None:
        col_min = self.min_values[vector.indexes]
        col_range = self.max_values[vector.indexes] - col_min
        scaled = np.ones_like(vector.values)
        np.divide(vector.values - col_min, col_range, out=scaled, where=col_range != 0)
        vector.set_values(scaled)

    def _expected_n_cols(self) -> Optional[int]:
        return self.min_values.shape[0]


class PowerTransform(FeatureTransform):
    """Raise every non-zero entry to a fixed power.

    Stateless: fitting only applies the transform. Negative bases with a
    fractional power give NaN.
    """

    name = "power"
    hyperparameters = ("power",)

    def __init__(self, power: float = 1.0, parallel: Optional[ParallelConfig] = None):
        self.power = float(power)
        super().__init__(parallel)

    def _fit(self, matrix: SparseMatrix) -> None:
        pass

    def _transform_vector(self, vector: SparseVector) -> None:
        with np.errstate(all="ignore"):
            vector.set_values(np.power(vector.values, self.power))


class OutlierClipTransform(FeatureTransform):
    """Clip every column into its approximate [p, 1-p] percentile range.

    For ``cutoff_fraction=0.05`` values above the 95th percentile are set to
    the 95th percentile value and values below the 5th percentile to the 5th
    percentile value. Percentiles are taken over the non-zero entries of each
    column using bounded heaps of size ``ceil(nnz * cutoff_fraction) + 1``.

    Attributes:
        cutoff_fraction: Fraction p clipped on each side.
        min_cutoffs: Fitted lower bound per column.
        max_cutoffs: Fitted upper bound per column.
    """

    name = "remove_outlier"
    hyperparameters = ("cutoff_fraction",)
    fitted_parameters = ("min_cutoffs", "max_cutoffs")

    def __init__(self, cutoff_fraction: float = 0.01, parallel: Optional[ParallelConfig] = None):
        if not 0.0 <= cutoff_fraction < 1.0:
            raise ValueError(f"cutoff_fraction must be in [0, 1), got {cutoff_fraction}")
        self.cutoff_fraction = float(cutoff_fraction)
        super().__init__(parallel)

    def cutoff_ranks(self, col_nnz: np.ndarray) -> np.ndarray:
        """Heap capacity per column."""
        return np.array(
            [math.ceil(int(nnz) * self.cutoff_fraction) + 1 for nnz in col_nnz],
            dtype=np.int64,
        )

    def _fit(self, matrix: SparseMatrix) -> None:
        capacities = self.cutoff_ranks(matrix.get_col_nnz())
        self.min_cutoffs, self.max_cutoffs = column_bounded_heaps(matrix, capacities, self.parallel)

    def _transform_vector(self, vector: SparseVector) -> None:
        lower = self.min_cutoffs[vector.indexes]
        upper = self.max_cutoffs[vector.indexes]
        values = vector.values
        vector.set_values(np.where(values > upper, upper, np.where(values < lower, lower, values)))

    def _expected_n_cols(self) -> Optional[int]:
        return self.min_cutoffs.shape[0]


class RowNormTransform(FeatureTransform):
    """Divide every row by its own L_p norm.

    Stateless: fitting and inference compute the same per-row norms.
    """

    name = "row_norm"
    hyperparameters = ("norm_degree",)

    def __init__(self, norm_degree: Union[int, float] = 2, parallel: Optional[ParallelConfig] = None):
        _validate_norm_degree(norm_degree)
        self.norm_degree = norm_degree
        super().__init__(parallel)

    def _fit(self, matrix: SparseMatrix) -> None:
        pass

    def _transform_matrix(self, matrix: SparseMatrix) -> None:
        matrix.apply_row_norm(matrix.get_row_norm(self.norm_degree))

    def _transform_vector(self, vector: SparseVector) -> None:
        vector.apply_norm(self.norm_degree)


class StandardizeTransform(FeatureTransform):
    """Z-score every non-zero entry against its column mean and std.

    Entries within 1e-5 of the column mean are dropped from the row;
    the rest are standardized and clipped to ``[-clip_cutoff, clip_cutoff]``.
    Means and stds are computed over the non-zero entries only; a column
    with a single non-zero keeps its raw sum as mean.

    Attributes:
        clip_cutoff: Absolute clip bound of standardized values.
        mean: Fitted mean per column.
        std: Fitted standard deviation per column.
    """

    name = "standardize"
    hyperparameters = ("clip_cutoff",)
    fitted_parameters = ("mean", "std")

    def __init__(self, clip_cutoff: float = 3.0, parallel: Optional[ParallelConfig] = None):
        if clip_cutoff <= 0:
            raise ValueError(f"clip_cutoff must be positive, got {clip_cutoff}")
        self.clip_cutoff = float(clip_cutoff)
        super().__init__(parallel)

    def _fit(self, matrix: SparseMatrix) -> None:
        col_nnz = matrix.get_col_nnz()

        mean = matrix.get_col_sum()
        averaged = col_nnz > 1
        mean[averaged] /= col_nnz[averaged]

        squared_dev = column_squared_deviation(matrix, mean, self.parallel)
        std = np.zeros_like(mean)
        observed = col_nnz > 0
        std[observed] = np.sqrt(squared_dev[observed] / col_nnz[observed])

        self.mean = mean
        self.std = std

    def _transform_vector(self, vector: SparseVector) -> None:
        indexes = vector.indexes
        diff = vector.values - self.mean[indexes]
        # NaN entries are kept
        keep = ~(np.abs(diff) < MEAN_PRUNE_TOLERANCE)

        with np.errstate(divide="ignore", invalid="ignore"):
            standardized = diff[keep] / self.std[indexes[keep]]
        standardized = np.clip(standardized, -self.clip_cutoff, self.clip_cutoff)

        if not keep.all():
            vector.set_indexes(indexes[keep])
        vector.set_values(standardized)

    def _expected_n_cols(self) -> Optional[int]:
        return self.mean.shape[0]

