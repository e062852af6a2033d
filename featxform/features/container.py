"""
Feature container wrapping a raw sparse matrix and its transforms.

The raw matrix is kept untouched; ``finalize_feature`` fits the transforms on
a copy exposed as ``feat_matrix_transformed``, which is the matrix every
transform's container overload operates on.
"""
from typing import List, Optional, Sequence
import logging

from ..linalg import SparseMatrix, SparseVector
from .base import FeatureTransform, NotFittedError
from .pipeline import TransformPipeline

logger = logging.getLogger(__name__)


class SparseFeature:
    """A named sparse feature block and the transforms applied to it.

    Attributes:
        name: Feature block name (used in logs).
        feat_matrix: Raw, untransformed matrix.
        feat_matrix_transformed: Transformed copy; None until finalized.
        feature_names: Names of the raw columns.
        feature_names_transformed: Names of the transformed columns.
        pipeline: Transforms applied to the block, in order.
    """

    def __init__(
        self,
        name: str,
        feat_matrix: SparseMatrix,
        feature_names: Optional[Sequence[str]] = None,
        transforms: Optional[Sequence[FeatureTransform]] = None,
    ):
        if feature_names is not None and len(feature_names) != feat_matrix.n_cols:
            raise ValueError(
                f"Got {len(feature_names)} feature names for {feat_matrix.n_cols} columns"
            )
        self.name = name
        self.feat_matrix = feat_matrix
        self.feat_matrix_transformed: Optional[SparseMatrix] = None
        self.feature_names: Optional[List[str]] = list(feature_names) if feature_names is not None else None
        self.feature_names_transformed: Optional[List[str]] = None
        self.pipeline = TransformPipeline(transforms=list(transforms or []))

    @property
    def transforms(self) -> List[FeatureTransform]:
        return self.pipeline.transforms

    @property
    def is_finalized(self) -> bool:
        return self.feat_matrix_transformed is not None

    def add_transform(self, transform: FeatureTransform) -> "SparseFeature":
        self.pipeline.add_transform(transform)
        return self

    def finalize_feature(self) -> "SparseFeature":
        """Fit all transforms on a copy of the raw matrix and remap the names."""
        logger.info(
            f"Finalizing feature '{self.name}' ({self.feat_matrix.n_rows}x{self.feat_matrix.n_cols}, "
            f"{len(self.transforms)} transforms)"
        )
        self.feat_matrix_transformed = self.feat_matrix.copy()
        self.pipeline.fit_transform(self)

        if self.feature_names is not None:
            self.feature_names_transformed = self.pipeline.remap_feature_names(self.feature_names)
        return self

    def transform_row(self, row: Optional[SparseVector]) -> Optional[SparseVector]:
        """Apply the fitted transforms to an external row in place."""
        if not self.is_finalized:
            raise NotFittedError(f"Feature '{self.name}' must be finalized before inference")
        return self.pipeline.transform_row(row)

    def get_row(self, index: int, apply_transforms: bool = False) -> Optional[SparseVector]:
        """A copy of raw row ``index``, optionally pushed through the transforms."""
        row = self.feat_matrix.get_row(index)
        if row is None:
            return None
        row = row.copy()
        if apply_transforms:
            row = self.transform_row(row)
        return row

    def __repr__(self) -> str:
        return (
            f"SparseFeature(name={self.name!r}, shape={self.feat_matrix.shape}, "
            f"transforms={len(self.transforms)}, finalized={self.is_finalized})"
        )
