"""Sparse feature transforms, pipelines and feature containers."""

from .base import (
    FeatureTransform,
    FeatureTransformError,
    NotFittedError,
)
from .transforms import (
    ColumnNormTransform,
    ColumnSelectorTransform,
    MinMaxTransform,
    PowerTransform,
    OutlierClipTransform,
    RowNormTransform,
    StandardizeTransform,
)
from .registry import (
    TRANSFORM_REGISTRY,
    TransformRegistry,
    create_transform,
    transform_from_state,
)
from .pipeline import TransformPipeline
from .container import SparseFeature

__all__ = [
    "FeatureTransform",
    "FeatureTransformError",
    "NotFittedError",
    "ColumnNormTransform",
    "ColumnSelectorTransform",
    "MinMaxTransform",
    "PowerTransform",
    "OutlierClipTransform",
    "RowNormTransform",
    "StandardizeTransform",
    "TRANSFORM_REGISTRY",
    "TransformRegistry",
    "create_transform",
    "transform_from_state",
    "TransformPipeline",
    "SparseFeature",
]
