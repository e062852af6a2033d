"""
featxform: fit-once, apply-anywhere transforms for sparse feature matrices.

Key Components:
    - linalg: row-oriented sparse matrix and sparse row vector
    - features: the transform contract, seven transforms, pipelines and
      feature containers
    - config: parallel settings and pipeline configuration files
    - io: saving and loading fitted pipelines

Example:
    >>> from featxform import SparseMatrix, StandardizeTransform
    >>> matrix = SparseMatrix.from_dense(train)
    >>> standardize = StandardizeTransform(clip_cutoff=3.0)
    >>> standardize.fit_transform(matrix)
    >>> standardize.transform(serving_row)
"""

__version__ = "0.1.0"

from .linalg import SparseMatrix, SparseVector
from .config import ParallelConfig, PipelineConfig, load_config
from .features import (
    ColumnNormTransform,
    ColumnSelectorTransform,
    FeatureTransform,
    FeatureTransformError,
    MinMaxTransform,
    NotFittedError,
    OutlierClipTransform,
    PowerTransform,
    RowNormTransform,
    SparseFeature,
    StandardizeTransform,
    TransformPipeline,
    create_transform,
)
from .io import load_pipeline, save_pipeline

__all__ = [
    "SparseMatrix",
    "SparseVector",
    "ParallelConfig",
    "PipelineConfig",
    "load_config",
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
    "TransformPipeline",
    "SparseFeature",
    "create_transform",
    "load_pipeline",
    "save_pipeline",
]
