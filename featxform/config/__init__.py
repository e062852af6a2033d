"""Configuration management for featxform."""

from .parallel import (
    ParallelConfig,
    map_row_chunks,
    parallel_stage,
)
from .settings import (
    PipelineConfig,
    TransformSpec,
    TransformType,
    load_config,
    save_config,
    default_sparse_config,
    tfidf_like_config,
)

__all__ = [
    "ParallelConfig",
    "map_row_chunks",
    "parallel_stage",
    "PipelineConfig",
    "TransformSpec",
    "TransformType",
    "load_config",
    "save_config",
    "default_sparse_config",
    "tfidf_like_config",
]
