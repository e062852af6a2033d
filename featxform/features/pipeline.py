"""Ordered transform pipelines.

A TransformPipeline owns a sequence of transforms. During training it fits
and applies each transform in turn over the training matrix; during
inference it replays the frozen transforms on new matrices or single rows.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
import logging

import numpy as np
import pandas as pd

from ..config.parallel import ParallelConfig
from ..config.settings import PipelineConfig
from ..linalg import SparseMatrix, SparseVector
from .base import FeatureTransform, NotFittedError
from .registry import TRANSFORM_REGISTRY

logger = logging.getLogger(__name__)


@dataclass
class TransformPipeline:
    """Composite transform that applies multiple transforms in sequence.

    Attributes:
        transforms: Transforms to apply, in order.
        parallel: Parallel configuration handed to transforms added later.
    """
    transforms: List[FeatureTransform] = field(default_factory=list)
    parallel: ParallelConfig = field(default_factory=ParallelConfig.default)
    _fitted: bool = False

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "TransformPipeline":
        """Build an unfitted pipeline from a PipelineConfig."""
        transforms = [
            TRANSFORM_REGISTRY.create_from_spec(spec, parallel=config.parallel)
            for spec in config.transforms
        ]
        return cls(transforms=transforms, parallel=config.parallel)

    def add_transform(self, transform: FeatureTransform) -> "TransformPipeline":
        """Add a transform to the pipeline."""
        self.transforms.append(transform)
        self._fitted = False
        return self

    @property
    def is_fitted(self) -> bool:
        return self._fitted and all(t.is_fitted for t in self.transforms)

    def fit_transform(self, data) -> SparseMatrix:
        """Fit every transform on the training matrix, transforming it in place."""
        matrix = data
        for step, transform in enumerate(self.transforms):
            logger.info(f"Fitting step {step}: {transform!r}")
            matrix = transform.fit_transform(matrix)

        self._fitted = True
        return matrix

    def transform(self, data):
        """Apply all fitted transforms to a matrix, container or row."""
        if not self.is_fitted:
            raise NotFittedError("TransformPipeline must be fit before transform")

        for transform in self.transforms:
            data = transform.transform(data)
        return data

    def transform_row(self, row: Optional[SparseVector]) -> Optional[SparseVector]:
        """Serving path: apply all fitted transforms to a single row in place."""
        return self.transform(row)

    def remap_feature_names(self, feature_names: Sequence[str]) -> List[str]:
        names = list(feature_names)
        for transform in self.transforms:
            names = transform.remap_feature_names(names)
        return names

    def get_state(self) -> Dict[str, Any]:
        """Get fitted state for serialization."""
        if not self.is_fitted:
            raise NotFittedError("Only a fitted pipeline can be exported")
        return {
            "parallel": self.parallel.to_dict(),
            "transforms": [transform.get_state() for transform in self.transforms],
        }

    @classmethod
    def from_state(cls, state: Dict[str, Any], parallel: Optional[ParallelConfig] = None) -> "TransformPipeline":
        """Rebuild a fitted pipeline from ``get_state`` output."""
        if parallel is None:
            parallel = ParallelConfig(**state.get("parallel", {}))
        transforms = [
            TRANSFORM_REGISTRY.from_state(t_state, parallel=parallel)
            for t_state in state.get("transforms", [])
        ]
        pipeline = cls(transforms=transforms, parallel=parallel)
        pipeline._fitted = all(t.is_fitted for t in transforms)
        return pipeline

    def parameter_frame(self, feature_names: Optional[Sequence[str]] = None) -> pd.DataFrame:
        """Long-format table of every per-column fitted parameter.

        Columns: step, transform, parameter, column, feature, value. Feature
        names are remapped step by step, so each row names the column as the
        transform saw it.
        """
        if not self.is_fitted:
            raise NotFittedError("TransformPipeline must be fit before inspecting parameters")

        names = list(feature_names) if feature_names is not None else None
        records = []
        for step, transform in enumerate(self.transforms):
            for attr in transform.fitted_parameters:
                value = getattr(transform, attr)
                if not isinstance(value, np.ndarray):
                    continue
                for col, v in enumerate(value.tolist()):
                    records.append({
                        "step": step,
                        "transform": transform.name,
                        "parameter": attr,
                        "column": col,
                        "feature": names[col] if names is not None and col < len(names) else None,
                        "value": v,
                    })
            if names is not None:
                names = transform.remap_feature_names(names)

        return pd.DataFrame.from_records(
            records,
            columns=["step", "transform", "parameter", "column", "feature", "value"],
        )

    def __len__(self) -> int:
        return len(self.transforms)

