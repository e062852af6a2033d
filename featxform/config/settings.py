"""Configuration dataclasses and loading utilities for transform pipelines.

A pipeline configuration is an ordered list of transform specs plus the
parallel settings shared by every transform in the pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Union
import json
import yaml

from .parallel import ParallelConfig


class TransformType(Enum):
    """Registered transform names."""
    COL_NORM = "col_norm"
    COL_SELECTOR = "col_selector"
    MIN_MAX = "min_max"
    POWER = "power"
    REMOVE_OUTLIER = "remove_outlier"
    ROW_NORM = "row_norm"
    STANDARDIZE = "standardize"


@dataclass
class TransformSpec:
    """One step of a pipeline.

    Attributes:
        type: Which transform to build.
        params: Constructor hyperparameters (e.g. ``{"norm_degree": 2}``).
    """
    type: TransformType
    params: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if isinstance(self.type, str):
            self.type = TransformType(self.type)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "params": dict(self.params)}


@dataclass
class PipelineConfig:
    """Ordered transform specs and parallel settings.

    Attributes:
        transforms: Transform specs applied in order.
        parallel: Parallel configuration passed to every transform.
    """
    transforms: List[TransformSpec] = field(default_factory=list)
    parallel: ParallelConfig = field(default_factory=ParallelConfig.default)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineConfig":
        specs = []
        for entry in data.get("transforms") or []:
            if "type" not in entry:
                raise ValueError(f"Transform entry without a type: {entry}")
            specs.append(TransformSpec(type=entry["type"], params=entry.get("params", {}) or {}))
        parallel = ParallelConfig(**(data.get("parallel") or {}))
        return cls(transforms=specs, parallel=parallel)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transforms": [spec.to_dict() for spec in self.transforms],
            "parallel": self.parallel.to_dict(),
        }


def load_config(path: Union[str, Path]) -> PipelineConfig:
    """Load a pipeline configuration from a YAML or JSON file.

    Args:
        path: Path to the configuration file (``.json`` is read as JSON,
            anything else as YAML).

    Returns:
        PipelineConfig object.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        if path.suffix == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)

    return PipelineConfig.from_dict(data or {})


def save_config(config: PipelineConfig, path: Union[str, Path]) -> None:
    """Save a pipeline configuration to YAML (or JSON for a ``.json`` path).

    Args:
        config: PipelineConfig object to save.
        path: Output path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.to_dict()
    with open(path, "w") as f:
        if path.suffix == ".json":
            json.dump(data, f, indent=2)
        else:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


# Preset configurations
def default_sparse_config() -> PipelineConfig:
    """Outlier clipping followed by clipped standardization."""
    return PipelineConfig(
        transforms=[
            TransformSpec(TransformType.REMOVE_OUTLIER, {"cutoff_fraction": 0.01}),
            TransformSpec(TransformType.STANDARDIZE, {"clip_cutoff": 3.0}),
        ]
    )


def tfidf_like_config() -> PipelineConfig:
    """Drop rare columns, dampen counts and L2-normalize rows."""
    return PipelineConfig(
        transforms=[
            TransformSpec(TransformType.COL_SELECTOR, {"min_nonzero_count": 5}),
            TransformSpec(TransformType.POWER, {"power": 0.5}),
            TransformSpec(TransformType.ROW_NORM, {"norm_degree": 2}),
        ]
    )
