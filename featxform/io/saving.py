"""
Persistence of fitted transform pipelines.

A fitted pipeline is saved as its plain-data state, so inference processes
only need this package and the saved files, never the training data:

- ``<path>.pkl``: pickle of the state dict (exact numpy arrays)
- ``<path>.json``: the same state with arrays as lists, for inspection or
  for environments where pickles are not accepted
"""
import json
import logging
import pickle
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np

from ..config.parallel import ParallelConfig
from ..features.pipeline import TransformPipeline

logger = logging.getLogger(__name__)

STATE_VERSION = "1.0.0"


def _convert_numpy(obj):
    """json.dumps fallback for numpy types."""
    if isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return float(obj)
    elif isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, np.bool_):
        return bool(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def save_pipeline(
    pipeline: TransformPipeline,
    path: Union[str, Path],
    save_json: bool = True,
    metadata: Optional[Dict[str, Any]] = None,
) -> Path:
    """Save a fitted pipeline to disk.

    Args:
        pipeline: Fitted TransformPipeline.
        path: Base path (extension is replaced).
        save_json: Whether to also write the JSON state.
        metadata: Optional extra metadata stored next to the state.

    Returns:
        Path to the pickle file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = {
        "version": STATE_VERSION,
        "created_at": datetime.now().isoformat(),
        "metadata": metadata or {},
        "state": pipeline.get_state(),
    }

    pkl_path = path.with_suffix(".pkl")
    with open(pkl_path, "wb") as f:
        pickle.dump(payload, f)

    if save_json:
        json_path = path.with_suffix(".json")
        with open(json_path, "w") as f:
            json.dump(payload, f, indent=2, default=_convert_numpy)

    logger.info(f"Saved pipeline with {len(pipeline)} transforms to {pkl_path}")
    return pkl_path


def load_pipeline(
    path: Union[str, Path],
    parallel: Optional[ParallelConfig] = None,
) -> TransformPipeline:
    """Load a fitted pipeline from disk.

    Reads the pickle when present, otherwise the JSON state.

    Args:
        path: Path to the saved pipeline (with or without extension).
        parallel: Parallel configuration overriding the saved one.

    Returns:
        Fitted TransformPipeline.
    """
    path = Path(path)
    pkl_path = path.with_suffix(".pkl")
    json_path = path.with_suffix(".json")

    if path.suffix != ".json" and pkl_path.exists():
        with open(pkl_path, "rb") as f:
            payload = pickle.load(f)
        source = pkl_path
    elif json_path.exists():
        with open(json_path) as f:
            payload = json.load(f)
        source = json_path
    else:
        raise FileNotFoundError(f"No saved pipeline at {path}")

    if payload.get("version") != STATE_VERSION:
        logger.warning(f"Pipeline state version {payload.get('version')} differs from {STATE_VERSION}")

    pipeline = TransformPipeline.from_state(payload["state"], parallel=parallel)
    logger.info(f"Loaded pipeline with {len(pipeline)} transforms from {source}")
    return pipeline
