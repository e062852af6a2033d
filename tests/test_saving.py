"""
Tests for saving and loading fitted pipelines.
"""
import json

import pytest
import numpy as np

from featxform.config import ParallelConfig
from featxform.features import (
    ColumnNormTransform,
    ColumnSelectorTransform,
    MinMaxTransform,
    NotFittedError,
    OutlierClipTransform,
    PowerTransform,
    RowNormTransform,
    StandardizeTransform,
    TransformPipeline,
)
from featxform.io import load_pipeline, save_pipeline


@pytest.fixture
def fitted_pipeline(train_matrix, sequential_config):
    """Pipeline using every transform, fitted on the training matrix."""
    pipeline = TransformPipeline(
        transforms=[
            ColumnSelectorTransform(2, parallel=sequential_config),
            OutlierClipTransform(0.05, parallel=sequential_config),
            MinMaxTransform(parallel=sequential_config),
            PowerTransform(2.0, parallel=sequential_config),
            ColumnNormTransform(1, parallel=sequential_config),
            StandardizeTransform(2.0, parallel=sequential_config),
            RowNormTransform(np.inf, parallel=sequential_config),
        ],
        parallel=sequential_config,
    )
    pipeline.fit_transform(train_matrix)
    return pipeline


class TestSaving:
    """Tests for pickle and JSON persistence."""

    def test_save_writes_both_files(self, fitted_pipeline, tmp_path):
        pkl_path = save_pipeline(fitted_pipeline, tmp_path / "pipeline", metadata={"run": "unit"})

        assert pkl_path == tmp_path / "pipeline.pkl"
        assert pkl_path.exists()
        json_path = tmp_path / "pipeline.json"
        assert json_path.exists()

        with open(json_path) as f:
            payload = json.load(f)
        assert payload["metadata"] == {"run": "unit"}
        assert [t["type"] for t in payload["state"]["transforms"]] == [
            "col_selector", "remove_outlier", "min_max", "power", "col_norm", "standardize", "row_norm",
        ]

    def test_pickle_round_trip(self, fitted_pipeline, holdout_matrix, tmp_path):
        save_pipeline(fitted_pipeline, tmp_path / "pipeline", save_json=False)
        assert not (tmp_path / "pipeline.json").exists()

        restored = load_pipeline(tmp_path / "pipeline")
        assert restored.is_fitted
        np.testing.assert_array_equal(
            restored.transform(holdout_matrix.copy()).to_dense(),
            fitted_pipeline.transform(holdout_matrix.copy()).to_dense(),
        )

    def test_json_round_trip(self, fitted_pipeline, holdout_matrix, tmp_path):
        save_pipeline(fitted_pipeline, tmp_path / "pipeline")
        restored = load_pipeline(tmp_path / "pipeline.json")

        selector = restored.transforms[0]
        assert selector.selected_col_map == fitted_pipeline.transforms[0].selected_col_map
        assert all(isinstance(k, int) for k in selector.selected_col_map)
        assert restored.transforms[-1].norm_degree == np.inf

        np.testing.assert_allclose(
            restored.transform(holdout_matrix.copy()).to_dense(),
            fitted_pipeline.transform(holdout_matrix.copy()).to_dense(),
        )

    def test_load_with_parallel_override(self, fitted_pipeline, tmp_path, threaded_config):
        save_pipeline(fitted_pipeline, tmp_path / "pipeline")
        restored = load_pipeline(tmp_path / "pipeline", parallel=threaded_config)
        assert restored.parallel is threaded_config
        assert all(t.parallel is threaded_config for t in restored.transforms)

    def test_saved_parallel_config_restored(self, fitted_pipeline, tmp_path):
        save_pipeline(fitted_pipeline, tmp_path / "pipeline")
        restored = load_pipeline(tmp_path / "pipeline")
        assert restored.parallel == ParallelConfig.sequential()

    def test_missing_files(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_pipeline(tmp_path / "missing")

    def test_unfitted_pipeline_cannot_be_saved(self, tmp_path, sequential_config):
        pipeline = TransformPipeline([MinMaxTransform(parallel=sequential_config)], sequential_config)
        with pytest.raises(NotFittedError):
            save_pipeline(pipeline, tmp_path / "pipeline")
