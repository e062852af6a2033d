"""
Tests for parallel settings, pipeline configuration files and the registry.
"""
import json

import pytest
import yaml

from featxform.config import (
    ParallelConfig,
    PipelineConfig,
    TransformSpec,
    TransformType,
    default_sparse_config,
    load_config,
    map_row_chunks,
    save_config,
    tfidf_like_config,
)
from featxform.config.parallel import chunk_ranges, get_safe_n_jobs
from featxform.features import (
    TRANSFORM_REGISTRY,
    FeatureTransformError,
    StandardizeTransform,
    TransformPipeline,
    create_transform,
)


class TestParallelConfig:
    """Tests for ParallelConfig."""

    def test_defaults(self):
        config = ParallelConfig.default()
        assert config.n_jobs == -1
        assert config.backend == 'threading'
        assert config.is_parallel

    def test_sequential(self):
        config = ParallelConfig.sequential()
        assert config.n_jobs == 1
        assert not config.is_parallel
        assert config.effective_n_jobs == 1

    @pytest.mark.parametrize("kwargs", [
        {"n_jobs": 0},
        {"chunk_size": 0},
        {"min_parallel_rows": -1},
        {"backend": "dask"},
        {"backend": "multiprocessing"},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            ParallelConfig(**kwargs)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv('FEATXFORM_N_JOBS', '3')
        monkeypatch.setenv('FEATXFORM_BACKEND', 'loky')
        monkeypatch.setenv('FEATXFORM_CHUNK_SIZE', '100')
        config = ParallelConfig.from_env()
        assert config.n_jobs == 3
        assert config.backend == 'loky'
        assert config.chunk_size == 100
        assert config.verbose == 0

    def test_safe_n_jobs_capped(self):
        assert get_safe_n_jobs(64, max_workers=8) == 8
        assert get_safe_n_jobs(-5) == 1

    def test_to_dict_round_trip(self, threaded_config):
        assert ParallelConfig(**threaded_config.to_dict()) == threaded_config

    def test_summary_mentions_backend(self, threaded_config):
        assert "threading" in threaded_config.summary()


class TestMapRowChunks:
    """Tests for the row-chunk fan-out."""

    def test_chunk_ranges_cover_rows(self):
        chunks = chunk_ranges(10, 4)
        assert [list(c) for c in chunks] == [[0, 1, 2, 3], [4, 5, 6, 7], [8, 9]]

    def test_each_row_visited_once(self, threaded_config):
        chunks = map_row_chunks(100, list, config=threaded_config)
        assert len(chunks) == 15
        visited = [i for chunk in chunks for i in chunk]
        assert visited == list(range(100))

    def test_small_input_runs_inline(self):
        config = ParallelConfig(n_jobs=4, min_parallel_rows=1000, report_memory=False)
        chunks = map_row_chunks(10, list, config=config)
        assert chunks == [list(range(10))]

    def test_no_rows(self, threaded_config):
        assert map_row_chunks(0, list, config=threaded_config) == []

    def test_memory_reporting_stage(self):
        config = ParallelConfig(n_jobs=2, chunk_size=3, min_parallel_rows=0, report_memory=True)
        assert sum(map_row_chunks(7, len, config=config)) == 7


class TestPipelineConfig:
    """Tests for configuration files."""

    def test_spec_from_string(self):
        spec = TransformSpec("standardize", {"clip_cutoff": 2.0})
        assert spec.type is TransformType.STANDARDIZE
        assert spec.to_dict() == {"type": "standardize", "params": {"clip_cutoff": 2.0}}

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            TransformSpec("log1p")

    def test_yaml_round_trip(self, tmp_path):
        config = tfidf_like_config()
        path = tmp_path / "pipeline.yaml"
        save_config(config, path)

        with open(path) as f:
            raw = yaml.safe_load(f)
        assert raw["transforms"][0] == {"type": "col_selector", "params": {"min_nonzero_count": 5}}

        loaded = load_config(path)
        assert loaded.to_dict() == config.to_dict()

    def test_json_round_trip(self, tmp_path):
        config = default_sparse_config()
        path = tmp_path / "pipeline.json"
        save_config(config, path)

        with open(path) as f:
            assert json.load(f)["transforms"][1]["type"] == "standardize"
        assert load_config(path).to_dict() == config.to_dict()

    def test_hand_written_yaml(self, tmp_path):
        path = tmp_path / "pipeline.yml"
        path.write_text(
            "transforms:\n"
            "  - type: remove_outlier\n"
            "    params:\n"
            "      cutoff_fraction: 0.02\n"
            "  - type: row_norm\n"
            "parallel:\n"
            "  n_jobs: 1\n"
        )
        config = load_config(path)
        assert [spec.type for spec in config.transforms] == [TransformType.REMOVE_OUTLIER, TransformType.ROW_NORM]
        assert config.transforms[1].params == {}
        assert not config.parallel.is_parallel

        pipeline = TransformPipeline.from_config(config)
        assert pipeline.transforms[0].cutoff_fraction == 0.02

    def test_null_sections_use_defaults(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text(
            "transforms:\n"
            "  - type: power\n"
            "    params:\n"
            "parallel:\n"
        )
        config = load_config(path)
        assert config.parallel == ParallelConfig.default()
        assert config.transforms[0].params == {}

    def test_empty_transform_list(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text("transforms:\nparallel:\n  n_jobs: 2\n")
        config = load_config(path)
        assert config.transforms == []
        assert config.parallel.n_jobs == 2

    def test_entry_without_type(self):
        with pytest.raises(ValueError):
            PipelineConfig.from_dict({"transforms": [{"params": {}}]})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")


class TestRegistry:
    """Tests for the transform registry."""

    def test_all_transforms_registered(self):
        assert len(TRANSFORM_REGISTRY) == 7
        assert TRANSFORM_REGISTRY.list_transforms() == sorted(t.value for t in TransformType)

    def test_create_transform(self, sequential_config):
        transform = create_transform("standardize", parallel=sequential_config, clip_cutoff=2.0)
        assert isinstance(transform, StandardizeTransform)
        assert transform.clip_cutoff == 2.0
        assert not transform.is_fitted

    def test_unknown_name(self):
        assert "log1p" not in TRANSFORM_REGISTRY
        with pytest.raises(FeatureTransformError):
            create_transform("log1p")

    def test_bad_parameters(self):
        with pytest.raises(FeatureTransformError):
            create_transform("power", exponent=2)

    def test_state_type_mismatch(self, selector_matrix, sequential_config):
        transform = create_transform("min_max", parallel=sequential_config)
        transform.fit_transform(selector_matrix)
        state = transform.get_state()
        with pytest.raises(FeatureTransformError):
            StandardizeTransform.from_state(state)

    def test_state_without_type(self):
        with pytest.raises(FeatureTransformError):
            TRANSFORM_REGISTRY.from_state({"parameters": {}})
