"""Tests for somrec.config.SOMRecConfig."""

import pytest

from somrec.config import SOMRecConfig
from somrec.types import FeatureSettings, TrainSettings

pytestmark = pytest.mark.unit


class TestDefaults:
    def test_default_iteration_count(self, monkeypatch):
        monkeypatch.delenv("SOMREC_ITERATIONS", raising=False)
        config = SOMRecConfig()
        assert config.iteration_count == 10

    def test_default_sample_count_per_neuron(self, monkeypatch):
        monkeypatch.delenv("SOMREC_SAMPLES_PER_NEURON", raising=False)
        config = SOMRecConfig()
        assert config.sample_count_per_neuron == 4.0

    def test_default_search_factor_is_unlimited(self, monkeypatch):
        monkeypatch.delenv("SOMREC_SEARCH_DISTANCE_FACTOR", raising=False)
        config = SOMRecConfig()
        assert config.search_distance_factor is None

    def test_default_cache_dir_under_data_root(self, tmp_path, monkeypatch):
        monkeypatch.delenv("SOMREC_CACHE_DIR", raising=False)
        config = SOMRecConfig()
        config.project_root = tmp_path
        assert config.cache_dir == tmp_path / "data" / "cache" / "som"


class TestEnvOverrides:
    def test_iterations_and_seed(self, monkeypatch):
        monkeypatch.setenv("SOMREC_ITERATIONS", "25")
        monkeypatch.setenv("SOMREC_SEED", "7")
        config = SOMRecConfig()
        assert config.iteration_count == 25
        assert config.seed == 7

    def test_cache_dir(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SOMREC_CACHE_DIR", str(tmp_path / "elsewhere"))
        config = SOMRecConfig()
        assert config.cache_dir == tmp_path / "elsewhere"

    def test_search_factor(self, monkeypatch):
        monkeypatch.setenv("SOMREC_SEARCH_DISTANCE_FACTOR", "0.75")
        assert SOMRecConfig().search_distance_factor == 0.75


class TestValidation:
    def test_validate_passes_with_defaults(self, isolated_config):
        isolated_config.validate_config()

    def test_rejects_zero_iterations(self, isolated_config):
        isolated_config.SOM_ITERATION_COUNT = 0
        with pytest.raises(ValueError, match="iteration_count must be positive"):
            isolated_config.validate_config()

    def test_rejects_negative_samples_per_neuron(self, isolated_config):
        isolated_config.SOM_SAMPLE_COUNT_PER_NEURON = -1.0
        with pytest.raises(ValueError, match="sample_count_per_neuron"):
            isolated_config.validate_config()

    def test_rejects_learning_rate_above_one(self, isolated_config):
        isolated_config.SOM_INITIAL_LEARNING_RATE = 1.5
        with pytest.raises(ValueError, match="initial_learning_rate"):
            isolated_config.validate_config()

    def test_rejects_non_positive_search_factor(self, isolated_config):
        isolated_config.SOM_SEARCH_DISTANCE_FACTOR = 0.0
        with pytest.raises(ValueError, match="search_distance_factor"):
            isolated_config.validate_config()


class TestTrainSettings:
    def test_from_config(self, isolated_config):
        settings = TrainSettings.from_config(isolated_config, {"f.a": FeatureSettings(2.0)})
        assert settings.iteration_count == 50
        assert settings.sample_count_per_neuron == 4.0
        assert settings.feature_settings_map["f.a"].weight == 2.0

    def test_rejects_zero_iterations(self):
        with pytest.raises(ValueError, match="iteration_count"):
            TrainSettings(iteration_count=0)
