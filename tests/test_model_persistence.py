"""
Unit tests for model persistence and serialization/deserialization consistency.

Tests the ModelPersistence class functionality including serialization,
deserialization, metadata handling, and file management.
"""

import pytest
import numpy as np
import json

import joblib

from hmm_engine.emission import DiscreteEmission, GaussianEmission
from hmm_engine.exceptions import PersistenceError
from hmm_engine.hmm import HiddenMarkovModel
from hmm_engine.train import HMMTrainer, ModelPersistence


class TestModelPersistence:
    """Unit tests for ModelPersistence class."""

    @pytest.fixture
    def persistence(self, temp_dir):
        """Create ModelPersistence instance."""
        return ModelPersistence(str(temp_dir / "models"))

    @pytest.fixture
    def sample_metadata(self):
        """Create sample metadata with numpy values."""
        return {
            'n_sequences': np.int64(10),
            'final_log_likelihood': np.float64(-234.567),
            'converged': True,
            'history': np.array([-300.0, -250.0, -234.567]),
            'hyperparameters': {
                'max_iterations': 100,
                'convergence_tolerance': 1e-5,
                'seed_means': [np.array([0.0, 1.0]), np.float32(2.5)]
            }
        }

    def test_save_and_load_discrete(self, persistence, regression_model):
        """Test that a round trip preserves parameters and scores."""
        observations = [0, 2, 2, 1, 2, 3, 0, 0, 1, 3, 1, 0, 0, 3, 1, 2, 2]

        model_path, metadata_path = persistence.save_model("regression", regression_model)
        loaded, metadata = persistence.load_model("regression")

        assert model_path.name == "regression.pkl"
        assert metadata_path.name == "regression_meta.json"
        assert isinstance(loaded, HiddenMarkovModel)
        np.testing.assert_array_equal(loaded.transition.matrix, regression_model.transition.matrix)
        assert loaded.transition.start_state == 0
        assert loaded.score(observations) == pytest.approx(regression_model.score(observations))

        assert metadata['model_class'] == 'HiddenMarkovModel'
        assert metadata['model_parameters'] == {
            'n_states': 3,
            'emission_family': 'discrete',
            'emission_shape': [4]
        }

    def test_save_and_load_gaussian(self, persistence, gaussian_model, rng):
        """Test that Gaussian densities survive serialization."""
        observations, _ = gaussian_model.generate(20, rng)

        persistence.save_model("gaussian", gaussian_model)
        loaded, metadata = persistence.load_model("gaussian")

        assert metadata['model_parameters']['emission_family'] == 'gaussian'
        assert loaded.score(observations) == pytest.approx(gaussian_model.score(observations))
        np.testing.assert_array_equal(loaded.decode(observations), gaussian_model.decode(observations))

    def test_metadata_serialization(self, persistence, weather_model, sample_metadata):
        """Test that numpy values in metadata are stored as JSON types."""
        _, metadata_path = persistence.save_model("weather", weather_model, sample_metadata)

        with open(metadata_path) as f:
            stored = json.load(f)

        assert stored['n_sequences'] == 10
        assert stored['final_log_likelihood'] == pytest.approx(-234.567)
        assert stored['history'] == [-300.0, -250.0, -234.567]
        assert stored['hyperparameters']['seed_means'] == [[0.0, 1.0], 2.5]
        assert 'saved_at' in stored

    def test_training_result_metadata(self, persistence, weather_model):
        """Test storing a training summary next to the model."""
        result = HMMTrainer().train_supervised(weather_model, [[0, 1, 1]], [[0, 1, 1]])
        persistence.save_model("trained", weather_model, result.to_dict())

        _, metadata = persistence.load_model("trained")
        assert metadata['status'] == 'supervised'
        assert metadata['final_log_likelihood'] is None

    def test_overwrite_protection(self, persistence, weather_model):
        """Test that existing files are not replaced without overwrite."""
        persistence.save_model("weather", weather_model)

        with pytest.raises(PersistenceError, match="already exists"):
            persistence.save_model("weather", weather_model)

        persistence.save_model("weather", weather_model, overwrite=True)

    def test_filename_sanitization(self, persistence, weather_model):
        """Test that model names map to safe filenames."""
        model_path, _ = persistence.save_model("Rain Model-v2!", weather_model)

        assert model_path.name == "rain_model_v2.pkl"
        loaded, _ = persistence.load_model("Rain Model-v2!")
        assert loaded.n_states == 2

        with pytest.raises(PersistenceError):
            persistence.save_model("!!!", weather_model)

    def test_load_missing_model(self, persistence):
        """Test loading a model that was never saved."""
        with pytest.raises(PersistenceError, match="not found"):
            persistence.load_model("missing")

    def test_load_missing_metadata(self, persistence, weather_model):
        """Test that a model file without metadata is rejected."""
        _, metadata_path = persistence.save_model("weather", weather_model)
        (persistence.models_dir / "weather_meta.json").unlink()

        with pytest.raises(PersistenceError, match="Metadata file not found"):
            persistence.load_model("weather")

    def test_load_wrong_object(self, persistence):
        """Test that arbitrary pickles are rejected."""
        joblib.dump({'not': 'a model'}, persistence.models_dir / "bogus.pkl")
        (persistence.models_dir / "bogus_meta.json").write_text("{}")

        with pytest.raises(PersistenceError, match="not a HiddenMarkovModel"):
            persistence.load_model("bogus")

    def test_metadata_mismatch(self, persistence, weather_model):
        """Test that metadata inconsistent with the model is rejected."""
        _, metadata_path = persistence.save_model("weather", weather_model)

        with open(metadata_path) as f:
            metadata = json.load(f)
        metadata['model_parameters']['n_states'] = 5
        with open(metadata_path, 'w') as f:
            json.dump(metadata, f)

        with pytest.raises(PersistenceError, match="n_states"):
            persistence.load_model("weather")

    def test_corrupt_model_file(self, persistence, weather_model):
        """Test that unreadable model files raise PersistenceError."""
        model_path, _ = persistence.save_model("weather", weather_model)
        with open(model_path, 'wb') as f:
            f.write(b"garbage")

        with pytest.raises(PersistenceError, match="Failed to load"):
            persistence.load_model("weather")

    def test_list_available_models(self, persistence, weather_model, regression_model):
        """Test listing saved models."""
        persistence.save_model("weather", weather_model, {'status': 'supervised'})
        persistence.save_model("regression", regression_model)

        models = persistence.list_available_models()
        names = [info['name'] for info in models]

        assert names == ['regression', 'weather']
        weather_info = models[1]
        assert weather_info['metadata_exists']
        assert weather_info['status'] == 'supervised'
        assert weather_info['model_parameters']['n_states'] == 2

    def test_delete_model(self, persistence, weather_model):
        """Test deleting model files."""
        persistence.save_model("weather", weather_model)

        assert persistence.delete_model("weather") is True
        assert persistence.list_available_models() == []
        assert persistence.delete_model("weather") is False
