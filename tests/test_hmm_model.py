"""
Unit tests for HiddenMarkovModel and TransitionModel.

Tests cover construction, stochastic matrix validation, initial-state
resolution, parameter access and the convenience inference methods.
"""

import pytest
import numpy as np

from hmm_engine.emission import DiscreteEmission, GaussianEmission
from hmm_engine.exceptions import ConfigurationError, DomainError
from hmm_engine.hmm import HiddenMarkovModel, TransitionModel


class TestTransitionModel:
    """Test transition matrix validation and initial distributions."""

    def test_column_stochastic_matrix(self):
        """Test that columns, not rows, must sum to 1."""
        matrix = np.array([[0.1, 0.4], [0.9, 0.6]])
        transition = TransitionModel(matrix)

        assert transition.n_states == 2
        np.testing.assert_array_equal(transition.matrix, matrix)

        with pytest.raises(ConfigurationError, match="columns"):
            TransitionModel(matrix.T)

    def test_invalid_matrices(self):
        """Test rejection of malformed matrices."""
        with pytest.raises(ConfigurationError):
            TransitionModel(np.ones((2, 3)) / 2)
        with pytest.raises(ConfigurationError):
            TransitionModel(np.zeros((0, 0)))
        with pytest.raises(ConfigurationError):
            TransitionModel([[1.5, 0.0], [-0.5, 1.0]])
        with pytest.raises(ConfigurationError):
            TransitionModel([[np.nan, 0.0], [1.0, 1.0]])

    def test_matrix_is_read_only(self):
        """Test that the exposed matrix can't be modified in place."""
        transition = TransitionModel(np.eye(2))

        with pytest.raises(ValueError):
            transition.matrix[0, 0] = 0.5

    def test_uniform_initial_by_default(self):
        """Test the default initial distribution."""
        transition = TransitionModel(np.full((4, 4), 0.25))

        assert transition.initial is None
        np.testing.assert_array_almost_equal(transition.initial_probabilities, np.full(4, 0.25))

    def test_start_state_initial(self):
        """Test that start_state takes the initial distribution from a column."""
        matrix = np.array([[0.5, 0.0, 0.1],
                           [0.2, 0.6, 0.2],
                           [0.3, 0.4, 0.7]])
        transition = TransitionModel(matrix, start_state=0)

        assert transition.start_state == 0
        np.testing.assert_array_equal(transition.initial_probabilities, [0.5, 0.2, 0.3])

    def test_explicit_initial(self):
        """Test an explicit initial vector."""
        transition = TransitionModel(np.eye(2), initial=[0.25, 0.75])

        np.testing.assert_array_equal(transition.initial_probabilities, [0.25, 0.75])

        with pytest.raises(ConfigurationError):
            TransitionModel(np.eye(2), initial=[0.5, 0.6])
        with pytest.raises(ConfigurationError):
            TransitionModel(np.eye(2), initial=[1.0])
        with pytest.raises(ConfigurationError):
            TransitionModel(np.eye(2), initial=[0.5, 0.5], start_state=0)
        with pytest.raises(ConfigurationError):
            TransitionModel(np.eye(2), start_state=2)

    def test_update(self):
        """Test replacing the matrix."""
        transition = TransitionModel(np.eye(2), initial=[0.5, 0.5])
        transition.update([[0.5, 0.5], [0.5, 0.5]])

        np.testing.assert_array_equal(transition.matrix, np.full((2, 2), 0.5))
        # Initial vector is kept when not given
        np.testing.assert_array_equal(transition.initial, [0.5, 0.5])

        with pytest.raises(ConfigurationError):
            transition.update(np.eye(3))


class TestHiddenMarkovModelConstruction:
    """Test HiddenMarkovModel construction and validation."""

    def test_discrete_model(self, regression_model):
        """Test basic properties of a discrete model."""
        assert regression_model.n_states == 3
        assert len(regression_model.emission) == 3
        assert regression_model.transition.start_state == 0

    def test_accepts_transition_model(self):
        """Test construction from an existing TransitionModel."""
        transition = TransitionModel(np.eye(2), initial=[1.0, 0.0])
        model = HiddenMarkovModel(transition, [DiscreteEmission(n_symbols=3)] * 2)

        assert model.transition is not transition
        np.testing.assert_array_equal(model.transition.matrix, np.eye(2))
        np.testing.assert_array_equal(model.transition.initial, [1.0, 0.0])

        with pytest.raises(ConfigurationError):
            HiddenMarkovModel(transition, [DiscreteEmission(n_symbols=3)] * 2, start_state=0)

    def test_owns_its_parameters(self):
        """Test that a shared emission instance becomes one copy per state."""
        prototype = DiscreteEmission([0.5, 0.5])
        transition = TransitionModel(np.full((2, 2), 0.5))
        model = HiddenMarkovModel(transition, [prototype] * 2)

        assert model.emission[0] is not model.emission[1]
        assert model.emission[0] is not prototype

        model.emission[0].reestimate([0, 0])
        model.transition.update(np.eye(2))

        np.testing.assert_array_equal(model.emission[1].probabilities, [0.5, 0.5])
        np.testing.assert_array_equal(prototype.probabilities, [0.5, 0.5])
        np.testing.assert_array_equal(transition.matrix, np.full((2, 2), 0.5))

    def test_emission_count_mismatch(self):
        """Test that emissions must match the number of states."""
        with pytest.raises(ConfigurationError):
            HiddenMarkovModel(np.eye(3), [DiscreteEmission(n_symbols=2)] * 2)

    def test_mixed_emission_variants(self):
        """Test that all states must share the same emission variant."""
        with pytest.raises(ConfigurationError):
            HiddenMarkovModel(np.eye(2), [DiscreteEmission(n_symbols=2), GaussianEmission(dimension=2)])

    def test_mixed_emission_shapes(self):
        """Test that all states must share the same alphabet size."""
        with pytest.raises(ConfigurationError):
            HiddenMarkovModel(np.eye(2), [DiscreteEmission(n_symbols=2), DiscreteEmission(n_symbols=3)])

    def test_non_emission_rejected(self):
        """Test that arbitrary objects are rejected as emissions."""
        with pytest.raises(ConfigurationError):
            HiddenMarkovModel(np.eye(1), [[0.5, 0.5]])

    def test_from_prototype_uniform(self):
        """Test building identical states from a prototype."""
        prototype = DiscreteEmission([0.2, 0.8])
        model = HiddenMarkovModel.from_prototype(3, prototype)

        np.testing.assert_array_almost_equal(model.transition.matrix, np.full((3, 3), 1 / 3))
        for emission in model.emission:
            assert emission is not prototype
            np.testing.assert_array_equal(emission.probabilities, [0.2, 0.8])

    def test_from_prototype_random(self, rng):
        """Test that a generator breaks the symmetry between states."""
        model = HiddenMarkovModel.from_prototype(3, GaussianEmission(dimension=2), rng=rng)

        np.testing.assert_array_almost_equal(model.transition.matrix.sum(axis=0), np.ones(3))
        assert not np.array_equal(model.emission[0].mean, model.emission[1].mean)

        with pytest.raises(ConfigurationError):
            HiddenMarkovModel.from_prototype(0, GaussianEmission(dimension=2))


class TestHiddenMarkovModelParameters:
    """Test parameter access and sequence validation."""

    def test_get_parameters_returns_copies(self, weather_model):
        """Test that returned parameters are detached from the model."""
        matrix, initial, emissions = weather_model.get_parameters()
        matrix[0, 0] = 0.0
        emissions[0].reestimate([1, 1])

        assert initial is None
        assert weather_model.transition.matrix[0, 0] == 0.7
        np.testing.assert_array_equal(weather_model.emission[0].probabilities, [0.9, 0.1])

    def test_set_parameters(self, weather_model):
        """Test replacing model parameters."""
        new_emissions = [DiscreteEmission([0.5, 0.5]), DiscreteEmission([0.1, 0.9])]
        weather_model.set_parameters([[0.6, 0.2], [0.4, 0.8]], [0.3, 0.7], new_emissions)

        np.testing.assert_array_equal(weather_model.transition.matrix, [[0.6, 0.2], [0.4, 0.8]])
        np.testing.assert_array_equal(weather_model.transition.initial, [0.3, 0.7])
        np.testing.assert_array_equal(weather_model.emission[1].probabilities, [0.1, 0.9])

    def test_set_parameters_shape_mismatch(self, weather_model):
        """Test that the model's shape is fixed."""
        with pytest.raises(ConfigurationError):
            weather_model.set_parameters(np.eye(2), None, [DiscreteEmission(n_symbols=3)] * 2)
        with pytest.raises(ConfigurationError):
            weather_model.set_parameters(np.eye(3), None, [DiscreteEmission(n_symbols=2)] * 3)

    def test_validate_states(self, weather_model):
        """Test state sequence validation."""
        np.testing.assert_array_equal(weather_model.validate_states([0, 1, 1], 3), [0, 1, 1])

        with pytest.raises(DomainError):
            weather_model.validate_states([0, 1], 3)
        with pytest.raises(DomainError):
            weather_model.validate_states([0, 2, 1], 3)
        with pytest.raises(DomainError):
            weather_model.validate_states([0.0, 1.0, 1.0], 3)

    def test_emission_probabilities(self, weather_model):
        """Test the per-state emission table."""
        table = weather_model.emission_probabilities(weather_model.validate_sequence([0, 1]))

        np.testing.assert_array_almost_equal(table, [[0.9, 0.1], [0.2, 0.8]])

    def test_copy_is_independent(self, weather_model):
        """Test deep copies."""
        clone = weather_model.copy()
        clone.emission[0].reestimate([1])

        np.testing.assert_array_equal(weather_model.emission[0].probabilities, [0.9, 0.1])

    def test_convenience_methods(self, weather_model, rng):
        """Test that model methods delegate to the inference functions."""
        observations = [0, 0, 1, 0, 0]

        np.testing.assert_array_equal(weather_model.decode(observations), [0, 0, 1, 0, 0])
        assert weather_model.score(observations) == pytest.approx(
            weather_model.estimate(observations).log_likelihood
        )

        generated, states = weather_model.generate(10, rng)
        assert generated.shape == (10,)
        assert states.shape == (10,)
