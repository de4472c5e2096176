"""
Unit tests for the behavioral SystolicGrid.

These tests verify:
1. Weight loading through the daisy chain
2. Pipeline latency of 2N - 1 and stream drain of K + 2N - 2
3. Result correctness against numpy, with and without incoming partial sums
4. Phase protocol (load vs compute) and clock-enable hold
5. Padded activation rows contribute nothing
"""

import numpy as np
import pytest

from systile.config import GridConfig
from systile.core.grid import DelayLine, GridPhase, SystolicGrid
from systile.errors import ProtocolViolation


def random_int8(rng, shape):
    return rng.integers(-128, 128, size=shape, dtype=np.int64)


class TestDelayLine:
    """Test suite for the delay-line helper."""

    def test_zero_depth_is_a_wire(self):
        line = DelayLine(0)
        assert line.shift(5) == 5
        assert list(line) == []

    def test_delay(self):
        line = DelayLine(2)
        assert [line.shift(v) for v in (1, 2, 3, 4)] == [0, 0, 1, 2]

    def test_clear(self):
        line = DelayLine(2, fill=None)
        line.shift("a")
        line.clear()
        assert list(line) == [None, None]


class TestWeightLoad:
    """Test suite for weight loading."""

    @pytest.fixture
    def grid(self):
        return SystolicGrid(GridConfig(dim=4))

    def test_load_weights_places_matrix(self, grid):
        weights = np.arange(16).reshape(4, 4) - 8
        assert grid.load_weights(weights) == 4
        np.testing.assert_array_equal(grid.weight_matrix(), weights)
        assert grid.weights_loaded

    def test_load_takes_n_steps(self, grid):
        grid.load_step([1, 1, 1, 1])
        assert grid.phase is GridPhase.LOAD
        assert not grid.weights_loaded
        for _ in range(3):
            grid.load_step([2, 2, 2, 2])
        assert grid.weights_loaded
        np.testing.assert_array_equal(grid.weight_matrix()[3], [1, 1, 1, 1])

    def test_load_rejects_wrong_shape(self, grid):
        with pytest.raises(ValueError):
            grid.load_weights(np.ones((3, 4)))
        with pytest.raises(ValueError):
            grid.load_step([1, 2, 3])

    def test_compute_mid_load_rejected(self, grid):
        grid.load_step([1, 2, 3, 4])
        with pytest.raises(ProtocolViolation):
            grid.compute_step([1, 1, 1, 1])

    def test_load_with_results_in_flight_rejected(self, grid):
        grid.load_weights(np.eye(4))
        grid.compute_step([1, 2, 3, 4])
        assert grid.in_flight == 1
        with pytest.raises(ProtocolViolation):
            grid.load_step([0, 0, 0, 0])

    def test_reload_starts_from_reset(self, grid):
        """A new load phase begins from zeroed weights and accumulators."""
        rng = np.random.default_rng(1)
        grid.load_weights(random_int8(rng, (4, 4)))
        grid.compute_stream(random_int8(rng, (4, 4)))

        weights = random_int8(rng, (4, 4))
        acts = random_int8(rng, (3, 4))
        grid.load_weights(weights)
        np.testing.assert_array_equal(grid.weight_matrix(), weights)
        result = grid.compute_stream(acts)
        np.testing.assert_array_equal(result.outputs, acts @ weights)


class TestPipelineTiming:
    """Test suite for latency and drain timing."""

    def test_identity_example(self):
        """N=4 identity weights: [1, 2, 3, 4] in on cycle 1, out on cycle 7."""
        grid = SystolicGrid(GridConfig(dim=4))
        grid.load_weights(np.eye(4, dtype=np.int64))
        result = grid.compute_stream([[1, 2, 3, 4]])
        np.testing.assert_array_equal(result.outputs, [[1, 2, 3, 4]])
        assert result.emit_cycles == [7]
        assert result.cycles == 7

    @pytest.mark.parametrize("dim", [1, 2, 3, 5, 8])
    def test_single_vector_latency(self, dim):
        """The result of a vector presented on cycle 1 emerges on cycle 2N - 1, never earlier."""
        rng = np.random.default_rng(dim)
        grid = SystolicGrid(GridConfig(dim=dim))
        weights = random_int8(rng, (dim, dim))
        act = random_int8(rng, (dim,))
        grid.load_weights(weights)

        emitted = []
        for cycle in range(1, 2 * dim + 3):
            out = grid.compute_step(act if cycle == 1 else None)
            if out is not None:
                emitted.append((cycle, out))

        assert len(emitted) == 1
        cycle, out = emitted[0]
        assert cycle == 2 * dim - 1
        np.testing.assert_array_equal(out.values, act @ weights)

    @pytest.mark.parametrize("length", [1, 3, 4, 6])
    def test_stream_drain(self, length):
        """A K-long stream emits on consecutive cycles and drains in K + 2N - 2."""
        dim = 4
        rng = np.random.default_rng(length)
        grid = SystolicGrid(GridConfig(dim=dim))
        weights = random_int8(rng, (dim, dim))
        acts = random_int8(rng, (length, dim))
        grid.load_weights(weights)

        result = grid.compute_stream(acts)
        assert result.cycles == length + 2 * dim - 2
        assert result.emit_cycles == list(range(2 * dim - 1, length + 2 * dim - 1))
        np.testing.assert_array_equal(result.outputs, acts @ weights)
        assert grid.drained

    def test_single_pe_grid(self):
        grid = SystolicGrid(GridConfig(dim=1, acc_bits=16))
        grid.load_weights([[3]])
        result = grid.compute_stream([[2], [-5]])
        np.testing.assert_array_equal(result.outputs, [[6], [-15]])
        assert result.emit_cycles == [1, 2]

    def test_partial_sums_added(self):
        dim = 4
        rng = np.random.default_rng(7)
        grid = SystolicGrid(GridConfig(dim=dim))
        weights = random_int8(rng, (dim, dim))
        acts = random_int8(rng, (dim, dim))
        partial = rng.integers(-100000, 100000, size=(dim, dim))
        grid.load_weights(weights)

        result = grid.compute_stream(acts, partial)
        np.testing.assert_array_equal(result.outputs, acts @ weights + partial)

    def test_tags_follow_vectors(self):
        grid = SystolicGrid(GridConfig(dim=2))
        grid.load_weights(np.eye(2))
        outputs = [grid.compute_step([i, i], tag=f"v{i}") for i in (1, 2)]
        outputs += [grid.compute_step(None) for _ in range(2)]
        tags = [out.tag for out in outputs if out is not None]
        assert tags == ["v1", "v2"]

    def test_stream_while_draining_rejected(self):
        grid = SystolicGrid(GridConfig(dim=4))
        grid.load_weights(np.eye(4))
        grid.compute_step([1, 1, 1, 1])
        with pytest.raises(ProtocolViolation):
            grid.compute_stream([[1, 1, 1, 1]])

    def test_stream_shape_checked(self):
        grid = SystolicGrid(GridConfig(dim=4))
        grid.load_weights(np.eye(4))
        with pytest.raises(ValueError):
            grid.compute_stream(np.ones((2, 3)))
        with pytest.raises(ValueError):
            grid.compute_stream(np.ones((2, 4)), np.ones((3, 4)))


class TestHoldAndPadding:
    """Test suite for stalls and zero padding."""

    def test_hold_freezes_pipeline(self):
        """Held cycles do not count toward the 2N - 1 latency."""
        dim = 3
        grid = SystolicGrid(GridConfig(dim=dim))
        weights = np.arange(9).reshape(3, 3) - 4
        grid.load_weights(weights)

        steps = 0
        out = grid.compute_step([1, -2, 3])
        steps += 1
        for _ in range(3):
            grid.hold()
        while out is None:
            out = grid.compute_step(None)
            steps += 1

        assert steps == 2 * dim - 1
        np.testing.assert_array_equal(out.values, np.array([1, -2, 3]) @ weights)

    def test_zero_rows_pass_partials_through(self):
        """An all-zero (padded) activation vector leaves its partial sums unchanged."""
        dim = 4
        rng = np.random.default_rng(3)
        grid = SystolicGrid(GridConfig(dim=dim))
        grid.load_weights(random_int8(rng, (dim, dim)))

        acts = random_int8(rng, (dim, dim))
        acts[2:] = 0
        partial = rng.integers(-1000, 1000, size=(dim, dim))
        result = grid.compute_stream(acts, partial)
        np.testing.assert_array_equal(result.outputs[2:], partial[2:])

    def test_zero_weight_rows_ignore_activations(self):
        """Padded k positions hold zero weights, so their activations do not matter."""
        dim = 4
        rng = np.random.default_rng(4)
        weights = random_int8(rng, (dim, dim))
        weights[3] = 0
        acts = random_int8(rng, (2, dim))
        noisy = acts.copy()
        noisy[:, 3] = 99

        grid = SystolicGrid(GridConfig(dim=dim))
        grid.load_weights(weights)
        clean = grid.compute_stream(acts).outputs
        noisy_out = grid.compute_stream(noisy).outputs
        np.testing.assert_array_equal(clean, noisy_out)

    def test_reset(self):
        grid = SystolicGrid(GridConfig(dim=2))
        grid.load_weights([[1, 2], [3, 4]])
        grid.compute_step([1, 1])
        grid.reset()
        assert grid.phase is GridPhase.IDLE
        assert grid.drained
        np.testing.assert_array_equal(grid.weight_matrix(), np.zeros((2, 2)))
