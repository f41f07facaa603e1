"""
===============================================================================
QUATERNION AVERAGER - Parallel Accumulation Test Suite
===============================================================================
Tests that map-reduce accumulation over a process pool reproduces the state
of a single sequential averager, and that small inputs skip the pool.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
from numpy.testing import assert_allclose

from quaternion_averager import Quaternion, QuaternionAverager
from quaternion_averager.config import AveragerConfig
from quaternion_averager.performance import parallel
from quaternion_averager.performance.parallel import ParallelAverager


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def samples():
    """400 random rotations as an (N, 4) array plus positive weights."""
    rng = np.random.default_rng(11)
    quats = np.array([Quaternion.random(rng).components for _ in range(400)])
    weights = rng.uniform(0.5, 2.0, size=400)
    return quats, weights


# =============================================================================
# Test: Pool accumulation
# =============================================================================

class TestParallelAccumulation:
    """Pool-based accumulation must match sequential accumulation."""

    def test_unweighted_matches_sequential(self, samples):
        quats, _ = samples
        sequential = QuaternionAverager().add_quaternions(quats)
        merged = ParallelAverager(num_workers=2, min_chunk_size=50).accumulate(quats)

        assert_allclose(merged.matrix, sequential.matrix, atol=1e-11)
        assert merged.weight_sum == sequential.weight_sum
        assert merged.count == 400
        assert merged.calc_average() == sequential.calc_average()

    @pytest.mark.parametrize("weighting", ["multiply", "divide"])
    def test_weighted_matches_sequential(self, samples, weighting):
        quats, weights = samples
        sequential = QuaternionAverager(weighting=weighting).add_quaternions(quats, weights)
        pa = ParallelAverager(num_workers=3, min_chunk_size=50, weighting=weighting)
        merged = pa.accumulate(quats, weights)

        assert merged.weighting is sequential.weighting
        assert_allclose(merged.matrix, sequential.matrix, atol=1e-11)
        assert_allclose(merged.weight_sum, sequential.weight_sum, rtol=1e-12)

    def test_average_shortcut(self, samples):
        quats, _ = samples
        expected = QuaternionAverager().add_quaternions(quats).calc_average()
        q = ParallelAverager(num_workers=2, min_chunk_size=50).average(quats)
        assert_allclose(abs(q.dot(expected)), 1.0, atol=1e-9)

    def test_merged_averager_accepts_more_samples(self, samples):
        quats, _ = samples
        merged = ParallelAverager(num_workers=2, min_chunk_size=50).accumulate(quats)
        merged.add_quaternion(Quaternion.identity())
        assert merged.count == 401


# =============================================================================
# Test: Chunking
# =============================================================================

class TestChunking:

    def test_small_input_skips_pool(self, samples, monkeypatch):
        def _no_pool(*args, **kwargs):
            raise AssertionError("Pool should not be created for small inputs")

        monkeypatch.setattr(parallel, "Pool", _no_pool)
        quats, _ = samples
        pa = ParallelAverager(num_workers=4, min_chunk_size=1000)
        merged = pa.accumulate(quats[:20])
        assert merged.count == 20

    def test_chunk_count_bounded_by_workers(self, samples):
        quats, weights = samples
        pa = ParallelAverager(num_workers=3, min_chunk_size=10)
        tasks = pa._split(quats, weights)
        assert len(tasks) == 3
        assert sum(t[0].shape[0] for t in tasks) == 400
        assert sum(t[1].shape[0] for t in tasks) == 400

    def test_empty_input(self):
        merged = ParallelAverager(num_workers=2).accumulate(np.zeros((0, 4)))
        assert merged.is_empty


# =============================================================================
# Test: Validation and configuration
# =============================================================================

class TestValidation:

    def test_bad_shape_raises(self):
        with pytest.raises(ValueError):
            ParallelAverager(num_workers=2).accumulate(np.zeros((5, 3)))

    def test_weight_mismatch_raises(self, samples):
        quats, weights = samples
        with pytest.raises(ValueError):
            ParallelAverager(num_workers=2).accumulate(quats, weights[:10])

    def test_defaults_to_cpu_count(self):
        assert ParallelAverager().num_workers >= 1

    def test_from_config(self):
        config = AveragerConfig(weighting="divide", dtype="float32",
                                num_workers=2, min_chunk_size=7)
        pa = ParallelAverager.from_config(config)
        assert pa.num_workers == 2
        assert pa.min_chunk_size == 7
        assert pa.weighting.value == "divide"
        assert pa.dtype == np.float32
