"""
===============================================================================
QUATERNION AVERAGER - Quaternion Value Type Test Suite
===============================================================================
Tests for the Quaternion class covering identity, normalization and sign
canonicalization, immutability, axis-angle construction, scalar-last
interop, rotation distance and the outer product used by the averager.

All floating-point comparisons use numpy.testing.assert_allclose with
explicit tolerances appropriate for double-precision arithmetic.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
from numpy.testing import assert_allclose

from quaternion_averager.core.quaternion import Quaternion


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def identity_quat():
    """Return the identity quaternion [1, 0, 0, 0]."""
    return Quaternion.identity()


@pytest.fixture
def quat_90z():
    """Return a quaternion representing 90-degree rotation about Z axis."""
    return Quaternion.from_axis_angle(np.array([0.0, 0.0, 1.0]), np.pi / 2)


@pytest.fixture
def random_quat():
    """Return a deterministic 'random' quaternion for reproducible tests."""
    return Quaternion.random(np.random.default_rng(42))


# =============================================================================
# Test: Identity quaternion
# =============================================================================

class TestIdentity:
    """Tests for the identity quaternion."""

    def test_identity(self, identity_quat):
        assert_allclose(identity_quat.components, [1.0, 0.0, 0.0, 0.0], atol=1e-15)

    def test_identity_is_unit(self, identity_quat):
        assert identity_quat.is_unit()

    def test_identity_rotation_angle_is_zero(self, identity_quat):
        assert_allclose(identity_quat.rotation_angle, 0.0, atol=1e-15)

    def test_identity_axis_defaults_to_z(self, identity_quat):
        assert_allclose(identity_quat.rotation_axis, [0.0, 0.0, 1.0])


# =============================================================================
# Test: Normalization
# =============================================================================

class TestNormalize:
    """Tests for normalization and sign canonicalization on construction."""

    def test_normalize(self):
        """An unnormalized quaternion should be automatically normalized."""
        q = Quaternion(2.0, 0.0, 0.0, 0.0)
        assert_allclose(q.norm, 1.0, atol=1e-15)
        assert_allclose(q.components, [1.0, 0.0, 0.0, 0.0], atol=1e-15)

    @pytest.mark.parametrize("w,x,y,z", [
        (3.0, 4.0, 0.0, 0.0),
        (0.0, 0.0, 1.0, 1.0),
        (1.0, 2.0, 3.0, 4.0),
        (-1.0, 2.0, -3.0, 4.0),
    ])
    def test_normalize_parametrized(self, w, x, y, z):
        q = Quaternion(w, x, y, z)
        assert_allclose(q.norm, 1.0, atol=1e-14)

    def test_negative_scalar_flipped(self):
        """Normalization picks the w >= 0 representative."""
        q = Quaternion(-0.5, 0.5, 0.5, 0.5)
        assert_allclose(q.components, [0.5, -0.5, -0.5, -0.5], atol=1e-15)

    def test_no_normalize_keeps_components(self):
        q = Quaternion(-2.0, 0.0, 0.0, 0.0, normalize=False)
        assert_allclose(q.components, [-2.0, 0.0, 0.0, 0.0])
        assert not q.is_unit()

    def test_zero_quaternion_raises(self):
        with pytest.raises(ValueError):
            Quaternion(0.0, 0.0, 0.0, 0.0)

    def test_normalize_method(self):
        q = Quaternion(0.0, 0.0, 3.0, 4.0, normalize=False).normalize()
        assert_allclose(q.components, [0.0, 0.0, 0.6, 0.8], atol=1e-15)


# =============================================================================
# Test: Immutability
# =============================================================================

class TestImmutable:
    """The value type must not be changeable through its accessors."""

    def test_components_is_a_copy(self, quat_90z):
        c = quat_90z.components
        c[:] = 0.0
        assert quat_90z.is_unit()

    def test_internal_array_read_only(self, quat_90z):
        with pytest.raises(ValueError):
            quat_90z._q[0] = 5.0

    def test_attributes_cannot_be_added(self, quat_90z):
        with pytest.raises(AttributeError):
            quat_90z.extra = 1.0


# =============================================================================
# Test: Construction helpers
# =============================================================================

class TestFromAxisAngle:
    """Tests for axis-angle construction."""

    def test_from_axis_angle(self, quat_90z):
        assert_allclose(quat_90z.w, np.cos(np.pi / 4), atol=1e-14)
        assert_allclose(quat_90z.x, 0.0, atol=1e-15)
        assert_allclose(quat_90z.y, 0.0, atol=1e-15)
        assert_allclose(quat_90z.z, np.sin(np.pi / 4), atol=1e-14)

    @pytest.mark.parametrize("axis,angle", [
        ([1.0, 0.0, 0.0], 0.3),
        ([0.0, 1.0, 0.0], 1.2),
        ([1.0, 1.0, 1.0], 2.5),
    ])
    def test_axis_angle_properties(self, axis, angle):
        q = Quaternion.from_axis_angle(np.array(axis), angle)
        assert_allclose(q.rotation_angle, angle, atol=1e-12)
        expected_axis = np.array(axis) / np.linalg.norm(axis)
        assert_allclose(q.rotation_axis, expected_axis, atol=1e-12)

    def test_zero_axis_raises(self):
        with pytest.raises(ValueError):
            Quaternion.from_axis_angle(np.zeros(3), 1.0)


class TestArrayConversions:
    """Tests for array and scalar-last conversions."""

    def test_from_array(self):
        q = Quaternion.from_array([0.5, 0.5, 0.5, 0.5])
        assert_allclose(q.components, [0.5, 0.5, 0.5, 0.5])

    def test_from_array_wrong_size_raises(self):
        with pytest.raises(ValueError):
            Quaternion.from_array([1.0, 0.0, 0.0])

    def test_scalar_last(self, quat_90z):
        xyzw = quat_90z.to_scalar_last()
        assert_allclose(xyzw, [0.0, 0.0, np.sin(np.pi / 4), np.cos(np.pi / 4)], atol=1e-15)
        assert Quaternion.from_scalar_last(xyzw) == quat_90z

    def test_iter_and_tuple(self, quat_90z):
        assert tuple(quat_90z) == quat_90z.as_tuple()
        assert len(list(quat_90z)) == 4


# =============================================================================
# Test: Comparison
# =============================================================================

class TestComparison:
    """Equality, dot product and angular distance."""

    def test_negation_is_same_rotation(self, random_quat):
        neg = -random_quat
        assert_allclose(neg.components, -random_quat.components)
        assert neg == random_quat
        assert_allclose(random_quat.angle_to(neg), 0.0, atol=1e-7)

    def test_hash_matches_for_negation(self, random_quat):
        assert hash(-random_quat) == hash(random_quat)

    def test_different_rotations_not_equal(self, identity_quat, quat_90z):
        assert identity_quat != quat_90z

    def test_angle_to(self, identity_quat, quat_90z):
        assert_allclose(identity_quat.angle_to(quat_90z), np.pi / 2, atol=1e-12)

    def test_dot_self_is_one(self, random_quat):
        assert_allclose(random_quat.dot(random_quat), 1.0, atol=1e-14)

    def test_conjugate(self, quat_90z):
        qc = quat_90z.conjugate()
        assert_allclose(qc.vector, -quat_90z.vector, atol=1e-15)
        assert_allclose(qc.w, quat_90z.w, atol=1e-15)


# =============================================================================
# Test: Outer product
# =============================================================================

class TestOuter:
    """The outer product feeding the averaging matrix."""

    def test_outer_symmetric_rank_one(self, random_quat):
        m = random_quat.outer()
        assert m.shape == (4, 4)
        assert_allclose(m, m.T, atol=1e-15)
        assert np.linalg.matrix_rank(m) == 1

    def test_outer_trace_is_norm_squared(self, random_quat):
        assert_allclose(np.trace(random_quat.outer()), 1.0, atol=1e-14)

    def test_outer_sign_invariant(self, random_quat):
        assert_allclose((-random_quat).outer(), random_quat.outer(), atol=1e-15)


# =============================================================================
# Test: Random generation
# =============================================================================

class TestRandom:

    def test_random_is_unit(self):
        rng = np.random.default_rng(7)
        for _ in range(20):
            assert Quaternion.random(rng).is_unit()

    def test_random_reproducible(self):
        q1 = Quaternion.random(np.random.default_rng(3))
        q2 = Quaternion.random(np.random.default_rng(3))
        assert q1 == q2
