"""
===============================================================================
QUATERNION AVERAGER - Unit Quaternion Value Type
===============================================================================

Immutable unit quaternion used as the sample and result type of the
averager. Only the operations needed to build, compare and inspect rotations
are provided here; the averaging itself lives in ``averager.py``.

Convention
----------
Scalar-first component order:

    q = [q_w, q_x, q_y, q_z] = q_w + q_x*i + q_y*j + q_z*k

where q_w is the scalar (real) part and [q_x, q_y, q_z] is the vector
(imaginary) part. The averager packs quaternions into its 4x4 accumulator
in exactly this order, and reads the dominant eigenvector back in the same
order.

Libraries such as ``scipy.spatial.transform.Rotation`` use the scalar-last
order [x, y, z, w]; use ``to_scalar_last`` / ``from_scalar_last`` when
exchanging data with them.

Sign ambiguity
--------------
q and -q encode the same rotation. When normalizing, the constructor picks
the representative with w >= 0, so two equal rotations built through the
default path compare equal component-wise as well.

References
----------
    [1] Markley, Cheng, Crassidis & Oshman, "Averaging Quaternions",
        Journal of Guidance, Control, and Dynamics 30(4), 2007.
    [2] Shoemake, "Uniform Random Rotations", Graphics Gems III, 1992.

===============================================================================
"""

import numpy as np
from typing import Sequence, Tuple, Union

from .constants import NORM_TOLERANCE, COMPARISON_TOLERANCE


class Quaternion:
    """
    Unit quaternion class for 3D rotation representation.

    A unit quaternion q = [w, x, y, z] parameterizes a rotation by angle theta
    about unit axis n as:

        q = [cos(theta/2), sin(theta/2) * n_x, sin(theta/2) * n_y, sin(theta/2) * n_z]

    Attributes
    ----------
    w : float
        Scalar (real) component of the quaternion.
    x : float
        First imaginary component (i-axis).
    y : float
        Second imaginary component (j-axis).
    z : float
        Third imaginary component (k-axis).

    Examples
    --------
    >>> q = Quaternion(1.0, 0.0, 0.0, 0.0)  # Identity rotation
    >>> q_rot = Quaternion.from_axis_angle(np.array([0.0, 0.0, 1.0]), np.pi / 2)
    >>> q_rot.angle_to(q)
    1.5707963267948966
    """

    _NORM_TOLERANCE = NORM_TOLERANCE
    _COMPARISON_TOLERANCE = COMPARISON_TOLERANCE

    __slots__ = ('_q',)

    def __init__(self, w: float, x: float, y: float, z: float,
                 normalize: bool = True) -> None:
        """
        Initialize a quaternion with scalar-first convention.

        Parameters
        ----------
        w : float
            Scalar part (cos(theta/2) for a rotation by angle theta).
        x : float
            i-component of the vector part.
        y : float
            j-component of the vector part.
        z : float
            k-component of the vector part.
        normalize : bool, optional
            If True (default), normalize the quaternion to unit magnitude
            and flip it to the w >= 0 hemisphere. Set to False to keep the
            components exactly as given (the result may then be non-unit).

        Raises
        ------
        ValueError
            If ``normalize`` is True and the 4-vector has near-zero norm.
        """
        q = np.array([w, x, y, z], dtype=np.float64)

        if normalize:
            q = self._normalized(q)

        q.flags.writeable = False
        self._q = q

    # =========================================================================
    # PROPERTIES - Read access to quaternion components
    # =========================================================================

    @property
    def w(self) -> float:
        """Scalar (real) part of the quaternion."""
        return float(self._q[0])

    @property
    def x(self) -> float:
        """First imaginary component (i-axis)."""
        return float(self._q[1])

    @property
    def y(self) -> float:
        """Second imaginary component (j-axis)."""
        return float(self._q[2])

    @property
    def z(self) -> float:
        """Third imaginary component (k-axis)."""
        return float(self._q[3])

    @property
    def scalar(self) -> float:
        """Scalar part of the quaternion (alias for w)."""
        return self.w

    @property
    def vector(self) -> np.ndarray:
        """Vector (imaginary) part [x, y, z] as a new 3-element array."""
        return self._q[1:4].copy()

    @property
    def components(self) -> np.ndarray:
        """
        Full quaternion as a 4-element numpy array [w, x, y, z].

        Returns
        -------
        np.ndarray
            Writable copy of the internal components.
        """
        return self._q.copy()

    @property
    def norm(self) -> float:
        """Euclidean norm sqrt(w^2 + x^2 + y^2 + z^2)."""
        return float(np.linalg.norm(self._q))

    @property
    def rotation_angle(self) -> float:
        """
        Total rotation angle in radians [0, pi].

        For a unit quaternion q = [cos(theta/2), sin(theta/2)*n],
        the rotation angle is theta = 2 * arccos(|w|).
        """
        # Clamp to protect against floating-point overshoot in arccos
        return float(2.0 * np.arccos(np.clip(abs(self.w), -1.0, 1.0)))

    @property
    def rotation_axis(self) -> np.ndarray:
        """
        Unit rotation axis.

        Returns
        -------
        np.ndarray
            Unit 3-vector along the rotation axis. Returns [0, 0, 1]
            for the identity quaternion (where the axis is undefined).
        """
        vec = self.vector
        vec_norm = np.linalg.norm(vec)

        if vec_norm < self._NORM_TOLERANCE:
            return np.array([0.0, 0.0, 1.0])

        if self.w < 0.0:
            vec = -vec
        return vec / vec_norm

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    @classmethod
    def _normalized(cls, q: np.ndarray) -> np.ndarray:
        """
        Return q scaled to unit magnitude, in the w >= 0 hemisphere.

        NaN components are passed through unchanged so that a poisoned
        accumulator surfaces as NaN rather than as an unrelated error.

        Raises
        ------
        ValueError
            If the quaternion has near-zero norm (degenerate case).
        """
        n = np.linalg.norm(q)

        if n < cls._NORM_TOLERANCE:
            raise ValueError(
                f"Cannot normalize near-zero quaternion (norm = {n:.2e}). "
                "A rotation needs a non-zero 4-vector."
            )

        q = q / n

        # q and -q represent the same rotation, so we always pick w >= 0.
        if q[0] < 0.0:
            q = -q
        return q

    # =========================================================================
    # STATIC FACTORY METHODS
    # =========================================================================

    @staticmethod
    def identity() -> 'Quaternion':
        """Create the identity quaternion [1, 0, 0, 0] (zero rotation)."""
        return Quaternion(1.0, 0.0, 0.0, 0.0, normalize=False)

    @staticmethod
    def from_array(q: Union[Sequence[float], np.ndarray],
                   normalize: bool = True) -> 'Quaternion':
        """
        Create a quaternion from a 4-element [w, x, y, z] array-like.

        Raises
        ------
        ValueError
            If ``q`` does not hold exactly four components.
        """
        arr = np.asarray(q, dtype=np.float64).reshape(-1)
        if arr.shape != (4,):
            raise ValueError(
                f"Quaternion needs 4 components [w, x, y, z], got shape "
                f"{np.shape(q)}"
            )
        return Quaternion(arr[0], arr[1], arr[2], arr[3], normalize=normalize)

    @staticmethod
    def from_scalar_last(q: Union[Sequence[float], np.ndarray],
                         normalize: bool = True) -> 'Quaternion':
        """Create a quaternion from a scalar-last [x, y, z, w] array-like."""
        arr = np.asarray(q, dtype=np.float64).reshape(-1)
        if arr.shape != (4,):
            raise ValueError(
                f"Quaternion needs 4 components [x, y, z, w], got shape "
                f"{np.shape(q)}"
            )
        return Quaternion(arr[3], arr[0], arr[1], arr[2], normalize=normalize)

    @staticmethod
    def from_axis_angle(axis: np.ndarray, angle: float) -> 'Quaternion':
        """
        Create a quaternion from a rotation axis and angle.

        Parameters
        ----------
        axis : np.ndarray
            Rotation axis (3-vector). Does not need to be unit length;
            it will be normalized internally.
        angle : float
            Rotation angle in radians.

        Returns
        -------
        Quaternion
            q = [cos(angle/2), sin(angle/2) * axis_hat]

        Raises
        ------
        ValueError
            If the axis has zero length.
        """
        axis = np.asarray(axis, dtype=np.float64)
        axis_norm = np.linalg.norm(axis)

        if axis_norm < 1e-15:
            raise ValueError("Rotation axis must have non-zero length.")

        axis_hat = axis / axis_norm
        half_angle = angle / 2.0
        s = np.sin(half_angle)

        return Quaternion(
            np.cos(half_angle),
            s * axis_hat[0],
            s * axis_hat[1],
            s * axis_hat[2],
        )

    @staticmethod
    def random(rng: np.random.Generator = None) -> 'Quaternion':
        """
        Generate a uniformly random unit quaternion.

        Uses the subgroup algorithm (Shoemake, 1992) to produce a quaternion
        uniformly distributed over SO(3). Simply normalizing a random
        4-vector does NOT produce a uniform rotation distribution.

        Parameters
        ----------
        rng : np.random.Generator, optional
            Source of randomness. Defaults to the global numpy state.
        """
        if rng is None:
            u1, u2, u3 = np.random.random(3)
        else:
            u1, u2, u3 = rng.random(3)

        sqrt_u1 = np.sqrt(u1)
        sqrt_1_minus_u1 = np.sqrt(1.0 - u1)

        w = sqrt_1_minus_u1 * np.sin(2.0 * np.pi * u2)
        x = sqrt_1_minus_u1 * np.cos(2.0 * np.pi * u2)
        y = sqrt_u1 * np.sin(2.0 * np.pi * u3)
        z = sqrt_u1 * np.cos(2.0 * np.pi * u3)

        return Quaternion(w, x, y, z)

    # =========================================================================
    # CORE OPERATIONS
    # =========================================================================

    def normalize(self) -> 'Quaternion':
        """Return a normalized copy of this quaternion."""
        return Quaternion(self.w, self.x, self.y, self.z)

    def conjugate(self) -> 'Quaternion':
        """Return the conjugate [w, -x, -y, -z] (the inverse rotation)."""
        return Quaternion(self.w, -self.x, -self.y, -self.z, normalize=False)

    def dot(self, other: 'Quaternion') -> float:
        """
        4D inner product with another quaternion.

        For unit quaternions |q1 . q2| = cos(theta/2), where theta is the
        angle of the relative rotation, so |dot| close to 1 means the two
        quaternions represent (nearly) the same rotation regardless of sign.
        """
        return float(np.dot(self._q, other._q))

    def angle_to(self, other: 'Quaternion') -> float:
        """
        Angular distance to another quaternion in radians [0, pi].

        Insensitive to the q/-q ambiguity.
        """
        d = np.clip(abs(self.dot(other)), 0.0, 1.0)
        return float(2.0 * np.arccos(d))

    def outer(self) -> np.ndarray:
        """
        Outer product q q^T as a 4x4 symmetric matrix (scalar-first packing).

        This is the rank-1 contribution a single sample makes to the
        averaging matrix.
        """
        return np.outer(self._q, self._q)

    def to_scalar_last(self) -> np.ndarray:
        """Components as [x, y, z, w] for scalar-last libraries."""
        return np.array([self.x, self.y, self.z, self.w])

    # =========================================================================
    # OPERATOR OVERLOADS
    # =========================================================================

    def __neg__(self) -> 'Quaternion':
        """
        Negate all components.

        -q represents the same rotation as q; the raw components are kept
        so the negation stays observable.
        """
        return Quaternion(-self.w, -self.x, -self.y, -self.z, normalize=False)

    def __eq__(self, other: object) -> bool:
        """
        Equality comparison with tolerance.

        Two quaternions are considered equal if they represent the same
        rotation, accounting for the q/-q ambiguity and floating-point
        tolerance.
        """
        if not isinstance(other, Quaternion):
            return NotImplemented

        diff_pos = np.linalg.norm(self._q - other._q)
        diff_neg = np.linalg.norm(self._q + other._q)
        return min(diff_pos, diff_neg) < self._COMPARISON_TOLERANCE

    def __hash__(self) -> int:
        """Hash based on rounded, sign-canonical components."""
        q = -self._q if self._q[0] < 0.0 else self._q
        return hash(tuple(np.round(q, decimals=8)))

    def __iter__(self):
        return iter(float(c) for c in self._q)

    def __repr__(self) -> str:
        return (f"Quaternion(w={self.w:+.8f}, x={self.x:+.8f}, "
                f"y={self.y:+.8f}, z={self.z:+.8f})")

    def __str__(self) -> str:
        angle_deg = np.degrees(self.rotation_angle)
        return (f"[{self.w:+.6f}, {self.x:+.6f}, {self.y:+.6f}, "
                f"{self.z:+.6f}] (rot={angle_deg:.2f} deg)")

    # =========================================================================
    # UTILITY METHODS
    # =========================================================================

    def is_unit(self, tolerance: float = 1e-8) -> bool:
        """True if |q| is within ``tolerance`` of 1.0."""
        return abs(self.norm - 1.0) < tolerance

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Components as a plain (w, x, y, z) tuple."""
        return (self.w, self.x, self.y, self.z)
