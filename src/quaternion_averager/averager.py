"""
===============================================================================
QUATERNION AVERAGER - Eigen-Decomposition Quaternion Averaging
===============================================================================

Incremental averaging of unit quaternions following Markley et al. [1].

Component-wise averaging of quaternions is not rotation-consistent: q and -q
are the same rotation but cancel each other in a naive mean, and the mean of
unit vectors is not a unit vector. Markley's method instead accumulates the
4x4 matrix

    M = sum_i  w_i * q_i q_i^T

which is invariant to the sign of each q_i, and takes the average rotation
as the eigenvector of M / sum_i(w_i) with the largest eigenvalue. That
eigenvector maximizes sum_i w_i * (q . q_i)^2, i.e. it minimizes the
weighted sum of squared chordal distances between attitude matrices.

The accumulator only ever adds rank-1 terms, so samples can be streamed in
one at a time, in batches, or accumulated in separate averagers and merged
afterwards (see ``performance/parallel.py``).

Weighting
---------
Two weighting modes are supported:

    MULTIPLY  M += w * q q^T   (Markley's weighting; larger weight means
                                more influence). This is the default.
    DIVIDE    M += q q^T / w   (reciprocal weighting, kept for
                                compatibility with accumulators built that
                                way; larger weight means LESS influence).

In both modes the raw weight w is added to the weight sum.

References
----------
    [1] Markley, Cheng, Crassidis & Oshman, "Averaging Quaternions",
        Journal of Guidance, Control, and Dynamics 30(4), 2007, 1193-1197.

===============================================================================
"""

import logging
from enum import Enum
from typing import Iterable, Optional, Sequence, Tuple, Union

import numpy as np

from .core.quaternion import Quaternion

logger = logging.getLogger(__name__)

QuaternionLike = Union[Quaternion, Sequence[float], np.ndarray]


class WeightingMode(Enum):
    """How an explicit sample weight scales the outer-product contribution."""
    MULTIPLY = "multiply"
    DIVIDE = "divide"


class DegenerateAverageError(ValueError):
    """
    Raised when the accumulated state cannot yield an average.

    This happens before any quaternion has been added (zero weight sum), or
    when the accumulator holds non-finite entries, e.g. after a zero weight
    was submitted in DIVIDE mode.
    """


class QuaternionAverager:
    """
    Mutable accumulator that averages a stream of unit quaternions.

    Parameters
    ----------
    weighting : WeightingMode or str, optional
        Weighting mode for ``add_quaternion_weighted`` and weighted batch
        insertion. Defaults to ``WeightingMode.MULTIPLY``.
    dtype : numpy dtype, optional
        Floating-point type of the accumulator (float64 or float32).

    Notes
    -----
    Inputs are NOT checked for unit norm; callers must normalize samples
    before submitting them. Non-positive weights are accepted but logged.

    Instances are not thread-safe. Give each worker its own averager and
    combine them with ``merge`` instead of sharing one.

    Examples
    --------
    >>> avg = QuaternionAverager()
    >>> avg = avg.add_quaternion(Quaternion(0.9961947, 0.0871557, 0.0, 0.0))
    >>> avg = avg.add_quaternion(Quaternion(0.9848078, 0.1736482, 0.0, 0.0))
    >>> avg.calc_average()
    Quaternion(w=+0.99144486, x=+0.13052619, y=+0.00000000, z=+0.00000000)
    """

    def __init__(self,
                 weighting: Union[WeightingMode, str] = WeightingMode.MULTIPLY,
                 dtype=np.float64) -> None:
        self._weighting = WeightingMode(weighting)
        self._dtype = np.dtype(dtype)

        if not np.issubdtype(self._dtype, np.floating):
            raise ValueError(
                f"Accumulator dtype must be floating point, got {self._dtype}"
            )

        self._matrix = np.zeros((4, 4), dtype=self._dtype)
        self._weight_sum = self._dtype.type(0)
        self._count = 0

    @classmethod
    def from_config(cls, config) -> 'QuaternionAverager':
        """Build an averager from an ``AveragerConfig``."""
        return cls(weighting=config.weighting, dtype=config.dtype)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def weighting(self) -> WeightingMode:
        return self._weighting

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def matrix(self) -> np.ndarray:
        """Copy of the accumulated (un-normalized) 4x4 matrix."""
        return self._matrix.copy()

    @property
    def weight_sum(self) -> float:
        """Sum of all weights submitted so far."""
        return float(self._weight_sum)

    @property
    def count(self) -> int:
        """Number of quaternions submitted so far."""
        return self._count

    @property
    def is_empty(self) -> bool:
        return self._count == 0

    # =========================================================================
    # INSERTION
    # =========================================================================

    def _as_vector(self, q: QuaternionLike) -> np.ndarray:
        """Scalar-first 4-vector of ``q`` in the accumulator dtype."""
        if isinstance(q, Quaternion):
            v = q.components
        else:
            v = np.asarray(q, dtype=np.float64).reshape(-1)
            if v.shape != (4,):
                raise ValueError(
                    f"Quaternion needs 4 components [w, x, y, z], got shape "
                    f"{np.shape(q)}"
                )
        return v.astype(self._dtype)

    def add_quaternion(self, q: QuaternionLike) -> 'QuaternionAverager':
        """
        Add a unit quaternion with weight 1.

        Parameters
        ----------
        q : Quaternion or array-like
            Sample rotation, [w, x, y, z] when given as an array.

        Returns
        -------
        QuaternionAverager
            ``self``, so calls can be chained.
        """
        v = self._as_vector(q)
        self._matrix += np.outer(v, v)
        self._weight_sum += self._dtype.type(1)
        self._count += 1
        return self

    def add_quaternion_weighted(self, q: QuaternionLike,
                                weight: float) -> 'QuaternionAverager':
        """
        Add a unit quaternion with an explicit weight.

        In MULTIPLY mode the contribution is ``weight * q q^T``; in DIVIDE
        mode it is ``q q^T / weight``. The raw ``weight`` is added to the
        weight sum in both modes.

        A zero weight in DIVIDE mode fills the accumulator with inf/NaN
        entries; every later ``calc_average`` call then raises
        ``DegenerateAverageError``.

        Returns
        -------
        QuaternionAverager
            ``self``, so calls can be chained.
        """
        if not weight > 0:
            logger.warning(
                "Non-positive quaternion weight %r submitted (%s mode); "
                "the average will be skewed", weight, self._weighting.value
            )

        v = self._as_vector(q)
        w = self._dtype.type(weight)
        outer = np.outer(v, v)

        if self._weighting is WeightingMode.MULTIPLY:
            self._matrix += outer * w
        else:
            with np.errstate(divide='ignore', invalid='ignore'):
                self._matrix += outer / w

        self._weight_sum += w
        self._count += 1
        return self

    def add_quaternions(self, quaternions,
                        weights: Optional[Sequence[float]] = None
                        ) -> 'QuaternionAverager':
        """
        Add many quaternions at once.

        Equivalent to calling ``add_quaternion`` (no weights) or
        ``add_quaternion_weighted`` (with weights) for each row, but
        vectorized.

        Parameters
        ----------
        quaternions : array-like, shape (N, 4), or iterable of Quaternion
            Samples in [w, x, y, z] order.
        weights : array-like, shape (N,), optional
            Per-sample weights.

        Raises
        ------
        ValueError
            If the array is not (N, 4) or the weights do not match N.
        """
        Q = self._as_matrix(quaternions)
        n = Q.shape[0]
        if n == 0:
            return self

        if weights is None:
            self._matrix += np.einsum('ni,nj->ij', Q, Q)
            self._weight_sum += self._dtype.type(n)
        else:
            w = np.asarray(weights, dtype=self._dtype).reshape(-1)
            if w.shape != (n,):
                raise ValueError(
                    f"Expected {n} weights, got {w.shape[0]}"
                )
            if not np.all(w > 0):
                logger.warning(
                    "%d non-positive quaternion weight(s) submitted (%s mode); "
                    "the average will be skewed",
                    int(np.sum(~(w > 0))), self._weighting.value
                )

            if self._weighting is WeightingMode.MULTIPLY:
                scale = w
            else:
                with np.errstate(divide='ignore'):
                    scale = self._dtype.type(1) / w

            with np.errstate(invalid='ignore'):
                self._matrix += np.einsum('n,ni,nj->ij', scale, Q, Q)
            self._weight_sum += w.sum(dtype=self._dtype)

        self._count += n
        return self

    def _as_matrix(self, quaternions) -> np.ndarray:
        if isinstance(quaternions, np.ndarray):
            Q = quaternions
        else:
            rows = [q.components if isinstance(q, Quaternion) else q
                    for q in quaternions]
            Q = np.asarray(rows, dtype=np.float64)
            if Q.size == 0:
                Q = Q.reshape(0, 4)

        Q = np.asarray(Q, dtype=self._dtype)
        if Q.ndim == 1 and Q.shape[0] == 4:
            Q = Q.reshape(1, 4)
        if Q.ndim != 2 or Q.shape[1] != 4:
            raise ValueError(
                f"Quaternion batch must have shape (N, 4), got {Q.shape}"
            )
        return Q

    # =========================================================================
    # MERGING
    # =========================================================================

    def merge(self, other: 'QuaternionAverager') -> 'QuaternionAverager':
        """
        Fold another averager's accumulated state into this one.

        Both fields accumulate additively, so merging partial averagers in
        any order gives the same result as feeding every sample to a single
        averager (up to floating-point rounding).

        Raises
        ------
        TypeError
            If ``other`` is not a QuaternionAverager.
        ValueError
            If the two averagers use different weighting modes.
        """
        if not isinstance(other, QuaternionAverager):
            raise TypeError(
                f"Can only merge QuaternionAverager, got {type(other).__name__}"
            )
        if other._weighting is not self._weighting:
            raise ValueError(
                f"Cannot merge a {other._weighting.value}-weighted averager "
                f"into a {self._weighting.value}-weighted one"
            )

        self._matrix += other._matrix.astype(self._dtype)
        self._weight_sum += self._dtype.type(other._weight_sum)
        self._count += other._count
        return self

    def __iadd__(self, other):
        if not isinstance(other, QuaternionAverager):
            return NotImplemented
        return self.merge(other)

    @classmethod
    def combine(cls, averagers: Iterable['QuaternionAverager']
                ) -> 'QuaternionAverager':
        """
        Merge partial averagers into a new one.

        The weighting mode and dtype are taken from the first averager; an
        empty iterable gives an empty default averager.
        """
        averagers = list(averagers)
        if not averagers:
            return cls()

        result = cls(weighting=averagers[0].weighting,
                     dtype=averagers[0].dtype)
        for a in averagers:
            result.merge(a)
        return result

    # =========================================================================
    # EXTRACTION
    # =========================================================================

    def _normalized_matrix(self) -> np.ndarray:
        if self._count == 0 or self._weight_sum == 0:
            raise DegenerateAverageError(
                "Cannot average: no quaternions have been added "
                f"(count = {self._count}, weight sum = {self.weight_sum})"
            )

        with np.errstate(divide='ignore', invalid='ignore'):
            N = self._matrix / self._weight_sum

        if not np.all(np.isfinite(N)):
            raise DegenerateAverageError(
                "Cannot average: accumulator holds non-finite entries "
                "(was a zero weight submitted in divide mode?)"
            )
        return N

    def _decompose(self) -> Tuple[np.ndarray, np.ndarray]:
        """Eigenvalues (ascending) and eigenvectors (columns) of M / sum(w)."""
        return np.linalg.eigh(self._normalized_matrix())

    def calc_average(self) -> Quaternion:
        """
        Compute the average of all quaternions added so far.

        The result is the unit eigenvector of M / sum(w) with the largest
        eigenvalue, returned in the w >= 0 hemisphere. Does not modify the
        accumulator; repeated calls give the same value.

        Returns
        -------
        Quaternion
            Average rotation (a new value).

        Raises
        ------
        DegenerateAverageError
            If nothing has been added yet or the accumulator is poisoned by
            non-finite values.
        """
        eigenvalues, eigenvectors = self._decompose()
        imax = int(np.argmax(eigenvalues))
        v = eigenvectors[:, imax]

        q_avg = Quaternion(v[0], v[1], v[2], v[3])
        logger.debug("Averaged %d quaternion(s), weight sum %.6g -> %r",
                     self._count, self.weight_sum, q_avg)
        return q_avg

    def eigenvalues(self) -> np.ndarray:
        """Eigenvalues of M / sum(w), largest first."""
        eigenvalues, _ = self._decompose()
        return np.sort(eigenvalues)[::-1]

    def concentration(self) -> float:
        """
        Dominant eigenvalue of M / sum(w).

        Equals 1.0 when all (unit-weighted) samples represent the same
        rotation and drops towards 0.25 as they spread uniformly over SO(3).
        A low value means the average is poorly defined.
        """
        return float(np.max(self._decompose()[0]))

    def __repr__(self) -> str:
        return (f"QuaternionAverager(weighting={self._weighting.value!r}, "
                f"dtype={self._dtype.name}, count={self._count}, "
                f"weight_sum={self.weight_sum:.6g})")


def average_quaternions(quaternions,
                        weights: Optional[Sequence[float]] = None,
                        weighting: Union[WeightingMode, str] = WeightingMode.MULTIPLY,
                        dtype=np.float64) -> Quaternion:
    """
    Average a batch of quaternions in one call.

    Parameters
    ----------
    quaternions : array-like, shape (N, 4), or iterable of Quaternion
        Samples in [w, x, y, z] order.
    weights : array-like, shape (N,), optional
        Per-sample weights, interpreted according to ``weighting``.
    weighting : WeightingMode or str
        Weighting mode, see ``QuaternionAverager``.
    dtype : numpy dtype
        Accumulator precision.

    Returns
    -------
    Quaternion
        The average rotation.
    """
    averager = QuaternionAverager(weighting=weighting, dtype=dtype)
    averager.add_quaternions(quaternions, weights)
    return averager.calc_average()
