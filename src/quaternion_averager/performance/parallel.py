"""
parallel.py - Map-reduce accumulation of large quaternion sets

The averaging matrix is a plain sum of rank-1 terms, so the work splits
cleanly across processes:

    Map phase    : each worker builds its own QuaternionAverager from one
                   chunk of the input (vectorized ``add_quaternions``).
    Reduce phase : the partial averagers are merged in the parent process
                   with ``QuaternionAverager.merge``.

Matrix addition is commutative and associative, so the merged state equals
sequential accumulation up to floating-point rounding, whatever the chunking
and however the pool schedules the chunks.

Workers are separate OS processes (``multiprocessing.Pool``), so no locking
is involved; each partial averager is private to its worker until it is
pickled back to the parent.
"""

from __future__ import annotations

import logging
import os
from multiprocessing import Pool
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..averager import QuaternionAverager, WeightingMode
from ..core.constants import DEFAULT_MIN_CHUNK_SIZE

logger = logging.getLogger(__name__)


def _accumulate_chunk(
    args: Tuple[np.ndarray, Optional[np.ndarray], str, str]
) -> QuaternionAverager:
    """
    Top-level function for pickling by multiprocessing.Pool.
    Unpacks (quaternions, weights, weighting, dtype) and returns the partial
    averager for that chunk.
    """
    quaternions, weights, weighting, dtype = args
    averager = QuaternionAverager(weighting=weighting, dtype=dtype)
    averager.add_quaternions(quaternions, weights)
    return averager


class ParallelAverager:
    """
    Multi-core quaternion accumulation.

    Parameters
    ----------
    num_workers : int or None
        Number of worker processes. Defaults to ``os.cpu_count()``.
    min_chunk_size : int
        Inputs with fewer samples per worker than this are accumulated in
        the calling process; spawning a pool costs more than it saves.
    weighting : WeightingMode or str
        Weighting mode of the partial and merged averagers.
    dtype : numpy dtype
        Accumulator precision.
    """

    def __init__(self, num_workers: Optional[int] = None,
                 min_chunk_size: int = DEFAULT_MIN_CHUNK_SIZE,
                 weighting=WeightingMode.MULTIPLY,
                 dtype=np.float64):
        self.num_workers = num_workers or os.cpu_count() or 4
        if self.num_workers < 1:
            raise ValueError(f"num_workers must be >= 1, got {self.num_workers}")
        self.min_chunk_size = max(1, int(min_chunk_size))
        self.weighting = WeightingMode(weighting)
        self.dtype = np.dtype(dtype)

    @classmethod
    def from_config(cls, config) -> 'ParallelAverager':
        """Build from an ``AveragerConfig``."""
        return cls(num_workers=config.num_workers,
                   min_chunk_size=config.min_chunk_size,
                   weighting=config.weighting,
                   dtype=config.dtype)

    def _split(self, quaternions: np.ndarray,
               weights: Optional[np.ndarray]) -> List[Tuple]:
        n = quaternions.shape[0]
        num_chunks = max(1, min(self.num_workers, n // self.min_chunk_size))
        q_chunks = np.array_split(quaternions, num_chunks)
        if weights is None:
            w_chunks = [None] * num_chunks
        else:
            w_chunks = np.array_split(weights, num_chunks)
        return [(q, w, self.weighting.value, self.dtype.name)
                for q, w in zip(q_chunks, w_chunks)]

    def accumulate(self, quaternions,
                   weights: Optional[Sequence[float]] = None
                   ) -> QuaternionAverager:
        """
        Accumulate ``quaternions`` across the worker pool.

        Parameters
        ----------
        quaternions : array-like, shape (N, 4)
            Samples in [w, x, y, z] order.
        weights : array-like, shape (N,), optional
            Per-sample weights.

        Returns
        -------
        QuaternionAverager
            Merged averager holding every sample; more samples can still be
            added to it.

        Raises
        ------
        ValueError
            If the input shapes are inconsistent.
        """
        Q = np.asarray(quaternions, dtype=np.float64)
        if Q.ndim != 2 or Q.shape[1] != 4:
            raise ValueError(f"Quaternion batch must have shape (N, 4), got {Q.shape}")
        w = None
        if weights is not None:
            w = np.asarray(weights, dtype=np.float64).reshape(-1)
            if w.shape[0] != Q.shape[0]:
                raise ValueError(f"Expected {Q.shape[0]} weights, got {w.shape[0]}")

        tasks = self._split(Q, w)

        if len(tasks) == 1:
            logger.debug("Accumulating %d quaternion(s) in-process", Q.shape[0])
            return _accumulate_chunk(tasks[0])

        logger.info("Accumulating %d quaternions in %d chunks on %d workers",
                    Q.shape[0], len(tasks), self.num_workers)
        with Pool(processes=min(self.num_workers, len(tasks))) as pool:
            partials = pool.map(_accumulate_chunk, tasks)
        return QuaternionAverager.combine(partials)

    def average(self, quaternions,
                weights: Optional[Sequence[float]] = None):
        """Accumulate in parallel and return the average ``Quaternion``."""
        return self.accumulate(quaternions, weights).calc_average()
