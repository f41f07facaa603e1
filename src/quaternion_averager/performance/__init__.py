"""
performance - Parallel accumulation for large quaternion sets.

    parallel - Map-reduce over a multiprocessing pool: each worker accumulates
               a private QuaternionAverager, the parent merges them.
"""

from .parallel import ParallelAverager

__all__ = ["ParallelAverager"]
