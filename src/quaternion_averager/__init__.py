"""
quaternion_averager - Rotation-consistent averaging of unit quaternions.

Implements the eigen-decomposition method of Markley et al. (2007):

    averager   : QuaternionAverager accumulator, weighting modes and the
                 one-shot ``average_quaternions`` helper.
    core       : Quaternion value type (scalar-first [w, x, y, z]) and
                 shared numerical constants.
    performance: Map-reduce parallel accumulation over a process pool.
    config     : YAML configuration loading.
    main       : ``quaternion-average`` command-line front end.
"""

import logging

from .averager import (
    QuaternionAverager,
    WeightingMode,
    DegenerateAverageError,
    average_quaternions,
)
from .core.quaternion import Quaternion

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Quaternion",
    "QuaternionAverager",
    "WeightingMode",
    "DegenerateAverageError",
    "average_quaternions",
]
