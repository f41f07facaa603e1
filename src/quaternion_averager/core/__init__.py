"""
core - Quaternion value type and shared numerical constants.
"""

from .quaternion import Quaternion

__all__ = ["Quaternion"]
