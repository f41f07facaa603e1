"""
===============================================================================
QUATERNION AVERAGER - Numerical Constants and Defaults
===============================================================================
Central repository for the tolerances and default settings shared by the
quaternion type, the averager and the command-line front end.
===============================================================================
"""

import numpy as np


# =============================================================================
# QUATERNION TOLERANCES
# =============================================================================
NORM_TOLERANCE = 1e-10          # Below this norm a 4-vector is not a rotation
COMPARISON_TOLERANCE = 1e-9     # Component distance for rotation equality

# =============================================================================
# AVERAGER DEFAULTS
# =============================================================================
DEFAULT_WEIGHTING = "multiply"
DEFAULT_DTYPE = "float64"
SUPPORTED_DTYPES = {
    "float32": np.float32,
    "float64": np.float64,
}

# Dominant eigenvalue of the normalized matrix for samples spread uniformly
# over SO(3); 1.0 means every sample agrees.
ISOTROPIC_CONCENTRATION = 0.25

# =============================================================================
# PARALLEL ACCUMULATION DEFAULTS
# =============================================================================
DEFAULT_MIN_CHUNK_SIZE = 1000

# =============================================================================
# LOGGING
# =============================================================================
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
DEFAULT_LOG_LEVEL = "INFO"
