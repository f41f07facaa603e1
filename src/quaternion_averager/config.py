"""
Configuration loading for the quaternion averager.

Settings come from a YAML file shaped like ``config/averager_config.yaml``::

    averaging:
      weighting: multiply   # multiply | divide
      dtype: float64        # float64 | float32
    parallel:
      num_workers: null     # null -> os.cpu_count()
      min_chunk_size: 1000
    logging:
      level: INFO

Every section and key is optional; missing values fall back to the
defaults in ``core.constants``.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import yaml

from .averager import WeightingMode
from .core.constants import (
    DEFAULT_WEIGHTING, DEFAULT_DTYPE, SUPPORTED_DTYPES,
    DEFAULT_MIN_CHUNK_SIZE, DEFAULT_LOG_LEVEL,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / 'config' / 'averager_config.yaml'


@dataclass
class AveragerConfig:
    """
    Settings for building averagers and the command-line front end.

    Attributes:
        weighting: Weighting mode for explicit sample weights.
        dtype: Accumulator precision name ("float64" or "float32").
        num_workers: Worker processes for parallel accumulation (None = all cores).
        min_chunk_size: Smallest per-worker chunk worth a process pool.
        log_level: Root logging level name.
    """
    weighting: WeightingMode = WeightingMode(DEFAULT_WEIGHTING)
    dtype: str = DEFAULT_DTYPE
    num_workers: Optional[int] = None
    min_chunk_size: int = DEFAULT_MIN_CHUNK_SIZE
    log_level: str = DEFAULT_LOG_LEVEL

    def __post_init__(self):
        try:
            self.weighting = WeightingMode(self.weighting)
        except ValueError:
            raise ValueError(
                f"Unknown weighting mode {self.weighting!r}; expected one of "
                f"{[m.value for m in WeightingMode]}"
            ) from None

        if self.dtype not in SUPPORTED_DTYPES:
            raise ValueError(
                f"Unsupported dtype {self.dtype!r}; expected one of "
                f"{sorted(SUPPORTED_DTYPES)}"
            )

        if self.num_workers is not None and int(self.num_workers) < 1:
            raise ValueError(f"num_workers must be >= 1, got {self.num_workers}")

        if int(self.min_chunk_size) < 1:
            raise ValueError(f"min_chunk_size must be >= 1, got {self.min_chunk_size}")

        self.log_level = str(self.log_level).upper()
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"Unknown log level {self.log_level!r}")

    @classmethod
    def from_dict(cls, config: Optional[dict]) -> 'AveragerConfig':
        """Build from the parsed YAML mapping."""
        config = config or {}
        if not isinstance(config, dict):
            raise ValueError(
                f"Configuration must be a mapping, got {type(config).__name__}"
            )

        averaging = config.get('averaging') or {}
        parallel = config.get('parallel') or {}
        log_cfg = config.get('logging') or {}

        return cls(
            weighting=averaging.get('weighting', DEFAULT_WEIGHTING),
            dtype=averaging.get('dtype', DEFAULT_DTYPE),
            num_workers=parallel.get('num_workers'),
            min_chunk_size=parallel.get('min_chunk_size', DEFAULT_MIN_CHUNK_SIZE),
            log_level=log_cfg.get('level', DEFAULT_LOG_LEVEL),
        )


def load_config(config_path: Union[str, Path, None] = None) -> AveragerConfig:
    """
    Load averager configuration from a YAML file.

    Args:
        config_path: Path to YAML config. Defaults to config/averager_config.yaml;
                     if that default file is absent, built-in defaults are used.

    Returns:
        Parsed and validated AveragerConfig.

    Raises:
        FileNotFoundError: If an explicit ``config_path`` does not exist.
        ValueError: If the file is not valid YAML or holds invalid settings.
    """
    if config_path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            logger.debug("No configuration file at %s, using defaults",
                         DEFAULT_CONFIG_PATH)
            return AveragerConfig()
        config_path = DEFAULT_CONFIG_PATH

    logger.info("Loading configuration from: %s", config_path)
    with open(config_path, 'r') as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Malformed configuration file {config_path}: {e}") from e

    config = AveragerConfig.from_dict(raw)
    logger.debug("Configuration: %s", config)
    return config
