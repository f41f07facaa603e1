#!/usr/bin/env python3
"""
===============================================================================
QUATERNION AVERAGER - COMMAND-LINE ENTRY POINT
===============================================================================
Averages the quaternions stored in a CSV file.

USAGE:
    quaternion-average samples.csv                      # Unweighted average
    quaternion-average samples.csv --weighted           # Use the 'weight' column
    quaternion-average samples.csv --weighting divide   # Reciprocal weighting
    quaternion-average samples.csv --workers 4          # Parallel accumulation
    quaternion-average samples.csv --config my.yaml     # Custom configuration

INPUT:
    CSV with a header row and columns w, x, y, z (scalar first) and an
    optional weight column. Rows are not renormalized.

OUTPUT:
    The averaged quaternion, its rotation angle and the concentration of the
    samples around it (1.0 = all samples agree).

===============================================================================
"""

import sys
import argparse
import logging
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from .averager import QuaternionAverager, DegenerateAverageError, WeightingMode
from .config import load_config
from .core.constants import LOG_FORMAT
from .performance.parallel import ParallelAverager

logger = logging.getLogger('quaternion_averager')

QUATERNION_COLUMNS = ['w', 'x', 'y', 'z']
WEIGHT_COLUMN = 'weight'


def read_samples(csv_path: str,
                 use_weights: bool = False) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """
    Read quaternion samples from a CSV file.

    Args:
        csv_path: Path to the CSV file.
        use_weights: Return the 'weight' column as per-sample weights.

    Returns:
        (N x 4 array of [w, x, y, z], N weights or None)

    Raises:
        ValueError: If required columns are missing or hold non-numeric data.
    """
    df = pd.read_csv(csv_path)
    df.columns = [str(c).strip().lower() for c in df.columns]

    missing = [c for c in QUATERNION_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{csv_path}: missing quaternion column(s) {missing}")

    try:
        quaternions = df[QUATERNION_COLUMNS].to_numpy(dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{csv_path}: non-numeric quaternion data ({e})") from e

    weights = None
    if use_weights:
        if WEIGHT_COLUMN not in df.columns:
            raise ValueError(f"{csv_path}: --weighted given but no '{WEIGHT_COLUMN}' column")
        weights = df[WEIGHT_COLUMN].to_numpy(dtype=np.float64)

    logger.info("Read %d quaternion sample(s) from %s", len(df), csv_path)
    return quaternions, weights


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='quaternion-average',
        description='Average unit quaternions with the eigen-decomposition method',
    )
    parser.add_argument('samples', type=str,
                        help='CSV file with w,x,y,z[,weight] columns')
    parser.add_argument('--config', type=str, default=None,
                        help='Path to averager config YAML')
    parser.add_argument('--weighted', action='store_true',
                        help="Weight samples by the 'weight' column")
    parser.add_argument('--weighting', type=str, default=None,
                        choices=[m.value for m in WeightingMode],
                        help='Weighting mode (overrides config)')
    parser.add_argument('--workers', type=int, default=None,
                        help='Worker processes for accumulation (overrides config)')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Debug logging')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point of ``quaternion-average``; returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        logging.basicConfig(level=logging.ERROR, format=LOG_FORMAT)
        logger.error("Configuration error: %s", e)
        return 1

    if args.weighting is not None:
        config.weighting = WeightingMode(args.weighting)
    if args.workers is not None:
        config.num_workers = args.workers

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.log_level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    try:
        quaternions, weights = read_samples(args.samples, use_weights=args.weighted)

        if config.num_workers is not None and config.num_workers > 1:
            averager = ParallelAverager.from_config(config).accumulate(quaternions, weights)
        else:
            averager = QuaternionAverager.from_config(config)
            averager.add_quaternions(quaternions, weights)

        q_avg = averager.calc_average()
        concentration = averager.concentration()
    except DegenerateAverageError as e:
        logger.error("Degenerate accumulator for %s: %s", args.samples, e)
        return 1
    except (OSError, ValueError) as e:
        logger.error("Cannot average %s: %s", args.samples, e)
        return 1

    print(f"samples       : {averager.count}")
    print(f"weight sum    : {averager.weight_sum:.6g}")
    print(f"average       : {q_avg.w:+.9f} {q_avg.x:+.9f} {q_avg.y:+.9f} {q_avg.z:+.9f}")
    print(f"rotation      : {np.degrees(q_avg.rotation_angle):.4f} deg about "
          f"{np.array2string(q_avg.rotation_axis, precision=6)}")
    print(f"concentration : {concentration:.6f}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
