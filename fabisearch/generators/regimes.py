"""
Simulated two-regime series with one network change point.

Rows are independent Gaussian draws with a block correlation matrix:

    corr(i, j) = within    if i and j share a cluster
               = between   otherwise

The first `change_at` rows use contiguous clusters; after that the
variable labels are reshuffled, so the clusters (and the network)
change while every marginal stays the same. The matrix is shifted to
be strictly positive.
"""

import logging
from pathlib import Path
from typing import Optional

import numpy as np

from factorize import InvalidInputError

logger = logging.getLogger(__name__)

# Defaults
DEFAULT_N_TIME = 200
DEFAULT_N_VARS = 80
DEFAULT_N_CLUSTERS = 2
DEFAULT_WITHIN = 0.75
DEFAULT_BETWEEN = 0.2
DEFAULT_CHANGE_AT = 100
FLOOR = 1.0  # Minimum entry after the shift


def block_correlation(labels: np.ndarray, within: float, between: float) -> np.ndarray:
    """Correlation matrix with `within` inside clusters, `between` across."""
    same = labels[:, None] == labels[None, :]
    corr = np.where(same, within, between).astype(np.float64)
    np.fill_diagonal(corr, 1.0)
    return corr


def simulate_two_regimes(
    n_time: int = DEFAULT_N_TIME,
    n_vars: int = DEFAULT_N_VARS,
    n_clusters: int = DEFAULT_N_CLUSTERS,
    within: float = DEFAULT_WITHIN,
    between: float = DEFAULT_BETWEEN,
    change_at: int = DEFAULT_CHANGE_AT,
    seed: Optional[int] = None,
) -> np.ndarray:
    """
    Simulate a (n_time, n_vars) positive series with one change point.

    Parameters
    ----------
    n_time, n_vars : int
        Series shape.
    n_clusters : int
        Number of variable clusters in each regime.
    within, between : float
        Correlation inside and across clusters; between < within.
    change_at : int
        First row of the second regime.
    seed : int, optional
        Seed for the draws and the relabelling.

    Returns
    -------
    np.ndarray
        Rows [0, change_at) from regime 1, [change_at, n_time) from regime 2.
    """
    if not 0 < change_at < n_time:
        raise InvalidInputError(f"change_at must lie in (0, {n_time}), got {change_at}")
    if not 1 <= n_clusters <= n_vars:
        raise InvalidInputError(f"n_clusters must lie in [1, {n_vars}], got {n_clusters}")
    if not -1.0 < between < within < 1.0:
        raise InvalidInputError(
            f"need -1 < between < within < 1, got between={between}, within={within}"
        )

    rng = np.random.default_rng(seed)
    labels = np.arange(n_vars) * n_clusters // n_vars
    shuffled = rng.permutation(labels)

    mean = np.zeros(n_vars)
    first = rng.multivariate_normal(mean, block_correlation(labels, within, between), size=change_at)
    second = rng.multivariate_normal(
        mean, block_correlation(shuffled, within, between), size=n_time - change_at,
    )
    series = np.vstack([first, second])

    logger.info(
        "Two regimes: T=%d, p=%d, %d clusters, change at %d",
        n_time, n_vars, n_clusters, change_at,
    )
    return series - series.min() + FLOOR


def generate_two_regimes(output_path: Path, **kwargs) -> Path:
    """Simulate with simulate_two_regimes(**kwargs) and write CSV/Parquet."""
    from fabisearch.io import write_series

    series = simulate_two_regimes(**kwargs)
    path = write_series(series, Path(output_path))
    logger.info("Wrote %d x %d series to %s", *series.shape, path)
    return path
