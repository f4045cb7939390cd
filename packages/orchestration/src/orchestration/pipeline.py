"""
Change point detection pipeline.

Sequences the compute packages for one series:

    rank selection (factorize) -> binary search (breaks)
        -> refit + permutation samples (inference) -> significance test

No math lives here. Only wiring, seeding and timing.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, List, Optional

import numpy as np
import polars as pl

from breaks import CandidateSplit, find_splits, improving_splits
from factorize import FactorizationOracle, NMFOracle, check_block, select_rank
from inference import (
    ChangePoint,
    permute_and_refit,
    refit_splits,
    resolve_seed,
    significance_test,
    stream,
)
from inference.streams import RANK, SEGMENT
from orchestration.config import DetectionConfig, FixedRank, check_partition_rank

logger = logging.getLogger(__name__)


@dataclass
class DetectionResult:
    """Outcome of one detection run."""
    rank: int
    change_points: List[ChangePoint]
    compute_time: timedelta
    candidates: List[CandidateSplit] = field(default_factory=list)
    seed: Optional[int] = None

    @property
    def times(self) -> List[int]:
        return [cp.time for cp in self.change_points]

    def to_frame(self) -> pl.DataFrame:
        """One row per tested split: time T and its test result."""
        if not self.change_points:
            return pl.DataFrame(schema={'T': pl.Int64, 'stat_test': pl.Float64})
        return pl.DataFrame({
            'T': [cp.time for cp in self.change_points],
            'stat_test': [cp.result for cp in self.change_points],
        })


def resolve_rank(
    series: np.ndarray,
    config: DetectionConfig,
    oracle: FactorizationOracle,
    seed: int,
) -> int:
    if isinstance(config.rank, FixedRank):
        logger.info("User defined rank: %d", config.rank.value)
        return config.rank.value
    return select_rank(series, config.restarts, oracle=oracle, rng=stream(seed, RANK))


def detect_change_points(
    series: np.ndarray,
    config: Optional[DetectionConfig] = None,
    *,
    oracle: Optional[FactorizationOracle] = None,
    **overrides: Any,
) -> DetectionResult:
    """
    Detect change points in the factorization structure of a series.

    Parameters
    ----------
    series : np.ndarray
        (T, p) matrix, time in rows, strictly positive entries.
    config : DetectionConfig, optional
        Run parameters. Defaults to DetectionConfig().
    oracle : FactorizationOracle, optional
        Residual scorer. Defaults to NMFOracle(config.algorithm); must
        pickle when config.n_jobs > 1.
    **overrides
        Config fields to override, e.g. mindist=60, rank=3, alpha='p-value'.

    Returns
    -------
    DetectionResult
        Empty change_points when no split improves the fit.
    """
    if config is None:
        config = DetectionConfig()
    if overrides:
        config = config.with_overrides(**overrides)
    config.validate()

    series = check_block(series, 1)
    seed = resolve_seed(config.seed)
    oracle = oracle if oracle is not None else NMFOracle(config.algorithm)
    t0 = time.time()

    rank = resolve_rank(series, config, oracle, seed)
    check_partition_rank(rank, config.mindist, config.enclosing)

    logger.info("Finding split points (T=%d, p=%d)", *series.shape)
    candidates = find_splits(
        series, config.mindist, rank, config.restarts,
        oracle=oracle, rng=stream(seed, SEGMENT),
    )
    admitted = improving_splits(candidates)
    if not admitted:
        logger.info("No split improves the fit; nothing to test")
        return DetectionResult(
            rank, [], timedelta(seconds=time.time() - t0), candidates, seed,
        )

    logger.info("Refitting %d candidate splits", len(admitted))
    refit = refit_splits(
        series, candidates, rank, config.n_rep,
        oracle=oracle, seed=seed, enclosing=config.enclosing,
    )
    logger.info("Building permutation distributions")
    null = permute_and_refit(
        series, candidates, rank, config.n_rep,
        oracle=oracle, seed=seed, enclosing=config.enclosing, n_jobs=config.n_jobs,
    )
    change_points = significance_test(
        candidates, refit, null, config.alpha, config.test_kind, config.correction,
    )

    elapsed = timedelta(seconds=time.time() - t0)
    logger.info("Finished in %s: %s", elapsed, [cp.time for cp in change_points])
    return DetectionResult(rank, change_points, elapsed, candidates, seed)
