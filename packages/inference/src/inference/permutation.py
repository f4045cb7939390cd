"""
Permutation null distribution.

For every admitted split, the rows of its enclosing block are shuffled
(whole observation vectors move together), then the block is refit on
both sides of the original split offset. The shuffle keeps each time
point's cross-variable pattern and destroys the segment structure, so
the residual sums show how good the split looks when there is no change.

Repetitions are independent and run on a process pool scoped to this
call. Sample (i, r) always draws from stream(seed, PERMUTE, i, r), so
the output does not depend on the number of workers.
"""

import logging
import os
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Dict, Iterable, Optional

import numpy as np

from breaks import CandidateSplit, improving_splits
from factorize import DEFAULT_ALGORITHM, FactorizationOracle, InvalidInputError, NMFOracle
from inference.blocks import enclosing_blocks
from inference.refit import split_residual
from inference.streams import PERMUTE, stream

logger = logging.getLogger(__name__)


def resolve_workers(n_jobs: Optional[int]) -> int:
    """None -> 1, -1 -> all cores, otherwise n_jobs."""
    if n_jobs is None:
        return 1
    if n_jobs == -1:
        return os.cpu_count() or 1
    if n_jobs < 1:
        raise InvalidInputError(f"n_jobs must be positive or -1, got {n_jobs}")
    return int(n_jobs)


def permuted_split_residual(
    block: np.ndarray,
    offset: int,
    rank: int,
    oracle: FactorizationOracle,
    seed: int,
    index: int,
    repetition: int,
) -> float:
    """One null sample. Top-level so it pickles into worker processes."""
    rng = stream(seed, PERMUTE, index, repetition)
    shuffled = block[rng.permutation(block.shape[0])]
    return split_residual(shuffled, offset, rank, oracle, rng)


def permute_and_refit(
    series: np.ndarray,
    candidates: Iterable[CandidateSplit],
    rank: int,
    n_rep: int,
    algorithm: str = DEFAULT_ALGORITHM,
    *,
    full_length: Optional[int] = None,
    oracle: Optional[FactorizationOracle] = None,
    seed: int = 0,
    enclosing: str = 'adjacent',
    n_jobs: Optional[int] = 1,
) -> Dict[int, np.ndarray]:
    """
    Build the permutation null distribution of every admitted split.

    Parameters
    ----------
    series : np.ndarray
        (T, p) strictly positive matrix.
    candidates : iterable of CandidateSplit
        Output of the binary search; only delta < 0 splits are used.
    rank : int
        Factorization rank.
    n_rep : int
        Samples per split.
    algorithm : str
        Algorithm tag, used when no oracle is given.
    full_length : int, optional
        Series length T. Defaults to series.shape[0].
    oracle : FactorizationOracle, optional
        Defaults to NMFOracle(algorithm). Must pickle when n_jobs > 1.
    seed : int
        Run seed.
    enclosing : str
        Enclosing block mode, see inference.blocks.
    n_jobs : int, optional
        Worker processes. 1 runs in-process, -1 uses every core.

    Returns
    -------
    dict
        split_time -> (n_rep,) array of residual sums.
    """
    if n_rep < 1:
        raise InvalidInputError(f"n_rep must be positive, got {n_rep}")
    oracle = oracle if oracle is not None else NMFOracle(algorithm)
    full_length = series.shape[0] if full_length is None else full_length
    workers = resolve_workers(n_jobs)

    admitted = improving_splits(candidates)
    blocks = enclosing_blocks([c.split_time for c in admitted], full_length, enclosing)
    results = {eb.split_time: np.empty(n_rep) for eb in blocks}

    if workers == 1:
        for i, eb in enumerate(blocks):
            logger.info("Permuting split at %d", eb.split_time)
            block = series[eb.lower:eb.upper]
            for r in range(n_rep):
                results[eb.split_time][r] = permuted_split_residual(
                    block, eb.offset, rank, oracle, seed, i, r,
                )
        return results

    logger.info(
        "Permuting %d splits x %d repetitions on %d workers",
        len(blocks), n_rep, workers,
    )
    with ProcessPoolExecutor(max_workers=workers) as pool:
        futures = {}
        for i, eb in enumerate(blocks):
            block = series[eb.lower:eb.upper]
            for r in range(n_rep):
                fut = pool.submit(
                    permuted_split_residual,
                    block, eb.offset, rank, oracle, seed, i, r,
                )
                futures[fut] = (eb.split_time, r)

        try:
            for fut in as_completed(futures):
                split_time, r = futures[fut]
                results[split_time][r] = fut.result()
        except BaseException:
            pool.shutdown(wait=True, cancel_futures=True)
            raise

    return results
