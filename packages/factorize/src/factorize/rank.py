"""
Rank selection by comparison against a shuffled copy.

Increase the factorization rank while the real series still gains more
from the extra component than a fully shuffled copy of itself does.

    orig_change(k) = loss_orig(k) - loss_orig(k-1)    (<= 0)
    perm_change(k) = loss_perm(k) - loss_perm(k-1)    (<= 0)

Starting at k = 2, k grows while orig_change(k) < perm_change(k).
The first k where that fails is the selected rank.

The shuffle permutes every entry, not whole rows: a row shuffle leaves
the NMF residual unchanged and would make the comparison vacuous.
"""

import logging
from typing import Optional

import numpy as np

from factorize.errors import InvalidInputError, RankSearchExhaustedError
from factorize.oracle import DEFAULT_ALGORITHM, FactorizationOracle, NMFOracle, check_block

logger = logging.getLogger(__name__)


def select_rank(
    series: np.ndarray,
    restarts: int = 50,
    algorithm: str = DEFAULT_ALGORITHM,
    *,
    oracle: Optional[FactorizationOracle] = None,
    rng: Optional[np.random.Generator] = None,
    max_rank: Optional[int] = None,
) -> int:
    """
    Choose the factorization rank for a series.

    Parameters
    ----------
    series : np.ndarray
        (T, p) strictly positive matrix.
    restarts : int
        Restarts per oracle call.
    algorithm : str
        Algorithm tag, used when no oracle is given.
    oracle : FactorizationOracle, optional
        Residual oracle. Defaults to NMFOracle(algorithm).
    rng : np.random.Generator, optional
        Drives the shuffle and the oracle restarts. A fixed generator
        state gives a fixed rank.
    max_rank : int, optional
        Upper bound on the search. Defaults to min(T, p).

    Returns
    -------
    int
        Selected rank (>= 2).

    Raises
    ------
    RankSearchExhaustedError
        If the real data still out-gains the shuffled copy at max_rank.
    """
    series = check_block(series, 1)
    oracle = oracle if oracle is not None else NMFOracle(algorithm)
    rng = rng if rng is not None else np.random.default_rng()

    bound = min(series.shape) if max_rank is None else int(max_rank)
    if bound < 2:
        raise InvalidInputError(
            f"rank search needs a bound of at least 2, got {bound} "
            f"for series of shape {series.shape}"
        )

    logger.info("Finding optimal rank (bound %d)", bound)

    shuffled = rng.permutation(series.ravel()).reshape(series.shape)

    orig_loss = [oracle.residual(series, 1, restarts, rng)]
    perm_loss = [oracle.residual(shuffled, 1, restarts, rng)]

    k = 1
    while True:
        k += 1
        orig_loss.append(oracle.residual(series, k, restarts, rng))
        perm_loss.append(oracle.residual(shuffled, k, restarts, rng))

        orig_change = orig_loss[-1] - orig_loss[-2]
        perm_change = perm_loss[-1] - perm_loss[-2]
        logger.debug(
            "rank %d: orig_change=%.6g perm_change=%.6g", k, orig_change, perm_change
        )

        if not orig_change < perm_change:
            break
        if k >= bound:
            raise RankSearchExhaustedError(
                f"real data still out-gains the shuffled copy at rank {k}; "
                f"raise max_rank or supply a fixed rank"
            )

    logger.info("Optimal rank: %d", k)
    return k
