"""
Factorized binary search for change points.

A window [lo, hi) of rows is searched for the single split that best
separates two factorization regimes:

    positions = lo + mindist ... hi - mindist - 1

    while more than two positions remain:
        bisect the positions; score an equal-length block on each side
        keep the side whose block fits WORSE (it straddles the change)
    two positions  -> one more comparison keeps one
    one position q -> compare [q - mindist, q] with [q, q + mindist];
                      split at q or q + 1

The split's delta compares a 2*mindist window fit as two halves against
the same window fit whole. delta < 0 means the split improves the fit.
Each split then becomes the boundary of two new windows, searched the
same way until no window can hold a split mindist from both edges.

Ties keep the left side, so every comparison shrinks the search.
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import numpy as np

from factorize import DEFAULT_ALGORITHM, FactorizationOracle, InvalidInputError, NMFOracle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateSplit:
    """A proposed change point: rows [.., split_time) | [split_time, ..)."""
    split_time: int
    delta: float

    @property
    def improves_fit(self) -> bool:
        return self.delta < 0


def find_splits(
    series: np.ndarray,
    mindist: int,
    rank: int,
    restarts: int = 50,
    algorithm: str = DEFAULT_ALGORITHM,
    *,
    lower: int = 0,
    upper: Optional[int] = None,
    oracle: Optional[FactorizationOracle] = None,
    rng: Optional[np.random.Generator] = None,
) -> List[CandidateSplit]:
    """
    Recursively bisect [lower, upper) into candidate change points.

    Parameters
    ----------
    series : np.ndarray
        (T, p) strictly positive matrix.
    mindist : int
        Minimum distance between a split and any window edge.
    rank : int
        Factorization rank.
    restarts : int
        Oracle restarts per scored block.
    algorithm : str
        Algorithm tag, used when no oracle is given.
    lower, upper : int
        Half-open row range to search. Defaults to the whole series.
    oracle : FactorizationOracle, optional
        Residual oracle. Defaults to NMFOracle(algorithm).
    rng : np.random.Generator, optional
        Shared by every oracle call, in call order.

    Returns
    -------
    list of CandidateSplit
        In discovery (pre-order) order, not sorted by time.
    """
    if mindist < 1:
        raise InvalidInputError(f"mindist must be positive, got {mindist}")
    oracle = oracle if oracle is not None else NMFOracle(algorithm)
    rng = rng if rng is not None else np.random.default_rng()
    upper = series.shape[0] if upper is None else upper

    def score(lo: int, hi: int) -> float:
        return oracle.residual(series[lo:hi], rank, restarts, rng)

    found: List[CandidateSplit] = []
    stack: List[Tuple[int, int]] = [(lower, upper)]
    while stack:
        lo, hi = stack.pop()
        if hi - lo < 2 * mindist + 1:
            continue

        split_time = _locate_split(score, lo, hi, mindist)
        delta = (
            score(split_time - mindist, split_time)
            + score(split_time, split_time + mindist)
            - score(split_time - mindist, split_time + mindist)
        )
        logger.info("Change point at %d, delta loss %.6g", split_time, delta)
        found.append(CandidateSplit(split_time, float(delta)))

        # Right pushed first so the left window is searched next
        stack.append((split_time, hi))
        stack.append((lo, split_time))

    return found


def _locate_split(score, lo: int, hi: int, mindist: int) -> int:
    """Binary search of one window; returns the split time."""
    first, last = lo + mindist, hi - mindist - 1

    while last - first + 1 > 2:
        logger.debug("Searching %d:%d", first, last)
        half = math.ceil((last - first + 1) / 2)
        mid = first + half - 1
        left = score(first - mindist, mid + 1)
        right = score(mid, mid + half + mindist)
        if left >= right:
            last = mid
        else:
            first = mid

    if last > first:
        logger.debug("Searching %d:%d", first, last)
        left = score(first - mindist, first + 1)
        right = score(first, first + mindist + 1)
        if left >= right:
            last = first
        else:
            first = last

    left = score(first - mindist, first + 1)
    right = score(first, first + mindist + 1)
    return first if left >= right else first + 1


def improving_splits(candidates: Iterable[CandidateSplit]) -> List[CandidateSplit]:
    """Candidates with delta < 0, sorted by split time."""
    return sorted(
        (c for c in candidates if c.improves_fit),
        key=lambda c: c.split_time,
    )
