"""
Network estimation between change points.

Each stationary segment is factorized repeatedly; the consensus matrix
(how often two variables load on the same factor) is turned into an
adjacency matrix in one of two ways:

    lam > 1       : complete-linkage clustering of the consensus rows,
                    cut into `lam` clusters; same cluster -> edge
    0 <= lam <= 1 : consensus entries strictly above `lam` -> edge

The diagonal is always zero.
"""

import logging
from typing import List, Optional, Sequence, Union

import numpy as np
from scipy.cluster.hierarchy import fcluster, linkage

from factorize import DEFAULT_ALGORITHM, InvalidInputError, NMFOracle, check_block, select_rank
from inference.streams import NETWORK, RANK, resolve_seed, stream

logger = logging.getLogger(__name__)

Lambda = Union[float, Sequence[float]]
Networks = Union[np.ndarray, List[np.ndarray]]


def cluster_adjacency(consensus: np.ndarray, n_clusters: int) -> np.ndarray:
    """Adjacency from a complete-linkage tree cut into `n_clusters` groups."""
    if consensus.shape[0] < 2:
        return np.zeros_like(consensus)
    tree = linkage(consensus, method='complete', metric='euclidean')
    labels = fcluster(tree, t=n_clusters, criterion='maxclust')
    adjacency = (labels[:, None] == labels[None, :]).astype(np.float64)
    np.fill_diagonal(adjacency, 0.0)
    return adjacency


def threshold_adjacency(consensus: np.ndarray, cutoff: float) -> np.ndarray:
    """Adjacency with an edge wherever consensus > cutoff."""
    adjacency = (consensus > cutoff).astype(np.float64)
    np.fill_diagonal(adjacency, 0.0)
    return adjacency


def _lambda_kind(lam: Sequence[float]) -> str:
    if all(v > 1 for v in lam):
        for v in lam:
            if float(v) != int(v):
                raise InvalidInputError(
                    f"cluster counts must be integers, got {v}"
                )
        return 'cluster'
    if all(0 <= v <= 1 for v in lam):
        return 'threshold'
    raise InvalidInputError(
        f"lam must be all cluster counts (> 1) or all cutoffs in [0, 1], got {list(lam)}"
    )


def segment_bounds(n_time: int, changepoints: Optional[Sequence[int]]) -> List[tuple]:
    """(start, stop) row ranges of the stationary segments."""
    if not changepoints:
        return [(0, n_time)]
    times = sorted(int(t) for t in changepoints)
    if times[0] <= 0 or times[-1] >= n_time or len(set(times)) != len(times):
        raise InvalidInputError(
            f"change points must be distinct and inside (0, {n_time}), got {times}"
        )
    edges = [0] + times + [n_time]
    return list(zip(edges[:-1], edges[1:]))


def estimate_network(
    series: np.ndarray,
    lam: Lambda,
    restarts: int = 50,
    rank: Optional[int] = None,
    algorithm: str = DEFAULT_ALGORITHM,
    changepoints: Optional[Sequence[int]] = None,
    *,
    oracle: Optional[NMFOracle] = None,
    seed: Optional[int] = None,
) -> Union[Networks, List[Networks]]:
    """
    Estimate one network per stationary segment.

    Parameters
    ----------
    series : np.ndarray
        (T, p) strictly positive matrix.
    lam : float or sequence of float
        Cluster count (> 1) or consensus cutoff (in [0, 1]). A sequence
        of one kind gives one adjacency matrix per value.
    restarts : int
        Factorizations per consensus matrix.
    rank : int, optional
        Factorization rank. None selects it from the whole series.
    algorithm : str
        Algorithm tag.
    changepoints : sequence of int, optional
        Split times; rows [0, t1), [t1, t2), ... are separate segments.
    oracle : NMFOracle, optional
        Defaults to NMFOracle(algorithm).
    seed : int, optional
        Run seed.

    Returns
    -------
    np.ndarray, list of np.ndarray, or list of those
        One segment: its matrix (or list over lam). Several segments:
        a list with one entry per segment.
    """
    series = check_block(series, 1)
    oracle = oracle if oracle is not None else NMFOracle(algorithm)
    seed = resolve_seed(seed)

    many = not np.isscalar(lam)
    lams = list(lam) if many else [lam]
    if not lams:
        raise InvalidInputError("lam must not be empty")
    kind = _lambda_kind(lams)

    if rank is None:
        rank = select_rank(series, restarts, oracle=oracle, rng=stream(seed, RANK))
    else:
        logger.info("User defined rank: %d", rank)

    segments = segment_bounds(series.shape[0], changepoints)
    output = []
    for j, (start, stop) in enumerate(segments):
        logger.info("Estimating stationary block %d [%d, %d)", j + 1, start, stop)
        consensus = oracle.consensus(series[start:stop], rank, restarts, stream(seed, NETWORK, j))
        if kind == 'cluster':
            mats = [cluster_adjacency(consensus, int(v)) for v in lams]
        else:
            mats = [threshold_adjacency(consensus, float(v)) for v in lams]
        output.append(mats if many else mats[0])

    return output[0] if len(output) == 1 else output
