"""
Non-negative matrix factorization oracle.

The change-point search only ever asks one question of a data block:
how well does a rank-k non-negative factorization reconstruct it?
The answer is a scalar residual (lower = better fit): the beta divergence
between the block and its reconstruction. It is a sum over entries, so
the residuals of two row blocks add up like the residual of their union.
Everything else about NMF stays behind this interface.

Algorithm tags:
    brunet : multiplicative updates, Kullback-Leibler divergence
    lee    : multiplicative updates, Frobenius norm
    cd     : coordinate descent, Frobenius norm
"""

import warnings
from dataclasses import dataclass
from typing import Dict, Optional, Protocol, runtime_checkable

import numpy as np
from sklearn.decomposition import NMF
from sklearn.exceptions import ConvergenceWarning

from factorize.errors import InvalidInputError, OracleFailureError


ALGORITHMS: Dict[str, Dict[str, str]] = {
    'brunet': {'solver': 'mu', 'beta_loss': 'kullback-leibler'},
    'lee': {'solver': 'mu', 'beta_loss': 'frobenius'},
    'cd': {'solver': 'cd', 'beta_loss': 'frobenius'},
}

DEFAULT_ALGORITHM = 'brunet'

# Seeds handed to scikit-learn must fit in a uint32
_SEED_BOUND = 2 ** 31 - 1


@runtime_checkable
class FactorizationOracle(Protocol):
    """Anything that scores a block with a rank-k factorization residual."""

    def residual(
        self,
        block: np.ndarray,
        rank: int,
        restarts: int = 1,
        rng: Optional[np.random.Generator] = None,
    ) -> float:
        ...


def check_block(block: np.ndarray, rank: int) -> np.ndarray:
    """
    Validate a block before factorization.

    Raises InvalidInputError for a non-2D block, non-finite or non-positive
    entries, a non-positive rank, or fewer rows than the rank.
    """
    block = np.asarray(block, dtype=np.float64)
    if block.ndim != 2:
        raise InvalidInputError(f"block must be 2D, got shape {block.shape}")
    if rank < 1:
        raise InvalidInputError(f"rank must be positive, got {rank}")
    if block.shape[0] < rank:
        raise InvalidInputError(
            f"block has {block.shape[0]} rows, rank {rank} needs at least {rank}"
        )
    if not np.all(np.isfinite(block)):
        raise InvalidInputError("block contains NaN or infinite entries")
    if np.any(block <= 0):
        raise InvalidInputError("all entries must be strictly positive")
    return block


def divergence(model: NMF) -> float:
    """
    Beta divergence of a fitted model.

    scikit-learn reports reconstruction_err_ as sqrt(2 * divergence),
    which does not add across row blocks; undo the square root.
    """
    return 0.5 * float(model.reconstruction_err_) ** 2


@dataclass(frozen=True)
class NMFOracle:
    """
    scikit-learn NMF behind the oracle interface.

    Frozen and free of live state, so it pickles into worker processes.

    Parameters
    ----------
    algorithm : str
        One of ALGORITHMS.
    max_iter : int
        Iteration cap per restart.
    tol : float
        Stopping tolerance per restart.
    strict : bool
        If True, a restart that hits max_iter without converging raises
        OracleFailureError instead of being scored as is.
    """
    algorithm: str = DEFAULT_ALGORITHM
    max_iter: int = 200
    tol: float = 1e-4
    strict: bool = False

    def __post_init__(self):
        if self.algorithm not in ALGORITHMS:
            raise InvalidInputError(
                f"Unknown algorithm '{self.algorithm}'. "
                f"Available: {sorted(ALGORITHMS)}"
            )

    def residual(
        self,
        block: np.ndarray,
        rank: int,
        restarts: int = 1,
        rng: Optional[np.random.Generator] = None,
    ) -> float:
        """
        Lowest beta divergence over `restarts` random initialisations.

        Parameters
        ----------
        block : np.ndarray
            (n_rows, p) strictly positive data block.
        rank : int
            Factorization rank.
        restarts : int
            Number of random restarts; the minimum residual is reported.
        rng : np.random.Generator, optional
            Source of the per-restart seeds.

        Returns
        -------
        float
            Residual >= 0.
        """
        block = check_block(block, rank)
        if restarts < 1:
            raise InvalidInputError(f"restarts must be positive, got {restarts}")
        rng = rng if rng is not None else np.random.default_rng()

        best = np.inf
        for seed in rng.integers(0, _SEED_BOUND, size=restarts):
            model, _ = self._fit(block, rank, int(seed))
            best = min(best, divergence(model))

        if not np.isfinite(best):
            raise OracleFailureError(
                f"NMF residual is not finite for block of shape {block.shape}"
            )
        return best

    def consensus(
        self,
        block: np.ndarray,
        rank: int,
        restarts: int = 1,
        rng: Optional[np.random.Generator] = None,
    ) -> np.ndarray:
        """
        Consensus matrix over the columns (variables) of `block`.

        Entry (i, j) is the fraction of restarts in which variables i and j
        load most heavily on the same factor.

        Returns
        -------
        np.ndarray
            (p, p) matrix with values in [0, 1] and ones on the diagonal.
        """
        block = check_block(block, rank)
        if restarts < 1:
            raise InvalidInputError(f"restarts must be positive, got {restarts}")
        rng = rng if rng is not None else np.random.default_rng()

        p = block.shape[1]
        total = np.zeros((p, p), dtype=np.float64)
        for seed in rng.integers(0, _SEED_BOUND, size=restarts):
            model, _ = self._fit(block, rank, int(seed))
            labels = np.argmax(model.components_, axis=0)
            total += labels[:, None] == labels[None, :]
        return total / restarts

    def _fit(self, block: np.ndarray, rank: int, seed: int):
        model = NMF(
            n_components=rank,
            init='random',
            max_iter=self.max_iter,
            tol=self.tol,
            random_state=seed,
            **ALGORITHMS[self.algorithm],
        )
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always', ConvergenceWarning)
            try:
                W = model.fit_transform(block)
            except (ValueError, FloatingPointError, np.linalg.LinAlgError) as e:
                raise OracleFailureError(
                    f"NMF failed (rank={rank}, algorithm={self.algorithm}): {e}"
                ) from e

        not_converged = False
        for w in caught:
            if issubclass(w.category, ConvergenceWarning):
                not_converged = True
            else:
                warnings.warn(w.message, w.category, stacklevel=3)

        if self.strict and not_converged:
            raise OracleFailureError(
                f"NMF did not converge in {self.max_iter} iterations "
                f"(rank={rank}, algorithm={self.algorithm})"
            )
        return model, W
