"""Tests for the factorize package."""
import numpy as np
import pytest


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def rank2_block():
    """40 x 10 block that is exactly rank 2 plus a little positive noise."""
    rng = np.random.default_rng(7)
    W = rng.uniform(0.5, 2.0, size=(40, 2))
    H = np.zeros((2, 10))
    H[0, :5] = 1.0
    H[1, 5:] = 1.0
    return W @ H + 0.1 + rng.uniform(0, 0.01, size=(40, 10))


@pytest.fixture
def smooth_series():
    """Rows change slowly over time, so shuffling makes them rough."""
    t = np.linspace(0, 1, 30)[:, None]
    return 1.0 + t * np.arange(1, 7)[None, :]


class RoughnessOracle:
    """Residual = row-to-row roughness / (c * rank)."""

    def __init__(self, inverted=False):
        self.inverted = inverted

    def residual(self, block, rank, restarts=1, rng=None):
        rough = float(np.abs(np.diff(block, axis=0)).sum())
        if self.inverted:
            return 1.0 / ((1.0 + rough) * rank)
        return rough / rank


# ---------------------------------------------------------------------------
# Block validation
# ---------------------------------------------------------------------------

class TestCheckBlock:

    def test_rejects_non_positive(self):
        from factorize.oracle import check_block
        from factorize.errors import InvalidInputError
        block = np.ones((5, 3))
        block[2, 1] = 0.0
        with pytest.raises(InvalidInputError):
            check_block(block, 1)

    def test_rejects_nan(self):
        from factorize.oracle import check_block
        from factorize.errors import InvalidInputError
        block = np.ones((5, 3))
        block[0, 0] = np.nan
        with pytest.raises(InvalidInputError):
            check_block(block, 1)

    def test_rejects_too_few_rows(self):
        from factorize.oracle import check_block
        from factorize.errors import InvalidInputError
        with pytest.raises(InvalidInputError):
            check_block(np.ones((2, 5)), 3)

    def test_rejects_1d(self):
        from factorize.oracle import check_block
        from factorize.errors import InvalidInputError
        with pytest.raises(InvalidInputError):
            check_block(np.ones(5), 1)

    def test_invalid_input_is_value_error(self):
        from factorize.errors import InvalidInputError, OracleFailureError
        assert issubclass(InvalidInputError, ValueError)
        assert issubclass(OracleFailureError, RuntimeError)


# ---------------------------------------------------------------------------
# NMF oracle
# ---------------------------------------------------------------------------

class TestNMFOracle:

    def test_unknown_algorithm(self):
        from factorize.oracle import NMFOracle
        from factorize.errors import InvalidInputError
        with pytest.raises(InvalidInputError):
            NMFOracle(algorithm='snmf/r')

    @pytest.mark.parametrize('algorithm', ['brunet', 'lee', 'cd'])
    def test_residual_non_negative(self, rank2_block, algorithm):
        from factorize.oracle import NMFOracle
        oracle = NMFOracle(algorithm=algorithm)
        r = oracle.residual(rank2_block, 2, restarts=2, rng=np.random.default_rng(0))
        assert np.isfinite(r)
        assert r >= 0.0

    def test_higher_rank_fits_better(self, rank2_block):
        from factorize.oracle import NMFOracle
        oracle = NMFOracle(algorithm='lee', max_iter=500)
        r1 = oracle.residual(rank2_block, 1, restarts=3, rng=np.random.default_rng(1))
        r2 = oracle.residual(rank2_block, 2, restarts=3, rng=np.random.default_rng(1))
        assert r2 < r1

    def test_seeded_generator_reproducible(self, rank2_block):
        from factorize.oracle import NMFOracle
        oracle = NMFOracle()
        a = oracle.residual(rank2_block, 2, restarts=2, rng=np.random.default_rng(3))
        b = oracle.residual(rank2_block, 2, restarts=2, rng=np.random.default_rng(3))
        assert a == b

    def test_residual_is_beta_divergence(self, rank2_block):
        from factorize.oracle import NMFOracle, _SEED_BOUND
        oracle = NMFOracle(algorithm='lee')
        seed = int(np.random.default_rng(0).integers(0, _SEED_BOUND, size=1)[0])
        model, W = oracle._fit(rank2_block, 2, seed)
        expected = 0.5 * ((rank2_block - W @ model.components_) ** 2).sum()
        r = oracle.residual(rank2_block, 2, restarts=1, rng=np.random.default_rng(0))
        assert r == pytest.approx(expected, rel=1e-6)

    @pytest.mark.parametrize('algorithm', ['brunet', 'lee'])
    def test_halves_add_up_to_whole(self, rank2_block, algorithm):
        from factorize.oracle import NMFOracle
        oracle = NMFOracle(algorithm=algorithm, max_iter=500)
        noisy = rank2_block * np.random.default_rng(4).uniform(0.8, 1.2, rank2_block.shape)
        whole = oracle.residual(noisy, 2, restarts=3, rng=np.random.default_rng(2))
        left = oracle.residual(noisy[:20], 2, restarts=3, rng=np.random.default_rng(2))
        right = oracle.residual(noisy[20:], 2, restarts=3, rng=np.random.default_rng(2))
        # Each half is fitted freely, so together they fit no worse than the whole
        assert left + right <= whole * 1.05

    def test_zero_restarts_rejected(self, rank2_block):
        from factorize.oracle import NMFOracle
        from factorize.errors import InvalidInputError
        with pytest.raises(InvalidInputError):
            NMFOracle().residual(rank2_block, 2, restarts=0)

    def test_strict_raises_on_non_convergence(self, rank2_block):
        from factorize.oracle import NMFOracle
        from factorize.errors import OracleFailureError
        oracle = NMFOracle(algorithm='lee', max_iter=1, tol=1e-12, strict=True)
        with pytest.raises(OracleFailureError):
            oracle.residual(rank2_block, 2, restarts=1, rng=np.random.default_rng(0))

    def test_is_oracle(self):
        from factorize.oracle import FactorizationOracle, NMFOracle
        assert isinstance(NMFOracle(), FactorizationOracle)

    def test_consensus_shape_and_range(self, rank2_block):
        from factorize.oracle import NMFOracle
        C = NMFOracle(algorithm='lee', max_iter=500).consensus(
            rank2_block, 2, restarts=4, rng=np.random.default_rng(2)
        )
        assert C.shape == (10, 10)
        np.testing.assert_allclose(C, C.T)
        np.testing.assert_allclose(np.diag(C), 1.0)
        assert C.min() >= 0.0 and C.max() <= 1.0

    def test_consensus_recovers_groups(self, rank2_block):
        from factorize.oracle import NMFOracle
        C = NMFOracle(algorithm='lee', max_iter=500).consensus(
            rank2_block, 2, restarts=4, rng=np.random.default_rng(2)
        )
        # Columns 0-4 and 5-9 load on different factors
        assert C[0, 4] == 1.0
        assert C[5, 9] == 1.0
        assert C[0, 9] == 0.0


# ---------------------------------------------------------------------------
# Rank selection
# ---------------------------------------------------------------------------

class TestSelectRank:

    def test_stops_when_shuffle_gains_more(self, smooth_series):
        from factorize.rank import select_rank
        rank = select_rank(
            smooth_series, restarts=1, oracle=RoughnessOracle(),
            rng=np.random.default_rng(0),
        )
        assert rank == 2

    def test_exhausted_search_raises(self, smooth_series):
        from factorize.rank import select_rank
        from factorize.errors import RankSearchExhaustedError, OracleFailureError
        with pytest.raises(RankSearchExhaustedError) as exc:
            select_rank(
                smooth_series, restarts=1, oracle=RoughnessOracle(inverted=True),
                rng=np.random.default_rng(0), max_rank=4,
            )
        assert isinstance(exc.value, OracleFailureError)

    def test_bound_too_small(self):
        from factorize.rank import select_rank
        from factorize.errors import InvalidInputError
        with pytest.raises(InvalidInputError):
            select_rank(np.ones((10, 1)) + 1.0, oracle=RoughnessOracle())

    def test_idempotent_under_seed(self, rank2_block):
        from factorize.rank import select_rank
        a = select_rank(rank2_block, restarts=2, rng=np.random.default_rng(11))
        b = select_rank(rank2_block, restarts=2, rng=np.random.default_rng(11))
        assert a == b
        assert 2 <= a <= 10
