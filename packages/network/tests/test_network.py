"""Tests for the network package."""
import numpy as np
import pytest


@pytest.fixture
def block_consensus():
    """Two tight groups {0, 1, 2} and {3, 4}."""
    c = np.full((5, 5), 0.1)
    c[:3, :3] = 0.9
    c[3:, 3:] = 0.8
    np.fill_diagonal(c, 1.0)
    return c


@pytest.fixture
def two_factor_series():
    """Variables 0-3 follow one factor, 4-7 another."""
    rng = np.random.default_rng(11)
    W = rng.uniform(0.5, 3.0, size=(60, 2))
    H = np.zeros((2, 8))
    H[0, :4] = 1.0
    H[1, 4:] = 1.0
    return W @ H + 0.01


def _expected_blocks(sizes):
    n = sum(sizes)
    adj = np.zeros((n, n))
    start = 0
    for s in sizes:
        adj[start:start + s, start:start + s] = 1.0
        start += s
    np.fill_diagonal(adj, 0.0)
    return adj


class TestAdjacency:

    def test_threshold(self, block_consensus):
        from network.estimate import threshold_adjacency
        adj = threshold_adjacency(block_consensus, 0.5)
        np.testing.assert_array_equal(adj, _expected_blocks([3, 2]))

    def test_threshold_is_strict(self, block_consensus):
        from network.estimate import threshold_adjacency
        adj = threshold_adjacency(block_consensus, 0.8)
        np.testing.assert_array_equal(adj, _expected_blocks([3, 1, 1]))

    def test_cluster(self, block_consensus):
        from network.estimate import cluster_adjacency
        adj = cluster_adjacency(block_consensus, 2)
        np.testing.assert_array_equal(adj, _expected_blocks([3, 2]))

    def test_cluster_one_per_variable(self, block_consensus):
        from network.estimate import cluster_adjacency
        adj = cluster_adjacency(block_consensus, 5)
        assert adj.sum() == 0

    def test_symmetric_zero_diagonal(self, block_consensus):
        from network.estimate import cluster_adjacency, threshold_adjacency
        for adj in (cluster_adjacency(block_consensus, 2), threshold_adjacency(block_consensus, 0.0)):
            np.testing.assert_array_equal(adj, adj.T)
            assert np.all(np.diag(adj) == 0)


class TestSegmentBounds:

    def test_no_changepoints(self):
        from network.estimate import segment_bounds
        assert segment_bounds(100, None) == [(0, 100)]

    def test_changepoints(self):
        from network.estimate import segment_bounds
        assert segment_bounds(100, [70, 30]) == [(0, 30), (30, 70), (70, 100)]

    def test_outside(self):
        from network.estimate import segment_bounds
        from factorize.errors import InvalidInputError
        with pytest.raises(InvalidInputError):
            segment_bounds(100, [100])


class TestEstimateNetwork:

    def test_recovers_factor_groups(self, two_factor_series):
        from network.estimate import estimate_network
        adj = estimate_network(two_factor_series, 0.5, restarts=5, rank=2, algorithm='lee', seed=1)
        np.testing.assert_array_equal(adj, _expected_blocks([4, 4]))

    def test_clustering_matches_threshold(self, two_factor_series):
        from network.estimate import estimate_network
        adj = estimate_network(two_factor_series, 2, restarts=5, rank=2, algorithm='lee', seed=1)
        np.testing.assert_array_equal(adj, _expected_blocks([4, 4]))

    def test_lambda_list(self, two_factor_series):
        from network.estimate import estimate_network
        out = estimate_network(two_factor_series, [0.2, 0.5], restarts=3, rank=2, algorithm='lee', seed=1)
        assert isinstance(out, list) and len(out) == 2
        assert all(m.shape == (8, 8) for m in out)

    def test_one_entry_per_segment(self, two_factor_series):
        from network.estimate import estimate_network
        out = estimate_network(
            two_factor_series, [2, 3], restarts=3, rank=2, algorithm='lee',
            changepoints=[20, 40], seed=1,
        )
        assert len(out) == 3
        assert all(len(per_segment) == 2 for per_segment in out)

    def test_seeded(self, two_factor_series):
        from network.estimate import estimate_network
        a = estimate_network(two_factor_series, 0.3, restarts=3, rank=2, algorithm='lee', seed=4)
        b = estimate_network(two_factor_series, 0.3, restarts=3, rank=2, algorithm='lee', seed=4)
        np.testing.assert_array_equal(a, b)

    def test_mixed_lambda(self, two_factor_series):
        from network.estimate import estimate_network
        from factorize.errors import InvalidInputError
        with pytest.raises(InvalidInputError):
            estimate_network(two_factor_series, [0.5, 3], restarts=1, rank=2)

    def test_fractional_cluster_count(self, two_factor_series):
        from network.estimate import estimate_network
        from factorize.errors import InvalidInputError
        with pytest.raises(InvalidInputError):
            estimate_network(two_factor_series, 2.5, restarts=1, rank=2)

    def test_negative_entries_rejected(self):
        from network.estimate import estimate_network
        from factorize.errors import InvalidInputError
        with pytest.raises(InvalidInputError):
            estimate_network(-np.ones((10, 4)), 0.5, restarts=1, rank=2)
