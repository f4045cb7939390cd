"""Tests for the two-regime generator."""

import numpy as np
import polars as pl
import pytest

from fabisearch.generators.regimes import generate_two_regimes, simulate_two_regimes


def _mean_corr(block, members):
    corr = np.corrcoef(block, rowvar=False)
    sub = corr[np.ix_(members, members)]
    return sub[~np.eye(len(members), dtype=bool)].mean()


def test_default_shape():
    series = simulate_two_regimes(seed=0)
    assert series.shape == (200, 80)


def test_strictly_positive():
    series = simulate_two_regimes(n_time=50, n_vars=10, change_at=25, seed=1)
    assert series.min() >= 1.0


def test_seeded():
    a = simulate_two_regimes(n_time=40, n_vars=6, change_at=20, seed=3)
    b = simulate_two_regimes(n_time=40, n_vars=6, change_at=20, seed=3)
    np.testing.assert_array_equal(a, b)


def test_first_regime_has_contiguous_clusters():
    """Variables 0-19 and 20-39 form the two clusters before the change."""
    series = simulate_two_regimes(n_time=2000, n_vars=40, change_at=1000, seed=4)
    first = series[:1000]
    within = _mean_corr(first, list(range(20)))
    across = np.corrcoef(first, rowvar=False)[:20, 20:].mean()
    assert within == pytest.approx(0.75, abs=0.05)
    assert across == pytest.approx(0.2, abs=0.05)


def test_structure_changes_after_change_at():
    series = simulate_two_regimes(n_time=2000, n_vars=40, change_at=1000, seed=5)
    before = np.corrcoef(series[:1000], rowvar=False)
    after = np.corrcoef(series[1000:], rowvar=False)
    assert np.abs(before - after).max() > 0.3


@pytest.mark.parametrize('kwargs', [
    {'change_at': 0},
    {'change_at': 200},
    {'n_clusters': 0},
    {'within': 0.2, 'between': 0.5},
])
def test_invalid_arguments(kwargs):
    from factorize.errors import InvalidInputError
    with pytest.raises(InvalidInputError):
        simulate_two_regimes(**kwargs)


def test_writes_file(tmp_path):
    path = generate_two_regimes(
        tmp_path / "sim.parquet", n_time=30, n_vars=5, change_at=15, seed=2,
    )
    df = pl.read_parquet(path)
    assert df.shape == (30, 5)
    assert df.columns == ["V1", "V2", "V3", "V4", "V5"]
