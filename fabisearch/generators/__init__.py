"""Synthetic datasets for trying out detection."""

from fabisearch.generators.regimes import generate_two_regimes, simulate_two_regimes

__all__ = ['generate_two_regimes', 'simulate_two_regimes']
