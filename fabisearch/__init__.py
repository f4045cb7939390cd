"""
fabisearch - change points in the network structure of multivariate series

Factorized binary search: candidate change points are found by bisecting
the series on NMF fit quality, then kept or rejected by comparing refit
and permutation residual distributions.

    from fabisearch import detect_change_points, estimate_network
    result = detect_change_points(series, mindist=35, seed=1)
    networks = estimate_network(series, lam=0.5, changepoints=result.times)
"""

__version__ = "0.1.0"

from factorize import select_rank
from network import estimate_network
from orchestration import DetectionConfig, DetectionResult, detect_change_points, load_config

__all__ = [
    '__version__',
    'DetectionConfig',
    'DetectionResult',
    'detect_change_points',
    'estimate_network',
    'load_config',
    'select_rank',
]
