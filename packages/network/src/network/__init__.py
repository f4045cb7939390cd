"""
Network package for fabisearch.

Estimates the variable network of each stationary segment from the
consensus matrix of repeated factorizations:
- estimate_network: one adjacency matrix per segment (and per lambda)
- cluster_adjacency / threshold_adjacency: consensus -> adjacency
"""

from network.estimate import (
    cluster_adjacency,
    estimate_network,
    segment_bounds,
    threshold_adjacency,
)

__all__ = [
    'cluster_adjacency',
    'estimate_network',
    'segment_bounds',
    'threshold_adjacency',
]
