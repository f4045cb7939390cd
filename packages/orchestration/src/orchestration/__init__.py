"""
Orchestration package for fabisearch.

Runs change point detection end to end:
rank -> binary search -> refit / permutation -> significance.

This package imports and sequences all other packages and owns the
run configuration. No math lives here, only wiring.
"""

from orchestration.config import (
    AutoRank,
    DetectionConfig,
    FixedRank,
    check_partition_rank,
    load_config,
    parse_alpha,
    parse_rank,
)
from orchestration.pipeline import DetectionResult, detect_change_points

__all__ = [
    'AutoRank',
    'DetectionConfig',
    'FixedRank',
    'check_partition_rank',
    'load_config',
    'parse_alpha',
    'parse_rank',
    'DetectionResult',
    'detect_change_points',
]
