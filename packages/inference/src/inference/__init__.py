"""
Inference package for fabisearch.

Decides which candidate splits are real:
- refit_splits: refit distribution of each split (true segmentation)
- permute_and_refit: permutation null of each split (rows shuffled)
- significance_test: one-sided test per split, Benjamini-Hochberg adjusted

Random work is keyed per (phase, split, repetition) so results are
reproducible for a seed on any number of workers.
"""

from inference.blocks import (
    ENCLOSING_MODES,
    EnclosingBlock,
    enclosing_blocks,
    shortest_partition,
)
from inference.permutation import permute_and_refit, resolve_workers
from inference.refit import refit_splits, split_residual
from inference.significance import (
    CORRECTIONS,
    TESTS,
    Alpha,
    ChangePoint,
    RawPValue,
    Threshold,
    adjust_pvalues,
    significance_test,
)
from inference.streams import resolve_seed, stream

__all__ = [
    'ENCLOSING_MODES',
    'EnclosingBlock',
    'enclosing_blocks',
    'shortest_partition',
    'permute_and_refit',
    'resolve_workers',
    'refit_splits',
    'split_residual',
    'CORRECTIONS',
    'TESTS',
    'Alpha',
    'ChangePoint',
    'RawPValue',
    'Threshold',
    'adjust_pvalues',
    'significance_test',
    'resolve_seed',
    'stream',
]
