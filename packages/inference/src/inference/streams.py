"""
Deterministic random streams.

Every unit of random work gets its own generator, derived from the run
seed and an integer key:

    (RANK,)                         rank selection
    (SEGMENT,)                      binary search
    (REFIT, candidate, repetition)  one refit sample
    (PERMUTE, candidate, repetition) one permutation sample
    (NETWORK, segment)              one consensus matrix

Streams depend only on (seed, key), never on which worker draws them
or in what order, so parallel runs reproduce serial runs exactly.
"""

from typing import Optional

import numpy as np

RANK = 0
SEGMENT = 1
REFIT = 2
PERMUTE = 3
NETWORK = 4


def resolve_seed(seed: Optional[int]) -> int:
    """Fix a run seed. None draws fresh OS entropy once."""
    if seed is None:
        return int(np.random.SeedSequence().entropy)
    return int(seed)


def stream(seed: int, *key: int) -> np.random.Generator:
    """Independent generator for one keyed unit of work."""
    return np.random.default_rng(np.random.SeedSequence(entropy=seed, spawn_key=key))
