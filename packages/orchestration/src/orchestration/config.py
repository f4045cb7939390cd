"""
Run configuration for change point detection.

One dataclass holds every parameter of a run. It can be built in code,
from a plain dict, or from a YAML file:

    mindist: 35
    restarts: 50
    n_rep: 100
    alpha: 0.05        # or "p-value" for adjusted p-values
    rank: optimal      # or a positive integer
    algorithm: brunet
    test_kind: t-test
    seed: 2021

The worker count defaults to the FABISEARCH_WORKERS environment
variable (1 when unset).
"""

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from factorize import ALGORITHMS, InvalidInputError
from inference import (
    CORRECTIONS,
    ENCLOSING_MODES,
    TESTS,
    Alpha,
    RawPValue,
    Threshold,
    shortest_partition,
)


@dataclass(frozen=True)
class FixedRank:
    """Use this factorization rank."""
    value: int


@dataclass(frozen=True)
class AutoRank:
    """Select the rank from the data."""


RankChoice = Union[FixedRank, AutoRank]


def _default_workers() -> int:
    raw = os.environ.get("FABISEARCH_WORKERS", "0")
    try:
        return int(raw) or 1
    except ValueError:
        raise InvalidInputError(f"FABISEARCH_WORKERS must be an integer, got {raw!r}")


@dataclass(frozen=True)
class DetectionConfig:
    mindist: int = 35
    restarts: int = 50
    n_rep: int = 100
    alpha: Alpha = field(default_factory=Threshold)
    rank: RankChoice = field(default_factory=AutoRank)
    algorithm: str = 'brunet'
    test_kind: str = 't-test'
    correction: str = 'bh'
    seed: Optional[int] = None
    n_jobs: int = field(default_factory=_default_workers)
    enclosing: str = 'adjacent'

    def validate(self) -> 'DetectionConfig':
        """Raise InvalidInputError on the first bad parameter; return self."""
        if self.mindist < 1:
            raise InvalidInputError(f"mindist must be positive, got {self.mindist}")
        if self.restarts < 1:
            raise InvalidInputError(f"restarts must be positive, got {self.restarts}")
        if self.n_rep < 2:
            raise InvalidInputError(f"n_rep must be at least 2, got {self.n_rep}")
        if isinstance(self.rank, FixedRank) and self.rank.value < 1:
            raise InvalidInputError(f"rank must be positive, got {self.rank.value}")
        if not isinstance(self.rank, (FixedRank, AutoRank)):
            raise InvalidInputError(f"rank must be FixedRank or AutoRank, got {self.rank!r}")
        if not isinstance(self.alpha, (Threshold, RawPValue)):
            raise InvalidInputError(f"alpha must be Threshold or RawPValue, got {self.alpha!r}")
        if self.algorithm not in ALGORITHMS:
            raise InvalidInputError(
                f"Unknown algorithm '{self.algorithm}'. Available: {sorted(ALGORITHMS)}"
            )
        if self.test_kind not in TESTS:
            raise InvalidInputError(
                f"Unknown test '{self.test_kind}'. Available: {sorted(TESTS)}"
            )
        if self.correction not in CORRECTIONS:
            raise InvalidInputError(
                f"Unknown correction '{self.correction}'. Available: {list(CORRECTIONS)}"
            )
        if self.enclosing not in ENCLOSING_MODES:
            raise InvalidInputError(
                f"Unknown enclosing mode '{self.enclosing}'. Available: {list(ENCLOSING_MODES)}"
            )
        if isinstance(self.rank, FixedRank):
            check_partition_rank(self.rank.value, self.mindist, self.enclosing)
        if self.n_jobs != -1 and self.n_jobs < 1:
            raise InvalidInputError(f"n_jobs must be positive or -1, got {self.n_jobs}")
        return self

    def with_overrides(self, **overrides: Any) -> 'DetectionConfig':
        """Copy with keyword overrides, parsed like from_dict values."""
        return replace(self, **_parse(overrides))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DetectionConfig':
        """
        Build from plain values.

        rank accepts 'optimal' or an integer; alpha accepts 'p-value'
        or a level in (0, 1). Unknown keys are rejected.
        """
        return cls(**_parse(data))


def check_partition_rank(rank: int, mindist: int, enclosing: str) -> None:
    """
    Raise InvalidInputError if a partition can be shorter than the rank.

    Midpoint blocks put as few as mindist // 2 rows on one side of a
    split, adjacent blocks as few as mindist.
    """
    shortest = shortest_partition(mindist, enclosing)
    if rank > shortest:
        raise InvalidInputError(
            f"rank {rank} exceeds the shortest {enclosing} partition "
            f"({shortest} rows for mindist={mindist})"
        )


def _parse(data: Dict[str, Any]) -> Dict[str, Any]:
    known = {f.name for f in fields(DetectionConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise InvalidInputError(f"Unknown config keys: {unknown}")

    parsed = dict(data)
    if 'rank' in parsed:
        parsed['rank'] = parse_rank(parsed['rank'])
    if 'alpha' in parsed:
        parsed['alpha'] = parse_alpha(parsed['alpha'])
    return parsed


def parse_rank(value: Any) -> RankChoice:
    """'optimal' / None -> AutoRank; integer -> FixedRank."""
    if isinstance(value, (FixedRank, AutoRank)):
        return value
    if value is None or value == 'optimal':
        return AutoRank()
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"rank must be 'optimal' or an integer, got {value!r}")
    if isinstance(value, bool) or not number.is_integer():
        raise InvalidInputError(f"rank must be 'optimal' or an integer, got {value!r}")
    return FixedRank(int(number))


def parse_alpha(value: Any) -> Alpha:
    """'p-value' / None -> RawPValue; number -> Threshold."""
    if isinstance(value, (Threshold, RawPValue)):
        return value
    if value is None or value == 'p-value':
        return RawPValue()
    try:
        level = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"alpha must be 'p-value' or a number, got {value!r}")
    return Threshold(level)


def load_config(path: Union[str, Path]) -> DetectionConfig:
    """Read a DetectionConfig from a YAML mapping."""
    path = Path(path)
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise InvalidInputError(f"{path}: expected a mapping, got {type(data).__name__}")
    return DetectionConfig.from_dict(data).validate()
