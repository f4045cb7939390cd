"""
Enclosing blocks for split inference.

Each admitted split is tested inside the block that surrounds it:

    adjacent : from the previous admitted split to the next one
               (0 and T at the ends)
    midpoint : from the midpoint with the previous split to the
               midpoint with the next one (0 and T at the ends)

Splits are at least mindist apart, so an adjacent partition has at least
mindist rows and a midpoint partition at least mindist // 2. The
factorization rank must not exceed that length.
"""

from dataclasses import dataclass
from typing import List, Sequence

from factorize import InvalidInputError

ENCLOSING_MODES = ('adjacent', 'midpoint')


@dataclass(frozen=True)
class EnclosingBlock:
    """Rows [lower, upper) with the split at split_time."""
    lower: int
    split_time: int
    upper: int

    @property
    def offset(self) -> int:
        """Split position relative to the block start."""
        return self.split_time - self.lower


def shortest_partition(mindist: int, enclosing: str = 'adjacent') -> int:
    """Fewest rows on either side of a split inside its enclosing block."""
    return mindist // 2 if enclosing == 'midpoint' else mindist


def enclosing_blocks(
    split_times: Sequence[int],
    full_length: int,
    enclosing: str = 'adjacent',
) -> List[EnclosingBlock]:
    """
    One block per split, in time order.

    Parameters
    ----------
    split_times : sequence of int
        Admitted split times (any order, no duplicates).
    full_length : int
        Number of rows in the series.
    enclosing : str
        'adjacent' or 'midpoint'.
    """
    if enclosing not in ENCLOSING_MODES:
        raise InvalidInputError(
            f"Unknown enclosing mode '{enclosing}'. Available: {list(ENCLOSING_MODES)}"
        )
    times = sorted(int(t) for t in split_times)
    if times and not (0 < times[0] and times[-1] < full_length):
        raise InvalidInputError(
            f"split times must lie strictly inside (0, {full_length}), got {times}"
        )

    if enclosing == 'adjacent':
        edges = [0] + times + [full_length]
        return [EnclosingBlock(edges[i], t, edges[i + 2]) for i, t in enumerate(times)]

    mids = [(a + b) // 2 for a, b in zip(times[:-1], times[1:])]
    edges = [0] + mids + [full_length]
    return [EnclosingBlock(edges[i], t, edges[i + 1]) for i, t in enumerate(times)]
