"""
Factorization package for fabisearch.

Wraps non-negative matrix factorization as a scoring oracle:
a data block and a rank in, a reconstruction residual out.
Also holds rank selection and the shared error types.
"""

from factorize.errors import (
    FabisearchError,
    InvalidInputError,
    OracleFailureError,
    RankSearchExhaustedError,
    DegenerateSampleError,
)
from factorize.oracle import (
    ALGORITHMS,
    DEFAULT_ALGORITHM,
    FactorizationOracle,
    NMFOracle,
    check_block,
    divergence,
)
from factorize.rank import select_rank

__all__ = [
    'FabisearchError',
    'InvalidInputError',
    'OracleFailureError',
    'RankSearchExhaustedError',
    'DegenerateSampleError',
    'ALGORITHMS',
    'DEFAULT_ALGORITHM',
    'FactorizationOracle',
    'NMFOracle',
    'check_block',
    'divergence',
    'select_rank',
]
