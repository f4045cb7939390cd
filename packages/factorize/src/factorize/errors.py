"""
Error types shared by every fabisearch package.

Input problems subclass ValueError, factorization problems subclass
RuntimeError, so callers that only know the builtins still catch them.
"""


class FabisearchError(Exception):
    """Base class for all detection errors."""


class InvalidInputError(FabisearchError, ValueError):
    """Series or run parameters violate a precondition."""


class OracleFailureError(FabisearchError, RuntimeError):
    """The factorization oracle could not produce a residual."""


class RankSearchExhaustedError(OracleFailureError):
    """Rank selection reached its upper bound without stopping."""


class DegenerateSampleError(FabisearchError, ValueError):
    """A resampled distribution is too small or flat to test."""
