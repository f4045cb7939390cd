"""
Breaks package for fabisearch.

Finds candidate change points in the factorization structure of a
multivariate series by recursive binary search:
- find_splits: bisect windows until no split fits mindist from both edges
- improving_splits: the time-ordered candidates whose split improved the fit

Candidates feed into the refit/permutation inference. Only splits
with delta < 0 are tested.
"""

from breaks.search import CandidateSplit, find_splits, improving_splits

__all__ = ['CandidateSplit', 'find_splits', 'improving_splits']
