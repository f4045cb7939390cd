"""
Significance of candidate splits.

Each admitted split has a refit distribution (true segmentation) and a
permutation null. A genuine change point refits to a SMALLER residual
sum than its shuffled block, so every test is one-sided:

    t-test   : Welch t-test, alternative 'less'
    wilcoxon : Wilcoxon rank-sum (Mann-Whitney U), alternative 'less'
    ks       : two-sample Kolmogorov-Smirnov, alternative 'greater'
               (refit CDF lies above the null CDF)

p-values are Benjamini-Hochberg adjusted over the tested splits only.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence, Tuple, Union

import numpy as np
from scipy import stats

from breaks import CandidateSplit, improving_splits
from factorize import DegenerateSampleError, InvalidInputError


@dataclass(frozen=True)
class Threshold:
    """Report reject / keep at significance level `level`."""
    level: float = 0.05

    def __post_init__(self):
        if not 0.0 < self.level < 1.0:
            raise InvalidInputError(f"alpha must lie in (0, 1), got {self.level}")


@dataclass(frozen=True)
class RawPValue:
    """Report the adjusted p-value itself."""


Alpha = Union[Threshold, RawPValue]


@dataclass(frozen=True)
class ChangePoint:
    """Test outcome for one split."""
    time: int
    result: Union[bool, float]
    p_value: float
    p_adjusted: float
    statistic: float


def _t_test(refit: np.ndarray, null: np.ndarray) -> Tuple[float, float]:
    res = stats.ttest_ind(refit, null, equal_var=False, alternative='less')
    return float(res.statistic), float(res.pvalue)


def _rank_sum(refit: np.ndarray, null: np.ndarray) -> Tuple[float, float]:
    res = stats.mannwhitneyu(refit, null, alternative='less')
    return float(res.statistic), float(res.pvalue)


def _ks(refit: np.ndarray, null: np.ndarray) -> Tuple[float, float]:
    res = stats.ks_2samp(refit, null, alternative='greater')
    return float(res.statistic), float(res.pvalue)


TESTS: Dict[str, Callable[[np.ndarray, np.ndarray], Tuple[float, float]]] = {
    't-test': _t_test,
    'wilcoxon': _rank_sum,
    'ks': _ks,
}

CORRECTIONS = ('bh', 'none')


def adjust_pvalues(p_values: Sequence[float], correction: str = 'bh') -> np.ndarray:
    """Benjamini-Hochberg adjusted p-values (or unchanged for 'none')."""
    if correction not in CORRECTIONS:
        raise InvalidInputError(
            f"Unknown correction '{correction}'. Available: {list(CORRECTIONS)}"
        )
    p = np.asarray(p_values, dtype=np.float64)
    if correction == 'none' or p.size == 0:
        return p.copy()
    return stats.false_discovery_control(p, method='bh')


def significance_test(
    candidates: Sequence[CandidateSplit],
    refit: Dict[int, np.ndarray],
    null: Dict[int, np.ndarray],
    alpha: Alpha = Threshold(),
    test_kind: str = 't-test',
    correction: str = 'bh',
) -> List[ChangePoint]:
    """
    Compare refit and null distributions for every admitted split.

    Parameters
    ----------
    candidates : sequence of CandidateSplit
        Only delta < 0 splits are tested.
    refit, null : dict
        split_time -> samples, from refit_splits / permute_and_refit.
    alpha : Threshold or RawPValue
        Threshold -> boolean result (adjusted p < level);
        RawPValue -> adjusted p-value as result.
    test_kind : str
        One of TESTS.
    correction : str
        'bh' or 'none'.

    Returns
    -------
    list of ChangePoint
        Ascending by time.
    """
    if test_kind not in TESTS:
        raise InvalidInputError(
            f"Unknown test '{test_kind}'. Available: {sorted(TESTS)}"
        )
    test = TESTS[test_kind]

    admitted = improving_splits(candidates)
    statistics, raw = [], []
    for c in admitted:
        refit_sample = np.asarray(refit[c.split_time], dtype=np.float64)
        null_sample = np.asarray(null[c.split_time], dtype=np.float64)
        if refit_sample.size < 2 or null_sample.size < 2:
            raise DegenerateSampleError(
                f"split {c.split_time}: need at least 2 samples per distribution, "
                f"got {refit_sample.size} refit and {null_sample.size} null"
            )
        statistic, p = test(refit_sample, null_sample)
        if not np.isfinite(p):
            raise DegenerateSampleError(
                f"split {c.split_time}: {test_kind} p-value is undefined "
                f"(both distributions constant?)"
            )
        statistics.append(statistic)
        raw.append(p)

    adjusted = adjust_pvalues(raw, correction)

    out = []
    for c, statistic, p, p_adj in zip(admitted, statistics, raw, adjusted):
        if isinstance(alpha, Threshold):
            result: Union[bool, float] = bool(p_adj < alpha.level)
        else:
            result = float(p_adj)
        out.append(ChangePoint(c.split_time, result, p, float(p_adj), statistic))
    return out
