"""
Rank-based statistical comparison of per-replicate metric values.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass, asdict
from itertools import combinations
from scipy.stats import kruskal, mannwhitneyu, wilcoxon
from statsmodels.stats.multitest import multipletests
from typing import Any, Dict, Optional, Tuple

from ..core.config import SIGNIFICANCE_LEVEL, MIN_SAMPLES_PER_GROUP


@dataclass
class ComparisonResult:
    test: str
    groups: str
    statistic: float
    p_value: float
    reject: Optional[bool]
    conclusive: bool
    note: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _inconclusive(test: str, groups: str, note: str) -> ComparisonResult:
    print(f"[stats] Warning: {test} on {groups} is inconclusive: {note}")
    return ComparisonResult(test, groups, float("nan"), float("nan"), None, False, note)


def metric_matrix(results: pd.DataFrame, metric: str = "MSE") -> pd.DataFrame:
    """Replicate x method table of one metric; replicates with a failed fit are dropped"""
    if metric not in results.columns:
        raise ValueError(f"Unknown metric column: {metric}")
    order = list(dict.fromkeys(results["method"]))
    wide = results.pivot(index="replicate", columns="method", values=metric)[order]
    return wide.dropna(axis=0, how="any")


def compare_two(a: np.ndarray, b: np.ndarray, groups: str = "A vs B", alpha: float = SIGNIFICANCE_LEVEL,
                paired: bool = False) -> ComparisonResult:
    """Wilcoxon rank-sum (Mann-Whitney) or, when paired, signed-rank test"""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    test = "wilcoxon_signed_rank" if paired else "mann_whitney_u"

    if min(len(a), len(b)) < MIN_SAMPLES_PER_GROUP:
        return _inconclusive(test, groups, f"fewer than {MIN_SAMPLES_PER_GROUP} values per group")

    try:
        if paired:
            if np.allclose(a - b, 0.0):
                return _inconclusive(test, groups, "all paired differences are zero")
            stat, p = wilcoxon(a, b)
        else:
            stat, p = mannwhitneyu(a, b, alternative="two-sided")
    except ValueError as e:
        return _inconclusive(test, groups, str(e))

    return ComparisonResult(test, groups, float(stat), float(p), bool(p < alpha), True)


def compare_many(wide: pd.DataFrame, alpha: float = SIGNIFICANCE_LEVEL,
                 paired: bool = False) -> Tuple[ComparisonResult, pd.DataFrame]:
    """Kruskal-Wallis over all methods, then pairwise tests with Benjamini-Hochberg correction"""
    methods = list(wide.columns)
    samples = [wide[m].values for m in methods]
    label = ", ".join(methods)

    if min(len(s) for s in samples) < MIN_SAMPLES_PER_GROUP:
        omnibus = _inconclusive("kruskal_wallis", label, f"fewer than {MIN_SAMPLES_PER_GROUP} values per group")
    elif np.ptp(np.concatenate(samples)) == 0:
        omnibus = _inconclusive("kruskal_wallis", label, "all values are identical")
    else:
        stat, p = kruskal(*samples)
        omnibus = ComparisonResult("kruskal_wallis", label, float(stat), float(p), bool(p < alpha), True)

    pairs = [compare_two(wide[a].values, wide[b].values, f"{a} vs {b}", alpha, paired)
             for a, b in combinations(methods, 2)]
    table = pd.DataFrame([p.as_dict() for p in pairs])
    table["p_adjusted"] = np.nan
    table["reject_adjusted"] = None

    ok = table["conclusive"].astype(bool).values
    if ok.any():
        reject, p_adj, _, _ = multipletests(table.loc[ok, "p_value"].values, alpha=alpha, method="fdr_bh")
        table.loc[ok, "p_adjusted"] = p_adj
        table.loc[ok, "reject_adjusted"] = list(reject.astype(bool))
    return omnibus, table


def compare_methods(results: pd.DataFrame, metric: str = "MSE", alpha: float = SIGNIFICANCE_LEVEL,
                    paired: bool = False) -> Dict[str, Any]:
    """Pick the two-sample or k-sample procedure from the number of methods in the table"""
    wide = metric_matrix(results, metric)
    methods = list(wide.columns)
    if len(methods) < 2:
        raise ValueError("Statistical comparison needs at least two methods")

    if len(methods) == 2:
        result = compare_two(wide[methods[0]].values, wide[methods[1]].values,
                             f"{methods[0]} vs {methods[1]}", alpha, paired)
        print(f"[stats] {result.test} on {metric}: p={result.p_value:.4g}, reject={result.reject}")
        return {"omnibus": None, "pairwise": pd.DataFrame([result.as_dict()])}

    omnibus, pairwise = compare_many(wide, alpha, paired)
    print(f"[stats] {omnibus.test} on {metric}: p={omnibus.p_value:.4g}, reject={omnibus.reject}")
    return {"omnibus": omnibus, "pairwise": pairwise}
