"""
Tests for cross-validation, bootstrap optimism correction and rank tests.
"""

import numpy as np
import pandas as pd
import pytest

from helimill.ml.comparison import compare_methods, compare_two, compare_many, metric_matrix
from helimill.ml.evaluation import CrossValidator, BootstrapEvaluator
from helimill.ml.metrics import METRIC_NAMES
from helimill.ml.ml_models import MLModels, ModelSpec, ModelFitError

FEATURES = ["x1", "x2", "x3"]


def _rsm_specs():
    return [ModelSpec("RSM complete", "rsm", FEATURES, "PC1"),
            ModelSpec("RSM reduced", "rsm_reduced", FEATURES, "PC1")]


def test_cv_result_table_shape(quadratic_data):
    cv = CrossValidator(k=8, seed=1, verbose=False)
    results = cv.evaluate(quadratic_data, _rsm_specs())
    assert len(results) == 8 * 2
    assert (results.groupby("replicate").size() == 2).all()
    assert list(results.columns) == ["replicate", "method", "fit_ok"] + METRIC_NAMES
    assert results["fit_ok"].all()


def test_cv_summary_and_pooled(quadratic_data):
    cv = CrossValidator(k=5, seed=2, verbose=False)
    results = cv.evaluate(quadratic_data, _rsm_specs())
    summary = cv.summarize(results)
    assert list(summary["method"]) == ["RSM complete", "RSM reduced"]
    for metric in METRIC_NAMES:
        assert f"{metric}_mean" in summary.columns
        assert f"{metric}_median" in summary.columns
    mean_rmse = results.groupby("method")["RMSE"].mean()
    assert summary.set_index("method")["RMSE_mean"]["RSM complete"] == pytest.approx(mean_rmse["RSM complete"])

    pooled = cv.pooled_metrics()
    assert len(pooled) == 2
    assert (pooled["R2"] > 0.99).all()
    assert len(cv.predictions) == 2 * 5 * (len(quadratic_data) // 5)


class _FailingModels(MLModels):
    """Fails every fit of the method named 'broken'"""

    def fit(self, spec, rows):
        if spec.name == "broken":
            raise ModelFitError("singular training fold")
        return super().fit(spec, rows)


def test_cv_flags_failed_fits(quadratic_data):
    specs = [ModelSpec("RSM complete", "rsm", FEATURES, "PC1"), ModelSpec("broken", "rsm", FEATURES, "PC1")]
    results = CrossValidator(_FailingModels(), k=4, seed=0, verbose=False).evaluate(quadratic_data, specs)
    broken = results[results["method"] == "broken"]
    assert len(broken) == 4
    assert not broken["fit_ok"].any()
    assert broken["RMSE"].isna().all()
    summary = CrossValidator.summarize(results).set_index("method")
    assert summary.loc["broken", "n_failed"] == 4
    assert summary.loc["RSM complete", "n_ok"] == 4


def test_bootstrap_table_and_sign_convention(quadratic_data):
    boot = BootstrapEvaluator(n_replicates=12, seed=4, verbose=False)
    results, summary = boot.evaluate(quadratic_data, _rsm_specs())

    assert len(results) == 12 * 2
    assert (results.groupby("replicate").size() == 2).all()
    for metric in METRIC_NAMES:
        diff = results[f"{metric}_apparent"] - results[f"{metric}_test"]
        assert np.allclose(results[f"{metric}_optimism"], diff, equal_nan=True)

    reference = boot.whole_sample(quadratic_data, _rsm_specs()).set_index("method")
    for _, row in summary.iterrows():
        assert row["apparent"] == pytest.approx(reference.loc[row["method"], row["metric"]])
        assert row["corrected_mean"] == pytest.approx(row["apparent"] - row["optimism_mean"])
        assert row["corrected_median"] == pytest.approx(row["apparent"] - row["optimism_median"])


def test_optimism_correction_raises_error_of_overfit_model():
    rng = np.random.default_rng(21)
    noise = pd.DataFrame(rng.uniform(-1, 1, size=(30, 3)), columns=FEATURES)
    noise["PC1"] = rng.normal(size=30)
    spec = ModelSpec("Bagging", "bagging", FEATURES, "PC1", {"n_estimators": 25})

    _, summary = BootstrapEvaluator(n_replicates=20, seed=3, verbose=False).evaluate(noise, [spec])
    for metric in ("RMSE", "MSE", "MAE"):
        row = summary[summary["metric"] == metric].iloc[0]
        assert row["optimism_mean"] < 0
        assert row["corrected_mean"] >= row["apparent"]
    r2 = summary[summary["metric"] == "R2"].iloc[0]
    assert r2["corrected_mean"] <= r2["apparent"]


def test_bootstrap_is_reproducible(quadratic_data):
    a, _ = BootstrapEvaluator(n_replicates=5, seed=8, verbose=False).evaluate(quadratic_data, _rsm_specs())
    b, _ = BootstrapEvaluator(n_replicates=5, seed=8, verbose=False).evaluate(quadratic_data, _rsm_specs())
    pd.testing.assert_frame_equal(a, b)


def _synthetic_results(means, n_rep=12, seed=0):
    rng = np.random.default_rng(seed)
    rows = []
    for rep in range(1, n_rep + 1):
        for name, mu in means.items():
            rows.append({"replicate": rep, "method": name, "fit_ok": True,
                         "MSE": mu + abs(rng.normal(scale=0.05))})
    return pd.DataFrame(rows)


def test_two_method_comparison_rejects_clear_difference():
    results = _synthetic_results({"A": 0.1, "B": 1.0})
    out = compare_methods(results, "MSE", alpha=0.05)
    row = out["pairwise"].iloc[0]
    assert out["omnibus"] is None
    assert row["conclusive"]
    assert row["reject"]


def test_paired_comparison():
    results = _synthetic_results({"A": 0.1, "B": 0.6})
    wide = metric_matrix(results)
    res = compare_two(wide["A"], wide["B"], paired=True)
    assert res.test == "wilcoxon_signed_rank"
    assert res.reject


def test_too_few_samples_is_inconclusive():
    res = compare_two([0.1, 0.2, 0.3], [0.5, 0.6, 0.7])
    assert not res.conclusive
    assert res.reject is None


def test_many_methods_uses_kruskal_and_bh():
    results = _synthetic_results({"A": 0.1, "B": 0.1, "C": 2.0}, n_rep=15)
    omnibus, pairwise = compare_many(metric_matrix(results))
    assert omnibus.test == "kruskal_wallis"
    assert omnibus.reject
    assert len(pairwise) == 3
    assert (pairwise["p_adjusted"] >= pairwise["p_value"] - 1e-12).all()
    assert bool(pairwise.set_index("groups").loc["A vs C", "reject_adjusted"])


def test_metric_matrix_drops_failed_replicates():
    results = _synthetic_results({"A": 0.1, "B": 0.2}, n_rep=6)
    results.loc[0, "MSE"] = np.nan
    assert len(metric_matrix(results)) == 5
