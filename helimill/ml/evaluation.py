"""
Resampling-based model evaluation: k-fold cross-validation and bootstrap
optimism correction for a list of competing methods.
"""

import numpy as np
import pandas as pd
from typing import Dict, List, Optional, Tuple

from ..core.config import SEED, N_FOLDS, N_BOOTSTRAP
from .metrics import METRIC_NAMES, regression_metrics, failed_metrics
from .ml_models import MLModels, ModelSpec, ModelFitError
from .sampler import ResamplingEngine

FIT_ERRORS = (ModelFitError, np.linalg.LinAlgError)


class CrossValidator:
    """k-fold cross-validation of competing methods on shared folds."""

    def __init__(self, ml_models: Optional[MLModels] = None, k: int = N_FOLDS, seed: int = SEED,
                 verbose: bool = True):
        self.ml_models = ml_models or MLModels()
        self.k = k
        self.seed = seed
        self.verbose = verbose
        self.predictions = None

    def evaluate(self, data: pd.DataFrame, specs: List[ModelSpec]) -> pd.DataFrame:
        """Fit every method on each training fold and score it on the held-out fold.

        Returns one row per (fold, method). A failed fit yields a row with
        ``fit_ok=False`` and NaN metrics; the run continues with the next fit.
        """
        folds = ResamplingEngine(self.seed).kfold(len(data), self.k)
        records = []
        predictions = []

        for fold in folds:
            train = data.iloc[fold.train]
            test = data.iloc[fold.test]

            for spec in specs:
                try:
                    fitted = self.ml_models.fit(spec, train)
                    yhat = self.ml_models.predict(fitted, test)
                except FIT_ERRORS as e:
                    print(f"[cv] Warning: fold {fold.replicate} / {spec.name} failed: {e}")
                    records.append({"replicate": fold.replicate, "method": spec.name, "fit_ok": False,
                                    **failed_metrics()})
                    continue

                y = test[spec.response].values
                records.append({"replicate": fold.replicate, "method": spec.name, "fit_ok": True,
                                **regression_metrics(yhat, y)})
                for idx, obs, pred in zip(fold.test, y, yhat):
                    predictions.append({"replicate": fold.replicate, "method": spec.name,
                                        "row": int(idx), "observed": float(obs), "predicted": float(pred)})

            if self.verbose:
                print(f"[cv] fold {fold.replicate}/{len(folds)} done ({len(fold.test)} held out)")

        self.predictions = pd.DataFrame(predictions, columns=["replicate", "method", "row", "observed", "predicted"])
        return pd.DataFrame(records, columns=["replicate", "method", "fit_ok"] + METRIC_NAMES)

    @staticmethod
    def summarize(results: pd.DataFrame) -> pd.DataFrame:
        """Mean and median of every metric per method, in method order"""
        grouped = results.groupby("method", sort=False)
        summary = grouped[METRIC_NAMES].agg(["mean", "median"])
        summary.columns = [f"{metric}_{stat}" for metric, stat in summary.columns]
        summary["n_ok"] = grouped["fit_ok"].sum().astype(int)
        summary["n_failed"] = grouped["fit_ok"].apply(lambda s: int((~s.astype(bool)).sum()))
        return summary.reset_index()

    def pooled_metrics(self) -> pd.DataFrame:
        """Metrics over all held-out predictions pooled across folds (PRESS-style)"""
        if self.predictions is None:
            raise ValueError("Run evaluate() before pooling predictions")
        rows = []
        for method, grp in self.predictions.groupby("method", sort=False):
            rows.append({"method": method, **regression_metrics(grp["predicted"], grp["observed"])})
        return pd.DataFrame(rows, columns=["method"] + METRIC_NAMES)


class BootstrapEvaluator:
    """Bootstrap estimate of optimism and optimism-corrected performance.

    For each replicate every method is refit on the resample, scored on the
    resample (apparent) and on the full original sample (test), and
    optimism = apparent - test per metric. The corrected estimate is the
    whole-sample apparent performance minus the mean (or median) optimism.
    """

    def __init__(self, ml_models: Optional[MLModels] = None, n_replicates: int = N_BOOTSTRAP,
                 seed: int = SEED, verbose: bool = True):
        self.ml_models = ml_models or MLModels()
        self.n_replicates = n_replicates
        self.seed = seed
        self.verbose = verbose

    def _apparent(self, spec: ModelSpec, rows: pd.DataFrame) -> Dict[str, float]:
        fitted = self.ml_models.fit(spec, rows)
        return regression_metrics(self.ml_models.predict(fitted, rows), rows[spec.response].values)

    def whole_sample(self, data: pd.DataFrame, specs: List[ModelSpec]) -> pd.DataFrame:
        """Apparent performance of each method fitted on the full sample"""
        rows = [{"method": spec.name, **self._apparent(spec, data)} for spec in specs]
        return pd.DataFrame(rows, columns=["method"] + METRIC_NAMES)

    def evaluate(self, data: pd.DataFrame, specs: List[ModelSpec]) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """Run all replicates; returns (per-replicate table, corrected summary)"""
        reference = self.whole_sample(data, specs)
        resamples = ResamplingEngine(self.seed).bootstrap(len(data), self.n_replicates)
        records = []

        for rs in resamples:
            train = data.iloc[rs.apparent]
            for spec in specs:
                record = {"replicate": rs.replicate, "method": spec.name,
                          "n_distinct": len(np.unique(rs.train))}
                try:
                    fitted = self.ml_models.fit(spec, train)
                    apparent = regression_metrics(self.ml_models.predict(fitted, train), train[spec.response].values)
                    test = regression_metrics(self.ml_models.predict(fitted, data), data[spec.response].values)
                    record["fit_ok"] = True
                except FIT_ERRORS as e:
                    print(f"[bootstrap] Warning: replicate {rs.replicate} / {spec.name} failed: {e}")
                    apparent, test = failed_metrics(), failed_metrics()
                    record["fit_ok"] = False

                for metric in METRIC_NAMES:
                    record[f"{metric}_apparent"] = apparent[metric]
                    record[f"{metric}_test"] = test[metric]
                    record[f"{metric}_optimism"] = apparent[metric] - test[metric]
                records.append(record)

            if self.verbose and (rs.replicate % 50 == 0 or rs.replicate == len(resamples)):
                print(f"[bootstrap] replicate {rs.replicate}/{len(resamples)} done")

        results = pd.DataFrame(records)
        return results, self.summarize(results, reference)

    @staticmethod
    def summarize(results: pd.DataFrame, reference: pd.DataFrame) -> pd.DataFrame:
        """Whole-sample apparent minus mean/median optimism, per method and metric"""
        rows = []
        for method in reference["method"]:
            grp = results[(results["method"] == method) & results["fit_ok"].astype(bool)]
            ref = reference.loc[reference["method"] == method].iloc[0]
            for metric in METRIC_NAMES:
                optimism = grp[f"{metric}_optimism"]
                mean_opt = float(optimism.mean())
                median_opt = float(optimism.median())
                rows.append({
                    "method": method,
                    "metric": metric,
                    "apparent": float(ref[metric]),
                    "optimism_mean": mean_opt,
                    "optimism_median": median_opt,
                    "corrected_mean": float(ref[metric]) - mean_opt,
                    "corrected_median": float(ref[metric]) - median_opt,
                    "n_ok": int(len(grp)),
                })
        return pd.DataFrame(rows)
