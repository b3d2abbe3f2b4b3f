"""
Grid search over SVR hyperparameters using k-fold cross-validated MSE.
"""

import pandas as pd
from itertools import product
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

from ..core.config import (
    SEED, TUNING_FOLDS, N_FOLDS, SVR_KERNELS, SVR_COST_GRID, SVR_GAMMA_GRID,
    SVR_DEFAULT_COST, SVR_DEFAULT_GAMMA
)
from .evaluation import CrossValidator
from .metrics import regression_metrics, failed_metrics
from .ml_models import MLModels, ModelSpec, FittedModel, ModelFitError
from .sampler import ResamplingEngine


class SVRConfig(NamedTuple):
    kernel: str
    cost: float
    gamma: float

    def as_params(self) -> Dict[str, float]:
        return {"kernel": self.kernel, "cost": self.cost, "gamma": self.gamma}


class HyperparameterSearch:
    """Two-stage SVR search: kernel family first, then cost x gamma for that kernel."""

    def __init__(self, ml_models: Optional[MLModels] = None, k: int = TUNING_FOLDS, seed: int = SEED,
                 kernels: Sequence[str] = tuple(SVR_KERNELS), costs: Sequence[float] = tuple(SVR_COST_GRID),
                 gammas: Sequence[float] = tuple(SVR_GAMMA_GRID), verbose: bool = True):
        self.ml_models = ml_models or MLModels()
        self.k = k
        self.seed = seed
        self.kernels = list(kernels)
        self.costs = list(costs)
        self.gammas = list(gammas)
        self.verbose = verbose
        self.grid = None
        self.best = None

    def _cv_error(self, data: pd.DataFrame, base: ModelSpec, config: SVRConfig) -> Tuple[float, float]:
        spec = ModelSpec(base.name, "svr", base.features, base.response, config.as_params())
        cv = CrossValidator(self.ml_models, k=self.k, seed=self.seed, verbose=False)
        mse = cv.evaluate(data, [spec])["MSE"]
        return float(mse.mean()), float(mse.std(ddof=1)) if mse.count() > 1 else float("nan")

    def evaluate_grid(self, data: pd.DataFrame, base: ModelSpec, configs: List[SVRConfig],
                      stage: str) -> pd.DataFrame:
        """Cross-validated MSE for every configuration; all use the same folds"""
        rows = []
        for config in configs:
            mean_mse, sd_mse = self._cv_error(data, base, config)
            rows.append({"stage": stage, **config._asdict(), "mean_mse": mean_mse, "sd_mse": sd_mse})
        grid = pd.DataFrame(rows)
        if grid["mean_mse"].isna().all():
            raise ModelFitError(f"Every SVR configuration failed in the '{stage}' stage of the search")
        return grid

    def search(self, data: pd.DataFrame, base: ModelSpec) -> Tuple[SVRConfig, pd.DataFrame]:
        """Select the kernel at default cost/gamma, then refine cost and gamma"""
        stage1 = self.evaluate_grid(
            data, base, [SVRConfig(k, SVR_DEFAULT_COST, SVR_DEFAULT_GAMMA) for k in self.kernels], "kernel")
        kernel = stage1.loc[stage1["mean_mse"].idxmin(), "kernel"]
        if self.verbose:
            print(f"[tuning] Selected kernel '{kernel}' (CV MSE {stage1['mean_mse'].min():.4f})")

        gammas = self.gammas if kernel != "linear" else [SVR_DEFAULT_GAMMA]
        stage2 = self.evaluate_grid(
            data, base, [SVRConfig(kernel, c, g) for c, g in product(self.costs, gammas)], "cost_gamma")
        row = stage2.loc[stage2["mean_mse"].idxmin()]
        self.best = SVRConfig(row["kernel"], float(row["cost"]), float(row["gamma"]))
        self.grid = pd.concat([stage1, stage2], ignore_index=True)

        if self.verbose:
            print(f"[tuning] Best configuration: {self.best} (CV MSE {row['mean_mse']:.4f})")
        return self.best, self.grid

    def heatmap_table(self, grid: Optional[pd.DataFrame] = None) -> pd.DataFrame:
        """cost x gamma matrix of CV MSE from the second stage"""
        grid = self.grid if grid is None else grid
        if grid is None:
            raise ValueError("Run search() before requesting the heat-map table")
        stage2 = grid[grid["stage"] == "cost_gamma"]
        return stage2.pivot(index="cost", columns="gamma", values="mean_mse")

    def nested_cv(self, data: pd.DataFrame, base: ModelSpec, k_outer: int = N_FOLDS) -> pd.DataFrame:
        """Outer k-fold around the full two-stage search.

        The search only sees each outer training set; the selected
        configuration is refit there and scored on the outer held-out fold.
        """
        records = []
        for fold in ResamplingEngine(self.seed).kfold(len(data), k_outer):
            train = data.iloc[fold.train]
            test = data.iloc[fold.test]
            inner = HyperparameterSearch(self.ml_models, k=min(self.k, len(train)), seed=self.seed,
                                         kernels=self.kernels, costs=self.costs, gammas=self.gammas,
                                         verbose=self.verbose)
            record = {"replicate": fold.replicate, "method": base.name}
            try:
                best, _ = inner.search(train, base)
                record.update(best._asdict())
                spec = ModelSpec(base.name, "svr", base.features, base.response, best.as_params())
                fitted = self.ml_models.fit(spec, train)
                record.update(fit_ok=True, **regression_metrics(self.ml_models.predict(fitted, test),
                                                               test[base.response].values))
            except ModelFitError as e:
                print(f"[tuning] Warning: outer fold {fold.replicate} failed: {e}")
                record.update(fit_ok=False, **failed_metrics())
            records.append(record)
            if self.verbose:
                print(f"[tuning] outer fold {fold.replicate}/{k_outer}: {record.get('kernel')}")
        return pd.DataFrame(records)


class TunedSVRModels(MLModels):
    """MLModels that re-runs the SVR search on the training rows of every fit.

    An SVR spec with ``params["tune"]`` set is tuned on the rows handed to
    ``fit`` only, so cross-validation folds and bootstrap resamples score a
    configuration that never saw their held-out rows. Every other spec is
    fitted unchanged. ``history`` records the rows and configuration of each
    tuned fit.
    """

    def __init__(self, k: int = TUNING_FOLDS, seed: int = SEED, kernels: Sequence[str] = tuple(SVR_KERNELS),
                 costs: Sequence[float] = tuple(SVR_COST_GRID), gammas: Sequence[float] = tuple(SVR_GAMMA_GRID)):
        self.k = k
        self.seed = seed
        self.kernels = list(kernels)
        self.costs = list(costs)
        self.gammas = list(gammas)
        self.history: List[Dict] = []

    def fit(self, spec: ModelSpec, rows: pd.DataFrame) -> FittedModel:
        if spec.family != "svr" or not spec.params.get("tune") or len(rows) < 2:
            return super().fit(spec, rows)

        search = HyperparameterSearch(MLModels(), k=min(self.k, len(rows)), seed=self.seed,
                                      kernels=self.kernels, costs=self.costs, gammas=self.gammas, verbose=False)
        best, _ = search.search(rows, ModelSpec(spec.name, "svr", spec.features, spec.response))
        self.history.append({"method": spec.name, "rows": list(rows.index), **best._asdict()})
        return super().fit(ModelSpec(spec.name, "svr", spec.features, spec.response, best.as_params()), rows)
