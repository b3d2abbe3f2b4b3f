"""
ML models module for the helical milling pipeline.
Wraps the competing regression families behind one fit/predict contract.
"""

import warnings
from statsmodels.tools.sm_exceptions import SingularMatrixWarning
# Suppress trivial warnings
warnings.filterwarnings("ignore", message=".*divide by zero encountered in log.*")
warnings.filterwarnings("ignore", category=RuntimeWarning, module="statsmodels")
warnings.filterwarnings("ignore", category=SingularMatrixWarning)

import numpy as np
import pandas as pd
import statsmodels.api as sm
from dataclasses import dataclass, field
from itertools import combinations
from sklearn.ensemble import BaggingRegressor, RandomForestRegressor
from sklearn.tree import DecisionTreeRegressor
from sklearn.svm import SVR
from sklearn.preprocessing import StandardScaler
from sklearn.pipeline import Pipeline
from typing import Any, Dict, List, Optional, Tuple

from ..core.config import (
    FEATURES, LATENT_RESPONSE, N_TREES, MODEL_SEED, RF_MAX_FEATURES, MIN_SAMPLES_LEAF,
    SVR_DEFAULT_COST, SVR_DEFAULT_GAMMA, SVR_EPSILON, SVR_POLY_DEGREE
)

FAMILIES = ("rsm", "rsm_reduced", "bagging", "random_forest", "svr")
SVR_KERNELS = {"linear": "linear", "radial": "rbf", "rbf": "rbf", "polynomial": "poly", "poly": "poly"}

Term = Tuple[str, ...]


class ModelFitError(RuntimeError):
    """Raised when a model cannot be fitted on the given training rows."""


@dataclass
class ModelSpec:
    """One competing method: a model family, its predictors and hyperparameters."""
    name: str
    family: str
    features: List[str] = field(default_factory=lambda: list(FEATURES))
    response: str = LATENT_RESPONSE
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class FittedModel:
    spec: ModelSpec
    estimator: Any
    terms: Optional[List[Term]] = None


def build_terms(features: List[str]) -> List[Term]:
    """Second-order response-surface terms: main effects, two-way interactions, squares"""
    terms = [(f,) for f in features]
    terms += [pair for pair in combinations(features, 2)]
    terms += [(f, f) for f in features]
    return terms


def term_name(term: Term) -> str:
    if len(term) == 1:
        return term[0]
    if term[0] == term[1]:
        return f"{term[0]}^2"
    return ":".join(term)


def design_matrix(rows: pd.DataFrame, terms: List[Term]) -> np.ndarray:
    """Intercept column followed by one column per term"""
    cols = [np.ones(len(rows))]
    for term in terms:
        col = np.ones(len(rows))
        for name in term:
            col = col * rows[name].astype(float).values
        cols.append(col)
    return np.column_stack(cols)


class MLModels:
    """Builds, fits and applies the competing regression models."""

    def make_bagging(self, params: Dict[str, Any]) -> Pipeline:
        """Bagged regression trees; every predictor is eligible at each split"""
        return Pipeline([
            ("scaler", StandardScaler()),
            ("regressor", BaggingRegressor(
                estimator=DecisionTreeRegressor(min_samples_leaf=params.get("min_samples_leaf", MIN_SAMPLES_LEAF)),
                n_estimators=params.get("n_estimators", N_TREES),
                random_state=params.get("random_state", MODEL_SEED)
            ))
        ])

    def make_rf(self, params: Dict[str, Any]) -> Pipeline:
        """Random forest with a restricted random predictor subset per split"""
        return Pipeline([
            ("scaler", StandardScaler()),
            ("regressor", RandomForestRegressor(
                n_estimators=params.get("n_estimators", N_TREES),
                max_features=params.get("max_features", RF_MAX_FEATURES),
                min_samples_leaf=params.get("min_samples_leaf", MIN_SAMPLES_LEAF),
                random_state=params.get("random_state", MODEL_SEED)
            ))
        ])

    def make_svr(self, params: Dict[str, Any]) -> Pipeline:
        """Support-vector regression on standardized predictors"""
        kernel = params.get("kernel", "rbf")
        if kernel not in SVR_KERNELS:
            raise ValueError(f"Unknown SVR kernel: {kernel}")
        return Pipeline([
            ("scaler", StandardScaler()),
            ("regressor", SVR(
                kernel=SVR_KERNELS[kernel],
                C=params.get("cost", SVR_DEFAULT_COST),
                gamma=params.get("gamma", SVR_DEFAULT_GAMMA),
                epsilon=params.get("epsilon", SVR_EPSILON),
                degree=params.get("degree", SVR_POLY_DEGREE),
                coef0=params.get("coef0", 0.0)
            ))
        ])

    def _ols(self, rows: pd.DataFrame, y: np.ndarray, terms: List[Term]):
        return sm.OLS(y, design_matrix(rows, terms)).fit()

    def stepwise_aic(self, rows: pd.DataFrame, y: np.ndarray, terms: List[Term]) -> List[Term]:
        """Bidirectional stepwise term selection by AIC, starting from the full term list.

        Each step tries dropping every current term and re-adding every dropped
        term, and takes the move with the lowest AIC. Stops when no move
        improves on the current model.
        """
        current = list(terms)
        best_aic = self._ols(rows, y, current).aic

        while True:
            moves = []
            for t in current:
                trial = [c for c in current if c != t]
                moves.append((self._ols(rows, y, trial).aic, trial))
            for t in terms:
                if t not in current:
                    trial = [c for c in terms if c in current or c == t]
                    moves.append((self._ols(rows, y, trial).aic, trial))
            if not moves:
                break

            aic, trial = min(moves, key=lambda m: m[0])
            if not aic < best_aic:
                break
            best_aic, current = aic, trial

        return current

    def fit(self, spec: ModelSpec, rows: pd.DataFrame) -> FittedModel:
        """Fit one competing method on the training rows"""
        missing = [c for c in spec.features + [spec.response] if c not in rows.columns]
        if missing:
            raise ValueError(f"Model '{spec.name}' references unavailable columns: {missing}")
        if len(rows) < 2:
            raise ModelFitError(f"Model '{spec.name}' needs at least 2 training rows, got {len(rows)}")

        X = rows[spec.features].astype(float).values
        y = rows[spec.response].astype(float).values
        params = spec.params

        if spec.family in ("rsm", "rsm_reduced"):
            terms = params["terms"] if "terms" in params else build_terms(spec.features)
            if spec.family == "rsm_reduced" and "terms" not in params:
                terms = self.stepwise_aic(rows, y, terms)
            return FittedModel(spec=spec, estimator=self._ols(rows, y, terms), terms=terms)

        if spec.family == "bagging":
            estimator = self.make_bagging(params)
        elif spec.family == "random_forest":
            estimator = self.make_rf(params)
        elif spec.family == "svr":
            estimator = self.make_svr(params)
        else:
            raise ValueError(f"Unknown model family: {spec.family}")

        try:
            estimator.fit(X, y)
        except ValueError as e:
            raise ModelFitError(f"Model '{spec.name}' failed to fit: {e}") from e
        return FittedModel(spec=spec, estimator=estimator)

    def predict(self, fitted: FittedModel, rows: pd.DataFrame) -> np.ndarray:
        """Predict the response for new feature rows"""
        missing = [c for c in fitted.spec.features if c not in rows.columns]
        if missing:
            raise ValueError(f"Prediction rows lack columns: {missing}")

        if fitted.terms is not None:
            return design_matrix(rows, fitted.terms) @ np.asarray(fitted.estimator.params)
        return fitted.estimator.predict(rows[fitted.spec.features].astype(float).values)

    def predict_array(self, fitted: FittedModel, X: np.ndarray) -> np.ndarray:
        """Predict for a raw (n, p) array whose columns follow the spec's feature order"""
        rows = pd.DataFrame(np.atleast_2d(X), columns=fitted.spec.features)
        return self.predict(fitted, rows)

    def coefficient_table(self, fitted: FittedModel) -> pd.DataFrame:
        """Coefficients, standard errors and p-values of a fitted response surface"""
        if fitted.terms is None:
            raise ValueError(f"Model '{fitted.spec.name}' is not a response-surface model")
        res = fitted.estimator
        return pd.DataFrame({
            "term": ["(Intercept)"] + [term_name(t) for t in fitted.terms],
            "estimate": np.asarray(res.params),
            "std_error": np.asarray(res.bse),
            "p_value": np.asarray(res.pvalues),
        })


def default_specs(response: str = LATENT_RESPONSE, features: Optional[List[str]] = None) -> List[ModelSpec]:
    """The competing methods compared by the pipeline"""
    features = list(features or FEATURES)
    return [
        ModelSpec("RSM complete", "rsm", features, response),
        ModelSpec("RSM reduced", "rsm_reduced", features, response),
        ModelSpec("Bagging", "bagging", features, response),
        ModelSpec("Random forest", "random_forest", features, response),
        ModelSpec("SVR", "svr", features, response, {"kernel": "rbf"}),
    ]
