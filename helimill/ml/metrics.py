"""
Regression metrics shared by the cross-validation, bootstrap and tuning code.
"""

import numpy as np
from typing import Dict, Sequence

METRIC_NAMES = ["RMSE", "MSE", "R2", "MAE"]


def regression_metrics(predicted: Sequence[float], observed: Sequence[float]) -> Dict[str, float]:
    """Compute RMSE, MSE, R² and MAE for one prediction/observation pair.

    R² is NaN when ``observed`` has zero variance (e.g. a single held-out row),
    so per-fold records stay comparable; mismatched or empty inputs raise.
    """
    yhat = np.asarray(predicted, dtype=float).ravel()
    y = np.asarray(observed, dtype=float).ravel()

    if yhat.shape != y.shape:
        raise ValueError(f"Prediction/observation length mismatch: {len(yhat)} vs {len(y)}")
    if len(y) == 0:
        raise ValueError("Cannot compute metrics on empty sequences")

    resid = y - yhat
    mse = float(np.mean(resid ** 2))
    sst = float(np.sum((y - y.mean()) ** 2))
    r2 = 1.0 - float(np.sum(resid ** 2)) / sst if sst > 0 else float("nan")

    return {
        "RMSE": float(np.sqrt(mse)),
        "MSE": mse,
        "R2": r2,
        "MAE": float(np.mean(np.abs(resid))),
    }


def failed_metrics() -> Dict[str, float]:
    """Metric record used for an iteration whose fit failed"""
    return {name: float("nan") for name in METRIC_NAMES}
