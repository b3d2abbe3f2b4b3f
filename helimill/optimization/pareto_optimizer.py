"""
Post-optimization selection on the Pareto front.
Handles front filtering, extreme points per objective and the knee point.
"""

import numpy as np
import pandas as pd
from typing import List, Optional, Sequence

from .machining import decode_table


class ParetoOptimizer:
    """Selects representative solutions from a front of minimized objectives."""

    def is_pareto(self, points: np.ndarray) -> np.ndarray:
        """Check which points are Pareto optimal (all columns minimized)"""
        P = np.array(points, dtype=float)
        flags = np.ones(len(P), dtype=bool)

        for i in range(len(P)):
            # Check if this point is dominated by any other point
            for j in range(len(P)):
                if i != j and np.all(P[j] <= P[i]) and np.any(P[j] < P[i]):
                    flags[i] = False
                    break

        return flags

    def norm01(self, v: np.ndarray) -> np.ndarray:
        """Normalize array to [0,1] range"""
        v = np.asarray(v, float)
        vmin, vmax = float(np.min(v)), float(np.max(v))
        if vmax - vmin < 1e-12:
            return np.zeros_like(v)
        return (v - vmin) / (vmax - vmin)

    def normalize_front(self, F: np.ndarray) -> np.ndarray:
        """Min-max normalize every objective column independently"""
        F = np.atleast_2d(np.asarray(F, float))
        return np.column_stack([self.norm01(F[:, j]) for j in range(F.shape[1])])

    def knee_point(self, F: np.ndarray) -> int:
        """Row index closest to the ideal corner (origin) after normalization"""
        F = np.atleast_2d(np.asarray(F, float))
        if len(F) == 0:
            raise ValueError("Cannot select a knee point from an empty front")
        distances = np.linalg.norm(self.normalize_front(F), axis=1)
        return int(np.argmin(distances))

    def extreme_points(self, F: np.ndarray) -> List[int]:
        """Row index of the best value of each (minimized) objective column"""
        F = np.atleast_2d(np.asarray(F, float))
        if len(F) == 0:
            raise ValueError("Cannot select extreme points from an empty front")
        return [int(np.argmin(F[:, j])) for j in range(F.shape[1])]

    def selection_table(self, front: pd.DataFrame, var_names: Sequence[str], obj_names: Sequence[str],
                        senses: Optional[Sequence[str]] = None) -> pd.DataFrame:
        """Extreme and knee rows with objectives in their original sense and decoded parameters.

        ``senses`` gives 'min' or 'max' per objective; a 'max' objective is
        stored negated in ``front`` and reported with its sign restored.
        """
        senses = list(senses or ["min"] * len(obj_names))
        F = front[list(obj_names)].values
        picks = [(f"best {name}", idx) for name, idx in zip(obj_names, self.extreme_points(F))]
        picks.append(("knee", self.knee_point(F)))

        rows = front.iloc[[idx for _, idx in picks]].reset_index(drop=True)
        table = pd.DataFrame({"solution": [label for label, _ in picks]})
        for name in var_names:
            table[name] = rows[name].values
        for name, sense in zip(obj_names, senses):
            table[name] = -rows[name].values if sense == "max" else rows[name].values

        physical = decode_table(rows[list(var_names)].values)
        return pd.concat([table, physical], axis=1)
