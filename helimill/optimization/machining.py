"""
Helical milling geometry: decoding of coded design points into physical
process parameters, material removal rate and the CCD sphere constraint.
"""

import numpy as np
import pandas as pd

from ..core.config import (
    FACTOR_LEVELS, FACTOR_NAMES, TOOL_DIAMETER, HOLE_DIAMETER, N_TEETH, CCD_ALPHA
)


def decode(X: np.ndarray) -> np.ndarray:
    """Coded (n, 3) points -> physical fz [mm/z], fa [mm/rev], vc [m/min]"""
    X = np.atleast_2d(np.asarray(X, dtype=float))
    centre = np.array([FACTOR_LEVELS[f][0] for f in FACTOR_NAMES])
    step = np.array([FACTOR_LEVELS[f][1] for f in FACTOR_NAMES])
    return centre + X * step


def encode(P: np.ndarray) -> np.ndarray:
    """Physical parameters back to coded units"""
    P = np.atleast_2d(np.asarray(P, dtype=float))
    centre = np.array([FACTOR_LEVELS[f][0] for f in FACTOR_NAMES])
    step = np.array([FACTOR_LEVELS[f][1] for f in FACTOR_NAMES])
    return (P - centre) / step


def spindle_speed(vc, tool_diameter: float = TOOL_DIAMETER):
    """n [rpm] from cutting speed [m/min]"""
    return 1000.0 * np.asarray(vc, dtype=float) / (np.pi * tool_diameter)


def feed_rate(fz, n, tool_diameter: float = TOOL_DIAMETER, hole_diameter: float = HOLE_DIAMETER,
              n_teeth: int = N_TEETH):
    """Tangential feed rate of the tool centre on its orbit [mm/min]"""
    return np.asarray(fz, dtype=float) * n_teeth * np.asarray(n, dtype=float) * (hole_diameter - tool_diameter) / hole_diameter


def axial_depth(fa, fz, tool_diameter: float = TOOL_DIAMETER, hole_diameter: float = HOLE_DIAMETER,
                n_teeth: int = N_TEETH):
    """Helix pitch: axial advance per orbital revolution [mm]"""
    orbit = np.pi * (hole_diameter - tool_diameter)
    return np.asarray(fa, dtype=float) * orbit * hole_diameter / (np.asarray(fz, dtype=float) * n_teeth * (hole_diameter - tool_diameter))


def material_removal_rate(X: np.ndarray, hole_diameter: float = HOLE_DIAMETER) -> np.ndarray:
    """MRR [mm^3/min] of coded points: hole cross-section times axial feed rate"""
    P = decode(X)
    n = spindle_speed(P[:, 2])
    return np.pi * hole_diameter ** 2 / 4.0 * P[:, 1] * n


def sphere_constraint(X: np.ndarray, radius: float = CCD_ALPHA) -> np.ndarray:
    """g(x) = |x|^2 - alpha^2, feasible when <= 0"""
    X = np.atleast_2d(np.asarray(X, dtype=float))
    return np.sum(X ** 2, axis=1) - radius ** 2


def decode_table(X: np.ndarray) -> pd.DataFrame:
    """Physical parameters and derived quantities for coded points"""
    P = decode(X)
    n = spindle_speed(P[:, 2])
    return pd.DataFrame({
        "fz_mm_per_tooth": P[:, 0],
        "fa_mm_per_rev": P[:, 1],
        "vc_m_per_min": P[:, 2],
        "spindle_speed_rpm": n,
        "feed_rate_mm_per_min": feed_rate(P[:, 0], n),
        "axial_depth_mm": axial_depth(P[:, 1], P[:, 0]),
        "mrr_mm3_per_min": material_removal_rate(X),
    })
