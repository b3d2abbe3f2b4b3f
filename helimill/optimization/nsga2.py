"""
Constrained NSGA-II for the two-objective process window search.

Objectives are minimized. Constraint handling follows constraint-dominance:
a feasible point beats an infeasible one, two infeasible points are ordered
by total violation, and two feasible points by Pareto dominance.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass
from scipy.stats import qmc
from typing import Callable, List, Optional

from ..core.config import (
    SEED, POP_SIZE, N_GENERATIONS, CROSSOVER_PROB, CROSSOVER_ETA, MUTATION_ETA,
    FEASIBILITY_PROBE, LOG_EVERY
)

FEASIBILITY_TOL = 1e-9


class ConfigurationError(ValueError):
    """Raised before the generation loop when the problem setup is unusable."""


@dataclass
class NSGA2Result:
    X: np.ndarray
    F: np.ndarray
    G: np.ndarray
    violation: np.ndarray
    rank: np.ndarray
    crowding: np.ndarray
    n_generations: int

    @property
    def feasible(self) -> np.ndarray:
        return self.violation <= FEASIBILITY_TOL

    @property
    def front_mask(self) -> np.ndarray:
        return (self.rank == 0) & self.feasible

    def front(self, var_names: Optional[List[str]] = None, obj_names: Optional[List[str]] = None) -> pd.DataFrame:
        """Rank-zero feasible members as a table of decision and objective columns"""
        var_names = var_names or [f"x{i + 1}" for i in range(self.X.shape[1])]
        obj_names = obj_names or [f"f{j + 1}" for j in range(self.F.shape[1])]
        mask = self.front_mask
        df = pd.DataFrame(self.X[mask], columns=var_names)
        for j, name in enumerate(obj_names):
            df[name] = self.F[mask, j]
        df["violation"] = self.violation[mask]
        return df.sort_values(obj_names[0]).reset_index(drop=True)


def constraint_violation(G: np.ndarray) -> np.ndarray:
    """Sum of positive constraint values per row"""
    return np.sum(np.maximum(np.atleast_2d(G), 0.0), axis=1)


def dominance_matrix(F: np.ndarray, violation: np.ndarray) -> np.ndarray:
    """D[i, j] is True when individual i constraint-dominates individual j"""
    feasible = violation <= FEASIBILITY_TOL
    le = np.all(F[:, None, :] <= F[None, :, :], axis=2)
    lt = np.any(F[:, None, :] < F[None, :, :], axis=2)

    fi = feasible[:, None]
    fj = feasible[None, :]
    both_feasible = fi & fj
    both_infeasible = ~fi & ~fj

    D = both_feasible & le & lt
    D |= fi & ~fj
    D |= both_infeasible & (violation[:, None] < violation[None, :])
    return D


def non_dominated_sort(F: np.ndarray, violation: np.ndarray) -> List[np.ndarray]:
    """Fronts of indices, best first"""
    D = dominance_matrix(F, violation)
    dominated_by = D.sum(axis=0)
    remaining = np.ones(len(F), dtype=bool)
    fronts = []

    while remaining.any():
        current = np.where(remaining & (dominated_by == 0))[0]
        fronts.append(current)
        remaining[current] = False
        dominated_by = dominated_by - D[current].sum(axis=0)
    return fronts


def crowding_distance(F: np.ndarray) -> np.ndarray:
    """Sum over objectives of the normalized gap between sorted neighbours; boundaries are infinite"""
    n, m = F.shape
    distance = np.zeros(n)
    if n <= 2:
        distance[:] = np.inf
        return distance

    for j in range(m):
        order = np.argsort(F[:, j], kind="mergesort")
        fmin, fmax = F[order[0], j], F[order[-1], j]
        distance[order[0]] = distance[order[-1]] = np.inf
        if fmax - fmin <= 0:
            continue
        gaps = (F[order[2:], j] - F[order[:-2], j]) / (fmax - fmin)
        distance[order[1:-1]] += gaps
    return distance


def rank_and_crowding(F: np.ndarray, violation: np.ndarray):
    rank = np.empty(len(F), dtype=int)
    crowding = np.empty(len(F))
    fronts = non_dominated_sort(F, violation)
    for r, front in enumerate(fronts):
        rank[front] = r
        crowding[front] = crowding_distance(F[front])
    return fronts, rank, crowding


class NSGA2Optimizer:
    """Elitist non-dominated sorting GA with SBX crossover and polynomial mutation."""

    def __init__(self, objectives: Callable[[np.ndarray], np.ndarray],
                 constraints: Callable[[np.ndarray], np.ndarray],
                 lower, upper, pop_size: int = POP_SIZE, n_generations: int = N_GENERATIONS,
                 crossover_prob: float = CROSSOVER_PROB, eta_c: float = CROSSOVER_ETA,
                 eta_m: float = MUTATION_ETA, mutation_prob: Optional[float] = None,
                 seed: int = SEED, vectorized: bool = True, verbose: bool = True):
        """
        Args:
            objectives: maps an (n, d) array of points to an (n, m) array of values to minimize
                (or a single point to m values when ``vectorized`` is False)
            constraints: maps points to constraint values; an entry <= 0 is feasible
            lower, upper: box bounds per decision variable
        """
        self.objectives = objectives
        self.constraints = constraints
        self.lower = np.asarray(lower, dtype=float)
        self.upper = np.asarray(upper, dtype=float)
        self.pop_size = pop_size
        self.n_generations = n_generations
        self.crossover_prob = crossover_prob
        self.eta_c = eta_c
        self.eta_m = eta_m
        self.mutation_prob = mutation_prob if mutation_prob is not None else 1.0 / max(len(self.lower), 1)
        self.seed = seed
        self.vectorized = vectorized
        self.verbose = verbose
        self.rng = None

    def _evaluate(self, X: np.ndarray):
        if self.vectorized:
            F = np.asarray(self.objectives(X), dtype=float)
            G = np.asarray(self.constraints(X), dtype=float)
        else:
            F = np.array([np.asarray(self.objectives(x), dtype=float) for x in X])
            G = np.array([np.atleast_1d(np.asarray(self.constraints(x), dtype=float)) for x in X])
        F = F.reshape(len(X), -1)
        G = G.reshape(len(X), -1)
        return F, G, constraint_violation(G)

    def validate(self):
        """Check bounds, sizes and that the feasible region is not empty"""
        if self.lower.ndim != 1 or self.lower.shape != self.upper.shape or len(self.lower) == 0:
            raise ConfigurationError(f"Bounds must be 1-D and of equal length: {self.lower} / {self.upper}")
        if not np.all(np.isfinite(self.lower)) or not np.all(np.isfinite(self.upper)):
            raise ConfigurationError("Bounds must be finite")
        if np.any(self.lower >= self.upper):
            raise ConfigurationError(f"Lower bounds must be below upper bounds: {self.lower} / {self.upper}")
        if self.pop_size < 4 or self.pop_size % 2:
            raise ConfigurationError(f"Population size must be an even number >= 4, got {self.pop_size}")
        if self.n_generations < 1:
            raise ConfigurationError(f"Generation count must be positive, got {self.n_generations}")

        # Probe the box with a Sobol sample plus the box centre
        probe = qmc.scale(qmc.Sobol(d=len(self.lower), scramble=True, seed=self.seed).random(FEASIBILITY_PROBE),
                          self.lower, self.upper)
        probe = np.vstack([probe, (self.lower + self.upper) / 2.0])
        if self.vectorized:
            G = np.asarray(self.constraints(probe), dtype=float).reshape(len(probe), -1)
        else:
            G = np.array([np.atleast_1d(np.asarray(self.constraints(x), dtype=float)) for x in probe])
        if not np.any(constraint_violation(G) <= FEASIBILITY_TOL):
            raise ConfigurationError(
                f"No feasible point found among {len(probe)} probes; the feasible region appears empty")

    def _tournament(self, rank: np.ndarray, crowding: np.ndarray, n: int) -> np.ndarray:
        """Binary tournament on (rank, crowding distance)"""
        a = self.rng.integers(0, len(rank), size=n)
        b = self.rng.integers(0, len(rank), size=n)
        a_wins = (rank[a] < rank[b]) | ((rank[a] == rank[b]) & (crowding[a] > crowding[b]))
        tie = (rank[a] == rank[b]) & (crowding[a] == crowding[b])
        coin = self.rng.random(n) < 0.5
        return np.where(a_wins | (tie & coin), a, b)

    def _sbx(self, p1: np.ndarray, p2: np.ndarray):
        """Bounded simulated binary crossover of two parents"""
        c1, c2 = p1.copy(), p2.copy()
        if self.rng.random() > self.crossover_prob:
            return c1, c2

        eta = self.eta_c
        for i in range(len(p1)):
            if self.rng.random() > 0.5 or abs(p1[i] - p2[i]) <= 1e-14:
                continue
            xl, xu = self.lower[i], self.upper[i]
            x1, x2 = min(p1[i], p2[i]), max(p1[i], p2[i])
            u = self.rng.random()

            beta = 1.0 + 2.0 * (x1 - xl) / (x2 - x1)
            alpha = 2.0 - beta ** -(eta + 1)
            betaq = (u * alpha) ** (1.0 / (eta + 1)) if u <= 1.0 / alpha else (1.0 / (2.0 - u * alpha)) ** (1.0 / (eta + 1))
            y1 = 0.5 * (x1 + x2 - betaq * (x2 - x1))

            beta = 1.0 + 2.0 * (xu - x2) / (x2 - x1)
            alpha = 2.0 - beta ** -(eta + 1)
            betaq = (u * alpha) ** (1.0 / (eta + 1)) if u <= 1.0 / alpha else (1.0 / (2.0 - u * alpha)) ** (1.0 / (eta + 1))
            y2 = 0.5 * (x1 + x2 + betaq * (x2 - x1))

            y1, y2 = min(max(y1, xl), xu), min(max(y2, xl), xu)
            if self.rng.random() <= 0.5:
                c1[i], c2[i] = y2, y1
            else:
                c1[i], c2[i] = y1, y2
        return c1, c2

    def _mutate(self, x: np.ndarray) -> np.ndarray:
        """Bounded polynomial mutation"""
        y = x.copy()
        eta = self.eta_m
        mut_pow = 1.0 / (eta + 1.0)
        for i in range(len(y)):
            if self.rng.random() > self.mutation_prob:
                continue
            xl, xu = self.lower[i], self.upper[i]
            delta_1 = (y[i] - xl) / (xu - xl)
            delta_2 = (xu - y[i]) / (xu - xl)
            u = self.rng.random()
            if u < 0.5:
                val = 2.0 * u + (1.0 - 2.0 * u) * (1.0 - delta_1) ** (eta + 1.0)
                delta_q = val ** mut_pow - 1.0
            else:
                val = 2.0 * (1.0 - u) + 2.0 * (u - 0.5) * (1.0 - delta_2) ** (eta + 1.0)
                delta_q = 1.0 - val ** mut_pow
            y[i] = min(max(y[i] + delta_q * (xu - xl), xl), xu)
        return y

    def _offspring(self, X: np.ndarray, rank: np.ndarray, crowding: np.ndarray) -> np.ndarray:
        parents = self._tournament(rank, crowding, self.pop_size)
        children = []
        for k in range(0, self.pop_size, 2):
            c1, c2 = self._sbx(X[parents[k]], X[parents[k + 1]])
            children.append(self._mutate(c1))
            children.append(self._mutate(c2))
        return np.array(children)

    def _survivors(self, F: np.ndarray, violation: np.ndarray) -> np.ndarray:
        """Fill the next population front by front; the last front is cut by crowding distance"""
        fronts, _, _ = rank_and_crowding(F, violation)
        selected = []
        for front in fronts:
            if len(selected) + len(front) <= self.pop_size:
                selected.extend(front.tolist())
                continue
            crowd = crowding_distance(F[front])
            order = np.argsort(-crowd, kind="mergesort")
            selected.extend(front[order[:self.pop_size - len(selected)]].tolist())
            break
        return np.array(selected)

    def run(self) -> NSGA2Result:
        self.validate()
        self.rng = np.random.default_rng(self.seed)

        X = self.lower + self.rng.random((self.pop_size, len(self.lower))) * (self.upper - self.lower)
        F, G, violation = self._evaluate(X)
        _, rank, crowding = rank_and_crowding(F, violation)

        for gen in range(1, self.n_generations + 1):
            Xq = self._offspring(X, rank, crowding)
            Fq, Gq, vq = self._evaluate(Xq)

            X_all = np.vstack([X, Xq])
            F_all = np.vstack([F, Fq])
            G_all = np.vstack([G, Gq])
            v_all = np.concatenate([violation, vq])

            keep = self._survivors(F_all, v_all)
            X, F, G, violation = X_all[keep], F_all[keep], G_all[keep], v_all[keep]
            _, rank, crowding = rank_and_crowding(F, violation)

            if self.verbose and (gen % LOG_EVERY == 0 or gen == self.n_generations):
                n_front = int(np.sum((rank == 0) & (violation <= FEASIBILITY_TOL)))
                n_feasible = int(np.sum(violation <= FEASIBILITY_TOL))
                print(f"[nsga2] generation {gen}/{self.n_generations}: {n_feasible} feasible, {n_front} on front")

        return NSGA2Result(X=X, F=F, G=G, violation=violation, rank=rank, crowding=crowding,
                           n_generations=self.n_generations)
