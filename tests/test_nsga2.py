"""
Tests for the constrained NSGA-II optimizer.
"""

import numpy as np
import pytest

from helimill.optimization.nsga2 import (
    NSGA2Optimizer, ConfigurationError, dominance_matrix, non_dominated_sort,
    crowding_distance, constraint_violation
)


def _objectives(X):
    # Two conflicting quadratics with optimum segment x1 in [0, 2], x2 = 0
    return np.column_stack([X[:, 0] ** 2 + X[:, 1] ** 2, (X[:, 0] - 2.0) ** 2 + X[:, 1] ** 2])


def _disc(X):
    # Feasible inside the disc of radius 1.5
    return np.sum(X ** 2, axis=1) - 1.5 ** 2


def test_pareto_dominance_between_feasible_points():
    F = np.array([[1.0, 2.0], [1.0, 3.0], [2.0, 1.0], [1.0, 2.0]])
    D = dominance_matrix(F, np.zeros(4))
    assert D[0, 1]
    assert not D[1, 0]
    assert not D[0, 2] and not D[2, 0]
    assert not D[0, 3] and not D[3, 0]
    assert not np.any(np.diag(D))


def test_infeasible_never_dominates_feasible():
    rng = np.random.default_rng(0)
    F = rng.normal(size=(30, 2))
    violation = np.where(rng.random(30) < 0.5, 0.0, rng.uniform(0.1, 2.0, 30))
    F[violation > 0] -= 100.0  # infeasible points get far better objectives
    D = dominance_matrix(F, violation)
    feasible = violation == 0
    assert not D[np.ix_(~feasible, feasible)].any()
    assert D[np.ix_(feasible, ~feasible)].all()


def test_infeasible_ordered_by_violation():
    F = np.array([[5.0, 5.0], [0.0, 0.0]])
    D = dominance_matrix(F, np.array([0.5, 2.0]))
    assert D[0, 1] and not D[1, 0]


def test_non_dominated_sort_fronts():
    F = np.array([[1, 4], [2, 2], [4, 1], [3, 3], [5, 5]], dtype=float)
    fronts = non_dominated_sort(F, np.zeros(5))
    assert sorted(fronts[0].tolist()) == [0, 1, 2]
    assert fronts[1].tolist() == [3]
    assert fronts[2].tolist() == [4]


def test_all_infeasible_degrades_to_violation_order():
    F = np.random.default_rng(1).normal(size=(4, 2))
    fronts = non_dominated_sort(F, np.array([3.0, 1.0, 2.0, 0.5]))
    assert [f.tolist() for f in fronts] == [[3], [1], [2], [0]]


def test_crowding_distance_boundaries_infinite():
    F = np.array([[0.0, 4.0], [1.0, 3.0], [2.0, 1.0], [4.0, 0.0]])
    d = crowding_distance(F)
    assert np.isinf(d[0]) and np.isinf(d[3])
    assert d[1] == pytest.approx(2.0 / 4.0 + 3.0 / 4.0)
    assert d[2] == pytest.approx(3.0 / 4.0 + 3.0 / 4.0)


def test_constraint_violation_sums_positive_parts():
    G = np.array([[-1.0, 0.5], [0.2, 0.3], [-0.1, -0.2]])
    assert constraint_violation(G).tolist() == pytest.approx([0.5, 0.5, 0.0])


def test_run_returns_feasible_non_dominated_front():
    opt = NSGA2Optimizer(_objectives, _disc, [-3.0, -3.0], [3.0, 3.0], pop_size=40,
                         n_generations=30, seed=5, verbose=False)
    result = opt.run()
    mask = result.front_mask
    F = result.F[mask]
    X = result.X[mask]

    assert mask.sum() > 5
    assert np.all(_disc(X) <= 1e-9)
    assert np.all(X >= -3.0) and np.all(X <= 3.0)
    D = dominance_matrix(F, np.zeros(len(F)))
    assert not D.any()
    # Front should approach x2 = 0, x1 in [0, 1.5]
    assert np.all(np.abs(X[:, 1]) < 0.3)


def test_run_is_deterministic():
    kwargs = dict(pop_size=20, n_generations=5, seed=9, verbose=False)
    a = NSGA2Optimizer(_objectives, _disc, [-3.0, -3.0], [3.0, 3.0], **kwargs).run()
    b = NSGA2Optimizer(_objectives, _disc, [-3.0, -3.0], [3.0, 3.0], **kwargs).run()
    assert np.array_equal(a.X, b.X)
    assert np.array_equal(a.F, b.F)


def test_pointwise_callables():
    def obj(x):
        return [x[0] ** 2, (x[0] - 1.0) ** 2]

    def con(x):
        return [x[0] - 0.8]

    result = NSGA2Optimizer(obj, con, [-1.0], [2.0], pop_size=12, n_generations=5, seed=2,
                            vectorized=False, verbose=False).run()
    assert result.F.shape == (12, 2)
    assert np.all(result.X[result.front_mask] <= 0.8 + 1e-9)


def test_front_table():
    result = NSGA2Optimizer(_objectives, _disc, [-3.0, -3.0], [3.0, 3.0], pop_size=20,
                            n_generations=5, seed=4, verbose=False).run()
    front = result.front(["a", "b"], ["f", "g"])
    assert list(front.columns) == ["a", "b", "f", "g", "violation"]
    assert len(front) == int(result.front_mask.sum())
    assert front["f"].is_monotonic_increasing


def test_inconsistent_bounds_rejected():
    with pytest.raises(ConfigurationError):
        NSGA2Optimizer(_objectives, _disc, [1.0, -3.0], [0.0, 3.0], verbose=False).run()
    with pytest.raises(ConfigurationError):
        NSGA2Optimizer(_objectives, _disc, [-3.0], [3.0, 3.0], verbose=False).run()


def test_odd_population_rejected():
    with pytest.raises(ConfigurationError):
        NSGA2Optimizer(_objectives, _disc, [-3.0, -3.0], [3.0, 3.0], pop_size=21, verbose=False).run()


def test_empty_feasible_region_detected_before_loop():
    calls = []

    def objectives(X):
        calls.append(len(X))
        return _objectives(X)

    def impossible(X):
        return np.sum(X ** 2, axis=1) + 1.0

    with pytest.raises(ConfigurationError, match="feasible"):
        NSGA2Optimizer(objectives, impossible, [-1.0, -1.0], [1.0, 1.0], pop_size=10, verbose=False).run()
    assert calls == []
