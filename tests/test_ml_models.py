"""
Tests for the model fitting adapters.
"""

import numpy as np
import pandas as pd
import pytest

from helimill.ml.ml_models import (
    MLModels, ModelSpec, ModelFitError, build_terms, term_name, design_matrix, default_specs
)

FEATURES = ["x1", "x2", "x3"]


def test_build_terms_second_order():
    terms = build_terms(FEATURES)
    names = [term_name(t) for t in terms]
    assert names == ["x1", "x2", "x3", "x1:x2", "x1:x3", "x2:x3", "x1^2", "x2^2", "x3^2"]


def test_design_matrix_columns():
    rows = pd.DataFrame({"x1": [2.0], "x2": [3.0], "x3": [-1.0]})
    X = design_matrix(rows, build_terms(FEATURES))
    assert X.tolist() == [[1.0, 2.0, 3.0, -1.0, 6.0, -2.0, -3.0, 4.0, 9.0, 1.0]]


def test_complete_rsm_recovers_surface(quadratic_data):
    ml = MLModels()
    fitted = ml.fit(ModelSpec("RSM complete", "rsm", FEATURES, "PC1"), quadratic_data)
    coefs = ml.coefficient_table(fitted).set_index("term")["estimate"]
    assert coefs["(Intercept)"] == pytest.approx(1.0, abs=0.05)
    assert coefs["x1"] == pytest.approx(2.0, abs=0.05)
    assert coefs["x1^2"] == pytest.approx(0.8, abs=0.05)


def test_stepwise_keeps_active_terms(quadratic_data):
    ml = MLModels()
    fitted = ml.fit(ModelSpec("RSM reduced", "rsm_reduced", FEATURES, "PC1"), quadratic_data)
    assert ("x1",) in fitted.terms
    assert ("x1", "x1") in fitted.terms
    assert len(fitted.terms) < len(build_terms(FEATURES))


def test_fixed_terms_skip_stepwise(quadratic_data):
    ml = MLModels()
    spec = ModelSpec("RSM linear", "rsm_reduced", FEATURES, "PC1", {"terms": [("x1",)]})
    fitted = ml.fit(spec, quadratic_data)
    assert fitted.terms == [("x1",)]
    assert len(ml.predict(fitted, quadratic_data)) == len(quadratic_data)


@pytest.mark.parametrize("spec", default_specs("PC1", FEATURES), ids=lambda s: s.family)
def test_every_family_fits_and_predicts(spec, quadratic_data):
    ml = MLModels()
    if spec.family in ("bagging", "random_forest"):
        spec.params["n_estimators"] = 20
    fitted = ml.fit(spec, quadratic_data.iloc[:30])
    yhat = ml.predict(fitted, quadratic_data.iloc[30:])
    assert yhat.shape == (10,)
    assert np.all(np.isfinite(yhat))

    arr = ml.predict_array(fitted, quadratic_data[FEATURES].values[30:])
    assert np.allclose(arr, yhat)


@pytest.mark.parametrize("kernel", ["linear", "radial", "polynomial"])
def test_svr_kernels(kernel, quadratic_data):
    ml = MLModels()
    spec = ModelSpec("SVR", "svr", FEATURES, "PC1", {"kernel": kernel, "cost": 4.0, "gamma": 0.25})
    fitted = ml.fit(spec, quadratic_data)
    assert len(ml.predict(fitted, quadratic_data)) == len(quadratic_data)


def test_unknown_family_and_kernel(quadratic_data):
    ml = MLModels()
    with pytest.raises(ValueError, match="Unknown model family"):
        ml.fit(ModelSpec("x", "gbm", FEATURES, "PC1"), quadratic_data)
    with pytest.raises(ValueError, match="Unknown SVR kernel"):
        ml.fit(ModelSpec("x", "svr", FEATURES, "PC1", {"kernel": "sigmoidal"}), quadratic_data)


def test_missing_column_raises(quadratic_data):
    with pytest.raises(ValueError, match="unavailable columns"):
        MLModels().fit(ModelSpec("x", "rsm", ["x1", "x4"], "PC1"), quadratic_data)


def test_empty_training_rows_raise(quadratic_data):
    with pytest.raises(ModelFitError):
        MLModels().fit(ModelSpec("x", "rsm", FEATURES, "PC1"), quadratic_data.iloc[:0])


def test_tree_models_are_reproducible(quadratic_data):
    ml = MLModels()
    spec = ModelSpec("RF", "random_forest", FEATURES, "PC1", {"n_estimators": 15})
    a = ml.predict(ml.fit(spec, quadratic_data), quadratic_data)
    b = ml.predict(ml.fit(spec, quadratic_data), quadratic_data)
    assert np.array_equal(a, b)
