import os
import sys

import numpy as np
import pandas as pd
import pytest

# Make the package importable when the tests run from a plain checkout
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from helimill.data.data_manager import DataManager


@pytest.fixture
def ccd_data():
    """The packaged 18-run CCD with the PCA roughness score appended"""
    dm = DataManager()
    df, _ = dm.add_latent_score(dm.load_dataset())
    return df


@pytest.fixture
def quadratic_data():
    """40 random points with a known second-order surface in x1 only plus small noise"""
    rng = np.random.default_rng(7)
    X = rng.uniform(-1.5, 1.5, size=(40, 3))
    y = 1.0 + 2.0 * X[:, 0] + 0.8 * X[:, 0] ** 2 + rng.normal(0.0, 0.01, size=40)
    return pd.DataFrame({"x1": X[:, 0], "x2": X[:, 1], "x3": X[:, 2], "PC1": y})
