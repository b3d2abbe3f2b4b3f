"""
Data management module for the helical milling pipeline.
Handles loading the designed experiment, validation and the PCA latent score.
"""

import os
import numpy as np
import pandas as pd
from sklearn.decomposition import PCA
from sklearn.preprocessing import StandardScaler
from sklearn.pipeline import Pipeline
from typing import Optional, Dict, List, Sequence, Tuple

from ..core.config import DATASET_CSV, FEATURES, RESPONSES, LATENT_RESPONSE


class DataManager:
    """Manages all data operations for the helical milling pipeline."""

    def __init__(self, dataset_path: Optional[str] = None):
        self.dataset_path = dataset_path or DATASET_CSV
        self.pca_model = None

    def load_dataset(self, path: Optional[str] = None) -> pd.DataFrame:
        """Load the CCD table from CSV and validate it"""
        path = path or self.dataset_path
        if not os.path.exists(path):
            raise FileNotFoundError(f"Dataset not found: {path}")

        df = pd.read_csv(path)
        print(f"[data] Loaded dataset with {len(df)} rows from {path}")
        return self.validate_sample(df)

    def from_mapping(self, columns: Dict[str, Sequence[float]]) -> pd.DataFrame:
        """Build a sample from a column name -> ordered values mapping"""
        lengths = {name: len(values) for name, values in columns.items()}
        if len(set(lengths.values())) > 1:
            raise ValueError(f"Inconsistent column lengths in input table: {lengths}")
        return self.validate_sample(pd.DataFrame({k: list(v) for k, v in columns.items()}))

    def validate_sample(self, df: pd.DataFrame, features: Optional[List[str]] = None,
                        responses: Optional[List[str]] = None) -> pd.DataFrame:
        """Check required columns, numeric types, missing values and response variance"""
        features = FEATURES if features is None else features
        responses = responses or RESPONSES

        if df.empty:
            raise ValueError("Sample is empty")

        missing = [c for c in features + responses if c not in df.columns]
        if missing:
            raise ValueError(f"Missing required columns: {missing}")

        for col in features + responses:
            if not pd.api.types.is_numeric_dtype(df[col]):
                raise ValueError(f"Column '{col}' is not numeric")
            if df[col].isna().any():
                raise ValueError(f"Column '{col}' contains missing values")

        for col in responses:
            if float(df[col].var(ddof=0)) == 0.0:
                raise ValueError(f"Response column '{col}' has zero variance")

        return df.reset_index(drop=True)

    def add_latent_score(self, df: pd.DataFrame, responses: Optional[List[str]] = None,
                         name: str = LATENT_RESPONSE) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """Append the first principal component of the standardized responses.

        The sign is aligned so the score correlates positively with the first
        response column (larger score = rougher surface). Returns the extended
        copy of the sample and a table of loadings and explained variance.
        """
        responses = responses or RESPONSES
        self.validate_sample(df, features=[], responses=responses)

        Y = df[responses].astype(float).values
        self.pca_model = Pipeline([
            ("scaler", StandardScaler()),
            ("pca", PCA(n_components=len(responses)))
        ]).fit(Y)

        scores = self.pca_model.transform(Y)
        pca = self.pca_model.named_steps["pca"]
        components = pca.components_.copy()

        # Orient every component so it correlates positively with the first response
        for j in range(components.shape[0]):
            if np.corrcoef(scores[:, j], Y[:, 0])[0, 1] < 0:
                scores[:, j] *= -1.0
                components[j] *= -1.0

        out = df.copy()
        out[name] = scores[:, 0]

        summary = pd.DataFrame(components.T, index=responses,
                               columns=[f"PC{j + 1}" for j in range(components.shape[0])])
        summary.loc["explained_variance_ratio"] = pca.explained_variance_ratio_
        print(f"[pca] {name} explains {pca.explained_variance_ratio_[0]:.1%} of the response variance")
        return out, summary
