"""
Machine learning components for the helical milling pipeline.

This module contains:
- metrics.py: RMSE, MSE, R² and MAE
- sampler.py: Seeded k-fold and bootstrap resampling
- ml_models.py: Response-surface, bagging, random forest and SVR adapters
- evaluation.py: Cross-validation and bootstrap optimism correction
- comparison.py: Rank-based tests between competing methods
- tuning.py: SVR hyperparameter grid search, also run inside every fit
"""

from .metrics import regression_metrics, METRIC_NAMES
from .sampler import ResamplingEngine, Resample
from .ml_models import MLModels, ModelSpec, FittedModel, ModelFitError, build_terms, default_specs
from .evaluation import CrossValidator, BootstrapEvaluator
from .comparison import compare_methods, compare_two, compare_many
from .tuning import HyperparameterSearch, SVRConfig, TunedSVRModels

__all__ = ['regression_metrics', 'METRIC_NAMES', 'ResamplingEngine', 'Resample', 'MLModels',
           'ModelSpec', 'FittedModel', 'ModelFitError', 'build_terms', 'default_specs',
           'CrossValidator', 'BootstrapEvaluator', 'compare_methods', 'compare_two', 'compare_many',
           'HyperparameterSearch', 'SVRConfig', 'TunedSVRModels']
