"""
Optimization algorithms for the helical milling pipeline.

This module contains:
- nsga2.py: Constrained NSGA-II
- pareto_optimizer.py: Extreme and knee point selection on the front
- machining.py: Decoding of coded points, MRR and the CCD sphere constraint
"""

from .nsga2 import NSGA2Optimizer, NSGA2Result, ConfigurationError
from .pareto_optimizer import ParetoOptimizer

__all__ = ['NSGA2Optimizer', 'NSGA2Result', 'ConfigurationError', 'ParetoOptimizer']
