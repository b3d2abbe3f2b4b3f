"""
Helical Milling Modelling and Optimization

Statistical-learning and multi-objective optimization pipeline for helical
milling of a titanium alloy from a central composite design.

This package contains all the source code organized into logical modules:
- core: Main entry point and configuration
- data: Data loading, PCA latent score and report export
- ml: Metrics, resampling, model adapters, evaluation and tuning
- optimization: NSGA-II search, machining decoding and front selection
"""

__version__ = "1.0.0"
__author__ = "Helical Milling Modelling Team"
__description__ = "Model comparison and NSGA-II optimization for helical milling"
