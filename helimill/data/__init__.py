"""
Data management components for the helical milling pipeline.

This module contains:
- data_manager.py: Dataset loading, validation and the PCA latent score
- excel_manager.py: Excel/CSV export of result tables
"""

from .data_manager import DataManager
from .excel_manager import ReportWriter

__all__ = ['DataManager', 'ReportWriter']
