"""
Core system components for the helical milling pipeline.

This module contains:
- main.py: Main entry point and pipeline orchestration
- config.py: Configuration and environment settings

The pipeline lives in ``helimill.core.main``; it is not re-exported here
because every other subpackage imports ``helimill.core.config``.
"""

from .config import *
