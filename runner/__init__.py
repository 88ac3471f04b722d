"""
Runner module for trackx-crawler.

This module contains:
- Command line entry point
- Configuration loading and option validation
- Logging setup
"""

from runner.logging_setup import setup_logging, get_logger

__version__ = "0.1.0"

__all__ = [
    "setup_logging",
    "get_logger",
]
