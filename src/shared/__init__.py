"""
Shared utilities module.

This module contains common utilities used across all layers of the application,
including the Result type for per-item error handling and logging configuration.
"""

from src.shared.result import Err, Ok, Result, partition

__all__ = ["Ok", "Err", "Result", "partition"]
