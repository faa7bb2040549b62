"""
Custom exceptions for the Water Tower Boundary Utilities.

This module provides domain-specific exception classes for error handling
and debugging throughout the system.
"""

from .custom_exceptions import (
    TowerMapBaseException,
    TowerMapConfigurationError,
    TowerMapValidationError,
    TowerMapStorageError,
    TowerMapProcessingError,
)

__all__ = [
    "TowerMapBaseException",
    "TowerMapConfigurationError",
    "TowerMapValidationError",
    "TowerMapStorageError",
    "TowerMapProcessingError",
]
