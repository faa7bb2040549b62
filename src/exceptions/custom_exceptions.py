"""
Custom exception classes for the Water Tower Boundary Utilities.

This module defines domain-specific exceptions to provide clear error handling
and debugging information throughout the boundary import and tower assignment
pipeline.
"""

from typing import Optional, Dict, Any


class TowerMapBaseException(Exception):
    """Base exception class for all tower map system exceptions."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (Context: {context_str})"
        return self.message


class TowerMapConfigurationError(TowerMapBaseException):
    """
    Exception raised when configuration loading or validation fails.

    This exception is raised when:
    - Configuration files are missing or invalid
    - Environment configuration is malformed
    - Required configuration values are missing
    """
    pass


class TowerMapValidationError(TowerMapBaseException):
    """
    Exception raised when data validation fails.

    This exception is raised when:
    - Configuration schema validation fails
    - Required environment variables are missing
    - Input records cannot be validated
    """
    pass


class TowerMapStorageError(TowerMapBaseException):
    """
    Exception raised when the region/tower store cannot be read or written.

    This exception is raised when:
    - The database file cannot be opened
    - A write keeps failing after retries
    - The stored schema is unusable
    """
    pass


class TowerMapProcessingError(TowerMapBaseException):
    """
    Exception raised when boundary processing fails as a whole.

    This exception is raised when:
    - A region source cannot be loaded
    - Region import fails
    - Assignment results cannot be written
    """
    pass
