"""
Configuration management module for the Water Tower Boundary Utilities.

This module provides configuration loading and validation capabilities for
multi-environment deployments (development and production).
"""

from .config_loader import ConfigLoader, DATABASE_PATH_ENV_VAR

__all__ = ["ConfigLoader", "DATABASE_PATH_ENV_VAR"]
