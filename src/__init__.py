"""
Water Tower Boundary Utilities Core Package

This package contains the shared infrastructure (configuration, exceptions,
logging and the module processor interface) used by the boundary import and
tower assignment modules.
"""

from .interfaces import ModuleProcessor, ProcessingResult, ModuleStatus

__version__ = "1.0.0"
__all__ = ['ModuleProcessor', 'ProcessingResult', 'ModuleStatus']
