"""Boundary Assignment Processing Logic

This package contains the BoundaryAssignmentProcessor class that implements the
ModuleProcessor interface for region import and tower assignment runs.
"""

from .boundary_assignment_processor import BoundaryAssignmentProcessor, MODULE_NAME

__all__ = ['BoundaryAssignmentProcessor', 'MODULE_NAME']
