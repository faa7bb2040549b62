"""Boundary Assignment Module

Imports administrative boundaries (OSM relations or boundary GeoJSON files)
as regions and assigns every water tower to the first region that contains
it.
"""

from .processor import BoundaryAssignmentProcessor

__all__ = ['BoundaryAssignmentProcessor']

__version__ = "1.0.0"
