"""Spatial Query Engine for Boundary Assignment

Ray casting containment tests and batch assignment of towers to the first
containing region, with statistics and the operator report.
"""

from .point_in_polygon import point_in_ring, contains, find_containing_polygon_index
from .spatial_query_models import (
    AssignmentOutcome,
    PointAssignment,
    AssignmentStatistics,
    RegionTally,
    TowerExtent,
    AssignmentRun,
    AssignmentReport,
    SpatialProcessingConfig,
    RegionSourceConfig,
)
from .spatial_assigner import SpatialAssigner, build_leaderboard, build_report

__all__ = [
    # Containment
    'point_in_ring',
    'contains',
    'find_containing_polygon_index',
    # Models
    'AssignmentOutcome',
    'PointAssignment',
    'AssignmentStatistics',
    'RegionTally',
    'TowerExtent',
    'AssignmentRun',
    'AssignmentReport',
    'SpatialProcessingConfig',
    'RegionSourceConfig',
    # Assignment
    'SpatialAssigner',
    'build_leaderboard',
    'build_report',
]
