"""Boundary Geometry Construction

Ring assembly from unordered OSM way segments and Polygon/MultiPolygon
construction for boundary relations.
"""

from .ring_assembler import WaySegment, RingAssembler, assemble_rings, close_ring
from .relation_builder import RegionBuildResult, RelationGeometryBuilder

__all__ = [
    'WaySegment',
    'RingAssembler',
    'assemble_rings',
    'close_ring',
    'RegionBuildResult',
    'RelationGeometryBuilder',
]
