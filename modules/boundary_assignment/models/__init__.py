"""Boundary Assignment Data Models

This package contains the Pydantic data models for the boundary assignment
module: boundary geometries, raw OSM elements, regions and tower points.
"""

from .geometry import (
    Point2D,
    Ring,
    Polygon,
    MultiPolygon,
    Geometry,
    geometry_from_geojson,
    serialize_geometry,
    parse_geometry,
    geometry_to_wkt,
)
from .osm_elements import (
    MemberRole,
    LatLon,
    RelationMember,
    OSMNode,
    OSMWay,
    OSMRelation,
    OSMElementIndex,
    parse_osm_elements,
)
from .entities import RegionRecord, Region, StoredRegion, PointEntity

__all__ = [
    'Point2D', 'Ring', 'Polygon', 'MultiPolygon', 'Geometry',
    'geometry_from_geojson', 'serialize_geometry', 'parse_geometry', 'geometry_to_wkt',
    'MemberRole', 'LatLon', 'RelationMember', 'OSMNode', 'OSMWay', 'OSMRelation',
    'OSMElementIndex', 'parse_osm_elements',
    'RegionRecord', 'Region', 'StoredRegion', 'PointEntity',
]
