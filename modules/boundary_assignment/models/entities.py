"""Region and Tower Data Models

This module defines the Pydantic models for the records exchanged with the
region store: boundary regions (decoded and as stored) and the tower points
that get assigned to them.
"""

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .geometry import Geometry, Point2D, parse_geometry, serialize_geometry

RegionId = int
PointId = Union[int, str]


class RegionRecord(BaseModel):
    """A region produced by an import source, before the store assigns an id.

    Attributes:
        name: Region display name (unique within the store)
        geometry: Polygon or MultiPolygon boundary
        properties: Source attributes kept for reporting (admin_level, osm_id, ...)
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Region name")
    geometry: Geometry = Field(..., description="Region boundary")
    properties: Dict[str, Any] = Field(default_factory=dict, description="Source attributes")

    @field_validator('name')
    @classmethod
    def strip_name(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError('Region name must not be blank')
        return stripped


class Region(BaseModel):
    """A stored region with decoded geometry."""

    model_config = ConfigDict(frozen=True)

    id: RegionId = Field(..., description="Store-assigned region id")
    name: str = Field(..., description="Region name")
    geometry: Geometry = Field(..., description="Region boundary")


class StoredRegion(BaseModel):
    """A region exactly as read from the store, geometry still JSON-encoded.

    Decoding is deferred so that one corrupt row only affects that region.
    """

    model_config = ConfigDict(frozen=True)

    id: RegionId
    name: str
    geometry_json: str

    @classmethod
    def from_region(cls, region: Region) -> "StoredRegion":
        return cls(id=region.id, name=region.name, geometry_json=serialize_geometry(region.geometry))

    def decode(self) -> Region:
        """Decode the stored geometry.

        Raises:
            GeometryDecodeError: If the stored JSON is not a usable geometry
        """
        return Region(id=self.id, name=self.name, geometry=parse_geometry(self.geometry_json))


class PointEntity(BaseModel):
    """A tower location with its current region assignment.

    ``assigned_region_id`` is only ever changed by the spatial assigner.
    """

    id: PointId = Field(..., description="Tower identifier")
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    assigned_region_id: Optional[RegionId] = Field(None, description="Current region, None when unassigned")

    @property
    def point(self) -> Point2D:
        return Point2D(self.longitude, self.latitude)

    def is_assigned(self) -> bool:
        return self.assigned_region_id is not None

    def get_location_summary(self) -> str:
        region_text = f"Region: {self.assigned_region_id}" if self.is_assigned() else "Region: Unassigned"
        return f"Tower {self.id} ({self.latitude:.5f}, {self.longitude:.5f}) - {region_text}"
