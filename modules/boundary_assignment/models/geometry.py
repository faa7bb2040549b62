"""Boundary Geometry Data Models

Immutable Pydantic models for the boundary geometries produced by ring assembly
and consumed by point-in-polygon testing: Point2D, Ring, Polygon and MultiPolygon,
plus GeoJSON, JSON-string and WKT conversions.

Coordinates are always (longitude, latitude), GeoJSON axis order.
"""

import json
from typing import Annotated, Any, Dict, List, Literal, NamedTuple, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..exceptions import GeometryDecodeError

MIN_RING_POINTS = 4


class Point2D(NamedTuple):
    """A (longitude, latitude) pair in decimal degrees."""

    lon: float
    lat: float

    @property
    def x(self) -> float:
        return self.lon

    @property
    def y(self) -> float:
        return self.lat


class Ring(BaseModel):
    """Closed loop of coordinates describing one boundary contour.

    The first and last points are coordinate-equal and the ring holds at least
    three distinct positions plus the closing point.
    """

    model_config = ConfigDict(frozen=True)

    points: Tuple[Point2D, ...] = Field(..., description="Ring coordinates, first == last")

    @field_validator('points')
    @classmethod
    def validate_closed(cls, v: Tuple[Point2D, ...]) -> Tuple[Point2D, ...]:
        """Reject degenerate or unclosed rings.

        Raises:
            ValueError: If the ring is shorter than 4 points or not closed
        """
        if len(v) < MIN_RING_POINTS:
            raise ValueError(f'Ring must contain at least {MIN_RING_POINTS} points, got {len(v)}')
        if v[0] != v[-1]:
            raise ValueError('Ring must be closed (first point must equal last point)')
        return v

    def __len__(self) -> int:
        return len(self.points)

    @property
    def first(self) -> Point2D:
        return self.points[0]

    @property
    def last(self) -> Point2D:
        return self.points[-1]

    def get_bounds(self) -> Tuple[float, float, float, float]:
        """Return (min_lon, min_lat, max_lon, max_lat)."""
        lons = [p.lon for p in self.points]
        lats = [p.lat for p in self.points]
        return min(lons), min(lats), max(lons), max(lats)

    def to_coordinates(self) -> List[List[float]]:
        return [[p.lon, p.lat] for p in self.points]

    def to_wkt_body(self) -> str:
        return "(" + ", ".join(f"{p.lon} {p.lat}" for p in self.points) + ")"


class Polygon(BaseModel):
    """One outer ring plus zero or more inner (hole) rings.

    Inner rings are assumed to lie within the outer ring; this is not checked.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["Polygon"] = "Polygon"
    outer: Ring = Field(..., description="Exterior boundary")
    inners: Tuple[Ring, ...] = Field(default=(), description="Hole rings")

    def to_coordinates(self) -> List[List[List[float]]]:
        return [self.outer.to_coordinates()] + [ring.to_coordinates() for ring in self.inners]

    def to_geojson(self) -> Dict[str, Any]:
        return {"type": "Polygon", "coordinates": self.to_coordinates()}

    def to_wkt(self) -> str:
        return f"POLYGON({self._wkt_rings()})"

    def _wkt_rings(self) -> str:
        return ", ".join(ring.to_wkt_body() for ring in (self.outer,) + self.inners)


class MultiPolygon(BaseModel):
    """Ordered sequence of polygons; the first containing polygon wins in tests."""

    model_config = ConfigDict(frozen=True)

    type: Literal["MultiPolygon"] = "MultiPolygon"
    polygons: Tuple[Polygon, ...] = Field(..., min_length=1, description="Member polygons")

    def to_coordinates(self) -> List[List[List[List[float]]]]:
        return [polygon.to_coordinates() for polygon in self.polygons]

    def to_geojson(self) -> Dict[str, Any]:
        return {"type": "MultiPolygon", "coordinates": self.to_coordinates()}

    def to_wkt(self) -> str:
        body = ", ".join(f"({polygon._wkt_rings()})" for polygon in self.polygons)
        return f"MULTIPOLYGON({body})"


Geometry = Annotated[Union[Polygon, MultiPolygon], Field(discriminator="type")]


def _ring_from_coordinates(coordinates: Sequence[Sequence[float]]) -> Ring:
    # GeoJSON positions may carry a third (altitude) value
    return Ring(points=tuple(Point2D(float(c[0]), float(c[1])) for c in coordinates))


def _polygon_from_coordinates(coordinates: Sequence[Sequence[Sequence[float]]]) -> Polygon:
    if not coordinates:
        raise ValueError("Polygon has no rings")
    rings = [_ring_from_coordinates(ring) for ring in coordinates]
    return Polygon(outer=rings[0], inners=tuple(rings[1:]))


def geometry_from_geojson(data: Dict[str, Any]) -> Union[Polygon, MultiPolygon]:
    """Build a geometry model from a GeoJSON Polygon/MultiPolygon object.

    Raises:
        GeometryDecodeError: If the object is not a usable Polygon or MultiPolygon
    """
    if not isinstance(data, dict):
        raise GeometryDecodeError("Geometry must be a JSON object",
                                  {"received": type(data).__name__})

    geometry_type = data.get("type")
    coordinates = data.get("coordinates")

    try:
        if geometry_type == "Polygon":
            return _polygon_from_coordinates(coordinates)
        if geometry_type == "MultiPolygon":
            if not coordinates:
                raise ValueError("MultiPolygon has no polygons")
            return MultiPolygon(polygons=tuple(_polygon_from_coordinates(p) for p in coordinates))
    except (ValidationError, ValueError, TypeError, IndexError, KeyError, OverflowError, AttributeError) as e:
        raise GeometryDecodeError(f"Invalid {geometry_type} coordinates: {e}",
                                  {"geometry_type": geometry_type})

    raise GeometryDecodeError(f"Unsupported geometry type: {geometry_type}",
                              {"geometry_type": geometry_type})


def serialize_geometry(geometry: Union[Polygon, MultiPolygon]) -> str:
    """Encode a geometry as the JSON string stored with each region."""
    return json.dumps(geometry.to_geojson())


def parse_geometry(geometry_json: str) -> Union[Polygon, MultiPolygon]:
    """Decode a stored geometry JSON string.

    Raises:
        GeometryDecodeError: If the string is not valid JSON or not a supported geometry
    """
    try:
        data = json.loads(geometry_json)
    except (TypeError, json.JSONDecodeError) as e:
        raise GeometryDecodeError(f"Geometry is not valid JSON: {e}")
    return geometry_from_geojson(data)


def geometry_to_wkt(geometry: Union[Polygon, MultiPolygon]) -> str:
    """WKT text for SQL-based spatial stores."""
    return geometry.to_wkt()
