"""Point-in-Polygon Testing

Crossing-number (ray casting) containment test over boundary geometries.

Only outer rings are tested: a point inside a hole of a polygon still counts as
contained. Points lying exactly on an edge or vertex get a deterministic but
otherwise unspecified answer.
"""

from typing import Optional, Sequence, Union

from ..models.geometry import MultiPolygon, Point2D, Polygon, Ring

RingLike = Union[Ring, Sequence[Sequence[float]]]
PointLike = Union[Point2D, Sequence[float]]


def point_in_ring(point: PointLike, ring: RingLike) -> bool:
    """Ray casting test of a point against one closed ring.

    Args:
        point: (lon, lat) position
        ring: Ring model or raw list of [lon, lat] positions

    Returns:
        True if the point lies inside the ring
    """
    x, y = point[0], point[1]
    vertices = ring.points if isinstance(ring, Ring) else ring

    inside = False
    j = len(vertices) - 1
    for i in range(len(vertices)):
        xi, yi = vertices[i][0], vertices[i][1]
        xj, yj = vertices[j][0], vertices[j][1]
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def contains(point: PointLike, geometry: Union[Polygon, MultiPolygon]) -> bool:
    """Test whether a geometry contains a point.

    Polygons are tested against their outer ring only. A MultiPolygon contains
    the point if any member polygon's outer ring does; the scan stops at the
    first match.
    """
    if isinstance(geometry, Polygon):
        return point_in_ring(point, geometry.outer)
    return any(point_in_ring(point, polygon.outer) for polygon in geometry.polygons)


def find_containing_polygon_index(point: PointLike, geometry: MultiPolygon) -> Optional[int]:
    """Index of the first member polygon whose outer ring contains the point.

    Useful when checking which part of a fragmented boundary (mainland versus
    islands) a tower falls in.
    """
    for index, polygon in enumerate(geometry.polygons):
        if point_in_ring(point, polygon.outer):
            return index
    return None
