"""Relation Geometry Builder

Turns OSM boundary relations into Polygon/MultiPolygon geometries by resolving
their way members to coordinates, assembling outer and inner rings separately
and combining the results.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, Field
from shapely.geometry import shape
from shapely.validation import explain_validity

from ..models.entities import RegionRecord
from ..models.geometry import Geometry, MultiPolygon, Polygon, Ring
from ..models.osm_elements import MemberRole, OSMElementIndex, OSMRelation, RelationMember
from .ring_assembler import RingAssembler, WaySegment

logger = logging.getLogger(__name__)


class RegionBuildResult(BaseModel):
    """Outcome of converting an Overpass response into region records."""

    records: List[RegionRecord] = Field(default_factory=list)
    relations_seen: int = Field(0, ge=0)
    skipped_unnamed: int = Field(0, ge=0)
    skipped_no_geometry: int = Field(0, ge=0)
    invalid_geometries: int = Field(0, ge=0, description="Built but flagged invalid by shapely")

    def get_summary(self) -> Dict[str, Any]:
        return {
            "relations_seen": self.relations_seen,
            "regions_built": len(self.records),
            "skipped_unnamed": self.skipped_unnamed,
            "skipped_no_geometry": self.skipped_no_geometry,
            "invalid_geometries": self.invalid_geometries,
        }


class RelationGeometryBuilder:
    """Builds boundary geometries for OSM relations.

    Every inner ring is attached to every outer polygon; holes are not matched
    to the outer ring that actually contains them.
    """

    def __init__(self, assembler: Optional[RingAssembler] = None, validate_with_shapely: bool = False):
        """Initialize the builder.

        Args:
            assembler: Ring assembler to use (a fresh one by default)
            validate_with_shapely: Log a warning for geometries shapely reports as invalid
        """
        self.assembler = assembler or RingAssembler()
        self.validate_with_shapely = validate_with_shapely

    def resolve_way(self, member: RelationMember, index: OSMElementIndex) -> Optional[WaySegment]:
        """Resolve a way member to its coordinates.

        Inline member geometry wins over inline way geometry, which wins over
        the way's node references. A way referencing any node missing from the
        index is dropped as a whole.

        Returns:
            WaySegment with at least two points, or None if the way is unusable
        """
        if member.geometry:
            return self._segment(member.ref, [p.to_point() for p in member.geometry])

        way = index.get_way(member.ref)
        if way is None:
            logger.debug(f"Way {member.ref} not present in response")
            return None

        if way.geometry:
            return self._segment(way.id, [p.to_point() for p in way.geometry])

        points = []
        for node_id in way.nodes:
            node = index.get_node(node_id)
            if node is None:
                logger.debug(f"Way {way.id} references missing node {node_id}, skipping way")
                return None
            points.append(node.to_point())
        return self._segment(way.id, points)

    def _segment(self, way_id: int, points) -> Optional[WaySegment]:
        if len(points) < 2:
            logger.debug(f"Way {way_id} has fewer than 2 resolved points")
            return None
        return WaySegment(way_id=way_id, points=tuple(points))

    def _assemble_role(self, relation: OSMRelation, role: MemberRole,
                       index: OSMElementIndex) -> List[Ring]:
        segments = []
        for member in relation.get_way_members(role):
            segment = self.resolve_way(member, index)
            if segment is not None:
                segments.append(segment)
        return self.assembler.assemble(segments)

    def build(self, relation: OSMRelation, index: OSMElementIndex) -> Optional[Geometry]:
        """Build the geometry of one relation.

        Args:
            relation: Boundary relation
            index: Nodes and ways of the same response

        Returns:
            Polygon for a single outer ring, MultiPolygon for several, None when
            no outer ring could be assembled
        """
        outer_rings = self._assemble_role(relation, MemberRole.OUTER, index)
        if not outer_rings:
            return None

        inner_rings = tuple(self._assemble_role(relation, MemberRole.INNER, index))

        if len(outer_rings) == 1:
            return Polygon(outer=outer_rings[0], inners=inner_rings)

        return MultiPolygon(polygons=tuple(Polygon(outer=ring, inners=inner_rings) for ring in outer_rings))

    def check_validity(self, geometry: Geometry, label: str = "") -> bool:
        """Report whether shapely considers the geometry valid.

        The geometry is never modified; invalid geometries are only logged.
        """
        shapely_geometry = shape(geometry.to_geojson())
        if shapely_geometry.is_valid:
            return True
        logger.warning(f"Geometry for {label or 'relation'} is invalid: {explain_validity(shapely_geometry)}")
        return False

    def build_region_records(self, elements: Union[OSMElementIndex, Iterable[Any]]) -> RegionBuildResult:
        """Convert every named relation of a response into a RegionRecord.

        Args:
            elements: An OSMElementIndex or already validated OSM elements

        Returns:
            RegionBuildResult with the records and skip counts
        """
        index = elements if isinstance(elements, OSMElementIndex) else OSMElementIndex(elements)
        result = RegionBuildResult()

        for relation in index.relations:
            result.relations_seen += 1
            name = (relation.name or "").strip()
            if not name:
                result.skipped_unnamed += 1
                logger.debug(f"Relation {relation.id} has no name, skipping")
                continue

            geometry = self.build(relation, index)
            if geometry is None:
                result.skipped_no_geometry += 1
                logger.warning(f"No outer ring could be assembled for {name} (relation {relation.id})")
                continue

            if self.validate_with_shapely and not self.check_validity(geometry, name):
                result.invalid_geometries += 1

            properties = {"osm_id": relation.id}
            for tag in ("admin_level", "boundary"):
                if tag in relation.tags:
                    properties[tag] = relation.tags[tag]

            result.records.append(RegionRecord(name=name, geometry=geometry, properties=properties))

        logger.info(f"Built {len(result.records)} regions from {result.relations_seen} relations")
        return result
