"""OSM Element Data Models

Pydantic models for the raw OpenStreetMap elements returned by an Overpass
query: a tagged union of node, way and relation, with relation member roles
mapped onto the Outer/Inner ring roles used for boundary assembly.

These models are read-only inputs; nothing in the boundary pipeline mutates them.
"""

import logging
from enum import Enum
from typing import Annotated, Any, Dict, Iterable, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from .geometry import Point2D

logger = logging.getLogger(__name__)


class MemberRole(str, Enum):
    """Ring role of a relation member."""
    OUTER = "outer"
    INNER = "inner"

    @classmethod
    def from_tag(cls, role: Optional[str]) -> Optional["MemberRole"]:
        """Map an OSM role tag to a ring role.

        An empty or missing role counts as outer. Roles that carry no ring
        meaning (admin_centre, label, subarea, ...) map to None.
        """
        if role is None or role == "" or role == cls.OUTER.value:
            return cls.OUTER
        if role == cls.INNER.value:
            return cls.INNER
        return None


class LatLon(BaseModel):
    """Inline coordinate as emitted by Overpass ``out geom``."""

    model_config = ConfigDict(frozen=True)

    lat: float
    lon: float

    def to_point(self) -> Point2D:
        return Point2D(self.lon, self.lat)


class RelationMember(BaseModel):
    """Member reference of an OSM relation."""

    model_config = ConfigDict(frozen=True)

    type: Literal["node", "way", "relation"]
    ref: int
    role: Optional[MemberRole] = Field(MemberRole.OUTER, description="Ring role, None for non-ring roles")
    geometry: Optional[Tuple[LatLon, ...]] = Field(None, description="Inline way geometry (out geom)")

    @field_validator('role', mode='before')
    @classmethod
    def map_role(cls, v: Any) -> Optional[MemberRole]:
        if isinstance(v, MemberRole):
            return v
        return MemberRole.from_tag(v)


class OSMNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["node"]
    id: int
    lat: float
    lon: float
    tags: Dict[str, str] = Field(default_factory=dict)

    def to_point(self) -> Point2D:
        return Point2D(self.lon, self.lat)


class OSMWay(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["way"]
    id: int
    nodes: Tuple[int, ...] = ()
    geometry: Optional[Tuple[LatLon, ...]] = None
    tags: Dict[str, str] = Field(default_factory=dict)


class OSMRelation(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["relation"]
    id: int
    tags: Dict[str, str] = Field(default_factory=dict)
    members: Tuple[RelationMember, ...] = ()

    @property
    def name(self) -> Optional[str]:
        return self.tags.get("name")

    def get_way_members(self, role: MemberRole) -> List[RelationMember]:
        """Way members carrying the given ring role, in relation order."""
        return [m for m in self.members if m.type == "way" and m.role == role]


OSMElement = Annotated[Union[OSMNode, OSMWay, OSMRelation], Field(discriminator="type")]

_ELEMENT_ADAPTER = TypeAdapter(OSMElement)
_SUPPORTED_TYPES = ("node", "way", "relation")


def parse_osm_elements(payload: Union[Dict[str, Any], Iterable[Dict[str, Any]]]) -> List[Union[OSMNode, OSMWay, OSMRelation]]:
    """Validate the elements of an Overpass JSON response.

    Elements that fail validation are skipped one by one so that a single bad
    record does not discard the whole response.

    Args:
        payload: Either the full response ``{"elements": [...]}`` or the element list

    Returns:
        List of validated node, way and relation models in input order
    """
    raw_elements = payload.get("elements", []) if isinstance(payload, dict) else payload

    elements = []
    skipped = 0
    for raw in raw_elements:
        element_type = raw.get("type") if isinstance(raw, dict) else None
        if element_type not in _SUPPORTED_TYPES:
            logger.debug(f"Ignoring unsupported OSM element type: {element_type}")
            continue
        try:
            elements.append(_ELEMENT_ADAPTER.validate_python(raw))
        except ValidationError as e:
            skipped += 1
            logger.warning(f"Skipping invalid OSM {element_type} {raw.get('id', 'unknown')}: "
                           f"{e.error_count()} validation error(s)")

    if skipped:
        logger.warning(f"Skipped {skipped} invalid OSM elements")
    logger.debug(f"Parsed {len(elements)} OSM elements")
    return elements


class OSMElementIndex:
    """Lookup table of nodes and ways for one Overpass response.

    Node and way ids are separate namespaces in OSM, so each element type has
    its own dictionary.
    """

    def __init__(self, elements: Iterable[Union[OSMNode, OSMWay, OSMRelation]]):
        self.nodes: Dict[int, OSMNode] = {}
        self.ways: Dict[int, OSMWay] = {}
        self.relations: List[OSMRelation] = []

        for element in elements:
            if isinstance(element, OSMNode):
                self.nodes[element.id] = element
            elif isinstance(element, OSMWay):
                self.ways[element.id] = element
            else:
                self.relations.append(element)

    @classmethod
    def from_response(cls, payload: Union[Dict[str, Any], Iterable[Dict[str, Any]]]) -> "OSMElementIndex":
        return cls(parse_osm_elements(payload))

    def get_node(self, node_id: int) -> Optional[OSMNode]:
        return self.nodes.get(node_id)

    def get_way(self, way_id: int) -> Optional[OSMWay]:
        return self.ways.get(way_id)

    def get_summary(self) -> Dict[str, int]:
        return {
            "nodes": len(self.nodes),
            "ways": len(self.ways),
            "relations": len(self.relations),
        }
