"""Unit tests for RelationGeometryBuilder.

Covers way resolution from node tables and inline geometry, outer/inner
classification and the Polygon/MultiPolygon decision.
"""

import logging

import pytest

from modules.boundary_assignment.geometry_builder import RelationGeometryBuilder
from modules.boundary_assignment.models import (
    MultiPolygon,
    OSMElementIndex,
    Point2D,
    Polygon,
    RelationMember,
)


def node(node_id, lon, lat):
    return {"type": "node", "id": node_id, "lat": lat, "lon": lon}


def way(way_id, *node_ids):
    return {"type": "way", "id": way_id, "nodes": list(node_ids)}


def relation(relation_id, members, name="Test County"):
    tags = {"name": name, "admin_level": "6", "boundary": "administrative"} if name else {}
    return {
        "type": "relation",
        "id": relation_id,
        "tags": tags,
        "members": [{"type": "way", "ref": ref, "role": role} for ref, role in members],
    }


@pytest.fixture
def square_nodes():
    """Corners of a 4x4 outer square, a 1x1 hole and a far 2x2 island."""
    return [
        node(1, 0, 0), node(2, 4, 0), node(3, 4, 4), node(4, 0, 4),
        node(11, 1, 1), node(12, 2, 1), node(13, 2, 2), node(14, 1, 2),
        node(21, 10, 10), node(22, 12, 10), node(23, 12, 12), node(24, 10, 12),
    ]


@pytest.fixture
def builder():
    return RelationGeometryBuilder()


class TestBuild:
    """Test geometry construction for single relations."""

    def test_single_outer_builds_polygon(self, builder, square_nodes):
        """Test a relation split over two ways with mixed directions."""
        index = OSMElementIndex.from_response({"elements": square_nodes + [
            way(100, 1, 2, 3),
            way(101, 1, 4, 3),
            relation(1, [(100, "outer"), (101, "outer")]),
        ]})

        geometry = builder.build(index.relations[0], index)

        assert isinstance(geometry, Polygon)
        assert geometry.inners == ()
        assert list(geometry.outer.points) == [
            Point2D(0, 0), Point2D(4, 0), Point2D(4, 4), Point2D(0, 4), Point2D(0, 0)
        ]

    def test_empty_role_counts_as_outer(self, builder, square_nodes):
        """Test members without a role are treated as outer."""
        index = OSMElementIndex.from_response({"elements": square_nodes + [
            way(100, 1, 2, 3, 4, 1),
            relation(1, [(100, "")]),
        ]})

        assert isinstance(builder.build(index.relations[0], index), Polygon)

    def test_inner_ring_attached(self, builder, square_nodes):
        """Test inner members become holes of the outer polygon."""
        index = OSMElementIndex.from_response({"elements": square_nodes + [
            way(100, 1, 2, 3, 4, 1),
            way(200, 11, 12, 13, 14, 11),
            relation(1, [(100, "outer"), (200, "inner")]),
        ]})

        geometry = builder.build(index.relations[0], index)

        assert len(geometry.inners) == 1
        assert geometry.inners[0].first == Point2D(1, 1)

    def test_multiple_outer_rings_build_multipolygon(self, builder, square_nodes):
        """Test every polygon of a MultiPolygon carries all inner rings."""
        index = OSMElementIndex.from_response({"elements": square_nodes + [
            way(100, 1, 2, 3, 4, 1),
            way(300, 21, 22, 23, 24, 21),
            way(200, 11, 12, 13, 14, 11),
            relation(1, [(100, "outer"), (200, "inner"), (300, "outer")]),
        ]})

        geometry = builder.build(index.relations[0], index)

        assert isinstance(geometry, MultiPolygon)
        assert len(geometry.polygons) == 2
        assert geometry.polygons[1].outer.first == Point2D(10, 10)
        assert all(len(polygon.inners) == 1 for polygon in geometry.polygons)

    def test_no_outer_ring_returns_none(self, builder, square_nodes):
        """Test a relation with only inner rings yields no geometry."""
        index = OSMElementIndex.from_response({"elements": square_nodes + [
            way(200, 11, 12, 13, 14, 11),
            relation(1, [(200, "inner")]),
        ]})

        assert builder.build(index.relations[0], index) is None

    def test_non_ring_roles_ignored(self, builder, square_nodes):
        """Test subarea and similar roles do not contribute rings."""
        index = OSMElementIndex.from_response({"elements": square_nodes + [
            way(100, 1, 2, 3, 4, 1),
            way(300, 21, 22, 23, 24, 21),
            relation(1, [(100, "outer"), (300, "subarea")]),
        ]})

        assert isinstance(builder.build(index.relations[0], index), Polygon)


class TestWayResolution:
    """Test how way members are resolved to coordinates."""

    def test_dangling_node_skips_whole_way(self, builder, square_nodes, caplog):
        """Test a way referencing a missing node is dropped entirely."""
        index = OSMElementIndex.from_response({"elements": square_nodes + [
            way(100, 1, 2, 999, 3, 4, 1),
            relation(1, [(100, "outer")]),
        ]})

        with caplog.at_level(logging.DEBUG):
            geometry = builder.build(index.relations[0], index)

        assert geometry is None
        assert "missing node 999" in caplog.text

    def test_missing_way_skipped(self, builder, square_nodes):
        """Test members referencing ways absent from the response are skipped."""
        index = OSMElementIndex.from_response({"elements": square_nodes + [
            way(100, 1, 2, 3, 4, 1),
            relation(1, [(100, "outer"), (555, "outer")]),
        ]})

        assert isinstance(builder.build(index.relations[0], index), Polygon)

    def test_member_inline_geometry_preferred(self, builder):
        """Test out-geom member coordinates are used without a node table."""
        index = OSMElementIndex.from_response({"elements": [{
            "type": "relation", "id": 1, "tags": {"name": "Inline"},
            "members": [{
                "type": "way", "ref": 100, "role": "outer",
                "geometry": [
                    {"lat": 0, "lon": 0}, {"lat": 0, "lon": 3},
                    {"lat": 3, "lon": 3}, {"lat": 3, "lon": 0}
                ]
            }]
        }]})

        geometry = builder.build(index.relations[0], index)

        assert geometry.outer.points[1] == Point2D(3, 0)
        assert geometry.outer.first == geometry.outer.last

    def test_way_inline_geometry_used(self, builder):
        """Test a way carrying its own geometry needs no nodes."""
        index = OSMElementIndex.from_response({"elements": [
            {"type": "way", "id": 100, "nodes": [1, 2, 3, 4],
             "geometry": [{"lat": 0, "lon": 0}, {"lat": 0, "lon": 2}, {"lat": 2, "lon": 2}, {"lat": 2, "lon": 0}]},
            relation(1, [(100, "outer")]),
        ]})

        assert isinstance(builder.build(index.relations[0], index), Polygon)

    def test_resolve_way_too_short(self, builder):
        """Test a way with a single resolved point is unusable."""
        index = OSMElementIndex.from_response({"elements": [node(1, 0, 0), way(100, 1)]})

        assert builder.resolve_way(RelationMember(type="way", ref=100), index) is None


class TestBuildRegionRecords:
    """Test conversion of whole responses into region records."""

    def test_records_and_skip_counts(self, builder, square_nodes):
        """Test named relations become records; others are counted."""
        index = OSMElementIndex.from_response({"elements": square_nodes + [
            way(100, 1, 2, 3, 4, 1),
            way(200, 11, 12, 13, 14, 11),
            relation(1, [(100, "outer")], name="Suffolk"),
            relation(2, [(100, "outer")], name=None),
            relation(3, [(200, "inner")], name="Holes Only"),
        ]})

        result = builder.build_region_records(index)

        assert [record.name for record in result.records] == ["Suffolk"]
        assert result.records[0].properties == {"osm_id": 1, "admin_level": "6", "boundary": "administrative"}
        assert result.get_summary() == {
            "relations_seen": 3,
            "regions_built": 1,
            "skipped_unnamed": 1,
            "skipped_no_geometry": 1,
            "invalid_geometries": 0,
        }

    def test_shapely_validity_diagnostics(self, square_nodes, caplog):
        """Test self-intersecting rings are reported but kept unchanged."""
        builder = RelationGeometryBuilder(validate_with_shapely=True)
        index = OSMElementIndex.from_response({"elements": square_nodes + [
            # Bow-tie: (0,0) -> (4,0) -> (0,4) -> (4,4) -> (0,0)
            way(100, 1, 2, 4, 3, 1),
            relation(1, [(100, "outer")], name="Bow Tie"),
        ]})

        with caplog.at_level(logging.WARNING):
            result = builder.build_region_records(index)

        assert len(result.records) == 1
        assert result.invalid_geometries == 1
        assert "Geometry for Bow Tie is invalid" in caplog.text
