"""Region and Tower Input Sources

Loaders for the files that feed an import run:

- boundary GeoJSON FeatureCollections (ONS county files, geoBoundaries
  exports, ...) with a configurable name property
- saved Overpass JSON responses holding boundary relations
- tower CSV files with id, latitude and longitude columns

Built regions can be written back out as a FeatureCollection, so an Overpass
response converted once can be imported later as a plain GeoJSON source.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd
from pydantic import BaseModel, Field, ValidationError

from ..exceptions import GeometryDecodeError, RegionSourceError
from ..geometry_builder.relation_builder import RelationGeometryBuilder
from ..models.entities import PointEntity, RegionRecord
from ..models.geometry import geometry_from_geojson
from ..models.osm_elements import OSMElementIndex
from ..spatial_query.spatial_query_models import RegionSourceConfig

logger = logging.getLogger(__name__)

REQUIRED_POINT_COLUMNS = ["id", "latitude", "longitude"]


class RegionLoadResult(BaseModel):
    """Region records read from one source, with per-reason skip counts."""
    source: str = Field(..., description="Source file path")
    records: List[RegionRecord] = Field(default_factory=list)
    skipped: Dict[str, int] = Field(default_factory=dict, description="Skip reason to count")

    def skip(self, reason: str) -> None:
        self.skipped[reason] = self.skipped.get(reason, 0) + 1

    def get_skipped_count(self) -> int:
        return sum(self.skipped.values())

    def get_summary(self) -> Dict[str, Any]:
        return {"source": self.source, "regions": len(self.records), "skipped": dict(self.skipped)}


def _read_json(path: Path) -> Any:
    if not path.exists():
        raise RegionSourceError(f"Region source not found: {path}", {"path": str(path)})
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise RegionSourceError(f"Invalid JSON in region source {path}: {e}", {"path": str(path)})
    except OSError as e:
        raise RegionSourceError(f"Cannot read region source {path}: {e}", {"path": str(path)})


def load_geojson_regions(path: Union[str, Path], name_property: str = "name") -> RegionLoadResult:
    """Read regions from a GeoJSON FeatureCollection.

    Features without a name or without a Polygon/MultiPolygon geometry are
    skipped and counted.

    Raises:
        RegionSourceError: If the file is missing, not JSON or not a FeatureCollection
    """
    path = Path(path)
    data = _read_json(path)
    if not isinstance(data, dict) or data.get("type") != "FeatureCollection":
        raise RegionSourceError(f"{path} is not a GeoJSON FeatureCollection", {"path": str(path)})

    result = RegionLoadResult(source=str(path))
    for position, feature in enumerate(data.get("features") or []):
        if not isinstance(feature, dict):
            result.skip("bad_feature")
            logger.warning(f"Feature {position} is not a JSON object, skipping")
            continue

        properties = feature.get("properties")
        if not isinstance(properties, dict):
            properties = {}
        name = properties.get(name_property)
        if not isinstance(name, str) or not name.strip():
            result.skip("missing_name")
            logger.debug(f"Feature {position} has no '{name_property}' property")
            continue

        try:
            geometry = geometry_from_geojson(feature.get("geometry"))
        except GeometryDecodeError as e:
            result.skip("bad_geometry")
            logger.warning(f"Skipping {name}: {e}")
            continue

        result.records.append(RegionRecord(name=name, geometry=geometry, properties=properties))

    logger.info(f"Loaded {len(result.records)} regions from {path} "
                f"({result.get_skipped_count()} skipped)")
    return result


def load_overpass_regions(path: Union[str, Path], validate_with_shapely: bool = False) -> RegionLoadResult:
    """Build regions from a saved Overpass JSON response.

    Raises:
        RegionSourceError: If the file is missing or not an Overpass response
    """
    path = Path(path)
    data = _read_json(path)
    if not isinstance(data, dict) or not isinstance(data.get("elements"), list):
        raise RegionSourceError(f"{path} is not an Overpass JSON response", {"path": str(path)})

    index = OSMElementIndex.from_response(data)
    logger.debug(f"Overpass response contents: {index.get_summary()}")

    built = RelationGeometryBuilder(validate_with_shapely=validate_with_shapely).build_region_records(index)

    result = RegionLoadResult(source=str(path), records=built.records)
    if built.skipped_unnamed:
        result.skipped["missing_name"] = built.skipped_unnamed
    if built.skipped_no_geometry:
        result.skipped["no_outer_ring"] = built.skipped_no_geometry
    return result


def save_regions_geojson(records: Sequence[RegionRecord], path: Union[str, Path],
                         name_property: str = "name") -> int:
    """Write region records as a GeoJSON FeatureCollection.

    The region name is stored under ``name_property`` next to the record's
    own properties (osm_id, admin_level, ...), so the file can be read back
    with ``load_geojson_regions``.

    Returns:
        Number of features written

    Raises:
        RegionSourceError: If the file cannot be written
    """
    path = Path(path)
    features = []
    for record in records:
        properties = dict(record.properties)
        properties[name_property] = record.name
        features.append({"type": "Feature", "properties": properties, "geometry": record.geometry.to_geojson()})

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump({"type": "FeatureCollection", "features": features}, f, indent=2, default=str)
    except OSError as e:
        raise RegionSourceError(f"Cannot write regions to {path}: {e}", {"path": str(path)})

    logger.info(f"Saved {len(features)} regions to {path}")
    return len(features)


def load_region_source(config: RegionSourceConfig, base_dir: Optional[Union[str, Path]] = None,
                       validate_with_shapely: bool = False) -> RegionLoadResult:
    """Load a configured region source; relative paths resolve against ``base_dir``."""
    path = Path(config.path)
    if base_dir is not None and not path.is_absolute():
        path = Path(base_dir) / path

    if config.format == "overpass":
        return load_overpass_regions(path, validate_with_shapely=validate_with_shapely)
    return load_geojson_regions(path, name_property=config.name_property)


def load_points_csv(path: Union[str, Path]) -> List[PointEntity]:
    """Read towers from a CSV file.

    Required columns are ``id``, ``latitude`` and ``longitude``; an optional
    ``region_id`` column carries an existing assignment. Rows that fail
    validation are skipped with a warning.

    Raises:
        RegionSourceError: If the file cannot be read or lacks a required column
    """
    path = Path(path)
    if not path.exists():
        raise RegionSourceError(f"Tower file not found: {path}", {"path": str(path)})

    try:
        df = pd.read_csv(path, dtype={"id": str})
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise RegionSourceError(f"Cannot parse tower file {path}: {e}", {"path": str(path)})

    missing = [column for column in REQUIRED_POINT_COLUMNS if column not in df.columns]
    if missing:
        raise RegionSourceError(f"Tower file {path} is missing columns: {', '.join(missing)}",
                                {"path": str(path), "missing": missing})

    has_region = "region_id" in df.columns
    points: List[PointEntity] = []
    skipped = 0
    for row in df.itertuples(index=False):
        region_id = getattr(row, "region_id") if has_region else None
        try:
            points.append(PointEntity(
                id=row.id,
                latitude=row.latitude,
                longitude=row.longitude,
                assigned_region_id=None if region_id is None or pd.isna(region_id) else int(region_id),
            ))
        except (ValidationError, ValueError, TypeError) as e:
            skipped += 1
            logger.warning(f"Skipping tower row {row.id}: {e}")

    if skipped:
        logger.warning(f"Skipped {skipped} invalid tower rows in {path}")
    logger.info(f"Loaded {len(points)} towers from {path}")
    return points
