"""Region Storage and Input Sources

Region/tower persistence, the tower list cache and the file loaders that feed
region imports.
"""

from .region_repository import RegionImportResult, RegionRepository, SQLiteRegionRepository
from .point_cache import PointCache
from .region_sources import (
    RegionLoadResult,
    load_geojson_regions,
    load_overpass_regions,
    load_region_source,
    load_points_csv,
    save_regions_geojson,
)

__all__ = [
    'RegionImportResult',
    'RegionRepository',
    'SQLiteRegionRepository',
    'PointCache',
    'RegionLoadResult',
    'load_geojson_regions',
    'load_overpass_regions',
    'load_region_source',
    'load_points_csv',
    'save_regions_geojson',
]
