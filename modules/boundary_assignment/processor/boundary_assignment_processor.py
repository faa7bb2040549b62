"""BoundaryAssignmentProcessor Implementation

This module implements the BoundaryAssignmentProcessor class, the single entry
point for importing administrative boundaries and re-assigning every water
tower to the region that contains it. It implements the ModuleProcessor
interface so that runs are validated, executed and reported like any other
module.

A run is parameterized by the region source to import and whether existing
regions are cleared first; a dry run performs the full computation without
writing anything.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from src.config.config_loader import ConfigLoader
from src.exceptions import TowerMapBaseException, TowerMapConfigurationError
from src.interfaces.module_processor import ModuleProcessor, ModuleStatus, ProcessingResult

from ..models.entities import PointEntity, Region, RegionRecord, StoredRegion
from ..repository import (
    PointCache,
    RegionLoadResult,
    RegionRepository,
    SQLiteRegionRepository,
    load_points_csv,
    load_region_source,
    save_regions_geojson,
)
from ..spatial_query import (
    AssignmentReport,
    RegionSourceConfig,
    SpatialAssigner,
    SpatialProcessingConfig,
    build_report,
)

logger = logging.getLogger(__name__)

MODULE_NAME = "boundary_assignment"
TOWER_CACHE_KEY = "towers"
REQUIRED_MODULE_SECTIONS = ["region_sources", "default_source", "assignment"]


class BoundaryAssignmentProcessor(ModuleProcessor):
    """Boundary import and tower assignment processor.

    Regions are imported from a configured source into the region store,
    then every stored tower is classified against the stored regions in id
    order and the changed assignments are written back in batches.
    """

    def __init__(self, config_loader: ConfigLoader, environment: str = "development",
                 repository: Optional[RegionRepository] = None):
        """Initialize the processor.

        Args:
            config_loader: ConfigLoader instance providing access to framework configuration
            environment: Environment whose configuration is used
            repository: Region store to use; a SQLite store at the configured
                database path is opened on first use when omitted
        """
        self.config_loader = config_loader
        self.environment = environment
        self._repository = repository
        self._owns_repository = repository is None
        self._module_config: Optional[Dict[str, Any]] = None
        self._processing_config: Optional[SpatialProcessingConfig] = None
        self._configuration_valid: Optional[bool] = None
        self._last_run: Optional[datetime] = None
        self.point_cache: Optional[PointCache] = None
        self.last_report: Optional[AssignmentReport] = None

        logger.info(f"BoundaryAssignmentProcessor initialized for {environment}")

    def _get_module_config(self) -> Dict[str, Any]:
        if self._module_config is None:
            self._module_config = self.config_loader.load_module_config(MODULE_NAME)
        return self._module_config

    def get_processing_config(self) -> SpatialProcessingConfig:
        """Processing settings from the environment and module configuration.

        Raises:
            TowerMapConfigurationError: If the merged settings are invalid
        """
        if self._processing_config is None:
            module_config = self._get_module_config()
            settings: Dict[str, Any] = {}
            settings.update(self.config_loader.get_processing_config(self.environment))
            settings.update(module_config.get("assignment", {}))
            settings.update(module_config.get("geometry", {}))
            try:
                self._processing_config = SpatialProcessingConfig(
                    **{k: v for k, v in settings.items() if k in SpatialProcessingConfig.model_fields})
            except ValidationError as e:
                raise TowerMapConfigurationError(f"Invalid processing configuration: {e}",
                                                 {"module": MODULE_NAME})
        return self._processing_config

    def get_region_sources(self) -> Dict[str, RegionSourceConfig]:
        """Configured region sources by name.

        Raises:
            TowerMapConfigurationError: If a source entry is invalid
        """
        sources = {}
        for name, entry in self._get_module_config().get("region_sources", {}).items():
            try:
                sources[name] = RegionSourceConfig(**entry)
            except (ValidationError, TypeError) as e:
                raise TowerMapConfigurationError(f"Invalid region source '{name}': {e}",
                                                 {"module": MODULE_NAME})
        return sources

    def validate_configuration(self) -> bool:
        """Validate environment and module configuration.

        Returns:
            bool: True if configuration is valid and complete, False otherwise
        """
        if self._configuration_valid is not None:
            return self._configuration_valid

        try:
            self.config_loader.load_environment_config(self.environment)
            module_config = self._get_module_config()

            for section in REQUIRED_MODULE_SECTIONS:
                if section not in module_config:
                    logger.error(f"Missing required configuration section: {section}")
                    self._configuration_valid = False
                    return False

            sources = self.get_region_sources()
            if not sources:
                logger.error("No region sources configured")
                self._configuration_valid = False
                return False

            default_source = module_config["default_source"]
            if default_source not in sources:
                logger.error(f"Default source '{default_source}' is not a configured region source")
                self._configuration_valid = False
                return False

            self.get_processing_config()

            logger.info("Module configuration validation successful")
            self._configuration_valid = True
            return True

        except TowerMapBaseException as e:
            logger.error(f"Configuration validation failed: {e}")
            self._configuration_valid = False
            return False

    def get_repository(self) -> RegionRepository:
        if self._repository is None:
            database_path = self.config_loader.get_database_path(self.environment)
            self._repository = SQLiteRegionRepository(database_path)
        return self._repository

    def _get_point_cache(self) -> PointCache:
        if self.point_cache is None:
            self.point_cache = PointCache(ttl_seconds=self.get_processing_config().cache_ttl_seconds)
        return self.point_cache

    def load_towers(self) -> List[PointEntity]:
        """Towers from the store, served from the point cache while fresh."""
        return self._get_point_cache().get_or_load(TOWER_CACHE_KEY, self.get_repository().list_points)

    def import_towers(self, csv_path: str) -> int:
        """Load towers from a CSV file into the store.

        Returns:
            Number of towers stored
        """
        points = load_points_csv(csv_path)
        count = self.get_repository().upsert_points(points)
        self._get_point_cache().invalidate(TOWER_CACHE_KEY)
        return count

    def load_regions(self, source: Optional[str] = None) -> RegionLoadResult:
        """Load the records of a configured region source without importing them.

        Raises:
            TowerMapConfigurationError: If the source is not configured
            RegionSourceError: If the source file cannot be read
        """
        sources = self.get_region_sources()
        source = source or self._get_module_config().get("default_source")
        if source not in sources:
            raise TowerMapConfigurationError(
                f"Unknown region source: {source} (available: {', '.join(sorted(sources))})",
                {"module": MODULE_NAME})

        return load_region_source(sources[source], base_dir=self.config_loader.config_dir.parent,
                                  validate_with_shapely=self.get_processing_config().validate_with_shapely)

    def export_regions(self, output_path: str, source: Optional[str] = None) -> int:
        """Write the regions built from a source to a GeoJSON FeatureCollection.

        Returns:
            Number of regions written
        """
        loaded = self.load_regions(source)
        return save_regions_geojson(loaded.records, output_path)

    def _preview_regions(self, records: Sequence[RegionRecord], clear_existing: bool) -> List[Region]:
        """Regions as they would be stored after import, without writing.

        Records matching an existing region by name keep its id; new records
        get ids following the highest existing one.
        """
        existing: List[StoredRegion] = [] if clear_existing else self.get_repository().list_regions()
        ids_by_name = {region.name: region.id for region in existing}
        next_id = max(ids_by_name.values(), default=0) + 1

        preview: Dict[int, Region] = {}
        for region in existing:
            try:
                preview[region.id] = region.decode()
            except TowerMapBaseException as e:
                logger.warning(f"Existing region {region.name} is unusable: {e}")

        for record in records:
            region_id = ids_by_name.get(record.name)
            if region_id is None:
                region_id = next_id
                ids_by_name[record.name] = region_id
                next_id += 1
            preview[region_id] = Region(id=region_id, name=record.name, geometry=record.geometry)

        return [preview[region_id] for region_id in sorted(preview)]

    def process(self, dry_run: bool = False, source: Optional[str] = None,
                clear_existing: Optional[bool] = None) -> ProcessingResult:
        """Import regions from a source and re-assign every tower.

        Args:
            dry_run: If True, compute everything but write nothing to the store
            source: Name of the configured region source (default source when None)
            clear_existing: Clear assignments and regions before import
                (module configuration default when None)

        Returns:
            ProcessingResult: Result with the import summary and assignment report in metadata
        """
        start_time = datetime.now()

        def failure(message: str) -> ProcessingResult:
            logger.error(message)
            return ProcessingResult(
                success=False,
                records_processed=0,
                errors=[message],
                metadata={"dry_run": dry_run, "source": source},
                execution_time=(datetime.now() - start_time).total_seconds()
            )

        logger.info(f"Starting boundary assignment (source={source}, dry_run={dry_run})")

        if not self.validate_configuration():
            return failure("Configuration validation failed")

        try:
            config = self.get_processing_config()
            sources = self.get_region_sources()
            source = source or self._get_module_config()["default_source"]
            if source not in sources:
                return failure(f"Unknown region source: {source} (available: {', '.join(sorted(sources))})")
            if clear_existing is None:
                clear_existing = config.clear_before_import

            loaded = self.load_regions(source)
            if not loaded.records:
                return failure(f"Region source {source} produced no regions")

            repository = self.get_repository()
            import_summary: Dict[str, Any] = {}
            if dry_run:
                logger.info(f"DRY RUN: would import {len(loaded.records)} regions (clear_existing={clear_existing})")
                regions = self._preview_regions(loaded.records, clear_existing)
                regions_imported = len(loaded.records)
            else:
                import_result = repository.import_regions(loaded.records, clear_existing=clear_existing)
                self._get_point_cache().invalidate(TOWER_CACHE_KEY)
                import_summary = import_result.get_summary()
                regions = repository.list_regions()
                regions_imported = import_result.total

            # The assigner rewrites assignments in place; keep cached towers untouched
            towers = [tower.model_copy() for tower in self.load_towers()]
            if dry_run and clear_existing:
                for tower in towers:
                    tower.assigned_region_id = None

            assigner = SpatialAssigner(progress_interval=config.progress_interval)
            run = assigner.assign(regions, towers)

            changed = run.get_changed_assignments()
            written = 0
            if dry_run:
                logger.info(f"DRY RUN: would write {len(changed)} changed assignments")
            else:
                try:
                    written = repository.write_assignments(changed, batch_size=config.batch_size)
                finally:
                    # Some batches may have committed even when the write fails
                    self._get_point_cache().invalidate(TOWER_CACHE_KEY)

            report = build_report(run, regions, regions_imported=regions_imported,
                                  leaderboard_size=config.leaderboard_size, points=towers)
            self.last_report = report
            for line in report.format_lines():
                logger.info(line)

            if not dry_run:
                self._last_run = datetime.now()

            return ProcessingResult(
                success=True,
                records_processed=run.statistics.points_checked,
                metadata={
                    "dry_run": dry_run,
                    "source": source,
                    "clear_existing": clear_existing,
                    "regions_loaded": len(loaded.records),
                    "regions_skipped_at_source": loaded.skipped,
                    "import": import_summary,
                    "assignments_written": written,
                    "report": report.model_dump(mode="json"),
                    "summary": report.get_processing_summary(),
                },
                execution_time=(datetime.now() - start_time).total_seconds()
            )

        except TowerMapBaseException as e:
            return failure(f"Boundary assignment failed: {e}")

    def get_status(self) -> ModuleStatus:
        """Get current module processing status."""
        is_configured = self.validate_configuration()
        health_check_result = self._health_check()

        return ModuleStatus(
            module_name=MODULE_NAME,
            is_configured=is_configured,
            last_run=self._last_run,
            status="ready" if is_configured and health_check_result else "error",
            health_check=health_check_result
        )

    def _health_check(self) -> bool:
        """Check configuration validity and that the region store answers."""
        if not self.validate_configuration():
            logger.debug("Health check failed: configuration invalid")
            return False

        try:
            self.get_repository().list_regions()
        except TowerMapBaseException as e:
            logger.debug(f"Health check failed: region store error: {e}")
            return False

        return True

    def close(self) -> None:
        """Close the region store if this processor opened it."""
        if self._repository is not None and self._owns_repository:
            self._repository.close()
            self._repository = None
