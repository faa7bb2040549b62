"""Unit tests for BoundaryAssignmentProcessor.

Each test builds a throwaway project directory (environment config, module
config and boundary files) and runs against an in-memory region store.
"""

import json
from unittest.mock import patch

import pytest

from src.config.config_loader import ConfigLoader
from src.exceptions import TowerMapConfigurationError, TowerMapStorageError
from modules.boundary_assignment.models import PointEntity
from modules.boundary_assignment.processor import MODULE_NAME, BoundaryAssignmentProcessor
from modules.boundary_assignment.repository import SQLiteRegionRepository, load_geojson_regions


def square(x0, y0, size):
    return {"type": "Polygon", "coordinates": [[
        [x0, y0], [x0 + size, y0], [x0 + size, y0 + size], [x0, y0 + size], [x0, y0]
    ]]}


def feature_collection(*named_geometries):
    return {"type": "FeatureCollection", "features": [
        {"type": "Feature", "properties": {"NAME": name}, "geometry": geometry}
        for name, geometry in named_geometries
    ]}


def write_json(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


ENVIRONMENT_CONFIG = {
    "environments": {
        "development": {
            "database_path": "data/test.sqlite3",
            "logging": {"level": "DEBUG"},
            "processing": {"batch_size": 2, "progress_interval": 1},
        }
    },
    "shared": {"logging": {"level": "INFO"}},
    "validation": {"required_environment_variables": []},
}


def module_config(**overrides):
    config = {
        "region_sources": {
            "counties": {"path": "data/counties.geojson", "name_property": "NAME"},
            "north": {"path": "data/north.geojson", "name_property": "NAME"},
            "empty": {"path": "data/empty.geojson", "name_property": "NAME"},
            "missing": {"path": "data/missing.geojson", "name_property": "NAME"},
        },
        "default_source": "counties",
        "assignment": {"clear_before_import": False, "leaderboard_size": 20, "cache_ttl_seconds": 300},
        "geometry": {"validate_with_shapely": False},
    }
    config.update(overrides)
    return config


@pytest.fixture
def project_dir(tmp_path):
    write_json(tmp_path / "config" / "environment_config.json", ENVIRONMENT_CONFIG)
    write_json(tmp_path / "modules" / MODULE_NAME / "config" / f"{MODULE_NAME}_config.json", module_config())
    write_json(tmp_path / "data" / "counties.geojson",
               feature_collection(("West", square(0, 0, 10)), ("East", square(20, 0, 10))))
    write_json(tmp_path / "data" / "north.geojson", feature_collection(("North", square(45, 45, 10))))
    write_json(tmp_path / "data" / "empty.geojson", feature_collection())
    return tmp_path


@pytest.fixture
def config_loader(project_dir):
    return ConfigLoader(config_dir=str(project_dir / "config"), modules_dir=str(project_dir / "modules"))


@pytest.fixture
def repository():
    repo = SQLiteRegionRepository(":memory:")
    repo.upsert_points([
        PointEntity(id="T1", latitude=5.0, longitude=5.0),
        PointEntity(id="T2", latitude=5.0, longitude=25.0),
        PointEntity(id="T3", latitude=50.0, longitude=50.0),
    ])
    yield repo
    repo.close()


@pytest.fixture
def processor(config_loader, repository):
    return BoundaryAssignmentProcessor(config_loader, environment="development", repository=repository)


def assignments_by_name(repository):
    names = {region.id: region.name for region in repository.list_regions()}
    return {p.id: names.get(p.assigned_region_id) for p in repository.list_points()}


class TestConfiguration:
    """Test configuration validation and merged settings."""

    def test_valid_configuration(self, processor):
        """Test the fixture configuration validates."""
        assert processor.validate_configuration() is True

    def test_processing_config_merges_environment_and_module(self, processor):
        """Test environment processing values and module sections are combined."""
        config = processor.get_processing_config()

        assert config.batch_size == 2
        assert config.progress_interval == 1
        assert config.leaderboard_size == 20
        assert config.cache_ttl_seconds == 300

    def test_missing_section_invalid(self, project_dir, config_loader, repository):
        """Test a module config without default_source fails validation."""
        config = module_config()
        del config["default_source"]
        write_json(project_dir / "modules" / MODULE_NAME / "config" / f"{MODULE_NAME}_config.json", config)

        processor = BoundaryAssignmentProcessor(config_loader, repository=repository)

        assert processor.validate_configuration() is False
        result = processor.process()
        assert result.success is False
        assert result.errors == ["Configuration validation failed"]

    def test_unknown_default_source_invalid(self, project_dir, config_loader, repository):
        """Test a default source that is not configured fails validation."""
        write_json(project_dir / "modules" / MODULE_NAME / "config" / f"{MODULE_NAME}_config.json",
                   module_config(default_source="nowhere"))

        processor = BoundaryAssignmentProcessor(config_loader, repository=repository)

        assert processor.validate_configuration() is False

    def test_unknown_environment_invalid(self, config_loader, repository):
        """Test an environment absent from the config file fails validation."""
        processor = BoundaryAssignmentProcessor(config_loader, environment="staging", repository=repository)

        assert processor.validate_configuration() is False


class TestProcess:
    """Test full import and assignment runs."""

    def test_real_run_imports_and_assigns(self, processor, repository):
        """Test regions are stored and changed assignments written."""
        result = processor.process()

        assert result.success is True
        assert result.records_processed == 3
        assert result.metadata["source"] == "counties"
        assert result.metadata["import"]["created"] == 2
        assert result.metadata["assignments_written"] == 2
        assert result.metadata["summary"] == "Assigned 2 of 3 towers across 2 regions (1 unassigned)"
        assert assignments_by_name(repository) == {"T1": "West", "T2": "East", "T3": None}

    def test_dry_run_writes_nothing(self, processor, repository):
        """Test a dry run reports the same outcome but leaves the store untouched."""
        result = processor.process(dry_run=True)

        assert result.success is True
        assert result.metadata["dry_run"] is True
        assert result.metadata["assignments_written"] == 0
        assert result.metadata["summary"] == "Assigned 2 of 3 towers across 2 regions (1 unassigned)"
        assert repository.list_regions() == []
        assert all(p.assigned_region_id is None for p in repository.list_points())

    def test_second_run_writes_nothing(self, processor):
        """Test re-running the same import leaves every assignment unchanged."""
        processor.process()
        result = processor.process()

        assert result.metadata["import"]["updated"] == 2
        assert result.metadata["assignments_written"] == 0
        assert result.metadata["report"]["statistics"]["unchanged"] == 2

    def test_import_keeps_existing_regions(self, processor, repository):
        """Test importing a second source adds to the existing regions."""
        processor.process()
        result = processor.process(source="north")

        assert result.metadata["assignments_written"] == 1
        assert assignments_by_name(repository) == {"T1": "West", "T2": "East", "T3": "North"}

    def test_clear_existing_replaces_regions(self, processor, repository):
        """Test clearing before import removes old regions and their assignments."""
        processor.process()
        result = processor.process(source="north", clear_existing=True)

        assert result.metadata["clear_existing"] is True
        assert result.metadata["import"]["cleared_regions"] == 2
        assert [r.name for r in repository.list_regions()] == ["North"]
        assert assignments_by_name(repository) == {"T1": None, "T2": None, "T3": "North"}

    def test_dry_run_with_clear_previews_cleared_store(self, processor, repository):
        """Test a clearing dry run treats existing assignments as cleared without touching them."""
        processor.process()
        result = processor.process(source="north", clear_existing=True, dry_run=True)

        statistics = result.metadata["report"]["statistics"]
        assert statistics["newly_assigned"] == 1
        assert statistics["unassigned"] == 2
        assert assignments_by_name(repository) == {"T1": "West", "T2": "East", "T3": None}

    def test_unknown_source(self, processor):
        """Test an unconfigured source name fails the run."""
        result = processor.process(source="atlantis")

        assert result.success is False
        assert "Unknown region source: atlantis" in result.errors[0]

    def test_source_without_regions(self, processor):
        """Test a source with no usable regions fails the run."""
        result = processor.process(source="empty")

        assert result.success is False
        assert "produced no regions" in result.errors[0]

    def test_missing_source_file(self, processor, repository):
        """Test a missing boundary file fails the run without touching the store."""
        result = processor.process(source="missing")

        assert result.success is False
        assert "Region source not found" in result.errors[0]
        assert repository.list_regions() == []

    def test_failed_write_still_refreshes_tower_cache(self, processor, repository):
        """Test towers are reloaded after a partly failed write so the next run sees stored assignments."""
        processor.get_processing_config().batch_size = 1
        real_run = repository._run
        calls = {"writes": 0}

        def fail_second_batch(description, work):
            if description == "Writing assignments":
                calls["writes"] += 1
                if calls["writes"] == 2:
                    raise TowerMapStorageError("Writing assignments failed: disk I/O error")
            return real_run(description, work)

        with patch.object(repository, "_run", side_effect=fail_second_batch):
            failed = processor.process()

        assert failed.success is False
        assert "Failed to write 1 tower assignments" in failed.errors[0]
        assert assignments_by_name(repository) == {"T1": "West", "T2": None, "T3": None}

        preview = processor.process(dry_run=True)

        statistics = preview.metadata["report"]["statistics"]
        assert statistics["unchanged"] == 1
        assert statistics["newly_assigned"] == 1

    def test_report_includes_unassigned_extent(self, processor):
        """Test the run report carries the range of towers outside every region."""
        processor.process()

        assert "Unassigned extent: lat 50.00000 to 50.00000, lon 50.00000 to 50.00000" in \
            processor.last_report.format_lines()

    def test_last_report_kept(self, processor):
        """Test the most recent report is available after a run."""
        processor.process()

        assert processor.last_report.leaderboard[0].name == "West"
        assert "Regions imported: 2" in processor.last_report.format_lines()


class TestExportRegions:
    """Test writing a configured source out as GeoJSON."""

    def test_export_default_source(self, processor, repository, tmp_path):
        """Test the default source is exported without touching the store."""
        output = tmp_path / "exported.geojson"

        assert processor.export_regions(str(output)) == 2

        assert [r.name for r in load_geojson_regions(output).records] == ["West", "East"]
        assert repository.list_regions() == []

    def test_export_unknown_source(self, processor, tmp_path):
        """Test exporting an unconfigured source raises a configuration error."""
        with pytest.raises(TowerMapConfigurationError, match="Unknown region source"):
            processor.export_regions(str(tmp_path / "out.geojson"), source="atlantis")


class TestTowersAndStatus:
    """Test tower import, caching and status reporting."""

    def test_import_towers_invalidates_cache(self, processor, tmp_path):
        """Test towers loaded from CSV are visible to the next load."""
        assert len(processor.load_towers()) == 3

        csv_path = tmp_path / "towers.csv"
        csv_path.write_text("id,latitude,longitude\nT4,1.0,1.0\n", encoding="utf-8")

        assert processor.import_towers(str(csv_path)) == 1
        assert len(processor.load_towers()) == 4

    def test_status_ready(self, processor):
        """Test status after a successful run."""
        processor.process()

        status = processor.get_status()

        assert status.module_name == MODULE_NAME
        assert status.status == "ready"
        assert status.health_check is True
        assert status.last_run is not None

    def test_status_error_when_misconfigured(self, config_loader, repository):
        """Test status reports error for an invalid environment."""
        processor = BoundaryAssignmentProcessor(config_loader, environment="staging", repository=repository)

        status = processor.get_status()

        assert status.status == "error"
        assert status.is_configured is False

    def test_close_leaves_injected_repository_open(self, processor, repository):
        """Test closing the processor does not close a store it was given."""
        processor.close()

        assert repository.list_regions() == []

    def test_repository_opened_from_config(self, config_loader, project_dir, monkeypatch):
        """Test the processor opens its own store at the configured path."""
        monkeypatch.setenv("TOWERMAP_DATABASE_PATH", str(project_dir / "data" / "own.sqlite3"))
        processor = BoundaryAssignmentProcessor(config_loader)

        repository = processor.get_repository()
        try:
            assert repository.database_path.endswith("own.sqlite3")
        finally:
            processor.close()
