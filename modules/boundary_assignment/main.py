"""Boundary Assignment Module Entry Point

Command-line interface for importing a region source and re-assigning every
water tower to its containing region.

Usage:
    python -m modules.boundary_assignment.main --source uk_counties --clear-existing
    python -m modules.boundary_assignment.main --towers-csv data/towers.csv --dry-run
    python -m modules.boundary_assignment.main --source osm_regions --export-geojson data/osm-regions.geojson
"""

import argparse
import sys
from typing import Optional

from src.config.config_loader import ConfigLoader
from src.exceptions import TowerMapBaseException
from src.utils import setup_logging

from .processor.boundary_assignment_processor import BoundaryAssignmentProcessor


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Water Tower Boundaries - Import regions and assign towers to them"
    )
    parser.add_argument(
        "--environment",
        choices=["development", "production"],
        default="development",
        help="Environment to run against (default: development)"
    )
    parser.add_argument(
        "--source",
        help="Configured region source to import (default: the module's default_source)"
    )
    parser.add_argument(
        "--clear-existing",
        action="store_true",
        default=None,
        help="Clear all tower assignments and regions before importing"
    )
    parser.add_argument(
        "--towers-csv",
        help="CSV file of towers (id, latitude, longitude) to load before assignment"
    )
    parser.add_argument(
        "--export-geojson",
        metavar="PATH",
        help="Write the regions built from --source to a GeoJSON file and exit without importing"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Perform all processing logic without writing to the region store"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override the configured log level"
    )
    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point for the boundary assignment module.

    Args:
        args: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parsed_args = build_parser().parse_args(args)

    config_loader = ConfigLoader()
    try:
        env_config = config_loader.load_environment_config(parsed_args.environment)
    except TowerMapBaseException as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    logging_config = env_config.get("logging", {})
    setup_logging(
        environment=parsed_args.environment,
        log_level=parsed_args.log_level or logging_config.get("level", "INFO"),
        log_dir=logging_config.get("log_dir")
    )

    processor = BoundaryAssignmentProcessor(config_loader, environment=parsed_args.environment)

    if parsed_args.export_geojson:
        try:
            count = processor.export_regions(parsed_args.export_geojson, source=parsed_args.source)
        except TowerMapBaseException as e:
            print(f"Region export failed: {e}", file=sys.stderr)
            return 1
        finally:
            processor.close()
        print(f"Saved {count} regions to {parsed_args.export_geojson}")
        return 0

    try:
        if parsed_args.towers_csv:
            if parsed_args.dry_run:
                print(f"Dry-run mode: towers in {parsed_args.towers_csv} are not loaded")
            else:
                count = processor.import_towers(parsed_args.towers_csv)
                print(f"Loaded {count} towers from {parsed_args.towers_csv}")

        result = processor.process(
            dry_run=parsed_args.dry_run,
            source=parsed_args.source,
            clear_existing=parsed_args.clear_existing
        )
    except TowerMapBaseException as e:
        print(f"Boundary assignment failed: {e}", file=sys.stderr)
        return 1
    finally:
        processor.close()

    if not result.success:
        for error in result.errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    if processor.last_report is not None:
        for line in processor.last_report.format_lines():
            print(line)
    print(f"Completed in {result.execution_time:.1f}s (dry run: {parsed_args.dry_run})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
