"""Spatial Assignment of Towers to Regions

Classifies every tower against an ordered region set and records how each
assignment changed. The first region (in caller order) whose boundary contains
a tower wins; a tower no region contains has its assignment cleared.

Running the assigner twice over the same inputs yields identical assignments,
with every assigned tower reported as unchanged on the second run.
"""

import logging
import time
from typing import Callable, List, Optional, Sequence, Tuple, Union

from src.utils import log_performance

from ..exceptions import GeometryDecodeError
from ..models.entities import PointEntity, Region, StoredRegion
from .point_in_polygon import contains
from .spatial_query_models import (
    AssignmentOutcome,
    AssignmentReport,
    AssignmentRun,
    PointAssignment,
    RegionTally,
    TowerExtent,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
RegionInput = Union[Region, StoredRegion]


def _classify(previous: Optional[int], current: Optional[int]) -> AssignmentOutcome:
    if current is None:
        return AssignmentOutcome.UNASSIGNED if previous is None else AssignmentOutcome.CLEARED
    if previous is None:
        return AssignmentOutcome.NEWLY_ASSIGNED
    if previous == current:
        return AssignmentOutcome.UNCHANGED
    return AssignmentOutcome.RE_ASSIGNED


class SpatialAssigner:
    """Assigns towers to the first containing region.

    The assigner keeps no state between runs.
    """

    def __init__(self, progress_interval: int = 1000, progress_callback: Optional[ProgressCallback] = None):
        """Initialize the assigner.

        Args:
            progress_interval: Log progress every N towers
            progress_callback: Called with (processed, total) at every progress step
                and once at the end
        """
        if progress_interval < 1:
            raise ValueError("progress_interval must be at least 1")
        self.progress_interval = progress_interval
        self.progress_callback = progress_callback

    def prepare_regions(self, regions: Sequence[RegionInput]) -> Tuple[List[Region], int]:
        """Decode stored regions once, dropping any with unusable geometry.

        Returns:
            (decoded regions in input order, number of regions skipped)
        """
        decoded: List[Region] = []
        skipped = 0
        for region in regions:
            if isinstance(region, StoredRegion):
                try:
                    region = region.decode()
                except GeometryDecodeError as e:
                    skipped += 1
                    logger.warning(f"Skipping region {region.id} ({region.name}): {e}")
                    continue
            decoded.append(region)
        return decoded, skipped

    def find_region(self, point: PointEntity, regions: Sequence[Region]) -> Optional[Region]:
        """First region whose geometry contains the tower, or None."""
        for region in regions:
            if contains(point.point, region.geometry):
                return region
        return None

    @log_performance
    def assign(self, regions: Sequence[RegionInput], points: Sequence[PointEntity]) -> AssignmentRun:
        """Assign every tower to a region.

        Each tower's ``assigned_region_id`` is overwritten with the result,
        including being cleared to None when no region contains it.

        Args:
            regions: Regions in priority order (decoded or as stored)
            points: Towers to classify

        Returns:
            AssignmentRun with per-tower results and statistics
        """
        start_time = time.time()
        run = AssignmentRun()

        decoded, skipped = self.prepare_regions(regions)
        run.statistics.regions_skipped = skipped
        if not decoded:
            logger.warning("No usable regions; every tower will be unassigned")

        total = len(points)
        logger.info(f"Assigning {total} towers against {len(decoded)} regions")

        for processed, point in enumerate(points, start=1):
            previous = point.assigned_region_id
            match = self.find_region(point, decoded)
            current = match.id if match is not None else None

            outcome = _classify(previous, current)
            point.assigned_region_id = current
            run.assignments.append(PointAssignment(
                point_id=point.id,
                previous_region_id=previous,
                region_id=current,
                outcome=outcome,
            ))
            run.statistics.record(outcome)

            if processed % self.progress_interval == 0:
                logger.info(f"Processed {processed}/{total} towers")
                if self.progress_callback:
                    self.progress_callback(processed, total)

        if self.progress_callback and total % self.progress_interval != 0:
            self.progress_callback(total, total)

        run.processing_duration = time.time() - start_time
        logger.info(f"Assignment complete: {run.statistics.get_summary()}")
        return run


def build_leaderboard(run: AssignmentRun, regions: Sequence[RegionInput], size: int = 20) -> List[RegionTally]:
    """Regions ordered by tower count, descending.

    Ties keep the regions' input order. Regions without towers are left out.
    """
    counts = run.get_region_counts()
    tallies = [
        RegionTally(region_id=region.id, name=region.name, count=counts[region.id])
        for region in regions
        if counts.get(region.id, 0) > 0
    ]
    tallies.sort(key=lambda tally: tally.count, reverse=True)
    return tallies[:size]


def build_report(run: AssignmentRun, regions: Sequence[RegionInput], regions_imported: int = 0,
                 leaderboard_size: int = 20, points: Optional[Sequence[PointEntity]] = None) -> AssignmentReport:
    """Assemble the operator report for an assignment run.

    When the assigned towers are passed in, the report also carries the
    coordinate ranges of assigned and unassigned towers.
    """
    report = AssignmentReport(
        regions_imported=regions_imported,
        statistics=run.statistics,
        leaderboard=build_leaderboard(run, regions, leaderboard_size),
        processing_rate=run.get_processing_rate(),
    )
    if points is not None:
        report.assigned_extent = TowerExtent.from_points([p for p in points if p.is_assigned()])
        report.unassigned_extent = TowerExtent.from_points([p for p in points if not p.is_assigned()])
    return report
