"""Spatial Assignment Models

Pydantic models for tower-to-region assignment results, run statistics, the
operator-facing report and the processing configuration.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, Field, field_validator

from ..models.entities import PointEntity, PointId, RegionId


class AssignmentOutcome(str, Enum):
    """How a point's assignment changed in one run."""
    NEWLY_ASSIGNED = "newly_assigned"
    RE_ASSIGNED = "re_assigned"
    UNCHANGED = "unchanged"
    UNASSIGNED = "unassigned"
    CLEARED = "cleared"


class PointAssignment(BaseModel):
    """Assignment result for a single tower.

    ``region_id`` is None when no region contains the tower.
    """
    point_id: PointId = Field(..., description="Tower identifier")
    previous_region_id: Optional[RegionId] = Field(None, description="Assignment before this run")
    region_id: Optional[RegionId] = Field(None, description="Assignment after this run")
    outcome: AssignmentOutcome = Field(..., description="Kind of change")

    def is_change(self) -> bool:
        """True when the stored assignment has to be written."""
        return self.previous_region_id != self.region_id


class AssignmentStatistics(BaseModel):
    """Counters for one assignment run.

    ``unassigned`` counts every point left without a region; ``cleared`` is the
    part of those that had a region before the run.
    """
    points_checked: int = Field(0, ge=0)
    newly_assigned: int = Field(0, ge=0)
    re_assigned: int = Field(0, ge=0)
    unchanged: int = Field(0, ge=0)
    unassigned: int = Field(0, ge=0)
    cleared: int = Field(0, ge=0)
    regions_skipped: int = Field(0, ge=0, description="Regions whose stored geometry failed to decode")

    def record(self, outcome: AssignmentOutcome) -> None:
        self.points_checked += 1
        if outcome == AssignmentOutcome.NEWLY_ASSIGNED:
            self.newly_assigned += 1
        elif outcome == AssignmentOutcome.RE_ASSIGNED:
            self.re_assigned += 1
        elif outcome == AssignmentOutcome.UNCHANGED:
            self.unchanged += 1
        else:
            self.unassigned += 1
            if outcome == AssignmentOutcome.CLEARED:
                self.cleared += 1

    def get_assigned_count(self) -> int:
        return self.newly_assigned + self.re_assigned + self.unchanged

    def get_assignment_rate(self) -> float:
        if self.points_checked == 0:
            return 0.0
        return self.get_assigned_count() / self.points_checked

    def get_summary(self) -> Dict[str, int]:
        return self.model_dump()


class RegionTally(BaseModel):
    """Number of towers assigned to one region."""
    region_id: RegionId
    name: str
    count: int = Field(ge=0)


class AssignmentRun(BaseModel):
    """Full result of one SpatialAssigner run."""
    assignments: List[PointAssignment] = Field(default_factory=list)
    statistics: AssignmentStatistics = Field(default_factory=AssignmentStatistics)
    processing_duration: float = Field(0.0, ge=0, description="Seconds spent assigning")

    def get_changed_assignments(self) -> List[PointAssignment]:
        """Assignments whose region differs from the stored one."""
        return [a for a in self.assignments if a.is_change()]

    def get_region_counts(self) -> Dict[RegionId, int]:
        counts: Dict[RegionId, int] = {}
        for assignment in self.assignments:
            if assignment.region_id is not None:
                counts[assignment.region_id] = counts.get(assignment.region_id, 0) + 1
        return counts

    def get_processing_rate(self) -> float:
        if self.processing_duration == 0:
            return 0.0
        return self.statistics.points_checked / self.processing_duration


class TowerExtent(BaseModel):
    """Latitude/longitude range covered by a group of towers."""
    count: int = Field(0, ge=0)
    min_latitude: float
    max_latitude: float
    min_longitude: float
    max_longitude: float

    @classmethod
    def from_points(cls, points: Sequence[PointEntity]) -> Optional["TowerExtent"]:
        """Extent of the given towers, or None when there are none."""
        if not points:
            return None
        latitudes = [p.latitude for p in points]
        longitudes = [p.longitude for p in points]
        return cls(
            count=len(points),
            min_latitude=min(latitudes),
            max_latitude=max(latitudes),
            min_longitude=min(longitudes),
            max_longitude=max(longitudes),
        )

    def format_range(self) -> str:
        return (f"lat {self.min_latitude:.5f} to {self.max_latitude:.5f}, "
                f"lon {self.min_longitude:.5f} to {self.max_longitude:.5f}")


class AssignmentReport(BaseModel):
    """Operator-facing summary of an import and assignment run.

    The tower extents are only filled in when the report is built with the
    towers themselves; they help spot towers lying outside every imported
    boundary.
    """
    regions_imported: int = Field(0, ge=0, description="Regions created or updated by the import")
    statistics: AssignmentStatistics = Field(default_factory=AssignmentStatistics)
    leaderboard: List[RegionTally] = Field(default_factory=list, description="Regions by tower count, descending")
    assigned_extent: Optional[TowerExtent] = Field(None, description="Range of assigned towers")
    unassigned_extent: Optional[TowerExtent] = Field(None, description="Range of unassigned towers")
    processing_rate: float = Field(0.0, ge=0, description="Towers assigned per second")
    generated_at: datetime = Field(default_factory=datetime.now)

    def format_lines(self) -> List[str]:
        """Human-readable summary lines."""
        stats = self.statistics
        lines = [
            f"Regions imported: {self.regions_imported}",
            f"Towers checked: {stats.points_checked}",
            f"Newly assigned: {stats.newly_assigned}",
            f"Re-assigned: {stats.re_assigned}",
            f"Unchanged: {stats.unchanged}",
            f"Unassigned: {stats.unassigned} (cleared: {stats.cleared})",
        ]
        if stats.regions_skipped:
            lines.append(f"Regions skipped (bad geometry): {stats.regions_skipped}")
        if self.assigned_extent:
            lines.append(f"Assigned extent: {self.assigned_extent.format_range()}")
        if self.unassigned_extent:
            lines.append(f"Unassigned extent: {self.unassigned_extent.format_range()}")
        if self.processing_rate:
            lines.append(f"Processing rate: {self.processing_rate:.0f} towers/s")
        if self.leaderboard:
            lines.append("Towers per region:")
            for position, tally in enumerate(self.leaderboard, start=1):
                lines.append(f"  {position:>2}. {tally.name}: {tally.count}")
        return lines

    def get_processing_summary(self) -> str:
        stats = self.statistics
        return (f"Assigned {stats.get_assigned_count()} of {stats.points_checked} towers "
                f"across {self.regions_imported} regions ({stats.unassigned} unassigned)")


class SpatialProcessingConfig(BaseModel):
    """Processing settings for the assignment run.

    Built from the environment ``processing`` section merged with the module
    ``assignment`` and ``geometry`` sections.
    """
    batch_size: int = Field(500, ge=1, le=10000, description="Towers per assignment write")
    progress_interval: int = Field(1000, ge=1, description="Log progress every N towers")
    leaderboard_size: int = Field(20, ge=0, description="Regions listed in the report")
    clear_before_import: bool = Field(False, description="Clear assignments and regions before import")
    validate_with_shapely: bool = Field(False, description="Log shapely validity diagnostics for built geometries")
    cache_ttl_seconds: float = Field(300.0, ge=0, description="Lifetime of the cached tower list")


class RegionSourceConfig(BaseModel):
    """One configured boundary source."""
    path: str = Field(..., min_length=1, description="Source file, relative to the project root or absolute")
    format: Literal["geojson", "overpass"] = Field("geojson", description="Source file format")
    name_property: str = Field("name", min_length=1, description="GeoJSON feature property holding the region name")
    description: Optional[str] = None

    @field_validator('format', mode='before')
    @classmethod
    def normalize_format(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v
