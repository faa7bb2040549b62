"""Boundary Assignment Specific Exceptions

Extends the framework exception hierarchy with error types raised while
decoding stored boundaries, loading region sources and writing assignments.
"""

from typing import List, Optional

from src.exceptions import TowerMapProcessingError, TowerMapValidationError


class GeometryDecodeError(TowerMapValidationError):
    """Stored or supplied geometry is not a usable Polygon/MultiPolygon."""
    pass


class RegionSourceError(TowerMapProcessingError):
    """A region source file is missing, unreadable or in an unsupported format."""
    pass


class AssignmentWriteException(TowerMapProcessingError):
    """Exception for tower assignment write failures."""

    def __init__(self, message: str, failed_ids: Optional[List[str]] = None):
        super().__init__(message, {"failed_count": len(failed_ids or [])})
        self.failed_ids = failed_ids or []
