"""Region and Tower Storage

Abstract storage interface for regions and tower assignments, plus the SQLite
implementation used for local runs, built on SQLAlchemy.

Regions are stored with their geometry as a GeoJSON string and are upserted by
name, so a region keeps its id across re-imports unless the store is cleared
first. Transient ``database is locked`` errors are retried.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Sequence, TypeVar, Union

from pydantic import BaseModel, Field
from sqlalchemy import bindparam, create_engine, delete, func, literal_column, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.exceptions import TowerMapStorageError
from src.utils import get_logger

from ..exceptions import AssignmentWriteException
from ..models.entities import PointEntity, RegionRecord, StoredRegion
from ..models.geometry import serialize_geometry
from ..spatial_query.spatial_query_models import PointAssignment
from .schema import Base, RegionRow, TowerRow

logger = get_logger(__name__)

T = TypeVar("T")

REGIONS = RegionRow.__table__
TOWERS = TowerRow.__table__


class RegionImportResult(BaseModel):
    """Outcome of importing region records into the store."""
    created: int = Field(0, ge=0)
    updated: int = Field(0, ge=0)
    cleared_regions: int = Field(0, ge=0, description="Regions deleted before import")
    cleared_assignments: int = Field(0, ge=0, description="Tower assignments reset before import")
    region_ids: Dict[str, int] = Field(default_factory=dict, description="Region name to stored id")

    @property
    def total(self) -> int:
        return self.created + self.updated

    def get_summary(self) -> Dict[str, int]:
        return {
            "created": self.created,
            "updated": self.updated,
            "cleared_regions": self.cleared_regions,
            "cleared_assignments": self.cleared_assignments,
        }


class RegionRepository(ABC):
    """Storage interface used by the boundary assignment processor."""

    @abstractmethod
    def list_regions(self) -> List[StoredRegion]:
        """All regions in id order, geometry still encoded."""
        pass

    @abstractmethod
    def import_regions(self, records: Iterable[RegionRecord], clear_existing: bool = False) -> RegionImportResult:
        """Upsert regions by name.

        With ``clear_existing`` every tower assignment is cleared and every
        region deleted before the records are written.
        """
        pass

    @abstractmethod
    def list_points(self) -> List[PointEntity]:
        pass

    @abstractmethod
    def upsert_points(self, points: Iterable[PointEntity]) -> int:
        pass

    @abstractmethod
    def write_assignments(self, assignments: Sequence[PointAssignment], batch_size: int = 500) -> int:
        """Persist tower assignments in chunks of ``batch_size``.

        Returns:
            Number of towers written
        """
        pass

    @abstractmethod
    def clear_assignments(self) -> int:
        pass

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class SQLiteRegionRepository(RegionRepository):
    """SQLite-backed region and tower store.

    ``":memory:"`` gives a throwaway store whose single connection is shared
    by every session.
    """

    def __init__(self, database_path: Union[str, Path] = ":memory:", timeout: float = 5.0):
        self.database_path = str(database_path)
        if self.database_path == ":memory:":
            self._engine = create_engine("sqlite://", poolclass=StaticPool,
                                         connect_args={"check_same_thread": False, "timeout": timeout})
        else:
            Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)
            self._engine = create_engine(f"sqlite:///{self.database_path}", connect_args={"timeout": timeout})

        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            raise TowerMapStorageError(f"Cannot open region store: {e}", {"database": self.database_path})

        self._session_factory = sessionmaker(self._engine, expire_on_commit=False)
        logger.debug(f"Region store opened at {self.database_path}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
        retry=retry_if_exception_type(OperationalError),
        reraise=True
    )
    def _transaction(self, work: Callable[[Session], T]) -> T:
        """Run ``work`` in one transaction, retrying transient lock errors."""
        with self._session_factory.begin() as session:
            return work(session)

    def _run(self, description: str, work: Callable[[Session], T]) -> T:
        try:
            return self._transaction(work)
        except SQLAlchemyError as e:
            error_msg = f"{description} failed: {getattr(e, 'orig', None) or e}"
            logger.error(error_msg)
            raise TowerMapStorageError(error_msg, {"database": self.database_path})

    def list_regions(self) -> List[StoredRegion]:
        rows = self._run("Listing regions", lambda session: session.execute(
            select(RegionRow.id, RegionRow.name, RegionRow.geometry).order_by(RegionRow.id)).all())
        return [StoredRegion(id=row.id, name=row.name, geometry_json=row.geometry) for row in rows]

    def count_regions(self) -> int:
        return self._run("Counting regions",
                         lambda session: session.execute(select(func.count()).select_from(REGIONS)).scalar_one())

    @staticmethod
    def _clear(session: Session) -> int:
        return session.execute(
            update(TOWERS).where(TOWERS.c.region_id.is_not(None)).values(region_id=None)).rowcount

    def import_regions(self, records: Iterable[RegionRecord], clear_existing: bool = False) -> RegionImportResult:
        records = list(records)

        def work(session: Session) -> RegionImportResult:
            result = RegionImportResult()
            if clear_existing:
                result.cleared_assignments = self._clear(session)
                result.cleared_regions = session.execute(delete(REGIONS)).rowcount

            existing = dict(session.execute(select(REGIONS.c.name, REGIONS.c.id)).all())
            for record in records:
                stmt = sqlite_insert(REGIONS).values(
                    name=record.name,
                    geometry=serialize_geometry(record.geometry),
                    properties=json.dumps(record.properties, default=str),
                )
                session.execute(stmt.on_conflict_do_update(
                    index_elements=[REGIONS.c.name],
                    set_={"geometry": stmt.excluded.geometry, "properties": stmt.excluded.properties},
                ))
                if record.name in existing:
                    result.updated += 1
                else:
                    existing[record.name] = session.execute(
                        select(REGIONS.c.id).where(REGIONS.c.name == record.name)).scalar_one()
                    result.created += 1
                result.region_ids[record.name] = existing[record.name]
            return result

        result = self._run("Importing regions", work)
        logger.info(f"Imported {result.total} regions "
                    f"({result.created} created, {result.updated} updated)")
        return result

    def list_points(self) -> List[PointEntity]:
        rows = self._run("Listing towers", lambda session: session.execute(
            select(TOWERS.c.id, TOWERS.c.latitude, TOWERS.c.longitude, TOWERS.c.region_id)
            .order_by(literal_column("rowid"))).all())
        return [PointEntity(id=row.id, latitude=row.latitude, longitude=row.longitude,
                            assigned_region_id=row.region_id) for row in rows]

    def upsert_points(self, points: Iterable[PointEntity]) -> int:
        rows = [{"id": str(p.id), "latitude": p.latitude, "longitude": p.longitude,
                 "region_id": p.assigned_region_id} for p in points]
        if not rows:
            return 0

        stmt = sqlite_insert(TOWERS)
        stmt = stmt.on_conflict_do_update(
            index_elements=[TOWERS.c.id],
            set_={
                "latitude": stmt.excluded.latitude,
                "longitude": stmt.excluded.longitude,
                "region_id": stmt.excluded.region_id,
            },
        )

        def work(session: Session) -> int:
            session.execute(stmt, rows)
            return len(rows)

        count = self._run("Writing towers", work)
        logger.info(f"Stored {count} towers")
        return count

    def write_assignments(self, assignments: Sequence[PointAssignment], batch_size: int = 500) -> int:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        stmt = (update(TOWERS)
                .where(TOWERS.c.id == bindparam("tower_id"))
                .values(region_id=bindparam("new_region_id")))
        written = 0
        failed_ids: List[str] = []
        for start in range(0, len(assignments), batch_size):
            chunk = assignments[start:start + batch_size]
            rows = [{"tower_id": str(a.point_id), "new_region_id": a.region_id} for a in chunk]
            try:
                self._run("Writing assignments", lambda session: session.execute(stmt, rows))
                written += len(rows)
                logger.debug(f"Wrote assignment batch {start // batch_size + 1} ({len(rows)} towers)")
            except TowerMapStorageError as e:
                logger.warning(f"Assignment batch starting at {start} failed: {e}")
                failed_ids.extend(row["tower_id"] for row in rows)

        if failed_ids:
            raise AssignmentWriteException(f"Failed to write {len(failed_ids)} tower assignments", failed_ids)

        logger.info(f"Wrote {written} tower assignments")
        return written

    def clear_assignments(self) -> int:
        return self._run("Clearing assignments", self._clear)

    def close(self) -> None:
        self._engine.dispose()
        logger.debug(f"Region store closed at {self.database_path}")
