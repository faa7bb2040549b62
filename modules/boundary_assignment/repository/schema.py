"""Region store tables."""

from typing import Optional

from sqlalchemy import Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class RegionRow(Base):
    """Administrative region with its geometry stored as a GeoJSON string."""

    __tablename__ = "regions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    geometry: Mapped[str] = mapped_column(Text, nullable=False)
    properties: Mapped[str] = mapped_column(Text, nullable=False, default="{}")


class TowerRow(Base):
    """Water tower and the region it is currently assigned to."""

    __tablename__ = "towers"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    region_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("regions.id"), nullable=True)
