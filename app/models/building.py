import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, utcnow


class BuildingType(str, enum.Enum):
    headquarters = "headquarters"
    barracks = "barracks"
    factory = "factory"
    depot = "depot"
    radar = "radar"
    industry = "industry"
    farm = "farm"
    infrastructure = "infrastructure"
    housing = "housing"
    storage = "storage"
    federal = "federal"


class Building(Base):
    """A building on a plot.

    At most one of is_under_construction / is_upgrading is set at a time;
    neither set means the building is operational.
    """

    __tablename__ = "buildings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, index=True)
    plot_id: Mapped[int] = mapped_column(ForeignKey("plots.id"), nullable=False, index=True)
    type: Mapped[BuildingType] = mapped_column(Enum(BuildingType), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_level: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    is_under_construction: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    construction_start: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    construction_end: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    is_upgrading: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    upgrade_end: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    can_cancel: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    @property
    def is_operational(self) -> bool:
        return not self.is_under_construction and not self.is_upgrading


class ConstructionQueueEntry(Base):
    """One queued construction. plot_id is unique: a plot builds one thing at a time."""

    __tablename__ = "construction_queue"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plot_id: Mapped[int] = mapped_column(ForeignKey("plots.id"), unique=True, nullable=False)
    building_id: Mapped[int] = mapped_column(ForeignKey("buildings.id"), nullable=False)
    queue_position: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    started_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
