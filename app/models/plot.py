import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, utcnow
from app.models.player import Nation


class ResourceType(str, enum.Enum):
    manpower = "manpower"
    materials = "materials"
    fuel = "fuel"
    food = "food"


class Plot(Base):
    __tablename__ = "plots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, index=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), unique=True, nullable=False)
    nation: Mapped[Nation] = mapped_column(Enum(Nation), nullable=False)
    hex_id: Mapped[str] = mapped_column(String(100), nullable=False)
    resource_specialization: Mapped[ResourceType] = mapped_column(
        Enum(ResourceType), nullable=False
    )

    manpower: Mapped[int] = mapped_column(Integer, default=100, nullable=False)
    materials: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    fuel: Mapped[int] = mapped_column(Integer, default=25, nullable=False)
    food: Mapped[int] = mapped_column(Integer, default=30, nullable=False)

    population_current: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    population_cap: Mapped[int] = mapped_column(Integer, default=50, nullable=False)

    last_resource_update: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    last_population_update: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    last_collect_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


def get_resource(plot: Plot, resource: ResourceType) -> int:
    """Read one resource counter. Only ResourceType members are accepted."""
    return getattr(plot, ResourceType(resource).value)


def resource_column(resource: ResourceType):
    """The mapped column for a resource, for use in SQL expressions."""
    return getattr(Plot, ResourceType(resource).value)
