import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, utcnow


class TroopType(str, enum.Enum):
    infantry = "infantry"
    armor = "armor"
    artillery = "artillery"
    air = "air"


class Troop(Base):
    """A unit stack keyed by (plot, type).

    Training batches of the same type merge into one row, and the training /
    deployed flags apply to the whole stack: a stack is training, deployed or
    idle, never two of these at once.
    """

    __tablename__ = "troops"
    __table_args__ = (
        UniqueConstraint("plot_id", "type", name="uq_troops_plot_type"),
        # One training batch per plot
        Index(
            "uq_troops_training_plot",
            "plot_id",
            unique=True,
            sqlite_where=text("is_training = 1"),
            postgresql_where=text("is_training"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, index=True)
    plot_id: Mapped[int] = mapped_column(ForeignKey("plots.id"), nullable=False, index=True)
    type: Mapped[TroopType] = mapped_column(Enum(TroopType), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    strength: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    morale: Mapped[int] = mapped_column(Integer, nullable=False, default=100)

    is_training: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    training_start: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    training_end: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    is_deployed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deployment_end: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    target_hex: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Per-unit upkeep; the charge per tick is rate * count
    upkeep_food: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    upkeep_fuel: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    @property
    def is_idle(self) -> bool:
        return not self.is_training and not self.is_deployed
