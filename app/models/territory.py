import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, utcnow


class TerritoryControl(str, enum.Enum):
    union = "union"
    dominion = "dominion"
    syndicate = "syndicate"
    neutral = "neutral"


class Territory(Base):
    __tablename__ = "territories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, index=True)
    hex_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    q: Mapped[int | None] = mapped_column(Integer, nullable=True)
    r: Mapped[int | None] = mapped_column(Integer, nullable=True)
    controlled_by_nation: Mapped[TerritoryControl] = mapped_column(
        Enum(TerritoryControl), nullable=False, default=TerritoryControl.neutral
    )
    controlled_by_player_id: Mapped[int | None] = mapped_column(
        ForeignKey("players.id"), nullable=True, default=None
    )
    is_contested: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    under_attack: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_battle: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
