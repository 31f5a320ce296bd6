import enum
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Enum, ForeignKey, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, utcnow


class ActionType(str, enum.Enum):
    move = "move"
    attack = "attack"
    occupy = "occupy"


class ActionStatus(str, enum.Enum):
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class PlayerAction(Base):
    """A troop movement in flight. Resolved exactly once; terminal states are final."""

    __tablename__ = "player_actions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False, index=True)
    plot_id: Mapped[int | None] = mapped_column(ForeignKey("plots.id"), nullable=True)
    action_type: Mapped[ActionType] = mapped_column(Enum(ActionType), nullable=False)
    from_hex: Mapped[str | None] = mapped_column(String(100), nullable=True)
    to_hex: Mapped[str] = mapped_column(String(100), nullable=False)
    # {"total_units": int, "total_strength": int, "deployed_troops": [...]}
    troop_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    completes_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    status: Mapped[ActionStatus] = mapped_column(
        Enum(ActionStatus), nullable=False, default=ActionStatus.in_progress
    )
