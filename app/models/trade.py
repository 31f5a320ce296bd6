import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, utcnow
from app.models.plot import ResourceType


class TradeStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"
    expired = "expired"


class Trade(Base):
    __tablename__ = "trades"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, index=True)
    from_player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False, index=True)
    to_player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False, index=True)
    offered_resource: Mapped[ResourceType] = mapped_column(Enum(ResourceType), nullable=False)
    offered_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    requested_resource: Mapped[ResourceType] = mapped_column(Enum(ResourceType), nullable=False)
    requested_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[TradeStatus] = mapped_column(
        Enum(TradeStatus), nullable=False, default=TradeStatus.pending
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
