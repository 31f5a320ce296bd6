import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, utcnow


class Nation(str, enum.Enum):
    union = "union"
    dominion = "dominion"
    syndicate = "syndicate"


class Player(Base):
    """An account. Human and AI players share the table; AI rows have is_ai set."""

    __tablename__ = "players"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    nation: Mapped[Nation | None] = mapped_column(Enum(Nation), nullable=True, default=None)
    is_ai: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
