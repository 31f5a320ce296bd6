"""Player accounts: registration, password login and bearer tokens."""

from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.player import Player


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def _password_matches(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # AI accounts store a placeholder that is not a bcrypt hash
        return False


def create_access_token(player_id: int) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {"sub": str(player_id), "exp": expire}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> int | None:
    """Player id carried by a valid, unexpired token, else None."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        return int(payload["sub"])
    except (JWTError, KeyError, ValueError):
        return None


async def register_player(db: AsyncSession, email: str, username: str, password: str) -> Player:
    """Create a human account. Raises ValueError if the email or username is taken."""
    result = await db.execute(
        select(Player).where(or_(Player.email == email, Player.username == username))
    )
    taken = result.scalars().all()
    if any(p.email == email for p in taken):
        raise ValueError("Email already registered")
    if taken:
        raise ValueError("Username already taken")

    player = Player(email=email, username=username, hashed_password=hash_password(password))
    db.add(player)
    try:
        await db.commit()
    except IntegrityError:
        # unique email/username: a concurrent registration won
        await db.rollback()
        raise ValueError("Email or username already registered")
    await db.refresh(player)
    return player


async def authenticate_player(db: AsyncSession, email: str, password: str) -> Player | None:
    """The human player owning these credentials, or None."""
    result = await db.execute(select(Player).where(Player.email == email, Player.is_ai == False))  # noqa: E712
    player = result.scalar_one_or_none()
    if player is None or not _password_matches(password, player.hashed_password):
        return None
    return player
