from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.base import utcnow
from app.services.construction_service import complete_constructions, complete_upgrades
from app.services.notification_service import TIMER_UPDATE, broadcast
from app.services.training_service import complete_training


async def run_lifecycle_sweep(
    session_factory: async_sessionmaker[AsyncSession], now: datetime | None = None
) -> dict[str, int]:
    """Run the three completion sweeps and report their counts as one event."""
    now = now or utcnow()
    counts = {
        "upgrades_completed": await complete_upgrades(session_factory, now),
        "construction_completed": await complete_constructions(session_factory, now),
        "training_completed": await complete_training(session_factory, now),
    }
    if any(counts.values()):
        await broadcast(TIMER_UPDATE, {k: v for k, v in counts.items() if v})
    return counts
