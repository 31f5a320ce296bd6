"""Troop upkeep, morale and desertion.

Each tick every ready stack (count > 0, not training) charges its food and
fuel upkeep to the owning plot. A plot that cannot pay both in full pays
nothing and the stack loses morale; a supplied stack recovers morale.
Stacks at morale 10 or below may desert.
"""

import logging
import math
import random
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import case, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import GameSettings
from app.models.plot import Plot, ResourceType
from app.models.troop import Troop
from app.services.plot_service import spend_resources

logger = logging.getLogger(__name__)

MORALE_PENALTY = 5
MORALE_RECOVERY = 2
MORALE_MIN = 0
MORALE_MAX = 100
DESERTION_MORALE_THRESHOLD = 10
DESERTION_PROBABILITY = 0.1
DESERTION_FRACTION = 0.1


@dataclass
class UpkeepResult:
    troop_id: int
    supplied: bool
    morale: int
    deserted: int = 0


def required_upkeep(troop: Troop) -> tuple[int, int]:
    """(food, fuel) owed this tick: per-unit rate times stack size."""
    return troop.upkeep_food * troop.count, troop.upkeep_fuel * troop.count


def roll_desertion(morale: int, count: int, rng: random.Random | None = None) -> int:
    """Units lost to desertion this tick (0 unless morale is at or below 10)."""
    _rand = rng or random
    if morale > DESERTION_MORALE_THRESHOLD or count <= 0:
        return 0
    if _rand.random() >= DESERTION_PROBABILITY:
        return 0
    return min(count, math.ceil(count * DESERTION_FRACTION))


def resolve_upkeep(
    troop: Troop,
    supplied: bool,
    game_settings: GameSettings,
    rng: random.Random | None = None,
) -> UpkeepResult:
    """New morale and desertion for a stack, given whether it was supplied."""
    if supplied:
        change = math.floor(MORALE_RECOVERY * game_settings.morale_recovery_rate)
    else:
        change = -math.floor(MORALE_PENALTY * game_settings.morale_drop_rate)
    morale = max(MORALE_MIN, min(MORALE_MAX, troop.morale + change))
    deserted = roll_desertion(morale, troop.count, rng)
    return UpkeepResult(troop_id=troop.id, supplied=supplied, morale=morale, deserted=deserted)


def _reduced(column, amount: int):
    return case((column > amount, column - amount), else_=0)


async def apply_upkeep(
    db: AsyncSession,
    troop: Troop,
    game_settings: GameSettings,
    rng: random.Random | None = None,
) -> UpkeepResult:
    """Charge one stack's upkeep and settle its morale (no commit).

    Food and fuel are debited together in one conditional UPDATE, so a plot
    short on either pays nothing. Unit and population losses are applied
    relative to the stored rows.
    """
    food_cost, fuel_cost = required_upkeep(troop)
    supplied = await spend_resources(
        db, troop.plot_id, {ResourceType.food: food_cost, ResourceType.fuel: fuel_cost}
    )
    outcome = resolve_upkeep(troop, supplied, game_settings, rng)

    await db.execute(
        update(Troop)
        .where(Troop.id == troop.id)
        .values(morale=outcome.morale, count=_reduced(Troop.count, outcome.deserted))
        .execution_options(synchronize_session=False)
    )
    if outcome.deserted:
        await db.execute(
            update(Plot)
            .where(Plot.id == troop.plot_id)
            .values(population_current=_reduced(Plot.population_current, outcome.deserted))
            .execution_options(synchronize_session=False)
        )
    return outcome


async def run_upkeep_tick(
    session_factory: async_sessionmaker[AsyncSession],
    game_settings: GameSettings,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> list[UpkeepResult]:
    """Charge upkeep for every ready stack, one transaction per stack."""
    async with session_factory() as db:
        result = await db.execute(
            select(Troop.id)
            .where(Troop.count > 0, Troop.is_training == False)  # noqa: E712
            .order_by(Troop.plot_id, Troop.id)
        )
        troop_ids = list(result.scalars().all())

    results: list[UpkeepResult] = []
    for troop_id in troop_ids:
        async with session_factory() as db:
            try:
                troop = await db.get(Troop, troop_id, with_for_update=True)
                if troop is None or troop.count <= 0 or troop.is_training:
                    continue
                outcome = await apply_upkeep(db, troop, game_settings, rng)
                await db.commit()
                results.append(outcome)
                if outcome.deserted:
                    logger.info(
                        "%d units deserted from troop %s (morale %d)",
                        outcome.deserted, troop_id, outcome.morale,
                    )
            except SQLAlchemyError:
                await db.rollback()
                logger.exception("Upkeep failed for troop %s", troop_id)
    return results
