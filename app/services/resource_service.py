"""Economy tick: resource generation, population growth and manual collection."""

import logging
import math
from datetime import datetime, timedelta

from sqlalchemy import case, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import GameSettings
from app.models.base import utcnow
from app.models.building import BuildingType
from app.models.plot import Plot, ResourceType, get_resource, resource_column
from app.services.plot_service import (
    count_operational_buildings,
    credit_resources,
    lock_plot_for_player,
)

logger = logging.getLogger(__name__)

RESOURCE_INTERVAL = timedelta(minutes=3)
POPULATION_INTERVAL = timedelta(minutes=3)
COLLECT_COOLDOWN = timedelta(minutes=10)
COLLECT_BONUS_DIVISOR = 10  # floor(10 %) of each holding

# Gains per interval before the global rate multiplier
BASE_GAINS: dict[ResourceType, int] = {
    ResourceType.manpower: 8,
    ResourceType.materials: 8,
    ResourceType.fuel: 4,
    ResourceType.food: 12,
}
SPECIALIZATION_MULTIPLIER = 3
INDUSTRY_MATERIALS_BONUS = 8
FARM_FOOD_BONUS = 15

BASE_STORAGE_CAP = 1000
STORAGE_CAP_PER_BUILDING = 500
BASE_POPULATION_CAP = 50
POPULATION_CAP_PER_HOUSING = 25
POPULATION_GROWTH_PER_INTERVAL = 2


class CooldownError(ValueError):
    """Raised when a manual collection is attempted during the cooldown."""

    def __init__(self, remaining_seconds: int) -> None:
        super().__init__("Cooldown active. Please wait before collecting again.")
        self.remaining_seconds = remaining_seconds


def calculate_storage_cap(storage_count: int) -> int:
    return BASE_STORAGE_CAP + STORAGE_CAP_PER_BUILDING * storage_count


def calculate_population_cap(housing_count: int) -> int:
    return BASE_POPULATION_CAP + POPULATION_CAP_PER_HOUSING * housing_count


def calculate_resource_gains(
    specialization: ResourceType,
    industry_count: int,
    farm_count: int,
    game_settings: GameSettings,
) -> dict[ResourceType, int]:
    """Per-interval gain for each resource.

    The specialization resource gets the x3 multiplier on its base gain;
    building bonuses are flat and added afterwards.
    """
    gains: dict[ResourceType, int] = {}
    for resource, base in BASE_GAINS.items():
        gain = math.floor(base * game_settings.resource_generation_rate)
        if resource == specialization:
            gain *= SPECIALIZATION_MULTIPLIER
        gains[resource] = gain
    gains[ResourceType.materials] += industry_count * INDUSTRY_MATERIALS_BONUS
    gains[ResourceType.food] += farm_count * FARM_FOOD_BONUS
    return gains


def elapsed_intervals(last_update: datetime, now: datetime, interval: timedelta) -> int:
    if last_update is None:
        return 1
    return max(0, int((now - last_update) / interval))


async def apply_resource_generation(
    db: AsyncSession,
    plot: Plot,
    building_counts: dict[BuildingType, int],
    game_settings: GameSettings,
    now: datetime,
) -> int:
    """Add every whole elapsed interval's production to a plot (no commit).

    The new values are computed and clamped by the database from the stored
    row, so a spend committed since `plot` was read is kept. The UPDATE only
    matches while `last_resource_update` is unchanged, which stops two
    overlapping ticks from paying the same intervals twice.

    Returns the number of intervals applied (0 means nothing changed).
    """
    intervals = elapsed_intervals(plot.last_resource_update, now, RESOURCE_INTERVAL)
    if intervals <= 0:
        return 0

    gains = calculate_resource_gains(
        plot.resource_specialization,
        building_counts.get(BuildingType.industry, 0),
        building_counts.get(BuildingType.farm, 0),
        game_settings,
    )
    cap = calculate_storage_cap(building_counts.get(BuildingType.storage, 0))
    applied = await credit_resources(
        db,
        plot.id,
        {resource: gain * intervals for resource, gain in gains.items()},
        cap,
        Plot.last_resource_update == plot.last_resource_update,
        last_resource_update=now,
    )
    return intervals if applied else 0


def _grown_population(current, gain: int, cap: int):
    """SQL for current + gain clamped to cap, never below current (no eviction)."""
    grown = current + gain
    return case((grown <= cap, grown), (current > cap, current), else_=cap)


async def apply_population_growth(
    db: AsyncSession,
    plot: Plot,
    housing_count: int,
    game_settings: GameSettings,
    now: datetime,
) -> int:
    """Grow population by a flat amount per interval, clamped to the housing cap.

    The cap is recomputed from housing every time; population is never
    lowered here. Same stored-row arithmetic and interval guard as
    `apply_resource_generation`.
    """
    intervals = elapsed_intervals(plot.last_population_update, now, POPULATION_INTERVAL)
    if intervals <= 0:
        return 0

    cap = calculate_population_cap(housing_count)
    gain = math.floor(POPULATION_GROWTH_PER_INTERVAL * game_settings.population_growth_rate)
    result = await db.execute(
        update(Plot)
        .where(Plot.id == plot.id, Plot.last_population_update == plot.last_population_update)
        .values(
            population_cap=cap,
            population_current=_grown_population(Plot.population_current, gain * intervals, cap),
            last_population_update=now,
        )
        .execution_options(synchronize_session=False)
    )
    return intervals if result.rowcount == 1 else 0


async def _due_plot_player_ids(
    session_factory: async_sessionmaker[AsyncSession], column, cutoff: datetime
) -> list[int]:
    async with session_factory() as db:
        result = await db.execute(select(Plot.player_id).where(column <= cutoff).order_by(Plot.id))
        return list(result.scalars().all())


async def run_economy_tick(
    session_factory: async_sessionmaker[AsyncSession],
    game_settings: GameSettings,
    now: datetime | None = None,
) -> int:
    """Generate resources for every plot whose interval has elapsed.

    Each plot commits in its own transaction; a failing plot is logged and
    skipped. Returns the number of plots updated.
    """
    now = now or utcnow()
    player_ids = await _due_plot_player_ids(
        session_factory, Plot.last_resource_update, now - RESOURCE_INTERVAL
    )
    updated = 0
    for player_id in player_ids:
        async with session_factory() as db:
            try:
                plot = await lock_plot_for_player(db, player_id)
                if plot is None:
                    continue
                counts = await count_operational_buildings(db, plot.id)
                if await apply_resource_generation(db, plot, counts, game_settings, now):
                    updated += 1
                await db.commit()
            except (SQLAlchemyError, ValueError):
                await db.rollback()
                logger.exception("Resource generation failed for player %s", player_id)
    if updated:
        logger.info("Generated resources for %d plots", updated)
    return updated


async def run_population_tick(
    session_factory: async_sessionmaker[AsyncSession],
    game_settings: GameSettings,
    now: datetime | None = None,
) -> int:
    """Population growth, scheduled independently of resource generation."""
    now = now or utcnow()
    player_ids = await _due_plot_player_ids(
        session_factory, Plot.last_population_update, now - POPULATION_INTERVAL
    )
    updated = 0
    for player_id in player_ids:
        async with session_factory() as db:
            try:
                plot = await lock_plot_for_player(db, player_id)
                if plot is None:
                    continue
                counts = await count_operational_buildings(db, plot.id)
                housing = counts.get(BuildingType.housing, 0)
                if await apply_population_growth(db, plot, housing, game_settings, now):
                    updated += 1
                await db.commit()
            except SQLAlchemyError:
                await db.rollback()
                logger.exception("Population growth failed for player %s", player_id)
    return updated


def _cooldown_remaining(last_collect_time: datetime | None, now: datetime) -> int:
    if last_collect_time is None:
        return 0
    remaining = COLLECT_COOLDOWN - (now - last_collect_time)
    return max(0, math.ceil(remaining.total_seconds()))


async def collect_resources(
    db: AsyncSession, player_id: int, now: datetime | None = None
) -> dict[str, int]:
    """Claim the manual bonus: 10% of each holding, up to the storage cap.

    Raises CooldownError while the 10-minute cooldown is running. The
    cooldown is re-checked by the UPDATE itself so two concurrent claims
    cannot both be paid.
    """
    now = now or utcnow()
    try:
        plot = await lock_plot_for_player(db, player_id)
        if plot is None:
            raise ValueError("Plot not found")

        remaining = _cooldown_remaining(plot.last_collect_time, now)
        if remaining > 0:
            raise CooldownError(remaining)

        counts = await count_operational_buildings(db, plot.id)
        cap = calculate_storage_cap(counts.get(BuildingType.storage, 0))
        collected: dict[str, int] = {}
        for resource in ResourceType:
            current = get_resource(plot, resource)
            bonus = current // COLLECT_BONUS_DIVISOR
            collected[resource.value] = max(0, min(cap, current + bonus) - current)

        paid = await credit_resources(
            db,
            plot.id,
            {resource: resource_column(resource) // COLLECT_BONUS_DIVISOR for resource in ResourceType},
            cap,
            or_(
                Plot.last_collect_time.is_(None),
                Plot.last_collect_time <= now - COLLECT_COOLDOWN,
            ),
            last_collect_time=now,
        )
        if not paid:
            await db.refresh(plot)
            raise CooldownError(_cooldown_remaining(plot.last_collect_time, now) or 1)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(plot)
    return collected


def resource_snapshot(plot: Plot) -> dict[str, int]:
    return {resource.value: get_resource(plot, resource) for resource in ResourceType}
