"""Building construction, upgrades and cancellation, plus their completion sweeps."""

import logging
from datetime import datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import GameSettings
from app.data.buildings import MAX_BUILDING_LEVEL, get_building_data, upgrade_cost, upgrade_seconds
from app.models.base import utcnow
from app.models.building import Building, BuildingType, ConstructionQueueEntry
from app.models.plot import Plot, ResourceType
from app.services.plot_service import (
    count_operational_buildings,
    credit_resources,
    get_construction_queue,
    lock_plot_for_player,
    spend_resources,
)
from app.services.resource_service import calculate_population_cap, calculate_storage_cap

logger = logging.getLogger(__name__)

# Timers are only considered finished this long after their stored end
COMPLETION_BUFFER = timedelta(seconds=10)


async def construct_building(
    db: AsyncSession,
    player_id: int,
    building_type: BuildingType,
    game_settings: GameSettings,
    now: datetime | None = None,
    can_cancel: bool = True,
) -> Building:
    """Start constructing a building on the player's plot.

    Debit, building insert and queue insert commit together. The queue check
    runs inside the same transaction, and the unique plot_id on the queue
    table rejects a concurrent second entry.
    """
    now = now or utcnow()
    try:
        building_type = BuildingType(building_type)
    except ValueError:
        raise ValueError(f"Invalid building type: '{building_type}'")
    config = get_building_data(building_type)
    if not config.constructible:
        raise ValueError(f"Invalid building type: '{building_type.value}'")

    try:
        plot = await lock_plot_for_player(db, player_id)
        if plot is None:
            raise ValueError("Plot not found")

        if await get_construction_queue(db, plot.id):
            raise ValueError("Already constructing a building")

        counts = await count_operational_buildings(db, plot.id)
        missing = [p.value for p in config.prerequisites if counts.get(p, 0) == 0]
        if missing:
            raise ValueError(f"Prerequisites not met: {', '.join(missing)}")

        if config.unique:
            existing = await db.execute(
                select(Building.id).where(Building.plot_id == plot.id, Building.type == building_type)
            )
            if existing.first() is not None:
                raise ValueError("Building already exists")

        if plot.materials < config.materials_cost:
            raise ValueError(
                f"Insufficient materials to build {building_type.value}: "
                f"need {config.materials_cost}, have {plot.materials}"
            )

        build_time = timedelta(
            seconds=int(config.build_seconds * game_settings.construction_time_modifier)
        )
        if not await spend_resources(db, plot.id, {ResourceType.materials: config.materials_cost}):
            raise ValueError(f"Insufficient materials to build {building_type.value}")
        building = Building(
            plot_id=plot.id,
            type=building_type,
            name=config.name,
            level=1,
            max_level=MAX_BUILDING_LEVEL,
            is_under_construction=True,
            construction_start=now,
            construction_end=now + build_time,
            can_cancel=can_cancel,
        )
        db.add(building)
        await db.flush()
        db.add(ConstructionQueueEntry(plot_id=plot.id, building_id=building.id, queue_position=1))
        await db.flush()
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValueError("Already constructing a building")
    except Exception:
        await db.rollback()
        raise

    await db.refresh(plot)
    await db.refresh(building)
    return building


async def _get_owned_building(db: AsyncSession, plot: Plot, building_id: int) -> Building:
    result = await db.execute(
        select(Building)
        .where(Building.id == building_id, Building.plot_id == plot.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    building = result.scalar_one_or_none()
    if building is None:
        raise ValueError("Building not found")
    return building


async def upgrade_building(
    db: AsyncSession,
    player_id: int,
    building_id: int,
    game_settings: GameSettings,
    now: datetime | None = None,
) -> Building:
    """Start upgrading an operational building by one level."""
    now = now or utcnow()
    try:
        plot = await lock_plot_for_player(db, player_id)
        if plot is None:
            raise ValueError("Plot not found")
        building = await _get_owned_building(db, plot, building_id)

        if building.is_under_construction or building.is_upgrading:
            raise ValueError("Building is already under construction or upgrading")
        if building.level >= building.max_level:
            raise ValueError("Building is already at maximum level")

        cost = upgrade_cost(building.level)
        if plot.materials < cost:
            raise ValueError(f"Insufficient materials for upgrade: need {cost}, have {plot.materials}")

        duration = timedelta(
            seconds=int(upgrade_seconds(building.level) * game_settings.construction_time_modifier)
        )
        if not await spend_resources(db, plot.id, {ResourceType.materials: cost}):
            raise ValueError(f"Insufficient materials for upgrade: need {cost}")
        claimed = await db.execute(
            update(Building)
            .where(
                Building.id == building.id,
                Building.is_under_construction == False,  # noqa: E712
                Building.is_upgrading == False,  # noqa: E712
            )
            .values(is_upgrading=True, upgrade_end=now + duration)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            raise ValueError("Building is already under construction or upgrading")
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(plot)
    await db.refresh(building)
    return building


async def cancel_construction(db: AsyncSession, player_id: int, building_id: int) -> int:
    """Cancel an unfinished construction and refund its cost.

    Returns the refunded materials (clamped to the storage cap).
    """
    try:
        plot = await lock_plot_for_player(db, player_id)
        if plot is None:
            raise ValueError("Plot not found")
        building = await _get_owned_building(db, plot, building_id)

        if not building.is_under_construction:
            raise ValueError("Building is not under construction")
        if not building.can_cancel:
            raise ValueError("This construction cannot be cancelled")

        config = get_building_data(building.type)
        counts = await count_operational_buildings(db, plot.id)
        cap = calculate_storage_cap(counts.get(BuildingType.storage, 0))
        before = plot.materials

        await db.execute(
            delete(ConstructionQueueEntry).where(ConstructionQueueEntry.building_id == building.id)
        )
        # A completion sweep may have finished it since the read above
        removed = await db.execute(
            delete(Building)
            .where(Building.id == building.id, Building.is_under_construction == True)  # noqa: E712
            .execution_options(synchronize_session=False)
        )
        if removed.rowcount != 1:
            raise ValueError("Building is not under construction")
        await credit_resources(db, plot.id, {ResourceType.materials: config.materials_cost}, cap)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    db.expunge(building)
    await db.refresh(plot)
    return max(0, min(cap, before + config.materials_cost) - before)


async def _refresh_population_cap(db: AsyncSession, plot_id: int) -> None:
    plot = await db.get(Plot, plot_id, with_for_update=True)
    if plot is None:
        return
    counts = await count_operational_buildings(db, plot_id)
    plot.population_cap = calculate_population_cap(counts.get(BuildingType.housing, 0))


async def complete_constructions(
    session_factory: async_sessionmaker[AsyncSession], now: datetime | None = None
) -> int:
    """Flip finished constructions to operational and clear their queue entries."""
    cutoff = (now or utcnow()) - COMPLETION_BUFFER
    async with session_factory() as db:
        result = await db.execute(
            select(Building.id).where(
                Building.is_under_construction == True,  # noqa: E712
                Building.construction_end <= cutoff,
            )
        )
        building_ids = list(result.scalars().all())

    completed = 0
    for building_id in building_ids:
        async with session_factory() as db:
            try:
                building = await db.get(Building, building_id, with_for_update=True)
                # Re-check: a concurrent cancel or a previous run may have handled it
                if building is None or not building.is_under_construction:
                    continue
                building.is_under_construction = False
                building.construction_start = None
                building.construction_end = None
                await db.execute(
                    delete(ConstructionQueueEntry).where(
                        ConstructionQueueEntry.building_id == building.id
                    )
                )
                await db.flush()
                if building.type == BuildingType.housing:
                    await _refresh_population_cap(db, building.plot_id)
                await db.commit()
                completed += 1
            except SQLAlchemyError:
                await db.rollback()
                logger.exception("Failed to complete construction of building %s", building_id)

    if completed:
        logger.info("Completed %d buildings", completed)
    return completed


async def complete_upgrades(
    session_factory: async_sessionmaker[AsyncSession], now: datetime | None = None
) -> int:
    """Finish upgrades whose timers have elapsed, raising the level by one."""
    cutoff = (now or utcnow()) - COMPLETION_BUFFER
    async with session_factory() as db:
        result = await db.execute(
            select(Building.id).where(
                Building.is_upgrading == True,  # noqa: E712
                Building.upgrade_end <= cutoff,
            )
        )
        building_ids = list(result.scalars().all())

    completed = 0
    for building_id in building_ids:
        async with session_factory() as db:
            try:
                building = await db.get(Building, building_id, with_for_update=True)
                if building is None or not building.is_upgrading:
                    continue
                building.is_upgrading = False
                building.upgrade_end = None
                building.level = min(building.max_level, building.level + 1)
                await db.commit()
                completed += 1
            except SQLAlchemyError:
                await db.rollback()
                logger.exception("Failed to complete upgrade of building %s", building_id)

    if completed:
        logger.info("Completed %d building upgrades", completed)
    return completed
