"""Troop training and its completion sweep."""

import logging
from datetime import datetime, timedelta

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import GameSettings
from app.data.troops import get_troop_data
from app.models.base import utcnow
from app.models.building import BuildingType
from app.models.plot import Plot, ResourceType
from app.models.troop import Troop, TroopType
from app.services.construction_service import COMPLETION_BUFFER
from app.services.plot_service import (
    count_operational_buildings,
    lock_plot_for_player,
    spend_resources,
)

logger = logging.getLogger(__name__)


async def train_troops(
    db: AsyncSession,
    player_id: int,
    troop_type: TroopType,
    count: int,
    game_settings: GameSettings,
    now: datetime | None = None,
) -> Troop:
    """Start training `count` units, merging them into the plot's stack of that type.

    A plot trains one batch at a time. The pre-checks give readable errors;
    the writes enforce the same rules on their own: manpower and population
    headroom are conditions of the plot UPDATE, an existing stack is only
    claimed while idle, and the partial unique index on training stacks
    rejects a second concurrent batch on the plot.
    """
    now = now or utcnow()
    try:
        troop_type = TroopType(troop_type)
    except ValueError:
        raise ValueError(f"Invalid troop type: '{troop_type}'")
    if count < 1:
        raise ValueError("Count must be at least 1")
    config = get_troop_data(troop_type)

    try:
        plot = await lock_plot_for_player(db, player_id)
        if plot is None:
            raise ValueError("Plot not found")

        counts = await count_operational_buildings(db, plot.id)
        if counts.get(BuildingType.barracks, 0) == 0:
            raise ValueError("Barracks required")

        training = await db.execute(
            select(Troop.id).where(Troop.plot_id == plot.id, Troop.is_training == True)  # noqa: E712
        )
        if training.first() is not None:
            raise ValueError("Troops are already training")

        if plot.population_current + count > plot.population_cap:
            raise ValueError("Insufficient population capacity")

        total = await db.execute(
            select(func.coalesce(func.sum(Troop.count), 0)).where(Troop.plot_id == plot.id)
        )
        if total.scalar_one() + count > game_settings.max_troop_capacity:
            raise ValueError("Maximum troop capacity reached")

        total_cost = config.manpower_cost * count
        if plot.manpower < total_cost:
            raise ValueError(f"Insufficient manpower: need {total_cost}, have {plot.manpower}")

        result = await db.execute(
            select(Troop)
            .where(Troop.plot_id == plot.id, Troop.type == troop_type)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        troop = result.scalar_one_or_none()
        if troop is not None and troop.is_deployed:
            raise ValueError(f"{troop.name} is deployed and cannot train")

        debited = await spend_resources(
            db,
            plot.id,
            {ResourceType.manpower: total_cost},
            Plot.population_current + count <= Plot.population_cap,
            population_current=Plot.population_current + count,
        )
        if not debited:
            raise ValueError("Insufficient manpower or population capacity")

        training_end = now + timedelta(seconds=config.train_seconds * count)
        if troop is None:
            troop = Troop(
                plot_id=plot.id,
                type=troop_type,
                name=config.name,
                count=count,
                strength=config.strength,
                morale=100,
                upkeep_food=config.upkeep_food,
                upkeep_fuel=config.upkeep_fuel,
                is_training=True,
                training_start=now,
                training_end=training_end,
            )
            db.add(troop)
            await db.flush()
        else:
            claimed = await db.execute(
                update(Troop)
                .where(
                    Troop.id == troop.id,
                    Troop.is_training == False,  # noqa: E712
                    Troop.is_deployed == False,  # noqa: E712
                )
                .values(
                    count=Troop.count + count,
                    is_training=True,
                    training_start=now,
                    training_end=training_end,
                )
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                raise ValueError(f"{troop.name} is busy and cannot train")
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValueError("Troops are already training")
    except Exception:
        await db.rollback()
        raise

    await db.refresh(plot)
    await db.refresh(troop)
    return troop


async def complete_training(
    session_factory: async_sessionmaker[AsyncSession], now: datetime | None = None
) -> int:
    """Mark stacks whose training timer elapsed as ready."""
    cutoff = (now or utcnow()) - COMPLETION_BUFFER
    async with session_factory() as db:
        result = await db.execute(
            select(Troop.id).where(
                Troop.is_training == True,  # noqa: E712
                Troop.training_end <= cutoff,
            )
        )
        troop_ids = list(result.scalars().all())

    completed = 0
    for troop_id in troop_ids:
        async with session_factory() as db:
            try:
                troop = await db.get(Troop, troop_id, with_for_update=True)
                if troop is None or not troop.is_training:
                    continue
                troop.is_training = False
                troop.training_start = None
                troop.training_end = None
                await db.commit()
                completed += 1
            except SQLAlchemyError:
                await db.rollback()
                logger.exception("Failed to complete training for troop %s", troop_id)

    if completed:
        logger.info("Completed training for %d troop stacks", completed)
    return completed
