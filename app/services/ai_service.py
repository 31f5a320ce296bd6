"""AI decision engine.

AI players act through the same commands as humans (construct_building,
train_troops, create_trade, accept_trade, reject_trade); there is no
separate mutation path. Each cycle runs four independent passes per AI
plot. A pass that fails is logged and the remaining passes still run.

Every pass re-reads state and is guarded by the same checks the commands
enforce (one queued construction, one training batch, one pending outgoing
offer), so running a cycle twice never spends twice.
"""

import logging
import math
import random
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import GameSettings
from app.data.buildings import get_building_data
from app.data.troops import list_troops_by_cost
from app.models.base import utcnow
from app.models.building import Building, BuildingType
from app.models.player import Player
from app.models.plot import Plot, ResourceType, get_resource
from app.models.trade import Trade
from app.models.troop import Troop
from app.services.construction_service import construct_building
from app.services.plot_service import (
    count_operational_buildings,
    get_construction_queue,
    get_plot_for_player,
    list_ai_plots,
)
from app.services.trade_service import (
    AI_TRADE_TTL,
    accept_trade,
    create_trade,
    get_trade,
    has_pending_outgoing,
    list_pending_incoming,
    reject_trade,
)
from app.services.training_service import train_troops

logger = logging.getLogger(__name__)

# Resource / trade pass
SURPLUS_THRESHOLD = 300
NEED_THRESHOLD = 80
PARTNER_MIN_SUPPLY = 100
OFFER_FRACTION = 0.4
REQUEST_FRACTION = 0.3

# Building pass
BUILD_PRIORITY = [
    BuildingType.barracks,
    BuildingType.farm,
    BuildingType.industry,
    BuildingType.housing,
    BuildingType.storage,
    BuildingType.infrastructure,
]

# Troop pass
AI_TRAINING_BATCH = 2
COST_BUFFER = 2
UPKEEP_BUFFER = 10

# Trade response pass
CRITICAL_SHORTAGE = 50
RESPONSE_SURPLUS = 100
MIN_FAVORABLE_RATIO = 0.8
FOOD_CRITICAL_SHORTAGE = 100
FOOD_RESPONSE_SURPLUS = 60
FOOD_MIN_FAVORABLE_RATIO = 0.6
REJECT_PROBABILITY = 0.15


def find_needed_resource(plot: Plot) -> ResourceType | None:
    """The scarcest non-specialization resource below the need threshold."""
    candidates = [
        resource
        for resource in ResourceType
        if resource != plot.resource_specialization
        and get_resource(plot, resource) < NEED_THRESHOLD
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda r: get_resource(plot, r))


async def find_trade_partner(
    db: AsyncSession, ai_player_id: int, resource: ResourceType
) -> tuple[int, int] | None:
    """Return (player_id, holding) of the best partner for `resource`.

    Humans with abundant supply come first; ties go to the larger holding.
    """
    column = getattr(Plot, ResourceType(resource).value)
    result = await db.execute(
        select(Player.id, Player.is_ai, column)
        .join(Plot, Plot.player_id == Player.id)
        .where(Player.id != ai_player_id, column > PARTNER_MIN_SUPPLY)
    )
    rows = result.all()
    if not rows:
        return None
    player_id, _, holding = min(rows, key=lambda row: (row[1], -row[2], row[0]))
    return player_id, holding


async def plan_and_create_trade(
    db: AsyncSession, plot: Plot, now: datetime | None = None
) -> Trade | None:
    specialization = plot.resource_specialization
    surplus = get_resource(plot, specialization)
    if surplus <= SURPLUS_THRESHOLD:
        return None
    needed = find_needed_resource(plot)
    if needed is None:
        return None
    if await has_pending_outgoing(db, plot.player_id):
        return None

    partner = await find_trade_partner(db, plot.player_id, needed)
    if partner is None:
        return None
    partner_id, partner_holding = partner

    offered = math.floor(surplus * OFFER_FRACTION)
    requested = math.floor(partner_holding * REQUEST_FRACTION)
    if offered < 1 or requested < 1:
        return None

    trade = await create_trade(
        db,
        from_player_id=plot.player_id,
        to_player_id=partner_id,
        offered_resource=specialization,
        offered_amount=offered,
        requested_resource=needed,
        requested_amount=requested,
        now=now,
        ttl=AI_TRADE_TTL,
    )
    logger.info(
        "AI %s offered %d %s for %d %s to player %s",
        plot.player_id, offered, specialization.value, requested, needed.value, partner_id,
    )
    return trade


async def choose_building(db: AsyncSession, plot: Plot) -> BuildingType | None:
    if await get_construction_queue(db, plot.id):
        return None
    result = await db.execute(select(Building.type).where(Building.plot_id == plot.id))
    existing = set(result.scalars().all())
    for building_type in BUILD_PRIORITY:
        if building_type in existing:
            continue
        if plot.materials >= get_building_data(building_type).materials_cost:
            return building_type
    return None


async def plan_and_start_building(
    db: AsyncSession, plot: Plot, game_settings: GameSettings, now: datetime | None = None
) -> Building | None:
    building_type = await choose_building(db, plot)
    if building_type is None:
        return None
    building = await construct_building(
        db, plot.player_id, building_type, game_settings, now=now, can_cancel=False
    )
    logger.info("AI %s started building %s", plot.player_id, building_type.value)
    return building


async def choose_troop_type(db: AsyncSession, plot: Plot):
    """Cheapest troop type the AI can both afford and keep supplied."""
    counts = await count_operational_buildings(db, plot.id)
    if counts.get(BuildingType.barracks, 0) == 0:
        return None
    training = await db.execute(
        select(Troop.id).where(Troop.plot_id == plot.id, Troop.is_training == True)  # noqa: E712
    )
    if training.first() is not None:
        return None
    if plot.population_current + AI_TRAINING_BATCH > plot.population_cap:
        return None

    for config in list_troops_by_cost():
        batch_cost = config.manpower_cost * AI_TRAINING_BATCH
        if plot.manpower < batch_cost * COST_BUFFER:
            continue
        if plot.food < config.upkeep_food * AI_TRAINING_BATCH * UPKEEP_BUFFER:
            continue
        if plot.fuel < config.upkeep_fuel * AI_TRAINING_BATCH * UPKEEP_BUFFER:
            continue
        return config.troop_type
    return None


async def plan_and_train_troops(
    db: AsyncSession, plot: Plot, game_settings: GameSettings, now: datetime | None = None
):
    troop_type = await choose_troop_type(db, plot)
    if troop_type is None:
        return None
    troop = await train_troops(db, plot.player_id, troop_type, AI_TRAINING_BATCH, game_settings, now=now)
    logger.info("AI %s started training %d %s", plot.player_id, AI_TRAINING_BATCH, troop_type.value)
    return troop


def evaluate_trade(plot: Plot, trade: Trade) -> bool:
    """Accept when short of what is offered and flush with what is asked.

    Trades involving food use looser thresholds.
    """
    involves_food = ResourceType.food in (trade.offered_resource, trade.requested_resource)
    if involves_food:
        shortage, surplus, ratio = FOOD_CRITICAL_SHORTAGE, FOOD_RESPONSE_SURPLUS, FOOD_MIN_FAVORABLE_RATIO
    else:
        shortage, surplus, ratio = CRITICAL_SHORTAGE, RESPONSE_SURPLUS, MIN_FAVORABLE_RATIO

    needs_offered = get_resource(plot, trade.offered_resource) < shortage
    has_surplus = get_resource(plot, trade.requested_resource) > surplus
    favorable = trade.offered_amount >= trade.requested_amount * ratio
    return needs_offered and has_surplus and favorable


async def respond_to_trades(
    db: AsyncSession,
    player_id: int,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> dict[str, int]:
    """Accept good offers, occasionally reject the rest, leave others pending."""
    now = now or utcnow()
    _rand = rng or random
    outcome = {"accepted": 0, "rejected": 0, "pending": 0}
    # Ids only: a failed accept rolls back and expires loaded rows
    trade_ids = [trade.id for trade in await list_pending_incoming(db, player_id, now)]
    for trade_id in trade_ids:
        trade = await get_trade(db, trade_id)
        plot = await get_plot_for_player(db, player_id)
        if trade is None or plot is None:
            break
        if evaluate_trade(plot, trade):
            try:
                await accept_trade(db, trade_id, player_id, now=now)
                outcome["accepted"] += 1
                continue
            except ValueError as exc:
                logger.info("AI %s could not accept trade %s: %s", player_id, trade_id, exc)
        if _rand.random() < REJECT_PROBABILITY:
            await reject_trade(db, trade_id, player_id)
            outcome["rejected"] += 1
        else:
            outcome["pending"] += 1
    return outcome


async def _run_pass(name: str, player_id: int, coro) -> None:
    try:
        await coro
    except ValueError as exc:
        logger.info("AI %s skipped %s: %s", player_id, name, exc)
    except Exception:
        logger.exception("AI %s failed during %s", player_id, name)


async def run_ai_cycle(
    session_factory: async_sessionmaker[AsyncSession],
    game_settings: GameSettings,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> int:
    """Run the decision passes for every AI plot, then the trade responses.

    Each pass gets a fresh session so one pass's rollback cannot undo another.
    Returns the number of AI plots processed.
    """
    now = now or utcnow()
    async with session_factory() as db:
        player_ids = [plot.player_id for plot in await list_ai_plots(db)]

    for player_id in player_ids:
        async with session_factory() as db:
            plot = await get_plot_for_player(db, player_id)
            await _run_pass("trade", player_id, plan_and_create_trade(db, plot, now))
        async with session_factory() as db:
            plot = await get_plot_for_player(db, player_id)
            await _run_pass("building", player_id, plan_and_start_building(db, plot, game_settings, now))
        async with session_factory() as db:
            plot = await get_plot_for_player(db, player_id)
            await _run_pass("troops", player_id, plan_and_train_troops(db, plot, game_settings, now))

    for player_id in player_ids:
        async with session_factory() as db:
            await _run_pass("trade responses", player_id, respond_to_trades(db, player_id, now, rng))

    return len(player_ids)
