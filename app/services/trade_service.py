"""Peer-to-peer resource trades.

pending -> accepted | rejected | expired; terminal states are final.
Offers are checked against the offerer's holdings when created but nothing
is reserved, so acceptance re-validates both balances inside the same
transaction that moves the resources. Credits never lift a holding above
the receiver's storage cap.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.base import utcnow
from app.models.building import BuildingType
from app.models.player import Player
from app.models.plot import Plot, ResourceType, get_resource
from app.models.trade import Trade, TradeStatus
from app.services.plot_service import (
    count_operational_buildings,
    credit_resources,
    get_plot_for_player,
    spend_resources,
)
from app.services.resource_service import calculate_storage_cap

logger = logging.getLogger(__name__)

PLAYER_TRADE_TTL = timedelta(hours=24)
AI_TRADE_TTL = timedelta(hours=12)


async def get_trade(db: AsyncSession, trade_id: int) -> Trade | None:
    result = await db.execute(select(Trade).where(Trade.id == trade_id))
    return result.scalar_one_or_none()


async def list_trades_for_player(db: AsyncSession, player_id: int) -> list[Trade]:
    result = await db.execute(
        select(Trade)
        .where(or_(Trade.from_player_id == player_id, Trade.to_player_id == player_id))
        .order_by(Trade.created_at.desc(), Trade.id.desc())
    )
    return list(result.scalars().all())


async def list_pending_incoming(db: AsyncSession, player_id: int, now: datetime) -> list[Trade]:
    result = await db.execute(
        select(Trade)
        .where(
            Trade.to_player_id == player_id,
            Trade.status == TradeStatus.pending,
            Trade.expires_at > now,
        )
        .order_by(Trade.id)
    )
    return list(result.scalars().all())


async def has_pending_outgoing(db: AsyncSession, player_id: int) -> bool:
    result = await db.execute(
        select(Trade.id).where(
            Trade.from_player_id == player_id, Trade.status == TradeStatus.pending
        )
    )
    return result.first() is not None


async def list_trading_partners(db: AsyncSession) -> list[Player]:
    """Players with a nation, humans first."""
    result = await db.execute(
        select(Player)
        .where(Player.nation.is_not(None))
        .order_by(Player.is_ai, Player.username)
    )
    return list(result.scalars().all())


async def create_trade(
    db: AsyncSession,
    from_player_id: int,
    to_player_id: int,
    offered_resource: ResourceType,
    offered_amount: int,
    requested_resource: ResourceType,
    requested_amount: int,
    now: datetime | None = None,
    ttl: timedelta = PLAYER_TRADE_TTL,
) -> Trade:
    now = now or utcnow()
    offered_resource = ResourceType(offered_resource)
    requested_resource = ResourceType(requested_resource)

    if from_player_id == to_player_id:
        raise ValueError("Cannot trade with yourself")
    if offered_amount <= 0 or requested_amount <= 0:
        raise ValueError("Trade amounts must be positive")
    if offered_resource == requested_resource:
        raise ValueError("Offered and requested resources must differ")

    from_plot = await get_plot_for_player(db, from_player_id)
    if from_plot is None:
        raise ValueError("Plot not found")
    if await get_plot_for_player(db, to_player_id) is None:
        raise ValueError("Trade partner not found")
    if get_resource(from_plot, offered_resource) < offered_amount:
        raise ValueError(f"Insufficient {offered_resource.value}")

    trade = Trade(
        from_player_id=from_player_id,
        to_player_id=to_player_id,
        offered_resource=offered_resource,
        offered_amount=offered_amount,
        requested_resource=requested_resource,
        requested_amount=requested_amount,
        status=TradeStatus.pending,
        created_at=now,
        expires_at=now + ttl,
    )
    db.add(trade)
    await db.commit()
    await db.refresh(trade)
    return trade


async def _lock_plots(db: AsyncSession, player_ids: list[int]) -> dict[int, Plot]:
    """Lock both sides' plots in ascending id order to avoid deadlocks."""
    plots: dict[int, Plot] = {}
    for player_id in sorted(player_ids):
        result = await db.execute(
            select(Plot)
            .where(Plot.player_id == player_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        plot = result.scalar_one_or_none()
        if plot is None:
            raise ValueError("Player plots not found")
        plots[player_id] = plot
    return plots


async def _storage_cap(db: AsyncSession, plot: Plot) -> int:
    counts = await count_operational_buildings(db, plot.id)
    return calculate_storage_cap(counts.get(BuildingType.storage, 0))


async def _close_trade(db: AsyncSession, trade: Trade, status: TradeStatus) -> None:
    """Move a pending trade to `status`; fails if another command closed it first."""
    result = await db.execute(
        update(Trade)
        .where(Trade.id == trade.id, Trade.status == TradeStatus.pending)
        .values(status=status)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ValueError("Trade not found or not available")


async def accept_trade(
    db: AsyncSession, trade_id: int, player_id: int, now: datetime | None = None
) -> Trade:
    """Execute a pending trade addressed to `player_id`, all or nothing.

    Both debits are conditional UPDATEs that re-check the balance against the
    stored row, so a spend committed on either plot after the reads below
    makes the whole trade fail instead of overdrawing. Credits are clamped to
    the receiver's storage cap.
    """
    now = now or utcnow()
    try:
        result = await db.execute(
            select(Trade)
            .where(Trade.id == trade_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        trade = result.scalar_one_or_none()
        if trade is None or trade.to_player_id != player_id or trade.status != TradeStatus.pending:
            raise ValueError("Trade not found or not available")

        if now > trade.expires_at:
            await _close_trade(db, trade, TradeStatus.expired)
            await db.commit()
            raise ValueError("Trade has expired")

        plots = await _lock_plots(db, [trade.from_player_id, trade.to_player_id])
        from_plot = plots[trade.from_player_id]
        to_plot = plots[trade.to_player_id]

        if get_resource(from_plot, trade.offered_resource) < trade.offered_amount:
            raise ValueError("Offering player has insufficient resources")
        if get_resource(to_plot, trade.requested_resource) < trade.requested_amount:
            raise ValueError("Accepting player has insufficient resources")

        await _close_trade(db, trade, TradeStatus.accepted)
        if not await spend_resources(db, from_plot.id, {trade.offered_resource: trade.offered_amount}):
            raise ValueError("Offering player has insufficient resources")
        if not await spend_resources(db, to_plot.id, {trade.requested_resource: trade.requested_amount}):
            raise ValueError("Accepting player has insufficient resources")
        await credit_resources(
            db,
            from_plot.id,
            {trade.requested_resource: trade.requested_amount},
            await _storage_cap(db, from_plot),
        )
        await credit_resources(
            db,
            to_plot.id,
            {trade.offered_resource: trade.offered_amount},
            await _storage_cap(db, to_plot),
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(trade)
    await db.refresh(from_plot)
    await db.refresh(to_plot)
    logger.info(
        "Trade %s accepted: %d %s for %d %s",
        trade.id, trade.offered_amount, trade.offered_resource.value,
        trade.requested_amount, trade.requested_resource.value,
    )
    return trade


async def reject_trade(db: AsyncSession, trade_id: int, player_id: int) -> Trade:
    try:
        trade = await get_trade(db, trade_id)
        if trade is None or trade.to_player_id != player_id:
            raise ValueError("Trade not found or not available")
        await _close_trade(db, trade, TradeStatus.rejected)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(trade)
    return trade


async def expire_trades(
    session_factory: async_sessionmaker[AsyncSession], now: datetime | None = None
) -> int:
    """Flip every pending trade past its expiry to expired. No resources move."""
    now = now or utcnow()
    async with session_factory() as db:
        result = await db.execute(
            update(Trade)
            .where(Trade.status == TradeStatus.pending, Trade.expires_at <= now)
            .values(status=TradeStatus.expired)
        )
        await db.commit()
    expired = result.rowcount or 0
    if expired:
        logger.info("Expired %d trades", expired)
    return expired
