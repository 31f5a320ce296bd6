from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_player, service_error
from app.models.player import Player
from app.schemas.trade import TradeCreate, TradeResponse, TradingPartnerResponse
from app.services.notification_service import TRADE_UPDATE, publish_player_update
from app.services.trade_service import (
    accept_trade,
    create_trade,
    list_trades_for_player,
    list_trading_partners,
    reject_trade,
)

router = APIRouter(prefix="/trades", tags=["trades"])


@router.get("", response_model=list[TradeResponse])
async def list_trades(
    db: AsyncSession = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    return await list_trades_for_player(db, current_player.id)


@router.get("/players", response_model=list[TradingPartnerResponse])
async def list_players(
    db: AsyncSession = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    partners = await list_trading_partners(db)
    return [p for p in partners if p.id != current_player.id]


@router.post("", response_model=TradeResponse, status_code=status.HTTP_201_CREATED)
async def create(
    body: TradeCreate,
    db: AsyncSession = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    try:
        trade = await create_trade(
            db,
            from_player_id=current_player.id,
            to_player_id=body.to_player_id,
            offered_resource=body.offered_resource,
            offered_amount=body.offered_amount,
            requested_resource=body.requested_resource,
            requested_amount=body.requested_amount,
        )
    except ValueError as e:
        raise service_error(e)
    await publish_player_update(trade.to_player_id, TRADE_UPDATE)
    return trade


@router.post("/{trade_id}/accept", response_model=TradeResponse)
async def accept(
    trade_id: int,
    db: AsyncSession = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    try:
        trade = await accept_trade(db, trade_id, current_player.id)
    except ValueError as e:
        raise service_error(e)
    await publish_player_update(trade.from_player_id, TRADE_UPDATE)
    await publish_player_update(trade.to_player_id, TRADE_UPDATE)
    return trade


@router.post("/{trade_id}/reject", response_model=TradeResponse)
async def reject(
    trade_id: int,
    db: AsyncSession = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    try:
        trade = await reject_trade(db, trade_id, current_player.id)
    except ValueError as e:
        raise service_error(e)
    await publish_player_update(trade.from_player_id, TRADE_UPDATE)
    return trade
