from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import game_settings
from app.database import get_db
from app.dependencies import get_current_player, service_error
from app.models.player import Player
from app.schemas.plot import BuildingResponse, CancelResponse, ConstructRequest
from app.services.construction_service import (
    cancel_construction,
    construct_building,
    upgrade_building,
)
from app.services.notification_service import PLOT_UPDATE, publish_player_update

router = APIRouter(prefix="/buildings", tags=["buildings"])


@router.post("/construct", response_model=BuildingResponse, status_code=status.HTTP_201_CREATED)
async def construct(
    body: ConstructRequest,
    db: AsyncSession = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    try:
        building = await construct_building(
            db, current_player.id, body.building_type, game_settings.current
        )
    except ValueError as e:
        raise service_error(e)
    await publish_player_update(current_player.id, PLOT_UPDATE)
    return building


@router.post("/{building_id}/upgrade", response_model=BuildingResponse)
async def upgrade(
    building_id: int,
    db: AsyncSession = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    try:
        building = await upgrade_building(db, current_player.id, building_id, game_settings.current)
    except ValueError as e:
        raise service_error(e)
    await publish_player_update(current_player.id, PLOT_UPDATE)
    return building


@router.post("/{building_id}/cancel", response_model=CancelResponse)
async def cancel(
    building_id: int,
    db: AsyncSession = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    try:
        refunded = await cancel_construction(db, current_player.id, building_id)
    except ValueError as e:
        raise service_error(e)
    await publish_player_update(current_player.id, PLOT_UPDATE)
    return CancelResponse(building_id=building_id, refunded_materials=refunded)
