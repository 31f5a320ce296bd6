from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import game_settings
from app.database import get_db
from app.dependencies import get_current_player, service_error
from app.models.player import Player
from app.schemas.plot import DeployRequest, TrainRequest, TroopResponse
from app.schemas.world import PlayerActionResponse
from app.services.deployment_service import DeploymentOrder, deploy_troops
from app.services.notification_service import (
    MAP_UPDATE,
    PLOT_UPDATE,
    broadcast,
    publish_player_update,
)
from app.services.training_service import train_troops

router = APIRouter(prefix="/troops", tags=["troops"])


@router.post("/train", response_model=TroopResponse, status_code=status.HTTP_201_CREATED)
async def train(
    body: TrainRequest,
    db: AsyncSession = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    try:
        troop = await train_troops(
            db, current_player.id, body.troop_type, body.count, game_settings.current
        )
    except ValueError as e:
        raise service_error(e)
    await publish_player_update(current_player.id, PLOT_UPDATE)
    return troop


@router.post("/deploy", response_model=PlayerActionResponse, status_code=status.HTTP_201_CREATED)
async def deploy(
    body: DeployRequest,
    db: AsyncSession = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    orders = [DeploymentOrder(troop_id=t.troop_id, count=t.count) for t in body.troops]
    try:
        action = await deploy_troops(db, current_player.id, orders, body.target_hex, body.mode)
    except ValueError as e:
        raise service_error(e)
    await publish_player_update(current_player.id, PLOT_UPDATE)
    await broadcast(MAP_UPDATE, {"action_id": action.id, "target_hex": action.to_hex})
    return action
