from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import GameSettings, game_settings
from app.database import get_db
from app.dependencies import require_admin
from app.models.player import Player
from app.schemas.admin import GameSettingsUpdate, ResetMapResponse
from app.services.map_generator import reset_map
from app.services.notification_service import MAP_UPDATE, broadcast

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/settings", response_model=GameSettings)
async def get_settings(admin: Player = Depends(require_admin)):
    return game_settings.current


@router.put("/settings", response_model=GameSettings)
async def update_settings(body: GameSettingsUpdate, admin: Player = Depends(require_admin)):
    changes = body.model_dump(exclude_none=True)
    return game_settings.update(**changes)


@router.post("/reset-map", response_model=ResetMapResponse)
async def reset_map_endpoint(
    db: AsyncSession = Depends(get_db),
    admin: Player = Depends(require_admin),
):
    count = await reset_map(db)
    await broadcast(MAP_UPDATE)
    return ResetMapResponse(territories=count)
