"""Player router: nation selection, plot overview and manual collection."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_player, service_error
from app.models.building import BuildingType
from app.models.player import Player
from app.schemas.plot import CollectResponse, PlotOverview, PlotResponse, SelectNation
from app.services.notification_service import PLOT_UPDATE, publish_player_update
from app.services.plot_service import (
    count_operational_buildings,
    get_buildings_for_plot,
    get_plot_for_player,
    get_troops_for_plot,
    select_nation,
)
from app.services.resource_service import (
    CooldownError,
    calculate_storage_cap,
    collect_resources,
    resource_snapshot,
)

router = APIRouter(prefix="/player", tags=["player"])


@router.post("/select-nation", response_model=PlotResponse, status_code=status.HTTP_201_CREATED)
async def select_nation_endpoint(
    body: SelectNation,
    db: AsyncSession = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    try:
        plot = await select_nation(db, current_player, body.nation)
    except ValueError as e:
        raise service_error(e)
    await publish_player_update(current_player.id, PLOT_UPDATE)
    return plot


@router.get("/plot", response_model=PlotOverview)
async def get_plot(
    db: AsyncSession = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    plot = await get_plot_for_player(db, current_player.id)
    if plot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plot not found")
    counts = await count_operational_buildings(db, plot.id)
    return PlotOverview(
        plot=PlotResponse.model_validate(plot),
        storage_cap=calculate_storage_cap(counts.get(BuildingType.storage, 0)),
        buildings=await get_buildings_for_plot(db, plot.id),
        troops=await get_troops_for_plot(db, plot.id),
    )


@router.post("/collect-resources", response_model=CollectResponse)
async def collect_resources_endpoint(
    db: AsyncSession = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    try:
        collected = await collect_resources(db, current_player.id)
    except CooldownError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(e), "remaining_seconds": e.remaining_seconds},
        )
    except ValueError as e:
        raise service_error(e)
    plot = await get_plot_for_player(db, current_player.id)
    await publish_player_update(current_player.id, PLOT_UPDATE)
    return CollectResponse(collected=collected, resources=resource_snapshot(plot))
