"""World state: territories, nations and recent troop movements."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.data.nations import list_nations
from app.database import get_db
from app.models.territory import TerritoryControl
from app.schemas.world import NationInfo, PlayerActionResponse, TerritoryResponse
from app.services.deployment_service import list_recent_actions
from app.services.map_generator import count_territories_by_nation, get_territories

router = APIRouter(prefix="/game", tags=["game"])


@router.get("/territories", response_model=list[TerritoryResponse])
async def territories(db: AsyncSession = Depends(get_db)):
    return await get_territories(db)


@router.get("/nations", response_model=list[NationInfo])
async def nations(db: AsyncSession = Depends(get_db)):
    counts = await count_territories_by_nation(db)
    return [
        NationInfo(
            nation_id=n.nation_id,
            name=n.name,
            color=n.color,
            description=n.description,
            leader=n.leader,
            territories=counts.get(TerritoryControl(n.nation_id.value), 0),
        )
        for n in list_nations()
    ]


@router.get("/actions", response_model=list[PlayerActionResponse])
async def actions(db: AsyncSession = Depends(get_db)):
    return await list_recent_actions(db)
