from datetime import datetime
from typing import Any

from pydantic import BaseModel

from app.models.player import Nation
from app.models.player_action import ActionStatus, ActionType
from app.models.territory import TerritoryControl


class TerritoryResponse(BaseModel):
    id: int
    hex_id: str
    q: int | None
    r: int | None
    controlled_by_nation: TerritoryControl
    controlled_by_player_id: int | None
    is_contested: bool
    under_attack: bool
    last_battle: datetime | None

    model_config = {"from_attributes": True}


class NationInfo(BaseModel):
    nation_id: Nation
    name: str
    color: str
    description: str
    leader: str
    territories: int

    model_config = {"from_attributes": True}


class PlayerActionResponse(BaseModel):
    id: int
    player_id: int
    action_type: ActionType
    from_hex: str | None
    to_hex: str
    troop_data: dict[str, Any] | None
    started_at: datetime
    completes_at: datetime
    status: ActionStatus

    model_config = {"from_attributes": True}
