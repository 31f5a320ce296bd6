from datetime import datetime

from pydantic import BaseModel, Field

from app.models.player import Nation
from app.models.plot import ResourceType
from app.models.trade import TradeStatus


class TradeCreate(BaseModel):
    to_player_id: int
    offered_resource: ResourceType
    offered_amount: int = Field(gt=0)
    requested_resource: ResourceType
    requested_amount: int = Field(gt=0)


class TradeResponse(BaseModel):
    id: int
    from_player_id: int
    to_player_id: int
    offered_resource: ResourceType
    offered_amount: int
    requested_resource: ResourceType
    requested_amount: int
    status: TradeStatus
    created_at: datetime
    expires_at: datetime

    model_config = {"from_attributes": True}


class TradingPartnerResponse(BaseModel):
    id: int
    username: str
    nation: Nation | None
    is_ai: bool

    model_config = {"from_attributes": True}
