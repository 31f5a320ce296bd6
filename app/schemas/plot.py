"""Pydantic schemas for the player, building and troop endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field

from app.models.building import BuildingType
from app.models.player import Nation
from app.models.plot import ResourceType
from app.models.troop import TroopType


class SelectNation(BaseModel):
    nation: Nation


class BuildingResponse(BaseModel):
    id: int
    type: BuildingType
    name: str
    level: int
    max_level: int
    is_under_construction: bool
    construction_end: datetime | None
    is_upgrading: bool
    upgrade_end: datetime | None
    can_cancel: bool

    model_config = {"from_attributes": True}


class TroopResponse(BaseModel):
    id: int
    type: TroopType
    name: str
    count: int
    strength: int
    morale: int
    is_training: bool
    training_end: datetime | None
    is_deployed: bool
    deployment_end: datetime | None
    target_hex: str | None

    model_config = {"from_attributes": True}


class PlotResponse(BaseModel):
    id: int
    player_id: int
    nation: Nation
    hex_id: str
    resource_specialization: ResourceType
    manpower: int
    materials: int
    fuel: int
    food: int
    population_current: int
    population_cap: int
    last_collect_time: datetime | None

    model_config = {"from_attributes": True}


class PlotOverview(BaseModel):
    plot: PlotResponse
    storage_cap: int
    buildings: list[BuildingResponse]
    troops: list[TroopResponse]


class CollectResponse(BaseModel):
    collected: dict[str, int]
    resources: dict[str, int]


class ConstructRequest(BaseModel):
    building_type: BuildingType


class CancelResponse(BaseModel):
    building_id: int
    refunded_materials: int


class TrainRequest(BaseModel):
    troop_type: TroopType
    count: int = Field(ge=1)


class DeploymentOrderRequest(BaseModel):
    troop_id: int
    count: int = Field(ge=1)


class DeployRequest(BaseModel):
    troops: list[DeploymentOrderRequest] = Field(min_length=1)
    target_hex: str
    mode: str = "occupy"
