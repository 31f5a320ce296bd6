from pydantic import BaseModel, Field


class GameSettingsUpdate(BaseModel):
    """Partial update; omitted fields keep their current values."""

    resource_generation_rate: float | None = Field(default=None, gt=0)
    population_growth_rate: float | None = Field(default=None, gt=0)
    construction_time_modifier: float | None = Field(default=None, gt=0)
    morale_drop_rate: float | None = Field(default=None, gt=0)
    morale_recovery_rate: float | None = Field(default=None, gt=0)
    max_troop_capacity: int | None = Field(default=None, ge=1)


class ResetMapResponse(BaseModel):
    territories: int
