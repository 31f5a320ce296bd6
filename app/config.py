from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="FRONTLINE_", extra="ignore")

    database_url: str = "sqlite+aiosqlite:///./frontline.db"
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    scheduler_enabled: bool = True
    economy_tick_seconds: float = 180.0
    lifecycle_tick_seconds: float = 10.0
    deployment_tick_seconds: float = 30.0
    ai_tick_seconds: float = 180.0


settings = Settings()


class GameSettings(BaseModel):
    """Tunable multipliers read once at the start of every tick.

    Snapshots are immutable; an admin change produces a new snapshot with a
    higher ``version`` so a running tick never sees a half-applied update.
    """

    model_config = ConfigDict(frozen=True)

    version: int = 1
    resource_generation_rate: float = Field(default=1.0, gt=0)
    population_growth_rate: float = Field(default=1.0, gt=0)
    construction_time_modifier: float = Field(default=1.0, gt=0)
    morale_drop_rate: float = Field(default=1.0, gt=0)
    morale_recovery_rate: float = Field(default=1.0, gt=0)
    max_troop_capacity: int = Field(default=1000, ge=1)


class GameSettingsStore:
    """Holds the current GameSettings snapshot for the process."""

    def __init__(self, initial: GameSettings | None = None) -> None:
        self._current = initial or GameSettings()

    @property
    def current(self) -> GameSettings:
        return self._current

    def update(self, **changes) -> GameSettings:
        changes.pop("version", None)
        data = self._current.model_dump()
        data.update(changes)
        data["version"] = self._current.version + 1
        # Re-run validation on the merged values
        self._current = GameSettings.model_validate(data)
        return self._current


game_settings = GameSettingsStore()
