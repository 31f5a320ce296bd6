"""Tests for process settings and the versioned game settings store."""

import pytest
from pydantic import ValidationError

from app.config import GameSettings, GameSettingsStore, Settings


class TestGameSettings:
    def test_defaults(self):
        gs = GameSettings()
        assert gs.version == 1
        assert gs.resource_generation_rate == 1.0
        assert gs.max_troop_capacity == 1000

    def test_snapshot_is_immutable(self):
        gs = GameSettings()
        with pytest.raises(ValidationError):
            gs.resource_generation_rate = 2.0

    def test_rates_must_be_positive(self):
        with pytest.raises(ValidationError):
            GameSettings(morale_drop_rate=0)


class TestStore:
    def test_update_bumps_version(self):
        store = GameSettingsStore()
        before = store.current
        after = store.update(population_growth_rate=1.5)
        assert after.version == 2
        assert after.population_growth_rate == 1.5
        assert store.current is after
        # Earlier snapshots are untouched
        assert before.population_growth_rate == 1.0
        assert before.version == 1

    def test_version_cannot_be_set_directly(self):
        store = GameSettingsStore()
        assert store.update(version=99).version == 2

    def test_invalid_update_keeps_current(self):
        store = GameSettingsStore()
        with pytest.raises(ValidationError):
            store.update(max_troop_capacity=0)
        assert store.current.version == 1


class TestSettings:
    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("FRONTLINE_ECONOMY_TICK_SECONDS", "5")
        monkeypatch.setenv("FRONTLINE_SCHEDULER_ENABLED", "false")
        settings = Settings()
        assert settings.economy_tick_seconds == 5.0
        assert settings.scheduler_enabled is False
