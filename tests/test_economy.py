"""Tests for the economy tick.

Covers:
- Per-interval gains: base rates, x3 specialization, industry/farm bonuses
- Storage cap clamp and storage buildings raising it
- Multiple elapsed intervals applied in one tick, nothing before one interval
- Global resource_generation_rate multiplier
- Population growth, housing cap, never lowered by the tick
- Generation keeps spends committed after the plot was read, and an
  interval is only paid once
- Manual collection bonus and its cooldown, paid once to concurrent claims
"""

import asyncio
from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import GameSettings
from app.models.building import BuildingType
from app.models.plot import Plot, ResourceType
from app.services.plot_service import spend_resources
from app.services.resource_service import (
    CooldownError,
    apply_population_growth,
    apply_resource_generation,
    calculate_population_cap,
    calculate_resource_gains,
    calculate_storage_cap,
    collect_resources,
    run_economy_tick,
    run_population_tick,
)

NOW = datetime(2026, 1, 1, 12, 0, 0)
TICK = timedelta(minutes=3)


class TestGains:
    def test_specialization_is_three_times_base(self):
        gains = calculate_resource_gains(ResourceType.manpower, 0, 0, GameSettings())
        assert gains == {
            ResourceType.manpower: 24,
            ResourceType.materials: 8,
            ResourceType.fuel: 4,
            ResourceType.food: 12,
        }

    def test_each_specialization(self):
        for resource, base in [
            (ResourceType.manpower, 8),
            (ResourceType.materials, 8),
            (ResourceType.fuel, 4),
            (ResourceType.food, 12),
        ]:
            gains = calculate_resource_gains(resource, 0, 0, GameSettings())
            assert gains[resource] == base * 3

    def test_building_bonuses_are_flat(self):
        gains = calculate_resource_gains(ResourceType.materials, 1, 2, GameSettings())
        assert gains[ResourceType.materials] == 24 + 8
        assert gains[ResourceType.food] == 12 + 30

    def test_generation_rate_multiplies_base(self):
        gains = calculate_resource_gains(
            ResourceType.fuel, 0, 0, GameSettings(resource_generation_rate=2.0)
        )
        assert gains[ResourceType.fuel] == 24
        assert gains[ResourceType.manpower] == 16

    def test_caps(self):
        assert calculate_storage_cap(0) == 1000
        assert calculate_storage_cap(2) == 2000
        assert calculate_population_cap(0) == 50
        assert calculate_population_cap(3) == 125


class TestApplyGeneration:
    async def _generate(self, db: AsyncSession, plot: Plot, counts, settings, now) -> int:
        applied = await apply_resource_generation(db, plot, counts, settings, now)
        await db.commit()
        await db.refresh(plot)
        return applied

    async def test_one_interval(self, db_session: AsyncSession, make_plot):
        plot = await make_plot()
        applied = await self._generate(db_session, plot, {}, GameSettings(), NOW + TICK)
        assert applied == 1
        assert (plot.manpower, plot.materials, plot.fuel, plot.food) == (124, 58, 29, 42)
        assert plot.last_resource_update == NOW + TICK

    async def test_not_due_yet(self, db_session: AsyncSession, make_plot):
        plot = await make_plot()
        assert await self._generate(db_session, plot, {}, GameSettings(), NOW + timedelta(minutes=2)) == 0
        assert plot.manpower == 100
        assert plot.last_resource_update == NOW

    async def test_multiple_intervals(self, db_session: AsyncSession, make_plot):
        plot = await make_plot()
        applied = await self._generate(db_session, plot, {}, GameSettings(), NOW + timedelta(minutes=10))
        assert applied == 3
        assert plot.manpower == 100 + 24 * 3
        assert plot.food == 30 + 12 * 3

    async def test_clamped_to_storage_cap(self, db_session: AsyncSession, make_plot):
        plot = await make_plot(manpower=990, food=1000)
        await self._generate(db_session, plot, {}, GameSettings(), NOW + TICK)
        assert plot.manpower == 1000
        assert plot.food == 1000

    async def test_storage_building_raises_cap(self, db_session: AsyncSession, make_plot):
        plot = await make_plot(manpower=990)
        await self._generate(db_session, plot, {BuildingType.storage: 1}, GameSettings(), NOW + TICK)
        assert plot.manpower == 1014

    async def test_resources_never_exceed_cap_over_many_ticks(self, db_session: AsyncSession, make_plot):
        plot = await make_plot(specialization=ResourceType.food)
        counts = {BuildingType.farm: 3, BuildingType.industry: 1}
        for i in range(1, 40):
            await self._generate(db_session, plot, counts, GameSettings(), NOW + TICK * i)
            for resource in ResourceType:
                assert getattr(plot, resource.value) <= 1000

    async def test_keeps_spend_committed_after_read(
        self, db_session: AsyncSession, session_factory, make_plot
    ):
        plot = await make_plot(materials=200)
        async with session_factory() as other:
            assert await spend_resources(other, plot.id, {ResourceType.materials: 150})
            await other.commit()

        # plot still holds materials=200 from before the spend
        await self._generate(db_session, plot, {}, GameSettings(), NOW + TICK)
        assert plot.materials == 50 + 8

    async def test_same_interval_is_not_paid_twice(
        self, db_session: AsyncSession, session_factory, make_plot
    ):
        plot = await make_plot()
        async with session_factory() as other:
            stale = await other.get(Plot, plot.id)
            await self._generate(db_session, plot, {}, GameSettings(), NOW + TICK)
            assert await apply_resource_generation(other, stale, {}, GameSettings(), NOW + TICK) == 0
            await other.commit()
        await db_session.refresh(plot)
        assert plot.manpower == 124


class TestPopulationGrowth:
    async def _grow(self, db: AsyncSession, plot: Plot, housing: int, settings, now) -> int:
        applied = await apply_population_growth(db, plot, housing, settings, now)
        await db.commit()
        await db.refresh(plot)
        return applied

    async def test_grows_per_interval(self, db_session: AsyncSession, make_plot):
        plot = await make_plot()
        await self._grow(db_session, plot, 0, GameSettings(), NOW + TICK)
        assert plot.population_current == 2

    async def test_growth_rate(self, db_session: AsyncSession, make_plot):
        plot = await make_plot()
        await self._grow(db_session, plot, 0, GameSettings(population_growth_rate=2.5), NOW + TICK)
        assert plot.population_current == 5

    async def test_clamped_to_housing_cap(self, db_session: AsyncSession, make_plot):
        plot = await make_plot(population_current=49)
        await self._grow(db_session, plot, 0, GameSettings(), NOW + TICK * 5)
        assert plot.population_current == 50

    async def test_housing_raises_cap(self, db_session: AsyncSession, make_plot):
        plot = await make_plot(population_current=50)
        await self._grow(db_session, plot, 2, GameSettings(), NOW + TICK)
        assert plot.population_cap == 100
        assert plot.population_current == 52

    async def test_never_lowers_population(self, db_session: AsyncSession, make_plot):
        plot = await make_plot(population_current=60, population_cap=75)
        await self._grow(db_session, plot, 0, GameSettings(), NOW + TICK)
        assert plot.population_cap == 50
        assert plot.population_current == 60


class TestEconomySweep:
    async def test_updates_due_plots(self, db_session: AsyncSession, session_factory, make_plot):
        plot = await make_plot(specialization=ResourceType.fuel)
        updated = await run_economy_tick(session_factory, GameSettings(), now=NOW + TICK)
        assert updated == 1
        await db_session.refresh(plot)
        assert plot.fuel == 25 + 12
        assert plot.manpower == 108

    async def test_rerun_is_noop(self, db_session: AsyncSession, session_factory, make_plot):
        plot = await make_plot()
        await run_economy_tick(session_factory, GameSettings(), now=NOW + TICK)
        assert await run_economy_tick(session_factory, GameSettings(), now=NOW + TICK) == 0
        await db_session.refresh(plot)
        assert plot.manpower == 124

    async def test_unfinished_buildings_do_not_produce(
        self, db_session: AsyncSession, session_factory, make_plot
    ):
        from app.models.building import Building

        plot = await make_plot(specialization=ResourceType.manpower)
        db_session.add(Building(
            plot_id=plot.id, type=BuildingType.farm, name="Farm", is_under_construction=True,
        ))
        await db_session.commit()
        await run_economy_tick(session_factory, GameSettings(), now=NOW + TICK)
        await db_session.refresh(plot)
        assert plot.food == 42

    async def test_population_sweep(self, db_session: AsyncSession, session_factory, make_plot):
        plot = await make_plot(buildings=[BuildingType.housing])
        assert await run_population_tick(session_factory, GameSettings(), now=NOW + TICK) == 1
        await db_session.refresh(plot)
        assert plot.population_cap == 75
        assert plot.population_current == 2


class TestCollect:
    async def test_collect_adds_ten_percent(self, db_session: AsyncSession, make_plot):
        plot = await make_plot()
        collected = await collect_resources(db_session, plot.player_id, now=NOW)
        assert collected == {"manpower": 10, "materials": 5, "fuel": 2, "food": 3}
        assert plot.manpower == 110
        assert plot.last_collect_time == NOW

    async def test_collect_respects_storage_cap(self, db_session: AsyncSession, make_plot):
        plot = await make_plot(manpower=995)
        collected = await collect_resources(db_session, plot.player_id, now=NOW)
        assert collected["manpower"] == 5
        assert plot.manpower == 1000

    async def test_cooldown(self, db_session: AsyncSession, make_plot):
        plot = await make_plot()
        await collect_resources(db_session, plot.player_id, now=NOW)
        with pytest.raises(CooldownError) as exc_info:
            await collect_resources(db_session, plot.player_id, now=NOW + timedelta(minutes=4))
        assert exc_info.value.remaining_seconds == 360

        await collect_resources(db_session, plot.player_id, now=NOW + timedelta(minutes=10))

    async def test_cooldown_is_a_validation_error(self, db_session: AsyncSession, make_plot):
        plot = await make_plot()
        await collect_resources(db_session, plot.player_id, now=NOW)
        with pytest.raises(ValueError):
            await collect_resources(db_session, plot.player_id, now=NOW + timedelta(seconds=1))

    async def test_concurrent_claims_pay_once(self, db_session: AsyncSession, session_factory, make_plot):
        plot = await make_plot()

        async def claim():
            async with session_factory() as db:
                return await collect_resources(db, plot.player_id, now=NOW)

        results = await asyncio.gather(claim(), claim(), return_exceptions=True)
        assert sum(isinstance(r, dict) for r in results) == 1
        assert sum(isinstance(r, CooldownError) for r in results) == 1

        await db_session.refresh(plot)
        assert plot.manpower == 110
