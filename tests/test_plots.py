"""Tests for nation selection, plot creation and AI player seeding."""

import asyncio
import random

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.building import Building, BuildingType
from app.models.player import Nation, Player
from app.models.plot import Plot, ResourceType
from app.services import plot_service
from app.services.plot_service import (
    AI_PLAYERS_PER_NATION,
    count_operational_buildings,
    create_ai_players,
    get_plot_for_player,
    list_ai_plots,
    select_nation,
)


async def _player(db: AsyncSession, name: str = "alice") -> Player:
    player = Player(email=f"{name}@example.com", username=name, hashed_password="x")
    db.add(player)
    await db.commit()
    return player


class TestSelectNation:
    async def test_creates_plot_with_headquarters(self, db_session: AsyncSession):
        player = await _player(db_session)
        plot = await select_nation(db_session, player, Nation.syndicate, rng=random.Random(4))
        assert player.nation == Nation.syndicate
        assert plot.nation == Nation.syndicate
        assert (plot.manpower, plot.materials, plot.fuel, plot.food) == (100, 50, 25, 30)
        assert plot.population_current == 0
        assert plot.population_cap == 50
        assert plot.resource_specialization in set(ResourceType)

        result = await db_session.execute(select(Building).where(Building.plot_id == plot.id))
        buildings = result.scalars().all()
        assert [b.type for b in buildings] == [BuildingType.headquarters]
        assert buildings[0].can_cancel is False
        assert await count_operational_buildings(db_session, plot.id) == {BuildingType.headquarters: 1}

    async def test_only_once(self, db_session: AsyncSession):
        player = await _player(db_session)
        await select_nation(db_session, player, Nation.union)
        with pytest.raises(ValueError, match="Nation already selected"):
            await select_nation(db_session, player, Nation.dominion)
        plot = await get_plot_for_player(db_session, player.id)
        assert plot.nation == Nation.union


    async def test_selection_committed_after_check(
        self, db_session: AsyncSession, session_factory, monkeypatch
    ):
        player = await _player(db_session)
        async with session_factory() as other:
            await select_nation(other, await other.get(Player, player.id), Nation.union)

        async def no_plot_yet(db, player_id):
            return None

        monkeypatch.setattr(plot_service, "get_plot_for_player", no_plot_yet)
        with pytest.raises(ValueError, match="Nation already selected"):
            await select_nation(db_session, player, Nation.dominion)
        monkeypatch.undo()

        plot = await get_plot_for_player(db_session, player.id)
        assert plot.nation == Nation.union

    async def test_concurrent_selections(self, db_session: AsyncSession, session_factory):
        player = await _player(db_session)

        async def choose(nation: Nation):
            async with session_factory() as db:
                return await select_nation(db, await db.get(Player, player.id), nation)

        results = await asyncio.gather(
            choose(Nation.union), choose(Nation.dominion), return_exceptions=True
        )
        assert sum(isinstance(r, Plot) for r in results) == 1
        assert sum(isinstance(r, ValueError) for r in results) == 1
        result = await db_session.execute(select(Plot).where(Plot.player_id == player.id))
        assert len(result.scalars().all()) == 1


class TestAIPlayers:
    async def test_seeds_each_nation(self, db_session: AsyncSession):
        created = await create_ai_players(db_session, rng=random.Random(0))
        assert len(created) == AI_PLAYERS_PER_NATION * len(Nation)
        assert all(p.is_ai for p in created)
        plots = await list_ai_plots(db_session)
        assert len(plots) == len(created)

    async def test_idempotent(self, db_session: AsyncSession):
        await create_ai_players(db_session)
        assert await create_ai_players(db_session) == []
