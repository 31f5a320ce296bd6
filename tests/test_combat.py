"""Tests for the deployment resolver.

Covers:
- Defender power and the strict attacker-wins comparison, incl. boundaries
- parse_troop_snapshot fallbacks for malformed data
- resolve_action outcomes per action type and target ownership
- run_deployment_sweep: completion, stack release without refund,
  cancellation of unprocessable actions, notifications, re-run safety
"""

from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.player import Nation, Player
from app.models.player_action import ActionStatus, ActionType, PlayerAction
from app.models.territory import Territory, TerritoryControl
from app.models.troop import Troop, TroopType
from app.services import notification_service
from app.services.combat_service import (
    CombatOutcome,
    DEFENDER_ROLL_MAX,
    DEFENDER_ROLL_MIN,
    attacker_wins,
    defender_power,
    parse_troop_snapshot,
    roll_defender_strength,
    run_deployment_sweep,
)

NOW = datetime(2026, 1, 1, 12, 0, 0)
LATER = NOW + timedelta(minutes=20)


class FixedRoll:
    """Stand-in RNG whose defender roll is always `value`."""

    def __init__(self, value: int) -> None:
        self.value = value

    def randint(self, a: int, b: int) -> int:
        return self.value


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _territory(db: AsyncSession, hex_id: str, owner: TerritoryControl) -> Territory:
    territory = Territory(hex_id=hex_id, controlled_by_nation=owner, is_contested=False, under_attack=False)
    db.add(territory)
    await db.commit()
    return territory


async def _action(
    db: AsyncSession,
    player_id: int,
    to_hex: str,
    action_type: ActionType = ActionType.attack,
    troop_data=None,
) -> PlayerAction:
    action = PlayerAction(
        player_id=player_id,
        action_type=action_type,
        to_hex=to_hex,
        troop_data=troop_data if troop_data is not None else {"total_units": 10, "total_strength": 100},
        started_at=NOW,
        completes_at=NOW + timedelta(minutes=10),
        status=ActionStatus.in_progress,
    )
    db.add(action)
    await db.commit()
    return action


async def _resolve(db: AsyncSession, session_factory, territory: Territory, action: PlayerAction, rng):
    summary = await run_deployment_sweep(session_factory, now=LATER, rng=rng)
    await db.refresh(territory)
    await db.refresh(action)
    return summary


class TestPowerRules:
    def test_defender_power(self):
        assert defender_power(5) == 6
        assert defender_power(24) == 28

    def test_boundaries(self):
        assert attacker_wins(100, 83) is True
        assert attacker_wins(100, 84) is False

    def test_equal_power_holds(self):
        assert attacker_wins(28, 24) is False
        assert attacker_wins(29, 24) is True

    def test_strength_100_beats_every_baseline_roll(self):
        for roll in range(DEFENDER_ROLL_MIN, DEFENDER_ROLL_MAX):
            assert attacker_wins(100, roll)

    def test_roll_range(self):
        import random

        rng = random.Random(7)
        rolls = {roll_defender_strength(rng) for _ in range(2000)}
        assert min(rolls) == 5
        assert max(rolls) == 24


class TestSnapshot:
    def test_dict(self):
        snap = parse_troop_snapshot({"total_units": 3, "total_strength": 9, "deployed_troops": []})
        assert (snap.total_units, snap.total_strength) == (3, 9)

    def test_json_string(self):
        snap = parse_troop_snapshot('{"total_units": 2, "total_strength": 14}')
        assert (snap.total_units, snap.total_strength) == (2, 14)

    def test_garbage_falls_back(self):
        for raw in [None, "not json", 42, {"total_units": -1, "total_strength": "x"}]:
            snap = parse_troop_snapshot(raw)
            assert (snap.total_units, snap.total_strength) == (1, 10)
            assert snap.deployed_troops == []


class TestResolve:
    async def test_attack_neutral_captures(self, db_session: AsyncSession, session_factory, make_plot):
        plot = await make_plot(nation=Nation.union)
        territory = await _territory(db_session, "hex_1_1", TerritoryControl.neutral)
        action = await _action(db_session, plot.player_id, "hex_1_1")
        summary = await _resolve(db_session, session_factory, territory, action, FixedRoll(24))
        assert summary == {CombatOutcome.captured: 1}
        assert territory.controlled_by_nation == TerritoryControl.union
        assert territory.controlled_by_player_id == plot.player_id
        assert action.status == ActionStatus.completed

    async def test_attack_unknown_hex_creates_it(self, db_session: AsyncSession, session_factory, make_plot):
        plot = await make_plot(nation=Nation.dominion)
        action = await _action(db_session, plot.player_id, "hex_40_40")
        await run_deployment_sweep(session_factory, now=LATER, rng=FixedRoll(5))
        from app.services.map_generator import get_territory

        territory = await get_territory(db_session, "hex_40_40")
        assert territory.controlled_by_nation == TerritoryControl.dominion
        assert (territory.q, territory.r) == (40, 40)

    async def test_attack_enemy_conquers(self, db_session: AsyncSession, session_factory, make_plot):
        plot = await make_plot(nation=Nation.union)
        territory = await _territory(db_session, "hex_2_2", TerritoryControl.syndicate)
        action = await _action(db_session, plot.player_id, "hex_2_2")
        summary = await _resolve(db_session, session_factory, territory, action, FixedRoll(24))
        assert summary == {CombatOutcome.conquered: 1}
        assert territory.controlled_by_nation == TerritoryControl.union
        assert territory.is_contested is False
        assert territory.last_battle == LATER

    async def test_attack_enemy_repelled(self, db_session: AsyncSession, session_factory, make_plot):
        plot = await make_plot(nation=Nation.union)
        territory = await _territory(db_session, "hex_3_3", TerritoryControl.syndicate)
        action = await _action(
            db_session, plot.player_id, "hex_3_3", troop_data={"total_units": 4, "total_strength": 28}
        )
        summary = await _resolve(db_session, session_factory, territory, action, FixedRoll(24))
        assert summary == {CombatOutcome.repelled: 1}
        assert territory.controlled_by_nation == TerritoryControl.syndicate
        assert territory.is_contested is True
        assert action.status == ActionStatus.completed

    async def test_attack_own_territory_is_noop(self, db_session: AsyncSession, session_factory, make_plot):
        plot = await make_plot(nation=Nation.union)
        territory = await _territory(db_session, "hex_4_4", TerritoryControl.union)
        action = await _action(db_session, plot.player_id, "hex_4_4")
        summary = await _resolve(db_session, session_factory, territory, action, FixedRoll(5))
        assert summary == {CombatOutcome.no_change: 1}
        assert territory.controlled_by_player_id is None
        assert territory.last_battle is None

    async def test_occupy(self, db_session: AsyncSession, session_factory, make_plot):
        plot = await make_plot(nation=Nation.union)
        neutral = await _territory(db_session, "hex_5_5", TerritoryControl.neutral)
        enemy = await _territory(db_session, "hex_6_6", TerritoryControl.dominion)
        await _action(db_session, plot.player_id, "hex_5_5", ActionType.occupy)
        await _action(db_session, plot.player_id, "hex_6_6", ActionType.occupy)
        summary = await run_deployment_sweep(session_factory, now=LATER, rng=FixedRoll(5))
        assert summary == {CombatOutcome.reinforced: 1, CombatOutcome.no_change: 1}
        await db_session.refresh(neutral)
        await db_session.refresh(enemy)
        assert neutral.controlled_by_nation == TerritoryControl.union
        assert enemy.controlled_by_nation == TerritoryControl.dominion

    async def test_move_is_noop(self, db_session: AsyncSession, session_factory, make_plot):
        plot = await make_plot(nation=Nation.union)
        territory = await _territory(db_session, "hex_7_7", TerritoryControl.neutral)
        action = await _action(db_session, plot.player_id, "hex_7_7", ActionType.move)
        await _resolve(db_session, session_factory, territory, action, FixedRoll(5))
        assert territory.controlled_by_nation == TerritoryControl.neutral
        assert action.status == ActionStatus.completed

    async def test_malformed_snapshot_uses_default_force(
        self, db_session: AsyncSession, session_factory, make_plot
    ):
        plot = await make_plot(nation=Nation.union)
        territory = await _territory(db_session, "hex_8_8", TerritoryControl.dominion)
        action = await _action(db_session, plot.player_id, "hex_8_8", troop_data={"total_strength": "lots"})
        # Default strength 10 beats roll 5 (power 6) but not roll 9 (power 10)
        await _resolve(db_session, session_factory, territory, action, FixedRoll(5))
        assert territory.controlled_by_nation == TerritoryControl.union


class TestSweep:
    async def test_not_due_actions_wait(self, db_session: AsyncSession, session_factory, make_plot):
        plot = await make_plot()
        action = await _action(db_session, plot.player_id, "hex_1_1")
        assert await run_deployment_sweep(session_factory, now=NOW, rng=FixedRoll(5)) == {}
        await db_session.refresh(action)
        assert action.status == ActionStatus.in_progress

    async def test_rerun_is_safe(self, db_session: AsyncSession, session_factory, make_plot):
        plot = await make_plot()
        await _action(db_session, plot.player_id, "hex_1_1")
        await run_deployment_sweep(session_factory, now=LATER, rng=FixedRoll(5))
        assert await run_deployment_sweep(session_factory, now=LATER, rng=FixedRoll(5)) == {}

    async def test_stack_released_without_refund(self, db_session: AsyncSession, session_factory, make_plot):
        plot = await make_plot()
        troop = Troop(
            plot_id=plot.id, type=TroopType.infantry, name="Infantry", count=6, strength=1,
            is_deployed=True, target_hex="hex_1_1", upkeep_food=1, upkeep_fuel=0,
        )
        db_session.add(troop)
        await db_session.commit()
        await _action(
            db_session,
            plot.player_id,
            "hex_1_1",
            troop_data={
                "total_units": 4,
                "total_strength": 4,
                "deployed_troops": [{"troop_id": troop.id, "count": 4}],
            },
        )
        await run_deployment_sweep(session_factory, now=LATER, rng=FixedRoll(5))
        await db_session.refresh(troop)
        assert troop.is_deployed is False
        assert troop.target_hex is None
        assert troop.count == 6

    async def test_unprocessable_action_is_cancelled(
        self, db_session: AsyncSession, session_factory, make_plot
    ):
        stateless = Player(email="nobody@example.com", username="nobody", hashed_password="x")
        db_session.add(stateless)
        await db_session.commit()
        broken = await _action(db_session, stateless.id, "hex_1_1")
        plot = await make_plot()
        good = await _action(db_session, plot.player_id, "hex_2_1")

        summary = await run_deployment_sweep(session_factory, now=LATER, rng=FixedRoll(5))
        assert summary == {"cancelled": 1, CombatOutcome.captured: 1}
        await db_session.refresh(broken)
        await db_session.refresh(good)
        assert broken.status == ActionStatus.cancelled
        assert good.status == ActionStatus.completed

    async def test_notifications(self, db_session: AsyncSession, session_factory, make_plot):
        received = []

        async def listener(notification):
            received.append(notification.type)

        notification_service.subscribe(listener)
        try:
            plot = await make_plot()
            await _action(db_session, plot.player_id, "hex_1_1")
            await run_deployment_sweep(session_factory, now=LATER, rng=FixedRoll(5))
        finally:
            notification_service.unsubscribe(listener)
        assert received == [notification_service.TIMER_UPDATE, notification_service.MAP_UPDATE]
