"""Combat service: resolves finished troop movements against the map.

Resolution rules per action type:
  attack, neutral target  -> captured outright.
  attack, enemy target    -> combat. Attacker power is the snapshot's total
                             strength; defender power is floor(roll * 1.2)
                             with roll uniform in [5, 25). Strictly greater
                             attacker power captures, otherwise the hex is
                             marked contested and keeps its owner.
  attack, own nation      -> no change.
  occupy, neutral or own  -> ownership (re)asserted, flags cleared.
  occupy, enemy           -> no change.
  move                    -> no change.

Every resolved action ends as completed whatever the outcome; an action
that fails to process is cancelled instead. Deployed units are not
returned to their plot.
"""

from __future__ import annotations

import enum
import json
import logging
import math
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.base import utcnow
from app.models.player import Player
from app.models.player_action import ActionStatus, ActionType, PlayerAction
from app.models.territory import Territory, TerritoryControl
from app.models.troop import Troop
from app.services.map_generator import get_or_create_territory
from app.services.notification_service import MAP_UPDATE, TIMER_UPDATE, broadcast

logger = logging.getLogger(__name__)

DEFENDER_ROLL_MIN = 5
DEFENDER_ROLL_MAX = 25  # exclusive
DEFENSIVE_MULTIPLIER = 1.2
DEFAULT_SNAPSHOT = {"total_units": 1, "total_strength": 10}


class CombatOutcome(str, enum.Enum):
    captured = "captured"
    conquered = "conquered"
    repelled = "repelled"
    reinforced = "reinforced"
    no_change = "no_change"


@dataclass
class TroopSnapshot:
    total_units: int
    total_strength: int
    deployed_troops: list[dict[str, Any]]


def parse_troop_snapshot(raw: Any) -> TroopSnapshot:
    """Read an action's troop snapshot, falling back to a minimal force.

    A malformed snapshot must not block the sweep, so anything unreadable
    becomes one unit of strength 10.
    """
    data = raw
    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Unparseable troop snapshot %r, using default", raw)
            data = None

    if not isinstance(data, dict):
        return TroopSnapshot(
            DEFAULT_SNAPSHOT["total_units"], DEFAULT_SNAPSHOT["total_strength"], []
        )

    units = data.get("total_units")
    strength = data.get("total_strength")
    if not isinstance(units, int) or isinstance(units, bool) or units < 0:
        units = DEFAULT_SNAPSHOT["total_units"]
    if not isinstance(strength, int) or isinstance(strength, bool) or strength < 0:
        strength = DEFAULT_SNAPSHOT["total_strength"]
    deployed = data.get("deployed_troops")
    if not isinstance(deployed, list):
        deployed = []
    return TroopSnapshot(units, strength, deployed)


def roll_defender_strength(rng: random.Random | None = None) -> int:
    _rand = rng or random
    return _rand.randint(DEFENDER_ROLL_MIN, DEFENDER_ROLL_MAX - 1)


def defender_power(defender_roll: int) -> int:
    return math.floor(defender_roll * DEFENSIVE_MULTIPLIER)


def attacker_wins(attacker_strength: int, defender_roll: int) -> bool:
    """True when the attacker's power strictly exceeds the defended roll."""
    return attacker_strength > defender_power(defender_roll)


def _assert_control(territory: Territory, nation: TerritoryControl, player_id: int) -> None:
    territory.controlled_by_nation = nation
    territory.controlled_by_player_id = player_id
    territory.is_contested = False
    territory.under_attack = False


async def resolve_action(
    db: AsyncSession,
    action: PlayerAction,
    attacker_nation: TerritoryControl,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> CombatOutcome:
    """Apply one finished action to its target territory (no commit)."""
    now = now or utcnow()
    territory = await get_or_create_territory(db, action.to_hex)
    current = territory.controlled_by_nation

    if action.action_type == ActionType.attack:
        if current == TerritoryControl.neutral:
            _assert_control(territory, attacker_nation, action.player_id)
            logger.info("Territory %s captured by %s", action.to_hex, attacker_nation.value)
            return CombatOutcome.captured
        if current != attacker_nation:
            snapshot = parse_troop_snapshot(action.troop_data)
            roll = roll_defender_strength(rng)
            territory.last_battle = now
            if attacker_wins(snapshot.total_strength, roll):
                _assert_control(territory, attacker_nation, action.player_id)
                logger.info("Territory %s conquered by %s", action.to_hex, attacker_nation.value)
                return CombatOutcome.conquered
            territory.is_contested = True
            territory.under_attack = False
            logger.info("Attack on %s repelled - territory contested", action.to_hex)
            return CombatOutcome.repelled
        return CombatOutcome.no_change

    if action.action_type == ActionType.occupy:
        if current in (TerritoryControl.neutral, attacker_nation):
            _assert_control(territory, attacker_nation, action.player_id)
            logger.info("Territory %s reinforced by %s", action.to_hex, attacker_nation.value)
            return CombatOutcome.reinforced
        return CombatOutcome.no_change

    return CombatOutcome.no_change


async def _release_deployed_stacks(db: AsyncSession, action: PlayerAction) -> None:
    """Clear the deployed flags of the stacks that made this movement.

    The units themselves stay expended; only the stack becomes usable again.
    """
    snapshot = parse_troop_snapshot(action.troop_data)
    troop_ids = [
        entry.get("troop_id") for entry in snapshot.deployed_troops if isinstance(entry, dict)
    ]
    troop_ids = [troop_id for troop_id in troop_ids if isinstance(troop_id, int)]
    if not troop_ids:
        return
    result = await db.execute(
        select(Troop).where(
            Troop.id.in_(troop_ids),
            Troop.is_deployed == True,  # noqa: E712
            Troop.target_hex == action.to_hex,
        )
    )
    for troop in result.scalars().all():
        troop.is_deployed = False
        troop.deployment_end = None
        troop.target_hex = None


async def _cancel_action(session_factory: async_sessionmaker[AsyncSession], action_id: int) -> None:
    async with session_factory() as db:
        try:
            action = await db.get(PlayerAction, action_id)
            if action is not None and action.status == ActionStatus.in_progress:
                action.status = ActionStatus.cancelled
                await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("Could not cancel action %s", action_id)


async def run_deployment_sweep(
    session_factory: async_sessionmaker[AsyncSession],
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> dict[CombatOutcome | str, int]:
    """Resolve every in-progress action whose completion time has passed."""
    now = now or utcnow()
    async with session_factory() as db:
        result = await db.execute(
            select(PlayerAction.id)
            .where(
                PlayerAction.status == ActionStatus.in_progress,
                PlayerAction.completes_at <= now,
            )
            .order_by(PlayerAction.completes_at, PlayerAction.id)
        )
        action_ids = list(result.scalars().all())

    summary: dict[CombatOutcome | str, int] = {}
    for action_id in action_ids:
        async with session_factory() as db:
            try:
                action = await db.get(PlayerAction, action_id, with_for_update=True)
                if action is None or action.status != ActionStatus.in_progress:
                    continue
                player = await db.get(Player, action.player_id)
                if player is None or player.nation is None:
                    raise ValueError(f"Action {action_id} has no attacking nation")
                outcome = await resolve_action(
                    db, action, TerritoryControl(player.nation.value), rng, now
                )
                await _release_deployed_stacks(db, action)
                action.status = ActionStatus.completed
                await db.commit()
                summary[outcome] = summary.get(outcome, 0) + 1
            except Exception:
                await db.rollback()
                logger.exception("Error processing action %s", action_id)
                await _cancel_action(session_factory, action_id)
                summary["cancelled"] = summary.get("cancelled", 0) + 1

    if action_ids:
        logger.info("Processed %d completed deployments", len(action_ids))
        await broadcast(TIMER_UPDATE, {"deployments_completed": len(action_ids)})
        await broadcast(MAP_UPDATE)
    return summary
