import random
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.player import Player
from app.models.player_action import ActionStatus, ActionType, PlayerAction
from app.models.troop import Troop
from app.services.plot_service import lock_plot_for_player

MIN_DEPLOYMENT_SECONDS = 300
MAX_DEPLOYMENT_SECONDS = 900
RECENT_ACTION_WINDOW = timedelta(hours=1)


@dataclass
class DeploymentOrder:
    troop_id: int
    count: int


def action_type_for_mode(mode: str) -> ActionType:
    if mode == ActionType.attack.value:
        return ActionType.attack
    if mode == ActionType.move.value:
        return ActionType.move
    return ActionType.occupy


async def deploy_troops(
    db: AsyncSession,
    player_id: int,
    orders: list[DeploymentOrder],
    target_hex: str,
    mode: str,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> PlayerAction:
    """Send units from idle stacks toward a hex.

    The units leave their stacks for good; the stacks are flagged deployed
    until the movement resolves.
    """
    now = now or utcnow()
    _rand = rng or random
    if not orders:
        raise ValueError("No troops selected for deployment")
    if not target_hex:
        raise ValueError("Target hex is required")

    merged: dict[int, int] = {}
    for order in orders:
        if order.count < 1:
            raise ValueError("Deployment count must be at least 1")
        merged[order.troop_id] = merged.get(order.troop_id, 0) + order.count

    try:
        plot = await lock_plot_for_player(db, player_id)
        if plot is None:
            raise ValueError("Plot not found")
        player = await db.get(Player, player_id)

        total_units = 0
        total_strength = 0
        stacks: list[tuple[Troop, int]] = []
        for troop_id, count in merged.items():
            result = await db.execute(
                select(Troop)
                .where(Troop.id == troop_id, Troop.plot_id == plot.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            troop = result.scalar_one_or_none()
            if troop is None or not troop.is_idle:
                raise ValueError(f"Troop {troop_id} not available for deployment")
            if troop.count < count:
                raise ValueError(f"Insufficient {troop.name} units")
            total_units += count
            total_strength += troop.strength * count
            stacks.append((troop, count))

        deployment_end = now + timedelta(
            seconds=_rand.uniform(MIN_DEPLOYMENT_SECONDS, MAX_DEPLOYMENT_SECONDS)
        )
        action = PlayerAction(
            player_id=player.id,
            plot_id=plot.id,
            action_type=action_type_for_mode(mode),
            from_hex=plot.hex_id,
            to_hex=target_hex,
            troop_data={
                "total_units": total_units,
                "total_strength": total_strength,
                "deployed_troops": [
                    {"troop_id": troop.id, "count": count} for troop, count in stacks
                ],
            },
            started_at=now,
            completes_at=deployment_end,
            status=ActionStatus.in_progress,
        )
        db.add(action)

        for troop, count in stacks:
            debited = await db.execute(
                update(Troop)
                .where(
                    Troop.id == troop.id,
                    Troop.is_training == False,  # noqa: E712
                    Troop.is_deployed == False,  # noqa: E712
                    Troop.count >= count,
                )
                .values(
                    count=Troop.count - count,
                    is_deployed=True,
                    deployment_end=deployment_end,
                    target_hex=target_hex,
                )
                .execution_options(synchronize_session=False)
            )
            if debited.rowcount != 1:
                raise ValueError(f"Troop {troop.id} not available for deployment")

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    for troop, _ in stacks:
        await db.refresh(troop)
    await db.refresh(action)
    return action


async def list_recent_actions(db: AsyncSession, now: datetime | None = None) -> list[PlayerAction]:
    """Movements still in flight plus those completed within the last hour."""
    now = now or utcnow()
    result = await db.execute(
        select(PlayerAction)
        .where(
            or_(
                PlayerAction.status == ActionStatus.in_progress,
                (PlayerAction.status == ActionStatus.completed)
                & (PlayerAction.completes_at > now - RECENT_ACTION_WINDOW),
            )
        )
        .order_by(PlayerAction.started_at.desc())
    )
    return list(result.scalars().all())
