import random
from collections.abc import Mapping

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.data.nations import AI_COMMANDER_NAMES
from app.models.building import Building, BuildingType, ConstructionQueueEntry
from app.models.player import Nation, Player
from app.models.plot import Plot, ResourceType, resource_column
from app.models.troop import Troop
from app.services.map_generator import random_hex_id

STARTING_POPULATION_CAP = 50
AI_PLAYERS_PER_NATION = 3


async def get_player(db: AsyncSession, player_id: int) -> Player | None:
    result = await db.execute(select(Player).where(Player.id == player_id))
    return result.scalar_one_or_none()


async def get_plot_for_player(db: AsyncSession, player_id: int) -> Plot | None:
    result = await db.execute(select(Plot).where(Plot.player_id == player_id))
    return result.scalar_one_or_none()


async def lock_plot_for_player(db: AsyncSession, player_id: int) -> Plot | None:
    """Load a plot with a row lock and fresh column values.

    Used inside a transaction before any multi-step spend. Backends with
    row locks serialize concurrent spends here; SQLite ignores FOR UPDATE,
    so the debits themselves go through `spend_resources`.
    """
    result = await db.execute(
        select(Plot)
        .where(Plot.player_id == player_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def capped_increase(column, amount, cap: int):
    """SQL expression for min(cap, column + amount), evaluated on the stored row."""
    total = column + amount
    return case((total > cap, cap), else_=total)


async def spend_resources(
    db: AsyncSession,
    plot_id: int,
    costs: Mapping[ResourceType, int],
    *criteria,
    **changes,
) -> bool:
    """Debit a plot in one conditional UPDATE.

    The balance checks are part of the WHERE clause and the new balances are
    computed from the stored values, so a concurrent spend that commits first
    makes this one match no row instead of being overwritten by it. Extra
    `criteria` narrow the match and `changes` are written in the same
    statement. Returns False when nothing matched.

    The plot object held by the session is not updated; refresh it after
    commit if its values are needed.
    """
    values = dict(changes)
    conditions = [Plot.id == plot_id, *criteria]
    for resource, amount in costs.items():
        column = resource_column(resource)
        conditions.append(column >= amount)
        values[ResourceType(resource).value] = column - amount
    result = await db.execute(
        update(Plot)
        .where(*conditions)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def credit_resources(
    db: AsyncSession,
    plot_id: int,
    gains: Mapping[ResourceType, int],
    cap: int,
    *criteria,
    **changes,
) -> bool:
    """Add to a plot's resources in one UPDATE, clamping each to `cap`."""
    values = dict(changes)
    for resource, amount in gains.items():
        values[ResourceType(resource).value] = capped_increase(resource_column(resource), amount, cap)
    result = await db.execute(
        update(Plot)
        .where(Plot.id == plot_id, *criteria)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def get_buildings_for_plot(db: AsyncSession, plot_id: int) -> list[Building]:
    result = await db.execute(
        select(Building).where(Building.plot_id == plot_id).order_by(Building.id)
    )
    return list(result.scalars().all())


async def get_troops_for_plot(db: AsyncSession, plot_id: int) -> list[Troop]:
    result = await db.execute(select(Troop).where(Troop.plot_id == plot_id).order_by(Troop.id))
    return list(result.scalars().all())


async def get_construction_queue(db: AsyncSession, plot_id: int) -> list[ConstructionQueueEntry]:
    result = await db.execute(
        select(ConstructionQueueEntry)
        .where(ConstructionQueueEntry.plot_id == plot_id)
        .order_by(ConstructionQueueEntry.queue_position)
    )
    return list(result.scalars().all())


async def count_operational_buildings(
    db: AsyncSession, plot_id: int
) -> dict[BuildingType, int]:
    """Count buildings per type that are not under construction.

    Upgrading buildings keep producing; only unfinished construction is
    excluded.
    """
    result = await db.execute(
        select(Building.type, func.count(Building.id))
        .where(Building.plot_id == plot_id, Building.is_under_construction == False)  # noqa: E712
        .group_by(Building.type)
    )
    return {building_type: count for building_type, count in result.all()}


async def create_plot(
    db: AsyncSession,
    player: Player,
    nation: Nation,
    specialization: ResourceType | None = None,
    rng: random.Random | None = None,
) -> Plot:
    """Create a plot with starting resources and its headquarters."""
    _rand = rng or random
    if specialization is None:
        specialization = _rand.choice(list(ResourceType))

    plot = Plot(
        player_id=player.id,
        nation=nation,
        hex_id=random_hex_id(_rand),
        resource_specialization=specialization,
        population_current=0,
        population_cap=STARTING_POPULATION_CAP,
    )
    db.add(plot)
    await db.flush()

    hq_name = "AI Command Center" if player.is_ai else "Command Center"
    db.add(Building(
        plot_id=plot.id,
        type=BuildingType.headquarters,
        name=hq_name,
        level=1,
        is_under_construction=False,
        can_cancel=False,
    ))
    await db.flush()
    return plot


async def select_nation(
    db: AsyncSession,
    player: Player,
    nation: Nation,
    rng: random.Random | None = None,
) -> Plot:
    """Assign a nation to a player and create their plot."""
    existing = await get_plot_for_player(db, player.id)
    if existing is not None:
        raise ValueError("Nation already selected")

    try:
        player.nation = nation
        plot = await create_plot(db, player, nation, rng=rng)
        await db.commit()
    except IntegrityError:
        # plots.player_id is unique: a concurrent selection won
        await db.rollback()
        raise ValueError("Nation already selected")
    await db.refresh(plot)
    return plot


async def create_ai_players(db: AsyncSession, rng: random.Random | None = None) -> list[Player]:
    """Ensure every nation has its AI commanders. Safe to call repeatedly."""
    created: list[Player] = []
    for nation in Nation:
        existing = await db.execute(
            select(func.count(Player.id)).where(Player.nation == nation, Player.is_ai == True)  # noqa: E712
        )
        if existing.scalar_one() >= AI_PLAYERS_PER_NATION:
            continue

        for i, commander in enumerate(AI_COMMANDER_NAMES[:AI_PLAYERS_PER_NATION]):
            email = f"ai_{nation.value}_{i + 1}@frontline.ai"
            found = await db.execute(select(Player).where(Player.email == email))
            if found.scalar_one_or_none() is not None:
                continue
            player = Player(
                email=email,
                username=f"{commander} ({nation.value.upper()})",
                hashed_password="!",  # AI accounts cannot log in
                nation=nation,
                is_ai=True,
            )
            db.add(player)
            await db.flush()
            await create_plot(db, player, nation, rng=rng)
            created.append(player)

    await db.commit()
    return created


async def list_ai_plots(db: AsyncSession) -> list[Plot]:
    result = await db.execute(
        select(Plot)
        .join(Player, Player.id == Plot.player_id)
        .where(Player.is_ai == True)  # noqa: E712
        .order_by(Plot.id)
    )
    return list(result.scalars().all())
