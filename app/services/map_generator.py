"""
World map generation for Frontline.

Territories are hex cells in axial coordinates, identified by the string
``hex_{q}_{r}``. Each nation starts with a cluster of hexes around its home
region and a smaller neutral cluster sits in the middle of the map.
"""

import math
import random
import string
from dataclasses import dataclass

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.territory import Territory, TerritoryControl

# Region centers (q, r) and spread for the starting layout
REGIONS: dict[TerritoryControl, tuple[int, int, int]] = {
    TerritoryControl.union: (-8, -6, 6),
    TerritoryControl.dominion: (6, -3, 6),
    TerritoryControl.syndicate: (-2, 8, 6),
    TerritoryControl.neutral: (0, 0, 4),
}
NATION_HEX_COUNT = 25
NEUTRAL_HEX_COUNT = 15


@dataclass
class TerritorySeed:
    hex_id: str
    q: int
    r: int
    nation: TerritoryControl


def hex_id_for(q: int, r: int) -> str:
    return f"hex_{q}_{r}"


def parse_hex_id(hex_id: str) -> tuple[int, int] | None:
    """Return (q, r) for an ``hex_{q}_{r}`` id, or None for other id formats."""
    parts = hex_id.split("_")
    if len(parts) != 3 or parts[0] != "hex":
        return None
    try:
        return int(parts[1]), int(parts[2])
    except ValueError:
        return None


def random_hex_id(rng: random.Random | None = None) -> str:
    """Opaque hex id for a plot's home cell (not on the shared grid)."""
    _rand = rng or random
    suffix = "".join(_rand.choice(string.ascii_lowercase + string.digits) for _ in range(9))
    return f"hex_{suffix}"


def generate_balanced_territories(rng: random.Random | None = None) -> list[TerritorySeed]:
    """Scatter hexes around each region center, skipping duplicate cells."""
    _rand = rng or random
    seeds: list[TerritorySeed] = []
    seen: set[str] = set()

    for nation, (center_q, center_r, size) in REGIONS.items():
        hex_count = NEUTRAL_HEX_COUNT if nation == TerritoryControl.neutral else NATION_HEX_COUNT
        for i in range(hex_count):
            angle = (i / hex_count) * 2 * math.pi
            distance = _rand.random() * size + 1
            q = round(center_q + distance * math.cos(angle))
            r = round(center_r + distance * math.sin(angle))
            hex_id = hex_id_for(q, r)
            if hex_id in seen:
                continue
            seen.add(hex_id)
            seeds.append(TerritorySeed(hex_id=hex_id, q=q, r=r, nation=nation))

    return seeds


def _territory_from_seed(seed: TerritorySeed) -> Territory:
    return Territory(
        hex_id=seed.hex_id,
        q=seed.q,
        r=seed.r,
        controlled_by_nation=seed.nation,
        is_contested=False,
        under_attack=False,
    )


async def initialize_territories(db: AsyncSession, rng: random.Random | None = None) -> int:
    """Seed the map if it is empty. Returns the number of territories created."""
    result = await db.execute(select(func.count(Territory.id)))
    if result.scalar_one() > 0:
        return 0
    seeds = generate_balanced_territories(rng)
    db.add_all([_territory_from_seed(seed) for seed in seeds])
    await db.commit()
    return len(seeds)


async def reset_map(db: AsyncSession, rng: random.Random | None = None) -> int:
    """Replace every territory with a freshly generated layout."""
    await db.execute(delete(Territory))
    seeds = generate_balanced_territories(rng)
    db.add_all([_territory_from_seed(seed) for seed in seeds])
    await db.commit()
    return len(seeds)


async def get_territories(db: AsyncSession) -> list[Territory]:
    result = await db.execute(select(Territory).order_by(Territory.id))
    return list(result.scalars().all())


async def get_territory(db: AsyncSession, hex_id: str) -> Territory | None:
    result = await db.execute(select(Territory).where(Territory.hex_id == hex_id))
    return result.scalar_one_or_none()


async def get_or_create_territory(db: AsyncSession, hex_id: str) -> Territory:
    """Return the territory for a hex, lazily creating it as neutral."""
    territory = await get_territory(db, hex_id)
    if territory is not None:
        return territory
    coords = parse_hex_id(hex_id)
    territory = Territory(
        hex_id=hex_id,
        q=coords[0] if coords else None,
        r=coords[1] if coords else None,
        controlled_by_nation=TerritoryControl.neutral,
        is_contested=False,
        under_attack=False,
    )
    db.add(territory)
    await db.flush()
    return territory


async def count_territories_by_nation(db: AsyncSession) -> dict[TerritoryControl, int]:
    result = await db.execute(
        select(Territory.controlled_by_nation, func.count(Territory.id))
        .group_by(Territory.controlled_by_nation)
    )
    return {nation: count for nation, count in result.all()}
