import math
from dataclasses import dataclass, field

from app.models.building import BuildingType

MAX_BUILDING_LEVEL = 50


@dataclass
class BuildingData:
    building_type: BuildingType
    name: str
    build_seconds: int
    materials_cost: int
    prerequisites: list[BuildingType] = field(default_factory=list)
    unique: bool = False
    constructible: bool = True


BUILDING_DATA: dict[BuildingType, BuildingData] = {
    BuildingType.headquarters: BuildingData(
        BuildingType.headquarters, "Command Center", 0, 0, unique=True, constructible=False
    ),
    BuildingType.barracks: BuildingData(BuildingType.barracks, "Barracks", 120, 30),
    BuildingType.factory: BuildingData(
        BuildingType.factory, "Factory", 180, 40, prerequisites=[BuildingType.industry]
    ),
    BuildingType.depot: BuildingData(BuildingType.depot, "Supply Depot", 90, 25),
    BuildingType.radar: BuildingData(
        BuildingType.radar, "Radar Station", 240, 50, prerequisites=[BuildingType.infrastructure]
    ),
    BuildingType.industry: BuildingData(
        BuildingType.industry, "Industrial Complex", 300, 60, unique=True
    ),
    BuildingType.farm: BuildingData(BuildingType.farm, "Agricultural Center", 150, 35),
    BuildingType.infrastructure: BuildingData(
        BuildingType.infrastructure, "Infrastructure Node", 360, 80, unique=True
    ),
    BuildingType.housing: BuildingData(BuildingType.housing, "Housing Complex", 200, 45),
    BuildingType.storage: BuildingData(BuildingType.storage, "Storage Facility", 120, 30),
    BuildingType.federal: BuildingData(
        BuildingType.federal,
        "Federal Building",
        480,
        120,
        prerequisites=[BuildingType.infrastructure],
        unique=True,
    ),
}


def get_building_data(building_type: BuildingType) -> BuildingData:
    return BUILDING_DATA[BuildingType(building_type)]


def upgrade_cost(level: int) -> int:
    """Materials needed to take a building from `level` to `level + 1`."""
    return math.floor(30 * math.pow(1.5, level))


def upgrade_seconds(level: int) -> int:
    return 120 + level * 30
