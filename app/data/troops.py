from dataclasses import dataclass

from app.models.troop import TroopType


@dataclass
class TroopData:
    troop_type: TroopType
    name: str
    train_seconds: int  # per unit
    manpower_cost: int  # per unit
    strength: int
    upkeep_food: int  # per unit per tick
    upkeep_fuel: int  # per unit per tick


TROOP_DATA: dict[TroopType, TroopData] = {
    TroopType.infantry: TroopData(TroopType.infantry, "Infantry Squad", 60, 15, 1, 1, 0),
    TroopType.armor: TroopData(TroopType.armor, "Armor Unit", 120, 25, 3, 0, 1),
    TroopType.artillery: TroopData(TroopType.artillery, "Artillery Battery", 180, 35, 5, 1, 1),
    TroopType.air: TroopData(TroopType.air, "Air Squadron", 240, 50, 7, 0, 2),
}


def get_troop_data(troop_type: TroopType) -> TroopData:
    return TROOP_DATA[TroopType(troop_type)]


def list_troops_by_cost() -> list[TroopData]:
    return sorted(TROOP_DATA.values(), key=lambda t: t.manpower_cost)
