from dataclasses import dataclass

from app.models.player import Nation


@dataclass
class NationData:
    nation_id: Nation
    name: str
    color: str
    description: str
    leader: str


NATION_DATA: dict[Nation, NationData] = {
    Nation.union: NationData(
        nation_id=Nation.union,
        name="Northern Union",
        color="blue",
        description="A democratic federation controlling the resource-rich northern territories.",
        leader="General Marcus Steel",
    ),
    Nation.dominion: NationData(
        nation_id=Nation.dominion,
        name="Eastern Dominion",
        color="red",
        description="An authoritarian empire spanning the eastern archipelago.",
        leader="Marshal Viktor Kane",
    ),
    Nation.syndicate: NationData(
        nation_id=Nation.syndicate,
        name="Southern Syndicate",
        color="green",
        description="A corporate alliance controlling the southern industrial heartland.",
        leader="Executive Director Sarah Chen",
    ),
}

AI_COMMANDER_NAMES = ["Commander Alpha", "General Beta", "Colonel Gamma"]


def get_nation(nation: Nation) -> NationData:
    return NATION_DATA[nation]


def list_nations() -> list[NationData]:
    return list(NATION_DATA.values())
