from app.models.base import Base  # noqa: F401
from app.models.building import Building, BuildingType, ConstructionQueueEntry  # noqa: F401
from app.models.player import Nation, Player  # noqa: F401
from app.models.player_action import ActionStatus, ActionType, PlayerAction  # noqa: F401
from app.models.plot import Plot, ResourceType  # noqa: F401
from app.models.territory import Territory, TerritoryControl  # noqa: F401
from app.models.trade import Trade, TradeStatus  # noqa: F401
from app.models.troop import Troop, TroopType  # noqa: F401
