"""Notification service: publishes payload-free "state changed" events.

The transport (WebSocket push, polling, ...) lives outside the simulation.
It registers an async subscriber and is told which player or the whole
world should refresh. A failing subscriber is logged and never breaks the
tick or command that published the event.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

PLOT_UPDATE = "plot_update"
TIMER_UPDATE = "timer_update"
MAP_UPDATE = "map_update"
TRADE_UPDATE = "trade_update"


@dataclass
class Notification:
    type: str
    player_id: int | None = None  # None means broadcast to everyone
    data: dict[str, Any] = field(default_factory=dict)


Subscriber = Callable[[Notification], Awaitable[None]]

_subscribers: list[Subscriber] = []


def subscribe(callback: Subscriber) -> None:
    _subscribers.append(callback)


def unsubscribe(callback: Subscriber) -> None:
    if callback in _subscribers:
        _subscribers.remove(callback)


async def _dispatch(notification: Notification) -> None:
    for callback in list(_subscribers):
        try:
            await callback(notification)
        except Exception:
            logger.exception("Notification subscriber failed for %s", notification.type)


async def publish_player_update(player_id: int, update_type: str = PLOT_UPDATE) -> None:
    """Tell one player that their own state changed."""
    await _dispatch(Notification(type=update_type, player_id=player_id))


async def broadcast(update_type: str, data: dict[str, Any] | None = None) -> None:
    """Tell every connected client that shared state changed."""
    await _dispatch(Notification(type=update_type, data=data or {}))
