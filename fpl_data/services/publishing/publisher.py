"""Latest-value broadcast slots for projected collections.

A StateSlot always holds a value (an empty list until the first load). Every
subscriber receives the current value as soon as it subscribes, then each
later value in publication order. Publishing never waits for subscribers: a
subscriber that falls behind skips straight to the newest value, which is
safe because every value is a full replacement collection.
"""
import asyncio
from typing import AsyncIterator, Callable, Generic, List, TypeVar

from fpl_data.core import metrics
from fpl_data.core.exceptions import SubscriptionClosedError
from fpl_data.core.logging import get_logger
from fpl_data.models.entities import GameFixture, Player, Team

logger = get_logger(__name__)

T = TypeVar("T")


class StateSlot(Generic[T]):
    """
    Observable holder of the latest value (a sized collection).

    All methods must be called from the event loop thread.
    """

    def __init__(self, name: str, initial: T):
        self.name = name
        self._value = initial
        self._version = 0
        self._closed = False
        self._changed = asyncio.Event()

    @property
    def value(self) -> T:
        """The latest published value."""
        return self._value

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, value: T) -> None:
        """
        Replace the current value and wake every subscriber.

        Raises:
            SubscriptionClosedError: If the slot was closed
        """
        if self._closed:
            raise SubscriptionClosedError(f"slot '{self.name}' is closed")
        self._value = value
        self._version += 1
        self._wake()
        metrics.record_published(self.name, len(value))

    def close(self) -> None:
        """Complete every subscription once it has seen the latest value."""
        if self._closed:
            return
        self._closed = True
        self._wake()
        logger.debug(f"Closed slot {self.name}")

    def _wake(self) -> None:
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()

    async def subscribe(self) -> AsyncIterator[T]:
        """
        Yield the current value, then every later value until the slot closes.

        Intermediate values published while the consumer was busy are skipped.
        """
        seen = self._version
        yield self._value
        while True:
            if seen == self._version:
                if self._closed:
                    return
                await self._changed.wait()
                continue
            seen = self._version
            yield self._value

    def fetch_once(self, callback: Callable[[T], None]) -> None:
        """Deliver the current value to `callback` exactly once."""
        callback(self._value)


def sort_by_points(players: List[Player]) -> List[Player]:
    """Players by total points, highest first. Ties keep their order."""
    return sorted(players, key=lambda player: player.points, reverse=True)


class Publisher:
    """The three slots presentation layers read from."""

    def __init__(self):
        self.teams: StateSlot[List[Team]] = StateSlot("teams", [])
        self.players: StateSlot[List[Player]] = StateSlot("players", [])
        self.fixtures: StateSlot[List[GameFixture]] = StateSlot("fixtures", [])

    async def players_by_points(self) -> AsyncIterator[List[Player]]:
        """Player updates, each sorted by points descending at delivery."""
        async for players in self.players.subscribe():
            yield sort_by_points(players)

    def fetch_players_by_points_once(self, callback: Callable[[List[Player]], None]) -> None:
        self.players.fetch_once(lambda players: callback(sort_by_points(players)))

    def close(self) -> None:
        """Complete every subscription on every slot."""
        for slot in (self.teams, self.players, self.fixtures):
            slot.close()
