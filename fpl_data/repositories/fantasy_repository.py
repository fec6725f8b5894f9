"""
Fantasy Premier League repository: the data layer facade.

Owns the store, the API client, the synchronizer, the projector and the
publisher. Construct one per process and hand it to presentation layers:

    repository = FantasyPremierLeagueRepository()
    await repository.start()

    async for players in repository.player_list.subscribe():
        ...

    await repository.close()

Only the synchronizer writes to the store; everything presentation layers
see comes through the publisher's slots.
"""
import asyncio
from datetime import tzinfo
from typing import Callable, Dict, List, Optional

from fpl_data.core.logging import get_logger
from fpl_data.models.dto import FixtureDto
from fpl_data.models.entities import GameFixture, Player
from fpl_data.repositories.store import PersistentStore
from fpl_data.services.core.fpl_api_service import FplApiService, is_completed
from fpl_data.services.projection.projector import ViewProjector
from fpl_data.services.publishing.callback_bridge import CallbackFlowWrapper, Subscription
from fpl_data.services.publishing.publisher import Publisher
from fpl_data.services.sync.synchronizer import Synchronizer
from fpl_data.utils.timezone import resolve_timezone

logger = get_logger(__name__)


class FantasyPremierLeagueRepository:
    """Cached, observable access to FPL teams, players and fixtures."""

    def __init__(
        self,
        api=None,
        store: Optional[PersistentStore] = None,
        local_tz: Optional[tzinfo] = None,
    ):
        """
        Initialize the repository.

        Args:
            api: Remote data source, defaults to FplApiService()
            store: Local cache, defaults to a store on settings.DATABASE_URL
            local_tz: Zone for kickoff times, defaults to settings.LOCAL_TIMEZONE
                (or the system zone when that is empty)
        """
        if local_tz is None:
            from fpl_data.core.config import settings
            local_tz = resolve_timezone(settings.LOCAL_TIMEZONE)

        self.api = api if api is not None else FplApiService()
        self.store = store if store is not None else PersistentStore()
        self.publisher = Publisher()
        self.synchronizer = Synchronizer(self.store, self.api)
        self.projector = ViewProjector(self.store, self.publisher, local_tz=local_tz)
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def team_list(self):
        return self.publisher.teams

    @property
    def player_list(self):
        return self.publisher.players

    @property
    def fixture_list(self):
        return self.publisher.fixtures

    async def start(self, refresh: bool = True) -> Optional[Dict]:
        """
        Start publishing the cache, then refresh it.

        Whatever a previous run left in the cache is published first, so a
        failed refresh still leaves subscribers with the last good snapshot.

        Returns:
            The refresh result, or None when refresh=False

        Raises:
            RefreshError: If the initial refresh failed. Publishing keeps
                running regardless.
        """
        self._loop = asyncio.get_running_loop()
        self.projector.start()
        if not refresh:
            return None
        return await self.refresh()

    async def refresh(self) -> Dict:
        """Replace the cache with the current remote snapshot."""
        return await self.synchronizer.refresh()

    async def fetch_past_fixtures(self) -> List[FixtureDto]:
        """
        Fetch completed fixtures straight from the API.

        Always live: the cache is neither read nor written.
        """
        fixtures = await self.api.fetch_fixtures()
        return [fixture for fixture in fixtures if is_completed(fixture)]

    def get_sync_status(self) -> Dict:
        return self.synchronizer.get_sync_status()

    # Callback entry points for hosts outside asyncio. After start() they may
    # be called from any thread; callbacks always run on the data layer's loop.

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        """Event loop the data layer runs on, set by start()."""
        return self._loop

    def get_players(self, success: Callable[[List[Player]], None]) -> Subscription:
        """Call `success` with players sorted by points on every update."""
        return CallbackFlowWrapper(self.publisher.players_by_points).subscribe(success, loop=self._loop)

    def get_fixtures(self, success: Callable[[List[GameFixture]], None]) -> Subscription:
        """Call `success` with the fixtures on every update."""
        return CallbackFlowWrapper(self.fixture_list.subscribe).subscribe(success, loop=self._loop)

    def get_players_flow(self) -> CallbackFlowWrapper:
        return CallbackFlowWrapper(self.player_list.subscribe)

    def get_fixtures_flow(self) -> CallbackFlowWrapper:
        return CallbackFlowWrapper(self.fixture_list.subscribe)

    async def close(self) -> None:
        """Stop publishing and release the store and HTTP client."""
        await self.projector.stop()
        self.publisher.close()
        self.store.close()
        close_api = getattr(self.api, "close", None)
        if close_api is not None:
            await close_api()
        logger.info("Repository closed")
