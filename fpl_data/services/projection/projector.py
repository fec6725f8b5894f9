"""View projector: raw cache rows to presentation-ready entities.

Each record type is observed independently. On every snapshot the whole
collection is mapped with a pure per-record function, in store order, and the
result is published to the matching slot. Fixtures whose kickoff time cannot
be parsed are dropped from the projection; nothing else about the snapshot is
affected.
"""
import asyncio
from datetime import tzinfo
from typing import Callable, Iterable, List, Optional

from fpl_data.core.logging import get_logger
from fpl_data.models.entities import GameFixture, Player, Team
from fpl_data.models.records import FixtureRecord, PlayerRecord, TeamRecord
from fpl_data.repositories.store import PersistentStore
from fpl_data.services.publishing.publisher import Publisher, StateSlot
from fpl_data.utils.timezone import to_local_datetime

logger = get_logger(__name__)

PLAYER_PHOTO_URL = "https://resources.premierleague.com/premierleague/photos/players/110x140/p{code}.png"
TEAM_BADGE_URL = "https://resources.premierleague.com/premierleague/badges/t{code}.png"


def player_photo_url(code: int) -> str:
    return PLAYER_PHOTO_URL.format(code=code)


def team_badge_url(code: int) -> str:
    return TEAM_BADGE_URL.format(code=code)


def to_team(record: TeamRecord) -> Team:
    return Team(record.id, record.index, record.name, record.code)


def to_player(record: PlayerRecord) -> Player:
    team_name = record.team.name if record.team is not None else ""
    return Player(
        id=record.id,
        name=f"{record.first_name} {record.second_name}",
        team=team_name,
        photo_url=player_photo_url(record.code),
        points=record.total_points,
        current_price=record.now_cost / 10.0,
        goals_scored=record.goals_scored,
        assists=record.assists,
    )


def to_game_fixture(record: FixtureRecord, local_tz: Optional[tzinfo] = None) -> Optional[GameFixture]:
    """
    Project a fixture row.

    Returns:
        The fixture, or None when the kickoff time is missing or unparsable
    """
    if not record.kickoff_time:
        return None
    try:
        local_kickoff_time = to_local_datetime(record.kickoff_time, local_tz)
    except (ValueError, OverflowError) as e:
        logger.debug(f"Dropping fixture {record.id}: bad kickoff time {record.kickoff_time!r} ({e})")
        return None

    home_team = record.home_team
    away_team = record.away_team
    return GameFixture(
        id=record.id,
        local_kickoff_time=local_kickoff_time,
        home_team=home_team.name if home_team is not None else "",
        away_team=away_team.name if away_team is not None else "",
        home_team_photo_url=team_badge_url(home_team.code if home_team is not None else 0),
        away_team_photo_url=team_badge_url(away_team.code if away_team is not None else 0),
        home_team_score=record.home_team_score or 0,
        away_team_score=record.away_team_score or 0,
    )


def project_teams(records: Iterable[TeamRecord]) -> List[Team]:
    return [to_team(record) for record in records]


def project_players(records: Iterable[PlayerRecord]) -> List[Player]:
    return [to_player(record) for record in records]


def project_fixtures(records: Iterable[FixtureRecord], local_tz: Optional[tzinfo] = None) -> List[GameFixture]:
    projected = (to_game_fixture(record, local_tz) for record in records)
    return [fixture for fixture in projected if fixture is not None]


class ViewProjector:
    """
    Keeps the publisher's slots in step with the store.

    start() launches one task per record type; they run until stop() or until
    the store is closed, in which case the slot is completed too.
    """

    def __init__(self, store: PersistentStore, publisher: Publisher, local_tz: Optional[tzinfo] = None):
        self.store = store
        self.publisher = publisher
        self.local_tz = local_tz
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        """Start observing the store. Must be called from the event loop."""
        if self.running:
            logger.warning("Projector already running")
            return

        self._tasks = [
            asyncio.create_task(
                self._project(TeamRecord, project_teams, self.publisher.teams),
                name="project-teams",
            ),
            asyncio.create_task(
                self._project(PlayerRecord, project_players, self.publisher.players),
                name="project-players",
            ),
            asyncio.create_task(
                self._project(
                    FixtureRecord,
                    lambda records: project_fixtures(records, self.local_tz),
                    self.publisher.fixtures,
                ),
                name="project-fixtures",
            ),
        ]
        logger.info("Projector started")

    async def stop(self) -> None:
        """Cancel the projection tasks and wait for them to finish."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Projector stopped")

    async def _project(self, model: type, project: Callable[[Iterable], list], slot: StateSlot) -> None:
        observed = self.store.observe(model)
        try:
            async for snapshot in observed:
                try:
                    projected = project(snapshot)
                    slot.publish(projected)
                except Exception as e:
                    # Keep the previous value; the next commit gets another try
                    logger.exception(f"Projecting {slot.name} failed, snapshot skipped: {e}")
                    continue
                logger.debug(f"Published {len(projected)} {slot.name}")
        finally:
            await observed.aclose()

        # The store was closed, nothing more will ever be published here
        slot.close()
