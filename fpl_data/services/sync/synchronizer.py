"""Synchronizer for replacing the local cache with a fresh FPL snapshot.

Every refresh is a full replace:
1. Fetch bootstrap-static (teams + players) and fixtures concurrently
2. In one write transaction, delete every team, player and fixture row
3. Insert teams, assigning each its 1-based position in the payload as index
4. Insert players, joined to the first team with a matching code
5. Insert fixtures with a kickoff time, joined to teams by index
6. Commit, which notifies every observer of the three record types

The FPL API has no delta endpoint and the dataset is a few hundred rows, so
nothing is diffed or merged. Retry policy belongs to the caller (see
RefreshScheduler); a failed refresh leaves the cache untouched.
"""
import asyncio
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from fpl_data.core import metrics
from fpl_data.core.exceptions import RemoteFetchError
from fpl_data.core.logging import clear_refresh_id, get_logger, set_refresh_id
from fpl_data.models.dto import BootstrapStaticInfoDto, FixtureDto
from fpl_data.models.records import FixtureRecord, PlayerRecord, TeamRecord
from fpl_data.repositories.store import PersistentStore, WriteTransaction

logger = get_logger(__name__)


@dataclass
class SyncStatus:
    """Bookkeeping for the most recent refresh runs."""
    last_started_at: Optional[datetime] = None
    last_completed_at: Optional[datetime] = None
    last_succeeded_at: Optional[datetime] = None
    last_status: str = "never_run"  # never_run, running, success, failed
    error_message: Optional[str] = None
    duration_ms: Optional[int] = None
    counts: Dict[str, int] = field(default_factory=dict)
    runs: int = 0
    failures: int = 0


class Synchronizer:
    """
    Pulls remote snapshots and atomically replaces the local cache.

    The store is only ever written from here.
    """

    def __init__(self, store: PersistentStore, api):
        """
        Initialize the synchronizer.

        Args:
            store: Local cache
            api: Remote data source exposing fetch_bootstrap_static_info()
                and fetch_fixtures()
        """
        self.store = store
        self.api = api
        self.status = SyncStatus()

    async def refresh(self) -> Dict:
        """
        Replace the local cache with the current remote snapshot.

        Returns:
            Refresh results with per-type counts and duration

        Raises:
            RemoteFetchError: If either fetch failed (nothing written)
            StoreTransactionError: If the transaction was rolled back
        """
        token = set_refresh_id(uuid.uuid4().hex[:12])
        try:
            return await self._run_refresh()
        finally:
            clear_refresh_id(token)

    async def _run_refresh(self) -> Dict:
        start = time.monotonic()
        self.status.last_started_at = datetime.now(timezone.utc)
        self.status.last_status = "running"
        self.status.runs += 1
        logger.info("Starting full refresh")

        try:
            bootstrap, fixtures = await self._fetch_snapshot()
            counts = await self.store.write(
                lambda tx: self._replace_all(tx, bootstrap, fixtures)
            )
        except Exception as e:
            duration = time.monotonic() - start
            self._mark_failed(e, duration)
            logger.error(f"Refresh failed: {e}")
            raise

        duration = time.monotonic() - start
        duration_ms = int(duration * 1000)
        now = datetime.now(timezone.utc)
        self.status.last_completed_at = now
        self.status.last_succeeded_at = now
        self.status.last_status = "success"
        self.status.error_message = None
        self.status.duration_ms = duration_ms
        self.status.counts = counts
        metrics.record_refresh("success", duration)
        metrics.record_written_counts(
            counts["teams"], counts["players"], counts["fixtures"], counts["skipped_fixtures"]
        )

        logger.info(
            f"Refresh complete: {counts['teams']} teams, {counts['players']} players, "
            f"{counts['fixtures']} fixtures ({counts['skipped_fixtures']} unscheduled skipped, "
            f"{duration_ms}ms)"
        )

        return {
            'success': True,
            **counts,
            'duration_ms': duration_ms,
        }

    async def _fetch_snapshot(self) -> Tuple[BootstrapStaticInfoDto, List[FixtureDto]]:
        try:
            return await asyncio.gather(
                self.api.fetch_bootstrap_static_info(),
                self.api.fetch_fixtures(),
            )
        except RemoteFetchError:
            raise
        except Exception as e:
            raise RemoteFetchError("snapshot", str(e)) from e

    def _replace_all(
        self,
        tx: WriteTransaction,
        bootstrap: BootstrapStaticInfoDto,
        fixtures: List[FixtureDto]
    ) -> Dict[str, int]:
        """Transaction body: delete everything, then insert the new snapshot."""
        # Children first, fixtures and players reference teams
        tx.delete_all(FixtureRecord)
        tx.delete_all(PlayerRecord)
        tx.delete_all(TeamRecord)

        for position, team_dto in enumerate(bootstrap.teams):
            tx.add(TeamRecord(
                id=team_dto.id,
                index=position + 1,
                name=team_dto.name,
                code=team_dto.code,
            ))

        # Re-read through the transaction so the joins see the rows just added
        teams = tx.query(TeamRecord)
        teams_by_code = _first_by(teams, "code")
        teams_by_index = _first_by(teams, "index")

        unresolved_players = 0
        for player_dto in bootstrap.elements:
            team = teams_by_code.get(player_dto.team_code)
            if team is None:
                unresolved_players += 1
            tx.add(PlayerRecord(
                id=player_dto.id,
                first_name=player_dto.first_name,
                second_name=player_dto.second_name,
                code=player_dto.code,
                team_code=player_dto.team_code,
                total_points=player_dto.total_points,
                now_cost=player_dto.now_cost,
                goals_scored=player_dto.goals_scored,
                assists=player_dto.assists,
                team=team,
            ))

        stored_fixtures = 0
        skipped_fixtures = 0
        for fixture_dto in fixtures:
            if fixture_dto.kickoff_time is None:
                skipped_fixtures += 1
                continue
            record = FixtureRecord(
                id=fixture_dto.id,
                kickoff_time=fixture_dto.kickoff_time,
                home_team_score=0,
                away_team_score=0,
                home_team=teams_by_index.get(fixture_dto.team_h),
                away_team=teams_by_index.get(fixture_dto.team_a),
            )
            if fixture_dto.team_h_score is not None:
                record.home_team_score = fixture_dto.team_h_score
            if fixture_dto.team_a_score is not None:
                record.away_team_score = fixture_dto.team_a_score
            tx.add(record)
            stored_fixtures += 1

        if unresolved_players:
            logger.warning(f"{unresolved_players} players have no team with a matching code")

        return {
            'teams': len(teams),
            'players': len(bootstrap.elements),
            'fixtures': stored_fixtures,
            'skipped_fixtures': skipped_fixtures,
        }

    def _mark_failed(self, error: Exception, duration: float) -> None:
        self.status.last_completed_at = datetime.now(timezone.utc)
        self.status.last_status = "failed"
        self.status.error_message = str(error)
        self.status.duration_ms = int(duration * 1000)
        self.status.failures += 1
        metrics.record_refresh("failed", duration)

    def get_sync_status(self) -> Dict:
        """
        Return refresh health.

        health_status is 'idle' before the first run, 'healthy' when the last
        run succeeded, 'degraded' when it failed but an earlier run succeeded
        (subscribers still see that snapshot) and 'unhealthy' when no run has
        ever succeeded.
        """
        status = self.status
        if status.last_status in ("never_run", "running") and status.last_succeeded_at is None:
            health = 'idle' if status.failures == 0 else 'unhealthy'
        elif status.last_status == "failed":
            health = 'degraded' if status.last_succeeded_at else 'unhealthy'
        else:
            health = 'healthy'

        return {
            'health_status': health,
            'last_status': status.last_status,
            'last_started_at': _iso(status.last_started_at),
            'last_completed_at': _iso(status.last_completed_at),
            'last_succeeded_at': _iso(status.last_succeeded_at),
            'error_message': status.error_message,
            'duration_ms': status.duration_ms,
            'counts': dict(status.counts),
            'runs': status.runs,
            'failures': status.failures,
        }


def _first_by(records: List[TeamRecord], attribute: str) -> Dict[int, TeamRecord]:
    """
    Index records by `attribute`, keeping the first record for each value.

    Team codes are assumed unique; a collision is logged and the first team
    in payload order wins.
    """
    indexed: Dict[int, TeamRecord] = {}
    for record in records:
        key = getattr(record, attribute)
        if key in indexed:
            logger.warning(f"Duplicate team {attribute} {key}: keeping {indexed[key]!r}, ignoring {record!r}")
            continue
        indexed[key] = record
    return indexed


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
