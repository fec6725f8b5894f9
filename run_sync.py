#!/usr/bin/env python3
"""
Runner for the FPL data layer.

Starts the repository (publishing the cache, then refreshing it) and keeps it
fresh with the refresh scheduler until interrupted.

Usage:
    python run_sync.py                   # Run in foreground
    python run_sync.py --once            # Refresh once, print a summary, exit
    python run_sync.py --past-fixtures   # Print completed fixtures (live) and exit
"""
import asyncio
import argparse
import signal
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from fpl_data.core.config import settings
from fpl_data.core.exceptions import RefreshError
from fpl_data.core.logging import configure_logging, get_logger
from fpl_data.core.scheduler import RefreshScheduler
from fpl_data.repositories.fantasy_repository import FantasyPremierLeagueRepository

configure_logging(
    level=settings.LOG_LEVEL,
    json_output=settings.LOG_JSON or settings.is_production(),
)
logger = get_logger(__name__)


class SyncRunner:
    """Runs the data layer and the refresh scheduler until shutdown."""

    def __init__(self, interval_minutes: int):
        self.interval_minutes = interval_minutes
        self.shutdown = asyncio.Event()

    async def start(self):
        """Start the data layer and run until a shutdown signal."""
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}...")

        repository = FantasyPremierLeagueRepository()
        scheduler = RefreshScheduler(repository, interval_minutes=self.interval_minutes)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._set_shutdown)

        subscription = repository.get_players(
            lambda players: logger.info(
                f"Players published: {len(players)}"
                + (f", top scorer {players[0].name} ({players[0].points} pts)" if players else "")
            )
        )

        try:
            await repository.start()
        except RefreshError as e:
            logger.error(f"Initial refresh failed, serving cached data: {e}")

        scheduler.start()
        logger.info("Data layer is running, press Ctrl+C to stop")

        await self.shutdown.wait()

        scheduler.stop()
        subscription.cancel()
        await repository.close()
        logger.info("Data layer stopped")

    def _set_shutdown(self):
        logger.info("Shutdown signal received")
        self.shutdown.set()


async def run_once() -> bool:
    """Refresh the cache once and print what was published."""
    repository = FantasyPremierLeagueRepository()
    try:
        result = await repository.start()
    except RefreshError as e:
        print(f"Refresh failed: {e}")
        await repository.close()
        return False

    print(f"Teams:    {result['teams']}")
    print(f"Players:  {result['players']}")
    print(f"Fixtures: {result['fixtures']} ({result['skipped_fixtures']} unscheduled skipped)")
    print(f"Duration: {result['duration_ms']}ms")

    def print_top(players):
        for player in players[:10]:
            print(f"  {player.points:>4}  {player.name} ({player.team}) £{player.current_price:.1f}m")

    print()
    print("Top players:")
    repository.publisher.fetch_players_by_points_once(print_top)

    await repository.close()
    return True


async def run_past_fixtures() -> bool:
    """Print completed fixtures straight from the API."""
    repository = FantasyPremierLeagueRepository()
    try:
        fixtures = await repository.fetch_past_fixtures()
    except RefreshError as e:
        print(f"Fetch failed: {e}")
        return False
    finally:
        await repository.close()

    for fixture in fixtures:
        print(
            f"{fixture.kickoff_time}  #{fixture.id}: "
            f"{fixture.team_h} {fixture.team_h_score} - {fixture.team_a_score} {fixture.team_a}"
        )
    print(f"{len(fixtures)} completed fixtures")
    return True


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Run the FPL data layer'
    )

    parser.add_argument(
        '--once',
        action='store_true',
        help='Refresh the cache once, print a summary and exit'
    )

    parser.add_argument(
        '--past-fixtures',
        action='store_true',
        help='Print completed fixtures from the API and exit'
    )

    parser.add_argument(
        '--interval',
        type=int,
        default=settings.REFRESH_INTERVAL_MINUTES,
        metavar='MINUTES',
        help='Minutes between scheduled refreshes'
    )

    args = parser.parse_args()

    if args.once:
        return 0 if asyncio.run(run_once()) else 1

    if args.past_fixtures:
        return 0 if asyncio.run(run_past_fixtures()) else 1

    runner = SyncRunner(interval_minutes=args.interval)

    try:
        asyncio.run(runner.start())
    except KeyboardInterrupt:
        logger.info("Received interrupt, shutting down...")
        return 0
    except Exception as e:
        logger.error(f"Data layer error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
