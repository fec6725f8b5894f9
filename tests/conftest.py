"""Shared pytest fixtures for fpl-data tests."""
import asyncio
import sys
from contextlib import aclosing
from datetime import timezone
from pathlib import Path
from typing import Generator
from unittest.mock import AsyncMock

import pytest

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from fpl_data.models.dto import BootstrapStaticInfoDto, FixtureDto  # noqa: E402


@pytest.fixture(scope="function")
def store() -> Generator:
    """Fresh store on an isolated in-memory database."""
    from fpl_data.repositories.store import PersistentStore

    store = PersistentStore(database_url="sqlite://")
    yield store
    store.close()


def make_bootstrap(teams=None, elements=None) -> BootstrapStaticInfoDto:
    """Helper to build a bootstrap-static payload from plain dicts.

    Usage:
        bootstrap = make_bootstrap(
            teams=[{'id': 1, 'name': 'Arsenal', 'code': 3}],
            elements=[]
        )
    """
    return BootstrapStaticInfoDto.model_validate({
        'teams': teams or [],
        'elements': elements or [],
    })


def make_player(**kwargs) -> dict:
    """Helper to build a valid player ("element") dict with defaults."""
    defaults = {
        'id': 100,
        'first_name': 'X',
        'second_name': 'Y',
        'code': 7,
        'team_code': 10,
        'total_points': 50,
        'now_cost': 60,
        'goals_scored': 2,
        'assists': 3,
    }
    defaults.update(kwargs)
    return defaults


def make_fixtures(*fixtures: dict):
    return [FixtureDto.model_validate(fixture) for fixture in fixtures]


def make_api(bootstrap: BootstrapStaticInfoDto, fixtures) -> AsyncMock:
    """Mocked remote data source returning the given payloads."""
    from fpl_data.services.core.fpl_api_service import FplApiService

    api = AsyncMock(spec=FplApiService)
    api.fetch_bootstrap_static_info.return_value = bootstrap
    api.fetch_fixtures.return_value = fixtures
    return api


async def wait_for_value(slot, predicate, timeout: float = 2.0):
    """Subscribe to `slot` and return the first value matching `predicate`."""
    async def _wait():
        async with aclosing(slot.subscribe()) as values:
            async for value in values:
                if predicate(value):
                    return value

    return await asyncio.wait_for(_wait(), timeout)


@pytest.fixture
def sample_teams():
    return [
        {'id': 1, 'name': 'A', 'code': 10},
        {'id': 2, 'name': 'B', 'code': 20},
    ]


@pytest.fixture
def sample_bootstrap(sample_teams):
    """The bootstrap-static payload: two teams, one player."""
    return make_bootstrap(teams=sample_teams, elements=[make_player()])


@pytest.fixture
def sample_fixtures():
    """One played fixture and one fixture without a kickoff time."""
    return make_fixtures(
        {
            'id': 500,
            'kickoff_time': '2024-01-01T00:00:00Z',
            'team_h': 1,
            'team_a': 2,
            'team_h_score': 2,
            'team_a_score': 1,
        },
        {
            'id': 501,
            'kickoff_time': None,
            'team_h': 2,
            'team_a': 1,
            'team_h_score': None,
            'team_a_score': None,
        },
    )


@pytest.fixture
def mock_api(sample_bootstrap, sample_fixtures) -> AsyncMock:
    return make_api(sample_bootstrap, sample_fixtures)


@pytest.fixture
def utc():
    """Local zone used by projection tests, so results don't depend on the host."""
    return timezone.utc
