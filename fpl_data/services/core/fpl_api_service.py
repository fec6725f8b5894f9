"""
Fantasy Premier League API service.

Endpoints used:
- bootstrap-static/: every team and player ("elements") in one payload
- fixtures/: every fixture of the season

The API is public and unauthenticated. Transient failures (network errors,
timeouts, 5xx and 429 responses) are retried with exponential backoff; any
other failure is raised as RemoteFetchError straight away.
"""
from typing import Any, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from fpl_data.core import metrics
from fpl_data.core.exceptions import RemoteFetchError
from fpl_data.core.logging import get_logger
from fpl_data.models.dto import BootstrapStaticInfoDto, FixtureDto

logger = get_logger(__name__)

FPL_API_BASE = "https://fantasy.premierleague.com/api"

BOOTSTRAP_STATIC_ENDPOINT = "bootstrap-static/"
FIXTURES_ENDPOINT = "fixtures/"

_fixture_list_adapter = TypeAdapter(List[FixtureDto])


def _is_transient(error: BaseException) -> bool:
    """Retry network errors, timeouts, rate limiting and server errors."""
    if isinstance(error, httpx.HTTPStatusError):
        status_code = error.response.status_code
        return status_code == 429 or status_code >= 500
    return isinstance(error, httpx.RequestError)


class FplApiService:
    """
    Remote data source for the synchronizer.

    The HTTP client is created lazily and reused; call close() on shutdown.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        wait=None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the FPL API service.

        Args:
            base_url: API root, defaults to settings.FPL_API_BASE_URL
            timeout: Request timeout in seconds, defaults to settings.FPL_API_TIMEOUT
            max_attempts: Attempts per request, defaults to settings.FPL_API_MAX_ATTEMPTS
            wait: tenacity wait strategy between attempts (exponential by default)
            transport: Custom httpx transport (used by tests)
        """
        from fpl_data.core.config import settings

        self.base_url = base_url or settings.FPL_API_BASE_URL or FPL_API_BASE
        self.timeout = timeout if timeout is not None else settings.FPL_API_TIMEOUT
        self.max_attempts = max_attempts or settings.FPL_API_MAX_ATTEMPTS
        self.wait = wait or wait_exponential(multiplier=1, min=2, max=10)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            timeout = httpx.Timeout(self.timeout)
            limits = httpx.Limits(max_keepalive_connections=5, max_connections=10)
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=timeout,
                limits=limits,
                headers=self._get_headers(),
                transport=self._transport,
            )
        return self._client

    def _get_headers(self) -> dict:
        return {
            "Accept": "application/json",
            "User-Agent": "fpl-data/1.0",
        }

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get_json(self, endpoint: str) -> Any:
        """
        GET an endpoint and decode its JSON body, retrying transient failures.

        Raises:
            RemoteFetchError: On HTTP, network or JSON decoding errors
        """
        client = await self._get_client()
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=self.wait,
                retry=retry_if_exception(_is_transient),
                reraise=True,
            ):
                with attempt:
                    response = await client.get(endpoint)
                    response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            metrics.record_fpl_api_request_failure(endpoint, f"http_{status_code}")
            raise RemoteFetchError(endpoint, f"HTTP {status_code}") from e
        except httpx.TimeoutException as e:
            metrics.record_fpl_api_request_failure(endpoint, "timeout")
            raise RemoteFetchError(endpoint, f"timed out: {e}") from e
        except httpx.RequestError as e:
            metrics.record_fpl_api_request_failure(endpoint, "network")
            raise RemoteFetchError(endpoint, f"request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            metrics.record_fpl_api_request_failure(endpoint, "decode")
            raise RemoteFetchError(endpoint, f"invalid JSON: {e}") from e

        metrics.record_fpl_api_request_success(endpoint)
        return payload

    async def fetch_bootstrap_static_info(self) -> BootstrapStaticInfoDto:
        """
        Fetch every team and player.

        Raises:
            RemoteFetchError: If the request failed or the payload is malformed
        """
        payload = await self._get_json(BOOTSTRAP_STATIC_ENDPOINT)
        try:
            bootstrap = BootstrapStaticInfoDto.model_validate(payload)
        except ValidationError as e:
            metrics.record_fpl_api_request_failure(BOOTSTRAP_STATIC_ENDPOINT, "validation")
            raise RemoteFetchError(BOOTSTRAP_STATIC_ENDPOINT, f"unexpected payload: {e}") from e

        logger.info(f"Fetched {len(bootstrap.teams)} teams and {len(bootstrap.elements)} players")
        return bootstrap

    async def fetch_fixtures(self) -> List[FixtureDto]:
        """
        Fetch every fixture of the season, scheduled or not.

        Raises:
            RemoteFetchError: If the request failed or the payload is malformed
        """
        payload = await self._get_json(FIXTURES_ENDPOINT)
        try:
            fixtures = _fixture_list_adapter.validate_python(payload)
        except ValidationError as e:
            metrics.record_fpl_api_request_failure(FIXTURES_ENDPOINT, "validation")
            raise RemoteFetchError(FIXTURES_ENDPOINT, f"unexpected payload: {e}") from e

        logger.info(f"Fetched {len(fixtures)} fixtures")
        return fixtures


def is_completed(fixture: FixtureDto) -> bool:
    """A fixture is completed once it has a kickoff time and both scores."""
    return (
        fixture.kickoff_time is not None
        and fixture.team_h_score is not None
        and fixture.team_a_score is not None
    )
