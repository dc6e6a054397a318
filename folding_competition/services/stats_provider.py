"""
Folding@Home stats provider client.

Retrieves a user's lifetime cumulative points and completed work units, keyed by
their folding user name and passkey.
"""

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from folding_competition.config import Config
from folding_competition.data_models.stats import ProviderStats
from folding_competition.utils.exceptions import ProviderProtocolError, TransientProviderError

logger = logging.getLogger(__name__)

# Same passkey used on more than one team returns several unit entries
EXPECTED_NUMBER_OF_UNIT_RESPONSES = 1


def parse_points_response(folding_user_name: str, payload: Any) -> int:
    """Extract earned points from a ``/user/{name}/stats`` response."""
    if not isinstance(payload, dict) or 'earned' not in payload:
        raise ProviderProtocolError(folding_user_name, f"points response missing 'earned': {payload!r}")
    
    earned = payload['earned']
    if isinstance(earned, bool) or not isinstance(earned, int) or earned < 0:
        raise ProviderProtocolError(folding_user_name, f"invalid earned points: {earned!r}")
    return earned


def parse_units_response(folding_user_name: str, payload: Any) -> int:
    """
    Extract finished units from a ``/bonus`` response.
    
    If the user/passkey has been used on multiple teams the provider returns an
    entry per team with no way to filter, so the entry with the fewest finished
    units is used.
    """
    if not isinstance(payload, list):
        raise ProviderProtocolError(folding_user_name, f"units response is not a list: {payload!r}")
    
    if not payload:
        logger.warning(f"No valid units found for user '{folding_user_name}'")
        return 0
    
    finished_values = []
    for entry in payload:
        if not isinstance(entry, dict) or not isinstance(entry.get('finished'), int) or entry['finished'] < 0:
            raise ProviderProtocolError(folding_user_name, f"invalid units entry: {entry!r}")
        finished_values.append(entry['finished'])
    
    if len(finished_values) > EXPECTED_NUMBER_OF_UNIT_RESPONSES:
        logger.warning(f"Too many unit responses returned for '{folding_user_name}', using lowest of {finished_values}")
    
    return min(finished_values)


class FoldingStatsClient:
    """Async HTTP client for the Folding@Home stats API."""
    
    def __init__(self, base_url: Optional[str] = None, timeout_seconds: Optional[int] = None):
        self.base_url = (base_url or Config.STATS_API_URL).rstrip('/')
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds or Config.STATS_REQUEST_TIMEOUT_SECONDS)
        self._session: Optional[aiohttp.ClientSession] = None
    
    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session
    
    async def fetch_cumulative_stats(self, folding_user_name: str, passkey: str) -> ProviderStats:
        """
        Get the lifetime points and units for a folding identity.
        
        Raises:
            TransientProviderError: provider unreachable or returned an error status
            ProviderProtocolError: provider returned an unexpected payload
        """
        logger.debug(f"Getting stats for username/passkey '{folding_user_name}/{passkey}'")
        
        points_payload = await self._get_json(
            folding_user_name,
            f"{self.base_url}/user/{folding_user_name}/stats",
            {'passkey': passkey}
        )
        units_payload = await self._get_json(
            folding_user_name,
            f"{self.base_url}/bonus",
            {'user': folding_user_name, 'passkey': passkey}
        )
        
        return ProviderStats(
            points=parse_points_response(folding_user_name, points_payload),
            units=parse_units_response(folding_user_name, units_payload)
        )
    
    async def _get_json(self, folding_user_name: str, url: str, params: dict) -> Any:
        session = await self._get_session()
        try:
            async with session.get(url, params=params) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise TransientProviderError(folding_user_name, f"HTTP {response.status} from {url}: {body[:200]}")
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise ProviderProtocolError(folding_user_name, f"invalid JSON from {url}: {e}")
        except aiohttp.ClientError as e:
            raise TransientProviderError(folding_user_name, f"{type(e).__name__}: {e}")
        except asyncio.TimeoutError as e:
            raise TransientProviderError(folding_user_name, f"request to {url} timed out") from e
    
    async def close(self):
        """Close the underlying HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
