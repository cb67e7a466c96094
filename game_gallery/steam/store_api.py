"""
Steam Store API client

Handles the upstream calls behind the search cache:
- Steam Store search by free-text term
- Current player counts from the Steam Web API

Errors are raised as GalleryError subclasses; nothing here caches.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp
from aiohttp_socks import ProxyConnectionError, ProxyError, ProxyTimeoutError

from ..config import HTTP_TIMEOUT, STEAM_COUNTRY, STEAM_LANGUAGE
from ..errors import TransportError, UpstreamError
from ..models import SteamApp
from ..net import Transport

logger = logging.getLogger(__name__)

STEAM_SEARCH_API = "https://store.steampowered.com/api/storesearch/"
STEAM_CURRENT_PLAYERS_API = "https://api.steampowered.com/ISteamUserStats/GetNumberOfCurrentPlayers/v1/"


def parse_search_items(data: Any, limit: int) -> List[SteamApp]:
    """Turn a storesearch payload into apps, keeping only type == "app".

    Any malformed item rejects the whole payload.
    """
    if not isinstance(data, dict):
        raise UpstreamError(f"Unexpected search response type: {type(data).__name__}")
    items = data.get('items', [])
    if not isinstance(items, list):
        raise UpstreamError("Search response 'items' is not a list")

    apps = []
    for item in items:
        if not isinstance(item, dict):
            raise UpstreamError(f"Malformed search item: {item!r}")
        app_id = item.get('id')
        name = item.get('name')
        item_type = item.get('type')
        if isinstance(app_id, bool) or not isinstance(app_id, int) \
                or not isinstance(name, str) or not isinstance(item_type, str):
            raise UpstreamError(f"Malformed search item: {item!r}")
        # Skip DLC, tools, videos...
        if item_type == 'app' and len(apps) < limit:
            apps.append(SteamApp(app_id=app_id, name=name))
    return apps


class SteamStoreClient:
    """Client for Steam Store search through the configured transport"""

    def __init__(
        self,
        transport: Optional[Transport] = None,
        timeout: float = HTTP_TIMEOUT,
        country: str = STEAM_COUNTRY,
        language: str = STEAM_LANGUAGE,
        search_url: str = STEAM_SEARCH_API,
        players_url: str = STEAM_CURRENT_PLAYERS_API,
    ):
        self.transport = transport or Transport()
        self.timeout = timeout
        self.country = country
        self.language = language
        self.search_url = search_url
        self.players_url = players_url
        self.session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self.session is None or self.session.closed:
            self.session = self.transport.create_session(self.timeout)
        return self.session

    async def close(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def _get_json(self, url: str, params: Dict[str, Any], what: str) -> Any:
        session = await self._get_session()
        try:
            async with session.get(url, params=params, **self.transport.request_kwargs()) as resp:
                if resp.status != 200:
                    raise UpstreamError(f"Steam {what} returned status {resp.status}", resp.status)
                try:
                    return await resp.json(content_type=None)
                except ValueError as e:
                    raise UpstreamError(f"Failed to decode Steam {what} response: {e}", resp.status)
        except asyncio.TimeoutError:
            raise TransportError(f"Steam {what} timed out after {self.timeout}s")
        except aiohttp.ClientError as e:
            raise TransportError(f"Steam {what} request failed: {e}")
        except (ProxyError, ProxyConnectionError, ProxyTimeoutError) as e:
            raise TransportError(f"Steam {what} proxy failed: {e}")

    async def search(self, query: str, limit: int) -> List[SteamApp]:
        """Search the Steam Store, returning at most `limit` games."""
        params = {'term': query, 'l': self.language, 'cc': self.country}
        data = await self._get_json(self.search_url, params, "store search")
        apps = parse_search_items(data, limit)
        logger.debug(f"[SteamStore] '{query}' -> {len(apps)} apps")
        return apps

    async def get_current_players(self, app_id: int) -> int:
        """Current number of players for an app."""
        data = await self._get_json(self.players_url, {'appid': app_id}, "current players")
        response = data.get('response') if isinstance(data, dict) else None
        if not isinstance(response, dict):
            raise UpstreamError(f"Malformed current players response for app {app_id}")
        if response.get('result') != 1:
            raise UpstreamError(f"Steam API returned result code {response.get('result')} for app {app_id}")
        count = response.get('player_count')
        if isinstance(count, bool) or not isinstance(count, int):
            raise UpstreamError(f"Missing player_count for app {app_id}")
        return count
