"""Outbound HTTP transport selection.

Steam requests may need to go through a proxy. The choice is made once at
startup: a SOCKS proxy wins over an HTTP(S) proxy, which wins over a direct
connection.
"""

import logging
import ssl
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

import aiohttp
import certifi
from aiohttp_socks import ProxyConnector

logger = logging.getLogger(__name__)

USER_AGENT = 'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'


class TransportMode(str, Enum):
    DIRECT = "direct"
    HTTP_PROXY = "http"
    SOCKS_PROXY = "socks"


def _normalize_socks_url(value: str) -> Optional[str]:
    # SOCKS_PROXY is commonly given as host:port
    if "://" not in value:
        value = f"socks5://{value}"
    parts = urlsplit(value)
    if not parts.scheme.startswith("socks") or not parts.hostname:
        return None
    try:
        parts.port
    except ValueError:
        return None
    return value


def _normalize_http_url(value: str) -> Optional[str]:
    parts = urlsplit(value)
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return None
    try:
        parts.port
    except ValueError:
        return None
    return value


def create_ssl_context() -> ssl.SSLContext:
    return ssl.create_default_context(cafile=certifi.where())


@dataclass(frozen=True)
class Transport:
    """How outbound upstream requests are made"""
    mode: TransportMode = TransportMode.DIRECT
    proxy_url: Optional[str] = None

    @classmethod
    def resolve(
        cls,
        socks_proxy: Optional[str] = None,
        http_proxy: Optional[str] = None,
        https_proxy: Optional[str] = None,
    ) -> "Transport":
        """Pick the transport from proxy settings (SOCKS > HTTP > HTTPS > direct)."""
        if socks_proxy:
            url = _normalize_socks_url(socks_proxy)
            if url:
                logger.info(f"[Transport] Configuring SOCKS proxy: {url}")
                return cls(TransportMode.SOCKS_PROXY, url)
            logger.warning(f"[Transport] Failed to set up SOCKS proxy {socks_proxy!r}, using direct connection")
            return cls()

        proxy = http_proxy or https_proxy
        if proxy:
            url = _normalize_http_url(proxy)
            if url:
                logger.info(f"[Transport] Configuring HTTP proxy: {url}")
                return cls(TransportMode.HTTP_PROXY, url)
            logger.warning(f"[Transport] Invalid proxy URL {proxy!r}, using direct connection")
            return cls()

        logger.info("[Transport] No proxy configured, using direct connection")
        return cls()

    @classmethod
    def from_settings(cls, settings) -> "Transport":
        return cls.resolve(settings.socks_proxy, settings.http_proxy, settings.https_proxy)

    def create_connector(self) -> aiohttp.BaseConnector:
        """Build the connector; must be called inside a running event loop."""
        ssl_context = create_ssl_context()
        if self.mode == TransportMode.SOCKS_PROXY:
            return ProxyConnector.from_url(self.proxy_url, ssl=ssl_context)
        return aiohttp.TCPConnector(ssl=ssl_context, limit_per_host=10)

    def request_kwargs(self) -> Dict[str, Any]:
        """Extra keyword arguments for each request made through this transport."""
        if self.mode == TransportMode.HTTP_PROXY:
            return {'proxy': self.proxy_url}
        return {}

    def create_session(
        self,
        timeout: float,
        headers: Optional[Dict[str, str]] = None,
    ) -> aiohttp.ClientSession:
        session_headers = {'User-Agent': USER_AGENT}
        if headers:
            session_headers.update(headers)
        return aiohttp.ClientSession(
            connector=self.create_connector(),
            timeout=aiohttp.ClientTimeout(total=timeout),
            headers=session_headers,
        )
