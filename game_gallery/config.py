"""Game Gallery settings.

All settings come from environment variables and are resolved once at
startup; components receive the values they need through their
constructors.
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigError

logger = logging.getLogger(__name__)


# Defaults
DEFAULT_PORT = 8080
DEFAULT_FRONTEND_URL = "http://localhost:5173"
DEFAULT_GAMES_FILE_PATH = "games.json"
GITHUB_API_BASE = "https://api.github.com"

SEARCH_CACHE_TTL = 10 * 60  # seconds
SEARCH_CACHE_CLEANUP_INTERVAL = 5 * 60  # seconds
HTTP_TIMEOUT = 30.0
GITHUB_TIMEOUT = 15.0

STEAM_COUNTRY = "CN"
STEAM_LANGUAGE = "schinese"


def _get_str(environ: Mapping[str, str], key: str, default: Optional[str] = None) -> Optional[str]:
    value = environ.get(key, "").strip()
    return value or default


def _get_float(environ: Mapping[str, str], key: str, default: float) -> float:
    value = environ.get(key, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"[Config] Invalid {key}={value!r}, using default {default}")
        return default


def _get_int(environ: Mapping[str, str], key: str, default: int) -> int:
    value = environ.get(key, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"[Config] Invalid {key}={value!r}, using default {default}")
        return default


@dataclass
class Settings:
    port: int = DEFAULT_PORT
    frontend_url: str = DEFAULT_FRONTEND_URL
    log_level: str = "INFO"

    # Game list storage (GitHub contents API)
    github_token: Optional[str] = None
    github_owner: Optional[str] = None
    github_repo: Optional[str] = None
    github_branch: Optional[str] = None
    github_api_base: str = GITHUB_API_BASE
    games_file_path: str = DEFAULT_GAMES_FILE_PATH
    github_timeout: float = GITHUB_TIMEOUT

    # Outbound transport for Steam requests
    socks_proxy: Optional[str] = None
    http_proxy: Optional[str] = None
    https_proxy: Optional[str] = None
    http_timeout: float = HTTP_TIMEOUT

    # Steam search cache
    search_cache_ttl: float = SEARCH_CACHE_TTL
    search_cache_cleanup_interval: float = SEARCH_CACHE_CLEANUP_INTERVAL
    steam_country: str = STEAM_COUNTRY
    steam_language: str = STEAM_LANGUAGE

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables (os.environ by default)."""
        if environ is None:
            environ = os.environ

        return cls(
            port=_get_int(environ, "PORT", DEFAULT_PORT),
            frontend_url=_get_str(environ, "FRONTEND_URL", DEFAULT_FRONTEND_URL),
            log_level=_get_str(environ, "LOG_LEVEL", "INFO").upper(),
            github_token=_get_str(environ, "GITHUB_TOKEN"),
            github_owner=_get_str(environ, "GITHUB_OWNER"),
            github_repo=_get_str(environ, "GITHUB_REPO"),
            github_branch=_get_str(environ, "GITHUB_BRANCH"),
            github_api_base=_get_str(environ, "GITHUB_API_BASE", GITHUB_API_BASE).rstrip("/"),
            games_file_path=_get_str(environ, "GAMES_FILE_PATH", DEFAULT_GAMES_FILE_PATH),
            github_timeout=_get_float(environ, "GITHUB_TIMEOUT", GITHUB_TIMEOUT),
            socks_proxy=_get_str(environ, "SOCKS_PROXY"),
            http_proxy=_get_str(environ, "HTTP_PROXY"),
            https_proxy=_get_str(environ, "HTTPS_PROXY"),
            http_timeout=_get_float(environ, "HTTP_TIMEOUT", HTTP_TIMEOUT),
            search_cache_ttl=_get_float(environ, "SEARCH_CACHE_TTL", SEARCH_CACHE_TTL),
            search_cache_cleanup_interval=_get_float(
                environ, "SEARCH_CACHE_CLEANUP_INTERVAL", SEARCH_CACHE_CLEANUP_INTERVAL
            ),
            steam_country=_get_str(environ, "STEAM_COUNTRY", STEAM_COUNTRY),
            steam_language=_get_str(environ, "STEAM_LANGUAGE", STEAM_LANGUAGE),
        )

    @property
    def github_configured(self) -> bool:
        return bool(self.github_token and self.github_owner and self.github_repo)

    def validate(self) -> None:
        """Raise ConfigError if the settings can't be used."""
        if not 0 < self.port < 65536:
            raise ConfigError(f"PORT must be between 1 and 65535, got {self.port}")

        for name in ("search_cache_ttl", "search_cache_cleanup_interval", "http_timeout", "github_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name.upper()} must be positive")

        github_values = [self.github_token, self.github_owner, self.github_repo]
        if any(github_values) and not all(github_values):
            raise ConfigError("GITHUB_TOKEN, GITHUB_OWNER and GITHUB_REPO must be set together")

        logger.info(
            f"[Config] Loaded: port={self.port}, frontend={self.frontend_url}, "
            f"github={'on' if self.github_configured else 'off'}, cache_ttl={self.search_cache_ttl}s"
        )
