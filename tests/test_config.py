"""
Tests for Settings loading and validation.
"""
import pytest

from game_gallery.config import Settings, SEARCH_CACHE_TTL
from game_gallery.errors import ConfigError


def test_defaults_from_empty_environment():
    settings = Settings.from_env({})

    assert settings.port == 8080
    assert settings.search_cache_ttl == SEARCH_CACHE_TTL
    assert settings.games_file_path == "games.json"
    assert settings.github_configured == False
    settings.validate()


def test_reads_environment():
    settings = Settings.from_env({
        'PORT': '9000',
        'GITHUB_TOKEN': 'ghp_x',
        'GITHUB_OWNER': 'catalyzer-dot',
        'GITHUB_REPO': 'game-gallery',
        'GITHUB_API_BASE': 'http://localhost:9999/',
        'SOCKS_PROXY': '127.0.0.1:1080',
        'SEARCH_CACHE_TTL': '120',
        'LOG_LEVEL': 'debug',
    })

    assert settings.port == 9000
    assert settings.github_configured == True
    assert settings.github_api_base == 'http://localhost:9999'
    assert settings.socks_proxy == '127.0.0.1:1080'
    assert settings.search_cache_ttl == 120.0
    assert settings.log_level == 'DEBUG'


def test_malformed_numbers_fall_back_to_defaults():
    settings = Settings.from_env({'PORT': 'eighty', 'HTTP_TIMEOUT': 'soon'})

    assert settings.port == 8080
    assert settings.http_timeout == 30.0


def test_partial_github_config_is_rejected():
    settings = Settings.from_env({'GITHUB_TOKEN': 'ghp_x'})

    with pytest.raises(ConfigError):
        settings.validate()


@pytest.mark.parametrize("field", ["search_cache_ttl", "search_cache_cleanup_interval", "http_timeout"])
def test_non_positive_durations_are_rejected(field):
    settings = Settings(**{field: 0})

    with pytest.raises(ConfigError):
        settings.validate()
