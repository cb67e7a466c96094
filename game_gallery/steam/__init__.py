# Steam package
from .store_api import (
    SteamStoreClient,
    parse_search_items,
    STEAM_SEARCH_API,
    STEAM_CURRENT_PLAYERS_API,
)
