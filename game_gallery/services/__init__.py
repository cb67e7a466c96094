# Services package
from .game_list import GameListService, AddGameResult, EDITABLE_FIELDS, find_by_name, validate_changes
