"""Game list operations.

Each operation is expressed as a pure transform over the freshly fetched
list and handed to DocumentStore.update(). Preconditions such as the
duplicate-name check run inside the transform, so they are evaluated
against the latest remote state on every attempt.
"""
import logging
import uuid
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

from ..errors import NotFoundError
from ..models import Game, GameStatus, utc_timestamp
from ..storage import DocumentStore, FetchResult, UpdateResult
from ..storage.document_store import Transform

logger = logging.getLogger(__name__)

# Fields callers may change through update_game()
EDITABLE_FIELDS = {
    'name',
    'status',
    'steam_url',
    'cover_image',
    'positive_percentage',
    'total_reviews',
    'release_date',
    'coming_soon',
    'is_early_access',
    'genres',
    'is_pinned',
}

_OPTIONAL_STR_FIELDS = {'steam_url', 'cover_image', 'release_date'}
_OPTIONAL_BOOL_FIELDS = {'coming_soon', 'is_early_access', 'is_pinned'}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Check field values before they reach the stored document.

    Returns a normalized copy (name stripped, status parsed). Raises
    ValueError on unknown fields or values of the wrong type.
    """
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    normalized = dict(changes)
    for key, value in changes.items():
        if key == 'name':
            if not isinstance(value, str) or not value.strip():
                raise ValueError("Game name must be a non-empty string")
            normalized[key] = value.strip()
        elif key == 'status':
            normalized[key] = GameStatus.parse(value)
        elif value is None:
            continue
        elif key in _OPTIONAL_STR_FIELDS:
            if not isinstance(value, str):
                raise ValueError(f"{key} must be a string")
        elif key in _OPTIONAL_BOOL_FIELDS:
            if not isinstance(value, bool):
                raise ValueError(f"{key} must be true or false")
        elif key == 'positive_percentage':
            if not _is_number(value) or not 0 <= value <= 100:
                raise ValueError("positive_percentage must be a number between 0 and 100")
        elif key == 'total_reviews':
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError("total_reviews must be a non-negative integer")
        elif key == 'genres':
            if not isinstance(value, list) or not all(isinstance(g, dict) for g in value):
                raise ValueError("genres must be a list of objects")
    return normalized


@dataclass
class AddGameResult:
    result: UpdateResult
    game: Optional[Game] = None
    added: bool = False
    duplicate: bool = False

    @property
    def success(self) -> bool:
        return self.result.success


def find_by_name(games: List[Game], name: str) -> Optional[Game]:
    wanted = name.strip().lower()
    for game in games:
        if game.name.strip().lower() == wanted:
            return game
    return None


def _app_id_label(steam_url: Optional[str]) -> str:
    if not steam_url:
        return "manual"
    return steam_url.rstrip('/').split('/')[-1]


class GameListService:
    """Game list mutations on top of the document store.

    Args:
        document_store: Store holding the shared list.
        conflict_retries: Extra update() calls made when the previous one hit a
            version conflict. Each retry re-fetches and re-runs the transform.
    """

    def __init__(self, document_store: DocumentStore, conflict_retries: int = 0):
        self.document_store = document_store
        self.conflict_retries = max(0, conflict_retries)

    async def load(self) -> FetchResult:
        return await self.document_store.fetch()

    async def _update(self, transform: Transform, message: str) -> UpdateResult:
        result = await self.document_store.update(transform, message)
        attempt = 0
        while result.conflict and attempt < self.conflict_retries:
            attempt += 1
            logger.info(f"[GameList] Conflict on '{message}', retrying ({attempt}/{self.conflict_retries})")
            result = await self.document_store.update(transform, message)
        return result

    async def add_game(
        self,
        name: str,
        steam_url: Optional[str] = None,
        cover_image: Optional[str] = None,
        positive_percentage: Optional[float] = None,
        total_reviews: Optional[int] = None,
        release_date: Optional[str] = None,
        coming_soon: Optional[bool] = None,
        is_early_access: Optional[bool] = None,
    ) -> AddGameResult:
        """Add a game to the front of the queue unless one with the same name exists.

        Raises ValueError if any field has the wrong type.
        """
        fields = validate_changes({
            'name': name,
            'steam_url': steam_url,
            'cover_image': cover_image,
            'positive_percentage': positive_percentage,
            'total_reviews': total_reviews,
            'release_date': release_date,
            'coming_soon': coming_soon,
            'is_early_access': is_early_access,
        })
        name = fields['name']

        now = utc_timestamp()
        new_game = Game(
            id=uuid.uuid4().hex,
            status=GameStatus.QUEUED,
            added_at=now,
            last_updated=now,
            **fields,
        )

        def transform(games: List[Game]) -> List[Game]:
            if find_by_name(games, name):
                return games
            return [new_game] + games

        message = f"Add game via web: {name} ({_app_id_label(steam_url)})"
        result = await self._update(transform, message)
        if not result.success:
            return AddGameResult(result=result)

        added = any(g.id == new_game.id for g in result.games)
        if not added:
            logger.info(f"[GameList] '{name}' is already in the list")
            return AddGameResult(result=result, game=find_by_name(result.games, name), duplicate=True)
        return AddGameResult(result=result, game=new_game, added=True)

    async def update_game(self, game_id: str, changes: Dict[str, Any], message: Optional[str] = None) -> UpdateResult:
        """Apply a partial update to one game and bump its last_updated time.

        Raises ValueError for invalid changes and NotFoundError if the game
        is not in the current list; nothing is written in either case.
        """
        changes = validate_changes(changes)

        def transform(games: List[Game]) -> List[Game]:
            if not any(g.id == game_id for g in games):
                raise NotFoundError(f"Game {game_id} not found")
            return [
                replace(g, last_updated=utc_timestamp(), **changes) if g.id == game_id else g
                for g in games
            ]

        return await self._update(transform, message or f"Update game via web: {game_id}")

    async def set_status(self, game_id: str, status: GameStatus) -> UpdateResult:
        status = GameStatus.parse(status)
        return await self.update_game(game_id, {'status': status}, f"Move game {game_id} to {status.value}")

    async def set_pinned(self, game_id: str, pinned: bool) -> UpdateResult:
        action = "Pin" if pinned else "Unpin"
        return await self.update_game(game_id, {'is_pinned': pinned}, f"{action} game via web: {game_id}")

    async def remove_game(self, game_id: str) -> UpdateResult:
        def transform(games: List[Game]) -> List[Game]:
            return [g for g in games if g.id != game_id]

        return await self._update(transform, f"Remove game via web: {game_id}")
