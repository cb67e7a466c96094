"""
Data model for the shared game list and Steam search results.

The game list is stored remotely as a single JSON document:

    {"games": [{"id": ..., "name": ..., "status": "queueing", ...}, ...]}

Field names on the wire are camelCase (the web client reads the same file),
attributes here are snake_case.
"""
import json
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import List, Dict, Any, Optional

from .errors import DecodeError

STEAM_APP_URL = "https://store.steampowered.com/app/{app_id}"
STEAM_CAPSULE_URL = "https://cdn.cloudflare.steamstatic.com/steam/apps/{app_id}/capsule_sm_120.jpg"

# Status values written by older versions of the web client
LEGACY_STATUSES = {
    'pending': 'queueing',
}


class GameStatus(str, Enum):
    QUEUED = "queueing"
    IN_PROGRESS = "playing"
    COMPLETED = "completion"

    @classmethod
    def parse(cls, value: Any) -> "GameStatus":
        """Parse a stored status value, mapping legacy values forward."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Invalid status: {value!r}")
        value = LEGACY_STATUSES.get(value, value)
        return cls(value)


def utc_timestamp() -> str:
    """Current time as ISO-8601 UTC with millisecond precision (JS toISOString format)"""
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


# attribute name -> JSON key
_JSON_KEYS = {
    'id': 'id',
    'name': 'name',
    'status': 'status',
    'added_at': 'addedAt',
    'last_updated': 'lastUpdated',
    'steam_url': 'steamUrl',
    'cover_image': 'coverImage',
    'positive_percentage': 'positivePercentage',
    'total_reviews': 'totalReviews',
    'release_date': 'releaseDate',
    'coming_soon': 'comingSoon',
    'is_early_access': 'isEarlyAccess',
    'genres': 'genres',
    'is_pinned': 'isPinned',
}
_ATTR_NAMES = {v: k for k, v in _JSON_KEYS.items()}


@dataclass
class Game:
    """A single entry of the shared game list"""
    id: str
    name: str
    status: GameStatus = GameStatus.QUEUED
    added_at: str = ""
    last_updated: str = ""
    steam_url: Optional[str] = None
    cover_image: Optional[str] = None
    positive_percentage: Optional[float] = None
    total_reviews: Optional[int] = None
    release_date: Optional[str] = None
    coming_soon: Optional[bool] = None
    is_early_access: Optional[bool] = None
    genres: Optional[List[Dict[str, str]]] = None
    is_pinned: Optional[bool] = None
    # Keys we don't model, kept so writes never drop other clients' data
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Game":
        if not isinstance(data, dict):
            raise ValueError(f"Game entry must be an object, got {type(data).__name__}")
        for key in ('id', 'name', 'status'):
            if key not in data:
                raise ValueError(f"Game entry missing '{key}'")
        if isinstance(data['id'], bool) or not isinstance(data['id'], (str, int)):
            raise ValueError("Game id must be a string")
        if not isinstance(data['name'], str):
            raise ValueError("Game name must be a string")

        kwargs: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, value in data.items():
            attr = _ATTR_NAMES.get(key)
            if attr is None:
                extra[key] = value
            else:
                kwargs[attr] = value

        # Older documents used numeric ids (Date.now())
        kwargs['id'] = str(kwargs['id'])
        kwargs['status'] = GameStatus.parse(kwargs['status'])
        return cls(extra=extra, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for f in fields(self):
            if f.name == 'extra':
                continue
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, GameStatus):
                value = value.value
            data[_JSON_KEYS[f.name]] = value
        for key, value in self.extra.items():
            data.setdefault(key, value)
        return data

    @property
    def steam_app_id(self) -> Optional[int]:
        """App id parsed from the store URL (https://store.steampowered.com/app/<id>/...)"""
        if not self.steam_url or '/app/' not in self.steam_url:
            return None
        tail = self.steam_url.split('/app/', 1)[1]
        digits = tail.split('/', 1)[0]
        return int(digits) if digits.isdigit() else None


def decode_document(content: bytes) -> List[Game]:
    """Decode the stored document into a list of games.

    The whole document is rejected on any malformed entry; a partially
    decoded list is never returned.
    """
    try:
        data = json.loads(content.decode('utf-8'))
    except (UnicodeDecodeError, ValueError) as e:
        raise DecodeError(f"Document is not valid UTF-8 JSON: {e}")

    if not isinstance(data, dict):
        raise DecodeError(f"Document root must be an object, got {type(data).__name__}")
    raw_games = data.get('games')
    if not isinstance(raw_games, list):
        raise DecodeError("Document has no 'games' list")

    games = []
    seen = set()
    for index, raw in enumerate(raw_games):
        try:
            game = Game.from_dict(raw)
        except (TypeError, ValueError) as e:
            raise DecodeError(f"Invalid game at index {index}: {e}")
        if game.id in seen:
            raise DecodeError(f"Duplicate game id '{game.id}'")
        seen.add(game.id)
        games.append(game)
    return games


def encode_document(games: List[Game]) -> bytes:
    """Encode the game list in the same layout the web client writes"""
    document = {'games': [game.to_dict() for game in games]}
    return json.dumps(document, indent=2, ensure_ascii=False).encode('utf-8')


@dataclass(frozen=True)
class SteamApp:
    """A store search hit"""
    app_id: int
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {'appid': self.app_id, 'name': self.name}


@dataclass
class GameSearchResult:
    """Search hit as returned by the HTTP API"""
    id: int
    name: str
    steam_url: str
    cover_image: str
    current_players: Optional[int] = None
    tags: List[str] = field(default_factory=list)

    @classmethod
    def from_app(cls, app: SteamApp, current_players: Optional[int] = None) -> "GameSearchResult":
        return cls(
            id=app.app_id,
            name=app.name,
            steam_url=STEAM_APP_URL.format(app_id=app.app_id),
            cover_image=STEAM_CAPSULE_URL.format(app_id=app.app_id),
            current_players=current_players,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'name': self.name,
            'steamUrl': self.steam_url,
            'coverImage': self.cover_image,
            'tags': list(self.tags),
        }
        if self.current_players is not None:
            data['currentPlayers'] = self.current_players
        return data
