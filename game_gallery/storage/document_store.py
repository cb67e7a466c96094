"""Document store for the shared game list.

The whole game list lives in one remote document that several clients may
edit at once. Every change is a read-transform-write cycle where the write
carries the version read at the start, so a concurrent edit is reported as
a conflict instead of being overwritten.

There is deliberately no retry in here: after a conflict the transform's
preconditions (e.g. "this name is not in the list yet") must be checked
again against the newer document, which only the caller can decide to do.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..config import DEFAULT_GAMES_FILE_PATH
from ..errors import ErrorKind, GalleryError, NotFoundError
from ..models import Game, decode_document, encode_document
from .base import ContentStore

logger = logging.getLogger(__name__)

Transform = Callable[[List[Game]], List[Game]]


@dataclass
class FetchResult:
    """Outcome of DocumentStore.fetch()"""
    success: bool
    games: List[Game] = field(default_factory=list)
    version: Optional[str] = None
    not_found: bool = False
    error: Optional[ErrorKind] = None
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'games': [g.to_dict() for g in self.games],
            'version': self.version,
            'not_found': self.not_found,
            'error': self.error.value if self.error else None,
            'message': self.message,
        }


@dataclass
class UpdateResult:
    """Outcome of DocumentStore.update()"""
    success: bool
    games: List[Game] = field(default_factory=list)
    version: Optional[str] = None
    error: Optional[ErrorKind] = None
    message: Optional[str] = None

    @property
    def conflict(self) -> bool:
        return self.error == ErrorKind.CONFLICT

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'games': [g.to_dict() for g in self.games],
            'version': self.version,
            'error': self.error.value if self.error else None,
            'message': self.message,
        }


class DocumentStore:
    """Compare-and-swap access to the game list document"""

    def __init__(self, content_store: ContentStore, path: str = DEFAULT_GAMES_FILE_PATH):
        self.content_store = content_store
        self.path = path

    async def fetch(self) -> FetchResult:
        """Read the current game list and its version.

        A document that was never created is a normal state and comes back
        as a successful, empty result with not_found set.
        """
        try:
            remote = await self.content_store.get(self.path)
        except NotFoundError:
            logger.info(f"[DocumentStore] {self.path} not found, treating as empty list")
            return FetchResult(success=True, not_found=True)
        except GalleryError as e:
            logger.error(f"[DocumentStore] fetch {self.path} failed ({e.kind.value}): {e}")
            return FetchResult(success=False, error=e.kind, message=str(e))

        try:
            games = decode_document(remote.content)
        except GalleryError as e:
            logger.error(f"[DocumentStore] fetch {self.path} at {remote.version[:8]} undecodable: {e}")
            return FetchResult(success=False, error=e.kind, message=str(e))

        return FetchResult(success=True, games=games, version=remote.version)

    async def update(self, transform: Transform, message: str) -> UpdateResult:
        """Apply `transform` to the latest game list and write the result.

        Exactly one write is attempted. If the document changed between the
        read and the write, the result has error=CONFLICT and nothing is
        written; call update() again to re-run the transform on fresh data.

        Exceptions raised by `transform` propagate; nothing is written.
        """
        current = await self.fetch()
        if not current.success:
            return UpdateResult(success=False, error=current.error, message=current.message)

        new_games = list(transform(list(current.games)))
        ids = [g.id for g in new_games]
        if len(ids) != len(set(ids)):
            logger.error(f"[DocumentStore] update '{message}' produced duplicate game ids, not writing")
            return UpdateResult(
                success=False,
                error=ErrorKind.DECODE,
                message="Transform produced duplicate game ids",
            )

        # Never write a document that fetch() would reject
        try:
            content = encode_document(new_games)
            decode_document(content)
        except (GalleryError, TypeError, ValueError) as e:
            logger.error(f"[DocumentStore] update '{message}' produced an unreadable document, not writing: {e}")
            return UpdateResult(success=False, error=ErrorKind.DECODE, message=str(e))

        try:
            new_version = await self.content_store.put(self.path, content, message, version=current.version)
        except GalleryError as e:
            if e.kind == ErrorKind.CONFLICT:
                logger.warning(f"[DocumentStore] Conflict writing {self.path} ('{message}'): {e}")
            else:
                logger.error(f"[DocumentStore] update {self.path} ('{message}') failed ({e.kind.value}): {e}")
            return UpdateResult(success=False, error=e.kind, message=str(e))

        logger.info(f"[DocumentStore] Updated {self.path}: {message} ({len(new_games)} games)")
        return UpdateResult(success=True, games=new_games, version=new_version)

    async def replace(self, games: List[Game], message: str) -> UpdateResult:
        """Write `games` as the whole list, still guarded by the version check."""
        replacement = list(games)
        return await self.update(lambda _current: replacement, message)
