from __future__ import annotations

from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from game_gallery.models import Game, GameStatus, encode_document
from game_gallery.storage import DocumentStore, InMemoryContentStore

GAMES_PATH = "games.json"


class FakeClock:
    """Manually advanced replacement for time.monotonic"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_game(game_id: str, name: str | None = None, status: GameStatus = GameStatus.QUEUED) -> Game:
    return Game(
        id=game_id,
        name=name or f"Game {game_id}",
        status=status,
        added_at="2024-01-01T00:00:00.000Z",
        last_updated="2024-01-01T00:00:00.000Z",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store():
    return InMemoryContentStore()


@pytest.fixture
def seeded_store(memory_store):
    """Content store already holding a document with game A"""
    memory_store.seed(GAMES_PATH, encode_document([make_game("a", "A")]))
    return memory_store


@pytest.fixture
def document_store(seeded_store):
    return DocumentStore(seeded_store, GAMES_PATH)
