"""In-memory content store.

Keeps blobs in a dict with the same compare-and-swap rules as the GitHub
adapter. Versions are git blob hashes of the content, matching what GitHub
reports as `sha`. Used for local development and tests.
"""

import asyncio
import hashlib
import logging
from typing import Dict, List, Optional, Tuple

from ..errors import ConflictError, NotFoundError
from .base import ContentStore, RemoteFile

logger = logging.getLogger(__name__)


def git_blob_sha(content: bytes) -> str:
    """SHA-1 of a blob the way git computes it"""
    header = f"blob {len(content)}\0".encode('ascii')
    return hashlib.sha1(header + content).hexdigest()


class InMemoryContentStore(ContentStore):
    """Dict-based blob storage with version-checked writes.

    Every call yields to the event loop (sleeping `latency` seconds), so
    concurrent callers interleave between a read and the following write
    the way they would against a real remote API.
    """

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._files: Dict[str, Tuple[bytes, str]] = {}
        # (path, message) of every accepted write, oldest first
        self.history: List[Tuple[str, str]] = []

    def seed(self, path: str, content: bytes) -> str:
        """Store content directly, bypassing version checks. Returns the version."""
        version = git_blob_sha(content)
        self._files[path] = (content, version)
        return version

    def current_version(self, path: str) -> Optional[str]:
        entry = self._files.get(path)
        return entry[1] if entry else None

    async def get(self, path: str) -> RemoteFile:
        await asyncio.sleep(self.latency)
        entry = self._files.get(path)
        if entry is None:
            raise NotFoundError(f"{path} not found", 404)
        content, version = entry
        return RemoteFile(content=content, version=version)

    async def put(self, path: str, content: bytes, message: str, version: Optional[str] = None) -> str:
        await asyncio.sleep(self.latency)
        current = self._files.get(path)

        if current is None and version is not None:
            raise ConflictError(f"{path} was deleted since version {version}", 409)
        if current is not None and version is None:
            raise ConflictError(f"{path} already exists", 422)
        if current is not None and current[1] != version:
            raise ConflictError(f"{path} changed since version {version}", 409)

        new_version = git_blob_sha(content)
        self._files[path] = (content, new_version)
        self.history.append((path, message))
        logger.debug(f"[MemoryStore] {path} -> {new_version[:8]}: {message}")
        return new_version
