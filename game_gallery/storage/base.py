"""
Base content store defining the interface for remote document backends.

A content store holds blobs by path and hands out an opaque version token
with every read. Writes carry the version the caller last saw and are
rejected when it is stale, so the store itself is the only serialization
point between writers.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RemoteFile:
    """A blob as stored remotely, with the version token it was read at"""
    content: bytes
    version: str


class ContentStore(ABC):
    """Abstract base class for remote blob stores with compare-and-swap writes"""

    @abstractmethod
    async def get(self, path: str) -> RemoteFile:
        """
        Fetch a blob and its current version.

        Raises:
            NotFoundError: the blob has never been created.
            TransportError: network failure or timeout.
            DecodeError: the response could not be decoded.
            RemoteError: any other unexpected response.
        """
        pass

    @abstractmethod
    async def put(self, path: str, content: bytes, message: str, version: Optional[str] = None) -> str:
        """
        Write a blob if the remote version still equals `version`.

        Args:
            path: Blob path.
            content: New content.
            message: Human-readable change description.
            version: Version observed on read, or None to create the blob.

        Returns:
            The new version token.

        Raises:
            ConflictError: the remote version no longer matches.
            TransportError, DecodeError, RemoteError: as for get().
        """
        pass

    async def close(self) -> None:
        """Release network resources. Default implementation does nothing."""
        return None
