"""Error taxonomy shared by the storage and search layers.

Adapters raise the exceptions below; the public operations of
DocumentStore and SearchCache catch them and hand back result objects
carrying the matching ErrorKind instead.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Outcome categories reported to callers"""
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    TRANSPORT = "transport"
    DECODE = "decode"
    UPSTREAM = "upstream"
    REMOTE = "remote"
    NOT_CONFIGURED = "not_configured"


class GalleryError(Exception):
    """Base class for all errors raised by the adapters"""

    kind = ErrorKind.REMOTE

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.message} (HTTP {self.status})"
        return self.message


class NotFoundError(GalleryError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(GalleryError):
    """The expected version token no longer matches the remote document"""
    kind = ErrorKind.CONFLICT


class TransportError(GalleryError):
    """Network failure or timeout"""
    kind = ErrorKind.TRANSPORT


class DecodeError(GalleryError):
    """Remote payload could not be decoded"""
    kind = ErrorKind.DECODE


class UpstreamError(GalleryError):
    """Steam returned a non-success status or a malformed response"""
    kind = ErrorKind.UPSTREAM


class RemoteError(GalleryError):
    """Content API returned an unexpected status"""
    kind = ErrorKind.REMOTE


class ConfigError(ValueError):
    """Invalid settings"""
