"""GitHub contents API adapter.

Stores the game list as a file in a GitHub repository. GitHub's blob `sha`
is the version token: reads return it, and a PUT carrying a stale `sha` is
rejected with 409.
Reference: https://docs.github.com/en/rest/repos/contents
"""
import asyncio
import base64
import binascii
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import aiohttp

from ..config import GITHUB_API_BASE, GITHUB_TIMEOUT
from ..errors import ConflictError, DecodeError, NotFoundError, RemoteError, TransportError
from ..net import create_ssl_context
from .base import ContentStore, RemoteFile

logger = logging.getLogger(__name__)

GITHUB_ACCEPT = "application/vnd.github.v3+json"


class GitHubContentStore(ContentStore):
    """Content store backed by a file in a GitHub repository"""

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        api_base: str = GITHUB_API_BASE,
        branch: Optional[str] = None,
        timeout: float = GITHUB_TIMEOUT,
    ):
        self.token = token
        self.owner = owner
        self.repo = repo
        self.api_base = api_base.rstrip('/')
        self.branch = branch
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_settings(cls, settings) -> "GitHubContentStore":
        return cls(
            token=settings.github_token,
            owner=settings.github_owner,
            repo=settings.github_repo,
            api_base=settings.github_api_base,
            branch=settings.github_branch,
            timeout=settings.github_timeout,
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self.session is None or self.session.closed:
            connector = aiohttp.TCPConnector(ssl=create_ssl_context())
            self.session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers=self._headers(),
            )
        return self.session

    async def close(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    def _headers(self) -> Dict[str, str]:
        return {
            'Authorization': f"Bearer {self.token}",
            'Accept': GITHUB_ACCEPT,
        }

    @property
    def repo_url(self) -> str:
        return f"{self.api_base}/repos/{self.owner}/{self.repo}"

    def file_url(self, path: str) -> str:
        return f"{self.repo_url}/contents/{quote(path.lstrip('/'))}"

    async def _read_json(self, resp: aiohttp.ClientResponse, path: str) -> Dict[str, Any]:
        try:
            data = await resp.json(content_type=None)
        except ValueError as e:
            raise DecodeError(f"Invalid JSON from GitHub for {path}: {e}", resp.status)
        if not isinstance(data, dict):
            raise DecodeError(f"Unexpected GitHub response for {path}: {type(data).__name__}", resp.status)
        return data

    async def _error_message(self, resp: aiohttp.ClientResponse) -> str:
        try:
            data = await resp.json(content_type=None)
            if isinstance(data, dict) and data.get('message'):
                return str(data['message'])
        except (ValueError, aiohttp.ClientError):
            pass
        return resp.reason or "unknown error"

    async def get(self, path: str) -> RemoteFile:
        session = await self._get_session()
        params = {'ref': self.branch} if self.branch else None

        try:
            async with session.get(self.file_url(path), params=params) as resp:
                if resp.status == 404:
                    raise NotFoundError(f"{path} not found in {self.owner}/{self.repo}", 404)
                if resp.status != 200:
                    message = await self._error_message(resp)
                    raise RemoteError(f"GitHub API error reading {path}: {message}", resp.status)
                data = await self._read_json(resp, path)
        except asyncio.TimeoutError:
            raise TransportError(f"Timed out reading {path} from GitHub")
        except aiohttp.ClientError as e:
            raise TransportError(f"Failed to read {path} from GitHub: {e}")

        sha = data.get('sha')
        content = data.get('content')
        if not isinstance(sha, str) or not sha or not isinstance(content, str):
            raise DecodeError(f"GitHub response for {path} has no content/sha")
        if data.get('encoding', 'base64') != 'base64':
            # Files over 1 MB come back with encoding "none" and empty content
            raise DecodeError(f"Unsupported content encoding for {path}: {data.get('encoding')}")

        try:
            # GitHub wraps base64 at 60 columns
            decoded = base64.b64decode(content.replace('\n', ''), validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError(f"Invalid base64 content for {path}: {e}")

        return RemoteFile(content=decoded, version=sha)

    async def put(self, path: str, content: bytes, message: str, version: Optional[str] = None) -> str:
        session = await self._get_session()
        body: Dict[str, Any] = {
            'message': message,
            'content': base64.b64encode(content).decode('ascii'),
        }
        if version:
            body['sha'] = version
        if self.branch:
            body['branch'] = self.branch

        try:
            async with session.put(self.file_url(path), json=body) as resp:
                if resp.status == 409:
                    raise ConflictError(f"{path} changed on GitHub since version {version}", 409)
                if resp.status == 422 and not version:
                    # Someone else created the file after we saw it missing
                    message_text = await self._error_message(resp)
                    raise ConflictError(f"{path} already exists on GitHub: {message_text}", 422)
                if resp.status not in (200, 201):
                    message_text = await self._error_message(resp)
                    raise RemoteError(f"GitHub API error writing {path}: {message_text}", resp.status)
                data = await self._read_json(resp, path)
        except asyncio.TimeoutError:
            raise TransportError(f"Timed out writing {path} to GitHub")
        except aiohttp.ClientError as e:
            raise TransportError(f"Failed to write {path} to GitHub: {e}")

        file_info = data.get('content')
        new_sha = file_info.get('sha') if isinstance(file_info, dict) else None
        if not isinstance(new_sha, str) or not new_sha:
            raise DecodeError(f"GitHub write response for {path} has no content.sha")

        logger.info(f"[GitHub] Updated {self.owner}/{self.repo}/{path}: {message}")
        return new_sha

    async def get_current_user(self) -> Optional[str]:
        """Login of the token owner, or None if the token is rejected."""
        if not self.token or not self.token.strip():
            logger.error("[GitHub] Cannot get current user: invalid token")
            return None

        session = await self._get_session()
        try:
            async with session.get(f"{self.api_base}/user") as resp:
                if resp.status != 200:
                    logger.error(f"[GitHub] Failed to get user: HTTP {resp.status}")
                    return None
                data = await resp.json(content_type=None)
        except (asyncio.TimeoutError, aiohttp.ClientError, ValueError) as e:
            logger.error(f"[GitHub] Failed to get current user: {e}")
            return None

        if not isinstance(data, dict) or not data.get('login'):
            logger.error("[GitHub] Invalid user data response")
            return None
        return data['login']

    async def test_connection(self) -> bool:
        """Check the configured repository is reachable with this token."""
        session = await self._get_session()
        try:
            async with session.get(self.repo_url) as resp:
                if resp.status != 200:
                    logger.error(f"[GitHub] Connection test failed: HTTP {resp.status}")
                    return False
        except (asyncio.TimeoutError, aiohttp.ClientError) as e:
            logger.error(f"[GitHub] Connection test failed: {e}")
            return False

        logger.info(f"[GitHub] Connection test succeeded for {self.owner}/{self.repo}")
        return True
