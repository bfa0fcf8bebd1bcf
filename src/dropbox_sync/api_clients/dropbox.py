"""Dropbox API v2 client implementation."""

import asyncio
import json
from typing import Dict, Any, Optional, AsyncIterator

import aiohttp

from .base import (
    BaseRemoteClient,
    ListFolderResult,
    LongpollResult,
    RateLimitError,
    AuthenticationError,
    APIConnectionError,
    CursorResetError
)

# The notify endpoint adds up to 90 seconds of jitter to the requested timeout.
LONGPOLL_JITTER_SECONDS = 90
# Timeouts the notify endpoint accepts, in seconds.
LONGPOLL_MIN_TIMEOUT = 30
LONGPOLL_MAX_TIMEOUT = 480


class DropboxClient(BaseRemoteClient):
    """Dropbox client for listing, change notification and downloads."""

    def __init__(
        self,
        account_name: str,
        access_token: str,
        api_url: str = "https://api.dropboxapi.com/2",
        notify_url: str = "https://notify.dropboxapi.com/2",
        request_timeout: float = 60.0,
        chunk_size: int = 64 * 1024,
        **kwargs
    ):
        """Initialize Dropbox client.

        Args:
            account_name: Account name used in logs
            access_token: OAuth2 bearer token
            api_url: Base URL of the RPC endpoints
            notify_url: Base URL of the long-poll endpoint
            request_timeout: Total timeout for regular requests in seconds
            chunk_size: Size of the chunks yielded by ``stream_link``
        """
        super().__init__(account_name, **kwargs)
        self.access_token = access_token
        self.api_url = api_url.rstrip('/')
        self.notify_url = notify_url.rstrip('/')
        self.request_timeout = request_timeout
        self.chunk_size = chunk_size
        self.session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
        return self.session

    async def close(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def list_folder(
        self,
        path: str,
        recursive: bool = True,
        include_deleted: bool = True
    ) -> ListFolderResult:
        data = await self._rpc(
            "files/list_folder",
            {"path": path, "recursive": recursive, "include_deleted": include_deleted}
        )
        return ListFolderResult.from_dict(data)

    async def list_folder_continue(self, cursor: str) -> ListFolderResult:
        data = await self._rpc("files/list_folder/continue", {"cursor": cursor})
        return ListFolderResult.from_dict(data)

    async def list_folder_longpoll(self, cursor: str, timeout: float) -> LongpollResult:
        timeout = max(LONGPOLL_MIN_TIMEOUT, min(LONGPOLL_MAX_TIMEOUT, int(timeout)))

        # Long-poll is unauthenticated, the cursor identifies the account.
        data = await self._rpc(
            "files/list_folder/longpoll",
            {"cursor": cursor, "timeout": timeout},
            base_url=self.notify_url,
            authenticated=False,
            timeout=timeout + LONGPOLL_JITTER_SECONDS
        )
        return LongpollResult.from_dict(data)

    async def get_temporary_link(self, path: str) -> str:
        data = await self._rpc("files/get_temporary_link", {"path": path})
        return data["link"]

    async def stream_link(self, url: str) -> AsyncIterator[bytes]:
        # Large bodies may take long; only a stalled read times out.
        download_timeout = aiohttp.ClientTimeout(total=None, sock_read=self.request_timeout)
        session = self._get_session()
        try:
            async with session.get(url, timeout=download_timeout) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise APIConnectionError(f"Download failed: {response.status} - {error_text}")

                async for chunk in response.content.iter_chunked(self.chunk_size):
                    yield chunk

        except aiohttp.ClientError as e:
            raise APIConnectionError(f"Network error during download: {e}")
        except asyncio.TimeoutError:
            raise APIConnectionError("Download timed out")

    async def _rpc(
        self,
        route: str,
        payload: Dict[str, Any],
        base_url: Optional[str] = None,
        authenticated: bool = True,
        timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        """POST a JSON payload to an RPC route and decode the JSON result."""
        url = f"{base_url or self.api_url}/{route}"
        headers = {"Content-Type": "application/json"}
        if authenticated:
            headers["Authorization"] = f"Bearer {self.access_token}"

        client_timeout = aiohttp.ClientTimeout(total=timeout or self.request_timeout)
        session = self._get_session()

        try:
            async with session.post(
                url, data=json.dumps(payload), headers=headers, timeout=client_timeout
            ) as response:
                if response.status == 200:
                    return await response.json(content_type=None)

                error_text = await response.text()
                self._raise_for_status(route, response.status, response.headers, error_text)

        except aiohttp.ClientError as e:
            raise APIConnectionError(f"Network error calling {route}: {e}")
        except asyncio.TimeoutError:
            raise APIConnectionError(f"Request to {route} timed out")

    def _raise_for_status(self, route: str, status: int, headers, error_text: str) -> None:
        body = self._parse_error_body(error_text)
        summary = body.get("error_summary") or error_text
        error = body.get("error") if isinstance(body.get("error"), dict) else {}

        if status == 401:
            raise AuthenticationError(f"Invalid or expired access token: {summary}")
        elif status == 429:
            retry_after = headers.get("Retry-After") or error.get("retry_after")
            raise RateLimitError(
                f"Rate limit exceeded calling {route}",
                float(retry_after) if retry_after is not None else None
            )
        elif status == 409 and error.get(".tag") == "reset":
            raise CursorResetError(f"Cursor was reset by the server: {summary}")

        raise APIConnectionError(f"API request {route} failed: {status} - {summary}")

    @staticmethod
    def _parse_error_body(error_text: str) -> Dict[str, Any]:
        try:
            body = json.loads(error_text)
        except (ValueError, TypeError):
            return {}
        return body if isinstance(body, dict) else {}
