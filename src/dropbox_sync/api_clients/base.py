"""Base remote client interface, listing entry types and API errors."""

from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional, AsyncIterator
from dataclasses import dataclass, field

from ..utils.logging import get_logger


@dataclass(frozen=True)
class RemoteEntry:
    """One entry of a folder listing."""

    path: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RemoteEntry":
        """Build the entry type matching the ``.tag`` of a listing item."""
        tag = data.get(".tag")
        path = data.get("path_display") or data.get("path_lower") or ""

        if tag == "file":
            return FileEntry(path=path, content_hash=data.get("content_hash", ""))
        elif tag == "folder":
            return FolderEntry(path=path)
        elif tag == "deleted":
            return DeletedEntry(path=path)

        raise ValueError(f"Unknown listing entry tag: {tag!r}")


@dataclass(frozen=True)
class FileEntry(RemoteEntry):
    content_hash: str = ""


@dataclass(frozen=True)
class FolderEntry(RemoteEntry):
    pass


@dataclass(frozen=True)
class DeletedEntry(RemoteEntry):
    pass


@dataclass
class ListFolderResult:
    """A page of listing entries plus the cursor to continue from."""

    entries: List[RemoteEntry] = field(default_factory=list)
    cursor: str = ""
    has_more: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ListFolderResult":
        return cls(
            entries=[RemoteEntry.from_dict(item) for item in data.get("entries", [])],
            cursor=data["cursor"],
            has_more=bool(data.get("has_more", False))
        )


@dataclass
class LongpollResult:
    """Outcome of a long-poll: whether anything changed and how long to back off."""

    changes: bool
    backoff: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LongpollResult":
        backoff = data.get("backoff")
        return cls(
            changes=bool(data.get("changes", False)),
            backoff=float(backoff) if backoff is not None else None
        )


class BaseRemoteClient(ABC):
    """Abstract base class for remote folder services."""

    def __init__(self, account_name: str, **kwargs):
        """Initialize the remote client.

        Args:
            account_name: Account this client talks for, used in logs
            **kwargs: Additional configuration parameters
        """
        self.account_name = account_name
        self.logger = get_logger(self.__class__.__name__)

    @abstractmethod
    async def list_folder(
        self,
        path: str,
        recursive: bool = True,
        include_deleted: bool = True
    ) -> ListFolderResult:
        """Start listing a remote folder.

        Args:
            path: Remote folder path, '' for the root
            recursive: Include everything below ``path``
            include_deleted: Include markers for deleted entries

        Returns:
            First page of entries with its cursor
        """
        pass

    @abstractmethod
    async def list_folder_continue(self, cursor: str) -> ListFolderResult:
        """Fetch the entries changed since ``cursor`` was issued."""
        pass

    @abstractmethod
    async def list_folder_longpoll(self, cursor: str, timeout: float) -> LongpollResult:
        """Block until entries change after ``cursor`` or ``timeout`` elapses."""
        pass

    @abstractmethod
    async def get_temporary_link(self, path: str) -> str:
        """Get a short-lived direct download URL for a remote file."""
        pass

    @abstractmethod
    def stream_link(self, url: str) -> AsyncIterator[bytes]:
        """Stream the body behind a temporary link as byte chunks."""
        pass

    async def close(self) -> None:
        """Release network resources held by the client."""
        pass


class RemoteAPIError(Exception):
    """Base class for remote service errors."""
    pass


class RateLimitError(RemoteAPIError):
    """Raised when API rate limit is exceeded."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class AuthenticationError(RemoteAPIError):
    """Raised when API authentication fails."""
    pass


class APIConnectionError(RemoteAPIError):
    """Raised when API connection fails."""
    pass


class CursorResetError(RemoteAPIError):
    """Raised when the service invalidated a listing cursor."""
    pass
