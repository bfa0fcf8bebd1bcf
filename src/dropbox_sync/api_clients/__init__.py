"""Remote clients for the services mirrored to local storage."""

from .base import (
    BaseRemoteClient,
    RemoteEntry,
    FileEntry,
    FolderEntry,
    DeletedEntry,
    ListFolderResult,
    LongpollResult,
    RemoteAPIError,
    RateLimitError,
    AuthenticationError,
    APIConnectionError,
    CursorResetError
)

from .dropbox import DropboxClient
from .factory import RemoteClientFactory

__all__ = [
    # Base classes and listing types
    "BaseRemoteClient",
    "RemoteEntry",
    "FileEntry",
    "FolderEntry",
    "DeletedEntry",
    "ListFolderResult",
    "LongpollResult",

    # Exceptions
    "RemoteAPIError",
    "RateLimitError",
    "AuthenticationError",
    "APIConnectionError",
    "CursorResetError",

    # Client implementations
    "DropboxClient",

    # Factory
    "RemoteClientFactory"
]
