"""Runtime state for accounts, mappings, sync results and cancellation."""

import asyncio
import os
import weakref
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set

from ..api_clients.base import BaseRemoteClient
from ..config.schema import AccountConfig, MappingConfig


@dataclass
class Mapping:
    """A remote folder mirrored into a local directory.

    ``cursor`` stays None until the first listing returns and is only ever
    replaced by the cursor of the next page fetched with it. It is held in
    memory only.
    """

    remote_path: str
    local_path: str
    cursor: Optional[str] = None
    updated: bool = False

    @classmethod
    def from_config(cls, config: MappingConfig) -> "Mapping":
        return cls(
            remote_path=config.remote_path,
            local_path=os.path.abspath(config.local_path)
        )

    def local_path_for(self, remote_path: str) -> str:
        """Local location of a remote path below this mapping's remote root."""
        relative = remote_path[len(self.remote_path):].lstrip('/')
        if not relative:
            return self.local_path
        return os.path.join(self.local_path, *relative.split('/'))


@dataclass
class Account:
    """A remote account with its client and mappings."""

    name: str
    client: BaseRemoteClient
    mappings: List[Mapping] = field(default_factory=list)
    access_token: str = field(default="", repr=False)

    @classmethod
    def from_config(cls, config: AccountConfig, client: BaseRemoteClient) -> "Account":
        return cls(
            name=config.name,
            client=client,
            mappings=[Mapping.from_config(mapping) for mapping in config.mappings],
            access_token=config.access_token
        )


@dataclass
class SyncResult:
    """Local paths confirmed by one sync pass, plus the mappings that failed."""

    file_set: Set[str] = field(default_factory=set)
    folder_set: Set[str] = field(default_factory=set)
    errors: List[Exception] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def merge(self, other: "SyncResult") -> "SyncResult":
        """Fold another result into this one and return self."""
        self.file_set.update(other.file_set)
        self.folder_set.update(other.folder_set)
        self.errors.extend(other.errors)
        return self

    def stale_paths(self, existing: Iterable[str]) -> Set[str]:
        """Paths from ``existing`` that this pass did not confirm."""
        confirmed = self.file_set | self.folder_set
        return {path for path in existing if path not in confirmed}


class CancelToken:
    """Cooperative cancellation shared by every branch of one operation.

    Cancelling never interrupts a request in flight; branches check
    ``cancelled`` at their own decision points. ``sleep`` returns early once
    the token is cancelled. A child token is cancelled together with its
    parent but can also be cancelled on its own.
    """

    def __init__(self, parent: Optional["CancelToken"] = None):
        self._cancelled = False
        self._event: Optional[asyncio.Event] = None
        self._children: "weakref.WeakSet[CancelToken]" = weakref.WeakSet()
        self.parent = parent
        if parent is not None:
            parent._children.add(self)

    @property
    def cancelled(self) -> bool:
        return self._cancelled or (self.parent is not None and self.parent.cancelled)

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._event is not None:
            self._event.set()
        for child in list(self._children):
            child.cancel()

    def child(self) -> "CancelToken":
        return CancelToken(parent=self)

    async def sleep(self, seconds: float) -> bool:
        """Sleep for ``seconds`` unless cancelled first.

        Returns:
            True if the token is cancelled when the sleep ends
        """
        if self.cancelled:
            return True
        if self._event is None:
            self._event = asyncio.Event()

        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

        return self.cancelled
