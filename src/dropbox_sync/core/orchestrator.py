"""Top-level sync loop: reconcile everything, wait for a change, repeat."""

from enum import Enum
from typing import Callable, List, Optional

from .local_storage import LocalStorage
from .reconciler import ListingReconciler
from .state import Account, CancelToken, SyncResult
from .watcher import ChangeWatcher
from ..api_clients.base import BaseRemoteClient
from ..api_clients.factory import RemoteClientFactory
from ..config.schema import AccountConfig, SyncConfig
from ..utils.logging import get_logger


class SyncState(str, Enum):
    """States of the sync loop."""
    RECONCILING = "reconciling"
    WATCHING = "watching"


class SyncOrchestrator:
    """Drives repeated sync passes for every configured account."""

    def __init__(
        self,
        config: SyncConfig,
        client_factory: Optional[Callable[[AccountConfig], BaseRemoteClient]] = None,
        storage: Optional[LocalStorage] = None
    ):
        """Initialize the orchestrator.

        Args:
            config: Validated sync configuration
            client_factory: Builds the remote client for an account
            storage: Local filesystem access shared by all mappings
        """
        self.config = config
        self.logger = get_logger(self.__class__.__name__)

        client_factory = client_factory or RemoteClientFactory.create_client
        self.accounts: List[Account] = [
            Account.from_config(account, client_factory(account))
            for account in config.accounts
        ]

        self.reconciler = ListingReconciler(self.accounts, storage=storage, verbose=config.verbose)
        self.watcher = ChangeWatcher(
            self.accounts,
            wait_interval=config.wait_interval,
            error_retry_delay=config.error_retry_delay,
            verbose=config.verbose
        )

        self.state = SyncState.RECONCILING
        self.passes = 0
        self.last_result: Optional[SyncResult] = None

        self.logger.info(
            "Sync orchestrator initialized",
            accounts=len(self.accounts),
            mappings=config.count_mappings(),
            wait_interval=config.wait_interval
        )

    async def reconcile(self) -> SyncResult:
        """Run one reconciliation pass over every mapping."""
        self.state = SyncState.RECONCILING
        result = await self.reconciler.download_all()
        self.passes += 1
        self.last_result = result

        if not result.success:
            self.logger.warning(
                "Sync pass finished with failures",
                sync_pass=self.passes,
                failed_mappings=len(result.errors)
            )
        return result

    async def watch(self, cancel: CancelToken) -> bool:
        """Wait for the next remote change."""
        self.state = SyncState.WATCHING
        return await self.watcher.wait_changes(cancel.child())

    async def run_once(self, cancel: Optional[CancelToken] = None) -> bool:
        """Reconcile once, then wait for a change.

        Returns:
            True if the wait ended on an actual remote change
        """
        await self.reconcile()
        return await self.watch(cancel or CancelToken())

    async def run(self, cancel: Optional[CancelToken] = None) -> None:
        """Loop until ``cancel`` is set; errors are logged, never fatal."""
        cancel = cancel or CancelToken()
        self.logger.info("Starting sync loop")

        while not cancel.cancelled:
            try:
                await self.reconcile()
                if cancel.cancelled:
                    break
                changed = await self.watch(cancel)
                self.logger.debug("Watch finished", changed=changed)

            except Exception as e:
                self.logger.error(
                    "Sync iteration failed",
                    state=self.state.value,
                    error=str(e),
                    exc_info=True
                )
                # pause before retrying a failing iteration
                await cancel.sleep(self.config.error_retry_delay)

        self.logger.info("Sync loop stopped", passes=self.passes)

    async def close(self) -> None:
        """Close every remote client."""
        for account in self.accounts:
            try:
                await account.client.close()
            except Exception as e:
                self.logger.warning("Failed to close remote client", account=account.name, error=str(e))
