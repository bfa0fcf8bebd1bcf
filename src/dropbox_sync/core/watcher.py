"""Change watching: long-poll every mapping until the first one reports a change."""

import asyncio
from typing import List, Optional, Set

from .state import Account, Mapping, CancelToken
from ..utils.logging import get_logger, get_mapping_logger


class ChangeWatcher:
    """Waits for remote changes across mappings and accounts.

    Single-mapping waits return True on a change, False when cancelled and
    None when the mapping has no cursor yet and must be listed first.
    """

    def __init__(
        self,
        accounts: List[Account],
        wait_interval: float = 30,
        error_retry_delay: float = 5,
        verbose: bool = True
    ):
        """Initialize the watcher.

        Args:
            accounts: Accounts whose mappings are watched
            wait_interval: Requested long-poll timeout, and idle sleep for unlisted mappings
            error_retry_delay: Pause before retrying a failed long-poll
            verbose: Log informational events
        """
        self.accounts = accounts
        self.wait_interval = wait_interval
        self.error_retry_delay = error_retry_delay
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)

        # Waits that lost a race and are winding down.
        self._lingering: Set[asyncio.Task] = set()

    async def wait_mapping(self, account: Account, mapping: Mapping, cancel: CancelToken) -> Optional[bool]:
        """Wait for a change on one mapping.

        Returns:
            True on a change, False once ``cancel`` is observed, None when
            the mapping has never been listed
        """
        logger = get_mapping_logger(
            self.__class__.__name__, account.name, mapping.remote_path, mapping.local_path
        )

        if mapping.cursor is None:
            # Nothing to long-poll against before the first full listing.
            await cancel.sleep(self.wait_interval)
            return None

        while True:
            if cancel.cancelled:
                return False

            try:
                result = await account.client.list_folder_longpoll(mapping.cursor, self.wait_interval)

            except Exception as e:
                if cancel.cancelled:
                    return False
                logger.error("Long-poll failed, retrying", error=str(e), retry_in=self.error_retry_delay)
                if await cancel.sleep(self.error_retry_delay):
                    return False
                continue

            if result.changes:
                if self.verbose:
                    logger.info("Remote changes detected")
                return True

            if cancel.cancelled:
                return False

            if result.backoff:
                logger.debug("Long-poll asked to back off", backoff=result.backoff)
                if await cancel.sleep(result.backoff):
                    return False

    async def wait_account(self, account: Account, cancel: Optional[CancelToken] = None) -> bool:
        """Wait until any mapping of one account changes."""
        return await self._race(
            [(account, mapping) for mapping in account.mappings],
            cancel or CancelToken()
        )

    async def wait_changes(self, cancel: Optional[CancelToken] = None) -> bool:
        """Wait until any mapping of any account changes.

        Resolves at the first mapping that reports a change or needs a
        listing, then cancels ``cancel`` so the remaining waits stop at their
        next check point.

        Returns:
            True if an actual remote change was observed
        """
        return await self._race(
            [(account, mapping) for account in self.accounts for mapping in account.mappings],
            cancel or CancelToken()
        )

    async def drain(self) -> None:
        """Wait for the losers of previous races to finish."""
        if self._lingering:
            await asyncio.gather(*self._lingering, return_exceptions=True)

    async def _race(self, targets, cancel: CancelToken) -> bool:
        if not targets:
            await cancel.sleep(self.wait_interval)
            return False

        pending = {
            asyncio.ensure_future(self.wait_mapping(account, mapping, cancel))
            for account, mapping in targets
        }
        outcome: Optional[bool] = False

        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                finished = [task.result() for task in done]
                if True in finished:
                    outcome = True
                    break
                if None in finished:
                    outcome = None
                    break
        finally:
            cancel.cancel()
            for task in pending:
                self._lingering.add(task)
                task.add_done_callback(self._lingering.discard)

        if outcome is None:
            self.logger.debug("Unlisted mapping needs a listing before it can be watched")
        return outcome is True
