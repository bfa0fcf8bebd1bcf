"""Listing reconciliation: apply remote folder listings to local storage."""

import asyncio
import os
from typing import List, Optional

from .local_storage import LocalStorage
from .state import Account, Mapping, SyncResult
from ..api_clients.base import (
    RemoteEntry,
    FileEntry,
    FolderEntry,
    DeletedEntry,
    CursorResetError
)
from ..utils.logging import get_logger, get_mapping_logger, log_async_execution_time


class SyncError(Exception):
    """Base exception for sync errors."""
    pass


class MappingSyncError(SyncError):
    """A mapping's pass failed while listing or applying entries.

    ``result`` holds whatever the pass confirmed before and despite the
    failure; ``errors`` every underlying exception.
    """

    def __init__(self, account_name: str, mapping: Mapping, errors: List[BaseException], result: SyncResult):
        self.account_name = account_name
        self.mapping = mapping
        self.errors = errors
        self.result = result
        super().__init__(
            f"Sync of {account_name}:{mapping.remote_path or '/'} -> {mapping.local_path} "
            f"failed with {len(errors)} error(s): {'; '.join(str(e) for e in errors)}"
        )


class ListingReconciler:
    """Walks remote listings page by page and mirrors them locally."""

    def __init__(
        self,
        accounts: List[Account],
        storage: Optional[LocalStorage] = None,
        verbose: bool = True
    ):
        """Initialize the reconciler.

        Args:
            accounts: Accounts whose mappings are reconciled
            storage: Local filesystem access
            verbose: Log informational actions (skip, download, delete, ...)
        """
        self.accounts = accounts
        self.storage = storage or LocalStorage()
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)

    @log_async_execution_time
    async def download_all(self) -> SyncResult:
        """Reconcile every mapping of every account concurrently.

        Mapping failures are logged and collected in ``SyncResult.errors``.
        """
        results = await asyncio.gather(*(self.download_account(account) for account in self.accounts))

        merged = SyncResult()
        for result in results:
            merged.merge(result)

        self.logger.info(
            "Sync pass completed",
            accounts=len(self.accounts),
            files=len(merged.file_set),
            folders=len(merged.folder_set),
            failed_mappings=len(merged.errors)
        )
        return merged

    async def download_account(self, account: Account) -> SyncResult:
        """Reconcile every mapping of one account concurrently."""
        outcomes = await asyncio.gather(
            *(self.download_mapping(account, mapping) for mapping in account.mappings),
            return_exceptions=True
        )

        result = SyncResult()
        for mapping, outcome in zip(account.mappings, outcomes):
            if isinstance(outcome, MappingSyncError):
                self.logger.error(
                    "Mapping sync failed",
                    account=account.name,
                    remote_path=mapping.remote_path,
                    local_path=mapping.local_path,
                    errors=[str(e) for e in outcome.errors]
                )
                result.merge(outcome.result)
                result.errors.append(outcome)
            elif isinstance(outcome, Exception):
                self.logger.error(
                    "Unexpected error during mapping sync",
                    account=account.name,
                    remote_path=mapping.remote_path,
                    local_path=mapping.local_path,
                    error=str(outcome)
                )
                result.errors.append(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result.merge(outcome)

        return result

    async def download_mapping(self, account: Account, mapping: Mapping) -> SyncResult:
        """Fetch every pending listing page of one mapping and apply it.

        The cursor is stored on the mapping as soon as a page arrives, before
        that page's entries are applied. Entries are applied concurrently and
        joined after the last page, or when the pass is interrupted.

        Raises:
            MappingSyncError: If listing or any entry failed
        """
        client = account.client
        logger = get_mapping_logger(
            self.__class__.__name__, account.name, mapping.remote_path, mapping.local_path
        )
        result = SyncResult()
        result.folder_set.add(mapping.local_path)

        tasks: List[asyncio.Future] = []
        errors: List[BaseException] = []

        try:
            has_more = True
            while has_more:
                if mapping.cursor is None:
                    page = await client.list_folder(
                        mapping.remote_path, recursive=True, include_deleted=True
                    )
                else:
                    page = await client.list_folder_continue(mapping.cursor)

                mapping.cursor = page.cursor
                has_more = page.has_more

                self._log(logger, "Received entries", entries=len(page.entries), has_more=has_more)
                tasks.extend(
                    asyncio.ensure_future(self._apply_entry(logger, account, mapping, entry, result))
                    for entry in page.entries
                )

        except CursorResetError as e:
            logger.warning("Listing cursor was reset, next pass lists from scratch", error=str(e))
            mapping.cursor = None
            errors.append(e)

        except Exception as e:
            logger.error("Listing failed", error=str(e))
            errors.append(e)

        finally:
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)
            errors.extend(outcome for outcome in outcomes if isinstance(outcome, BaseException))

        mapping.updated = True

        if errors:
            raise MappingSyncError(account.name, mapping, errors, result)

        return result

    async def get_account_file_list(self, account: Account, only_directories: bool = False) -> List[str]:
        """Local paths currently present below one account's mapped roots."""
        paths: List[str] = []
        for mapping in account.mappings:
            paths.extend(await self.storage.list_tree(mapping.local_path, only_directories))
        return paths

    async def get_file_list(self, only_directories: bool = False) -> List[str]:
        """Local paths currently present below every mapped root."""
        paths: List[str] = []
        for account in self.accounts:
            paths.extend(await self.get_account_file_list(account, only_directories))
        return paths

    async def _apply_entry(
        self,
        logger,
        account: Account,
        mapping: Mapping,
        entry: RemoteEntry,
        result: SyncResult
    ) -> None:
        local_path = mapping.local_path_for(entry.path)

        try:
            if isinstance(entry, FileEntry):
                await self._apply_file(logger, account, entry, local_path, result)
            elif isinstance(entry, FolderEntry):
                await self._apply_folder(logger, local_path, result)
            elif isinstance(entry, DeletedEntry):
                await self._apply_deleted(logger, local_path)

        except Exception as e:
            logger.error(
                "Failed to apply entry",
                entry_type=type(entry).__name__,
                entry_path=entry.path,
                path=local_path,
                error=str(e)
            )
            raise

    async def _apply_file(self, logger, account: Account, entry: FileEntry, local_path: str, result: SyncResult) -> None:
        await self.storage.ensure_directory(os.path.dirname(local_path))
        result.file_set.add(local_path)

        local_hash = await self.storage.content_hash(local_path)
        if local_hash == entry.content_hash:
            self._log(logger, "Skip downloading", path=local_path)
            return

        link = await account.client.get_temporary_link(entry.path)
        size = await self.storage.write_stream(local_path, account.client.stream_link(link))

        if local_hash == "":
            self._log(logger, "Download", path=local_path, size=size)
        else:
            self._log(logger, "Overwrite", path=local_path, size=size)

    async def _apply_folder(self, logger, local_path: str, result: SyncResult) -> None:
        if not await self.storage.is_directory(local_path):
            self._log(logger, "Create", path=local_path)
            await self.storage.ensure_directory(local_path)
        result.folder_set.add(local_path)

    async def _apply_deleted(self, logger, local_path: str) -> None:
        if not await self.storage.exists(local_path):
            return

        self._log(logger, "Delete", path=local_path)
        if await self.storage.is_directory(local_path):
            await self.storage.remove_tree(local_path)
        else:
            await self.storage.remove_file(local_path)

    def _log(self, logger, event: str, **kwargs) -> None:
        if self.verbose:
            logger.info(event, **kwargs)
