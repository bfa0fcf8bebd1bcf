"""Tests for mappings, sync results and cancellation tokens."""

import asyncio
import os
import time

import pytest

from dropbox_sync.config import AccountConfig, MappingConfig
from dropbox_sync.core import Account, Mapping, SyncResult, CancelToken

from fakes import FakeRemoteClient


class TestMapping:
    """Remote to local path translation."""

    def test_nested_path(self):
        mapping = Mapping(remote_path="/Work/Plan", local_path="/mirror/plan")

        assert mapping.local_path_for("/Work/Plan/a/b.txt") == os.path.join("/mirror/plan", "a", "b.txt")

    def test_mapping_root(self):
        mapping = Mapping(remote_path="/Work/Plan", local_path="/mirror/plan")

        assert mapping.local_path_for("/Work/Plan") == "/mirror/plan"

    def test_account_root(self):
        mapping = Mapping(remote_path="", local_path="/mirror")

        assert mapping.local_path_for("/Photos/x.jpg") == os.path.join("/mirror", "Photos", "x.jpg")

    def test_case_of_remote_prefix_is_ignored(self):
        mapping = Mapping(remote_path="/work", local_path="/mirror")

        assert mapping.local_path_for("/Work/Readme.md") == os.path.join("/mirror", "Readme.md")

    def test_from_config(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        mapping = Mapping.from_config(MappingConfig(remote_path="Docs", local_path="mirror"))

        assert mapping.remote_path == "/Docs"
        assert mapping.local_path == os.path.join(str(tmp_path), "mirror")
        assert mapping.cursor is None
        assert not mapping.updated

    def test_account_from_config_hides_token(self):
        config = AccountConfig(
            name="Work",
            access_token="very-secret",
            mappings=[MappingConfig(remote_path="/a", local_path="/tmp/a")]
        )

        account = Account.from_config(config, FakeRemoteClient("Work"))

        assert account.access_token == "very-secret"
        assert len(account.mappings) == 1
        assert "very-secret" not in repr(account)


class TestSyncResult:
    """Merging and stale path detection."""

    def test_merge(self):
        error = RuntimeError("boom")
        first = SyncResult(file_set={"/m/a"}, folder_set={"/m"})
        second = SyncResult(file_set={"/m/b"}, folder_set={"/m", "/m/sub"}, errors=[error])

        merged = first.merge(second)

        assert merged is first
        assert merged.file_set == {"/m/a", "/m/b"}
        assert merged.folder_set == {"/m", "/m/sub"}
        assert merged.errors == [error]
        assert not merged.success

    def test_stale_paths(self):
        result = SyncResult(file_set={"/m/a"}, folder_set={"/m", "/m/sub"})

        stale = result.stale_paths(["/m/a", "/m/sub", "/m/stray", "/m/sub/old"])

        assert stale == {"/m/stray", "/m/sub/old"}


class TestCancelToken:
    """Cooperative cancellation."""

    def test_cancel_cascades_to_children(self):
        root = CancelToken()
        child = root.child()
        grandchild = child.child()

        root.cancel()

        assert child.cancelled
        assert grandchild.cancelled

    def test_child_cancel_leaves_parent(self):
        root = CancelToken()
        child = root.child()

        child.cancel()

        assert child.cancelled
        assert not root.cancelled

    @pytest.mark.asyncio
    async def test_sleep_runs_full_duration(self):
        assert await CancelToken().sleep(0.01) is False

    @pytest.mark.asyncio
    async def test_sleep_wakes_on_cancel(self):
        token = CancelToken()
        asyncio.get_event_loop().call_later(0.02, token.cancel)

        started = time.monotonic()
        cancelled = await token.sleep(10)

        assert cancelled is True
        assert time.monotonic() - started < 5

    @pytest.mark.asyncio
    async def test_child_sleep_wakes_on_parent_cancel(self):
        root = CancelToken()
        child = root.child()
        asyncio.get_event_loop().call_later(0.02, root.cancel)

        assert await asyncio.wait_for(child.sleep(10), timeout=5) is True

    @pytest.mark.asyncio
    async def test_sleep_on_cancelled_token_returns_immediately(self):
        token = CancelToken()
        token.cancel()

        assert await token.sleep(10) is True
