"""Tests for long-poll change watching."""

import asyncio

import pytest

from dropbox_sync.api_clients.base import APIConnectionError, LongpollResult
from dropbox_sync.core import Account, Mapping, CancelToken, ChangeWatcher

from fakes import FakeRemoteClient, make_account, changes_after


def longpolls(client, cursor=None):
    return sum(
        1 for call in client.calls
        if call[0] == "list_folder_longpoll" and (cursor is None or call[1] == cursor)
    )


class TestWaitMapping:
    """Single-mapping waits."""

    @pytest.mark.asyncio
    async def test_change_returns_true(self, tmp_path):
        client = FakeRemoteClient()
        client.longpoll_handler = changes_after(0)
        account = make_account(client, tmp_path, cursor="c1")
        watcher = ChangeWatcher([account], wait_interval=30)

        changed = await watcher.wait_mapping(account, account.mappings[0], CancelToken())

        assert changed is True
        assert client.calls == [("list_folder_longpoll", "c1")]

    @pytest.mark.asyncio
    async def test_no_cursor_sleeps_without_polling(self, tmp_path):
        client = FakeRemoteClient()
        account = make_account(client, tmp_path)
        watcher = ChangeWatcher([account], wait_interval=0.01)

        changed = await watcher.wait_mapping(account, account.mappings[0], CancelToken())

        assert changed is None
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_cancelled_token_returns_false(self, tmp_path):
        client = FakeRemoteClient()
        client.longpoll_handler = changes_after(0)
        account = make_account(client, tmp_path, cursor="c1")
        cancel = CancelToken()
        cancel.cancel()

        changed = await ChangeWatcher([account]).wait_mapping(account, account.mappings[0], cancel)

        assert changed is False
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self, tmp_path):
        client = FakeRemoteClient()
        client.longpoll_handler = changes_after(0, changes=False, backoff=10)
        account = make_account(client, tmp_path, cursor="c1")
        watcher = ChangeWatcher([account], wait_interval=30)
        cancel = CancelToken()

        asyncio.get_event_loop().call_later(0.05, cancel.cancel)
        changed = await asyncio.wait_for(
            watcher.wait_mapping(account, account.mappings[0], cancel), timeout=5
        )

        assert changed is False
        assert longpolls(client) == 1

    @pytest.mark.asyncio
    async def test_backoff_then_change(self, tmp_path):
        answers = [
            LongpollResult(changes=False, backoff=0.01),
            LongpollResult(changes=True, backoff=None),
        ]

        async def handler(cursor, timeout):
            return answers.pop(0)

        client = FakeRemoteClient()
        client.longpoll_handler = handler
        account = make_account(client, tmp_path, cursor="c1")

        changed = await ChangeWatcher([account]).wait_mapping(account, account.mappings[0], CancelToken())

        assert changed is True
        assert longpolls(client) == 2

    @pytest.mark.asyncio
    async def test_transport_error_is_retried(self, tmp_path):
        attempts = []

        async def handler(cursor, timeout):
            attempts.append(cursor)
            if len(attempts) == 1:
                raise APIConnectionError("connection reset")
            return LongpollResult(changes=True, backoff=None)

        client = FakeRemoteClient()
        client.longpoll_handler = handler
        account = make_account(client, tmp_path, cursor="c1")
        watcher = ChangeWatcher([account], error_retry_delay=0)

        changed = await watcher.wait_mapping(account, account.mappings[0], CancelToken())

        assert changed is True
        assert longpolls(client) == 2

    @pytest.mark.asyncio
    async def test_timeout_is_wait_interval(self, tmp_path):
        timeouts = []

        async def handler(cursor, timeout):
            timeouts.append(timeout)
            return LongpollResult(changes=True, backoff=None)

        client = FakeRemoteClient()
        client.longpoll_handler = handler
        account = make_account(client, tmp_path, cursor="c1")

        await ChangeWatcher([account], wait_interval=120).wait_mapping(account, account.mappings[0], CancelToken())

        assert timeouts == [120]


class TestWaitChanges:
    """Races across mappings and accounts."""

    @pytest.mark.asyncio
    async def test_first_change_wins_and_cancels_the_rest(self, tmp_path):
        async def handler(cursor, timeout):
            if cursor == "c2":
                await asyncio.sleep(0.05)
                return LongpollResult(changes=True, backoff=None)
            await asyncio.sleep(0.3)
            return LongpollResult(changes=False, backoff=None)

        client = FakeRemoteClient()
        client.longpoll_handler = handler
        account = Account(
            name=client.account_name,
            client=client,
            mappings=[
                Mapping(remote_path=f"/m{i}", local_path=str(tmp_path / f"m{i}"), cursor=f"c{i}")
                for i in (1, 2, 3)
            ]
        )
        watcher = ChangeWatcher([account], wait_interval=30)
        cancel = CancelToken()

        changed = await asyncio.wait_for(watcher.wait_changes(cancel), timeout=5)

        assert changed is True
        assert cancel.cancelled

        await asyncio.wait_for(watcher.drain(), timeout=5)
        assert longpolls(client, "c1") == 1
        assert longpolls(client, "c2") == 1
        assert longpolls(client, "c3") == 1

    @pytest.mark.asyncio
    async def test_losing_branches_exit_without_signaling(self, tmp_path):
        async def handler(cursor, timeout):
            if cursor == "c2":
                await asyncio.sleep(0.05)
                return LongpollResult(changes=True, backoff=None)
            await asyncio.sleep(0.2)
            return LongpollResult(changes=False, backoff=None)

        client = FakeRemoteClient()
        client.longpoll_handler = handler
        account = Account(
            name=client.account_name,
            client=client,
            mappings=[
                Mapping(remote_path=f"/m{i}", local_path=str(tmp_path / f"m{i}"), cursor=f"c{i}")
                for i in (1, 2, 3)
            ]
        )
        watcher = ChangeWatcher([account], wait_interval=30)
        cancel = CancelToken()

        branches = [
            asyncio.ensure_future(watcher.wait_mapping(account, mapping, cancel))
            for mapping in account.mappings
        ]
        assert await asyncio.wait_for(branches[1], timeout=5) is True
        cancel.cancel()

        outcomes = await asyncio.wait_for(asyncio.gather(*branches), timeout=5)

        assert outcomes == [False, True, False]
        assert longpolls(client) == 3

    @pytest.mark.asyncio
    async def test_change_in_any_account(self, tmp_path):
        quiet = FakeRemoteClient("quiet")
        quiet.longpoll_handler = changes_after(0.2, changes=False)
        busy = FakeRemoteClient("busy")
        busy.longpoll_handler = changes_after(0.02)
        watcher = ChangeWatcher([
            make_account(quiet, tmp_path / "quiet", cursor="q1"),
            make_account(busy, tmp_path / "busy", cursor="b1"),
        ])

        changed = await asyncio.wait_for(watcher.wait_changes(), timeout=5)
        await asyncio.wait_for(watcher.drain(), timeout=5)

        assert changed is True
        assert longpolls(quiet) == 1
        assert longpolls(busy) == 1

    @pytest.mark.asyncio
    async def test_unlisted_mapping_ends_the_wait(self, tmp_path):
        client = FakeRemoteClient()
        client.longpoll_handler = changes_after(0.01, changes=False)
        account = Account(
            name=client.account_name,
            client=client,
            mappings=[
                Mapping(remote_path="/listed", local_path=str(tmp_path / "listed"), cursor="c1"),
                Mapping(remote_path="/new", local_path=str(tmp_path / "new")),
            ]
        )
        watcher = ChangeWatcher([account], wait_interval=0.05)

        changed = await asyncio.wait_for(watcher.wait_changes(), timeout=5)
        await asyncio.wait_for(watcher.drain(), timeout=5)

        assert changed is False
        assert longpolls(client) >= 1

    @pytest.mark.asyncio
    async def test_parent_cancel_stops_the_wait(self, tmp_path):
        client = FakeRemoteClient()
        client.longpoll_handler = changes_after(0.01, changes=False, backoff=5)
        watcher = ChangeWatcher([make_account(client, tmp_path, cursor="c1")])
        root = CancelToken()

        asyncio.get_event_loop().call_later(0.05, root.cancel)
        changed = await asyncio.wait_for(watcher.wait_changes(root.child()), timeout=5)

        assert changed is False
        assert longpolls(client) == 1

    @pytest.mark.asyncio
    async def test_wait_account_only_polls_that_account(self, tmp_path):
        first = FakeRemoteClient("first")
        first.longpoll_handler = changes_after(0)
        second = FakeRemoteClient("second")
        second.longpoll_handler = changes_after(0)
        accounts = [
            make_account(first, tmp_path / "first", cursor="f1"),
            make_account(second, tmp_path / "second", cursor="s1"),
        ]
        watcher = ChangeWatcher(accounts)

        changed = await watcher.wait_account(accounts[0])

        assert changed is True
        assert longpolls(first) == 1
        assert longpolls(second) == 0

    @pytest.mark.asyncio
    async def test_no_mappings_sleeps_and_returns_false(self):
        watcher = ChangeWatcher([], wait_interval=0.01)

        assert await watcher.wait_changes() is False
