"""Integration tests for PersistentStore.

Test Strategy:
1. Test write() commits atomically and rolls back on error
2. Test query() returns committed rows in insertion order
3. Test observe() emits an initial snapshot, then one per touching commit
4. Test unsubscribe and close() end observation cleanly

Each test follows the pattern:
- Given: An empty in-memory store
- When: A write body runs or an observer iterates
- Then: Committed state and emitted snapshots are as expected
"""
import asyncio
import threading

import pytest

from fpl_data.core.exceptions import StoreTransactionError
from fpl_data.models.records import PlayerRecord, TeamRecord


def _add_team(tx, id=1, index=1, name="A", code=10):
    return tx.add(TeamRecord(id=id, index=index, name=name, code=code))


class TestPersistentStoreWrites:
    """Transactional write behaviour."""

    @pytest.mark.asyncio
    async def test_write_commits_records(self, store):
        """Should make inserted rows visible after commit."""
        await store.write(lambda tx: _add_team(tx))

        teams = store.query(TeamRecord)

        assert len(teams) == 1
        assert teams[0].id == 1
        assert teams[0].name == "A"
        assert teams[0].code == 10

    @pytest.mark.asyncio
    async def test_write_returns_body_result(self, store):
        """Should return whatever the body returned."""
        result = await store.write(lambda tx: "done")

        assert result == "done"

    @pytest.mark.asyncio
    async def test_write_rolls_back_when_body_raises(self, store):
        """Should leave the previous state untouched when the body fails."""
        await store.write(lambda tx: _add_team(tx, id=1, name="Old"))

        def failing_body(tx):
            tx.delete_all(TeamRecord)
            _add_team(tx, id=2, name="New")
            raise ValueError("boom")

        with pytest.raises(StoreTransactionError) as exc_info:
            await store.write(failing_body)

        assert isinstance(exc_info.value.__cause__, ValueError)
        assert [team.name for team in store.query(TeamRecord)] == ["Old"]

    @pytest.mark.asyncio
    async def test_duplicate_remote_id_aborts_transaction(self, store):
        """Should reject two teams with the same remote id."""
        def body(tx):
            _add_team(tx, id=1, index=1, name="A")
            _add_team(tx, id=1, index=2, name="B")

        with pytest.raises(StoreTransactionError):
            await store.write(body)

        assert store.query(TeamRecord) == []

    @pytest.mark.asyncio
    async def test_transaction_query_sees_pending_inserts(self, store):
        """Should flush rows added earlier in the same body before querying."""
        def body(tx):
            _add_team(tx, id=1, code=10)
            return [team.code for team in tx.query(TeamRecord)]

        assert await store.write(body) == [10]


class TestPersistentStoreQueries:
    """Typed queries."""

    @pytest.mark.asyncio
    async def test_query_preserves_insertion_order(self, store):
        """Should return rows in the order they were inserted, not by id."""
        def body(tx):
            _add_team(tx, id=9, index=1, name="First", code=90)
            _add_team(tx, id=3, index=2, name="Second", code=30)

        await store.write(body)

        assert [team.name for team in store.query(TeamRecord)] == ["First", "Second"]

    @pytest.mark.asyncio
    async def test_query_with_criteria(self, store):
        """Should filter with SQLAlchemy criteria."""
        def body(tx):
            _add_team(tx, id=1, index=1, name="A", code=10)
            _add_team(tx, id=2, index=2, name="B", code=20)

        await store.write(body)

        teams = store.query(TeamRecord, TeamRecord.code == 20)

        assert [team.name for team in teams] == ["B"]

    @pytest.mark.asyncio
    async def test_query_loads_references(self, store):
        """Should return records whose references are usable after the session closed."""
        def body(tx):
            team = _add_team(tx, id=1, name="A", code=10)
            tx.add(PlayerRecord(
                id=100, first_name="X", second_name="Y", code=7, team_code=10,
                total_points=0, now_cost=50, goals_scored=0, assists=0, team=team,
            ))

        await store.write(body)

        player = store.query(PlayerRecord)[0]

        assert player.team is not None
        assert player.team.name == "A"


class TestPersistentStoreObserve:
    """Change notification."""

    @pytest.mark.asyncio
    async def test_observe_emits_initial_snapshot(self, store):
        """Should emit the current collection on subscribe."""
        await store.write(lambda tx: _add_team(tx))

        observed = store.observe(TeamRecord)
        snapshot = await observed.__anext__()
        await observed.aclose()

        assert [team.name for team in snapshot] == ["A"]

    @pytest.mark.asyncio
    async def test_observe_emits_one_snapshot_per_commit(self, store):
        """Should emit the full collection after every commit touching the type."""
        observed = store.observe(TeamRecord)
        assert await observed.__anext__() == ()

        await store.write(lambda tx: _add_team(tx, id=1, index=1, name="A", code=10))
        first = await asyncio.wait_for(observed.__anext__(), 1)

        await store.write(lambda tx: _add_team(tx, id=2, index=2, name="B", code=20))
        second = await asyncio.wait_for(observed.__anext__(), 1)

        await observed.aclose()

        assert [team.name for team in first] == ["A"]
        assert [team.name for team in second] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_observe_ignores_commits_of_other_types(self, store):
        """Should not emit for transactions that did not touch the type."""
        observed = store.observe(PlayerRecord)
        assert await observed.__anext__() == ()

        await store.write(lambda tx: _add_team(tx))
        await store.write(lambda tx: tx.add(PlayerRecord(
            id=100, first_name="X", second_name="Y", code=7, team_code=10,
            total_points=0, now_cost=50, goals_scored=0, assists=0,
        )))

        snapshot = await asyncio.wait_for(observed.__anext__(), 1)
        await observed.aclose()

        # The team-only commit produced nothing, so the first update has the player
        assert [player.id for player in snapshot] == [100]

    @pytest.mark.asyncio
    async def test_rolled_back_write_does_not_notify(self, store):
        """Should not emit anything for a failed transaction."""
        observed = store.observe(TeamRecord)
        await observed.__anext__()

        def failing_body(tx):
            _add_team(tx)
            raise RuntimeError("boom")

        with pytest.raises(StoreTransactionError):
            await store.write(failing_body)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(observed.__anext__(), 0.2)

        await observed.aclose()

    @pytest.mark.asyncio
    async def test_initial_snapshot_read_off_event_loop(self, store, monkeypatch):
        """Should load the initial snapshot in a worker thread."""
        reader_threads = []
        load_snapshot = store._load_snapshot

        def recording_load(model):
            reader_threads.append(threading.get_ident())
            return load_snapshot(model)

        monkeypatch.setattr(store, "_load_snapshot", recording_load)

        observed = store.observe(TeamRecord)
        await observed.__anext__()
        await observed.aclose()

        assert reader_threads
        assert threading.get_ident() not in reader_threads

    @pytest.mark.asyncio
    async def test_notifications_older_than_initial_snapshot_are_skipped(self, store):
        """Should not emit a commit the initial snapshot already included."""
        await store.write(lambda tx: _add_team(tx, id=1, index=1, name="A", code=10))

        observed = store.observe(TeamRecord)
        initial = await observed.__anext__()

        # A late notification for the commit already read must not rewind the observer
        store._dispatch(1, {TeamRecord: ()})
        await store.write(lambda tx: _add_team(tx, id=2, index=2, name="B", code=20))
        latest = await asyncio.wait_for(observed.__anext__(), 1)
        await observed.aclose()

        assert [team.name for team in initial] == ["A"]
        assert [team.name for team in latest] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_unsubscribe_removes_observer(self, store):
        """Should forget an observer once it stops iterating."""
        observed = store.observe(TeamRecord)
        await observed.__anext__()
        assert store.observer_count(TeamRecord) == 1

        await observed.aclose()

        assert store.observer_count(TeamRecord) == 0

    @pytest.mark.asyncio
    async def test_close_ends_observation(self, store):
        """Should end every observer when the store closes."""
        observed = store.observe(TeamRecord)
        await observed.__anext__()

        store.close()

        with pytest.raises(StopAsyncIteration):
            await asyncio.wait_for(observed.__anext__(), 1)
