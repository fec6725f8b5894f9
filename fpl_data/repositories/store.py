"""
Persistent store for the local FPL cache.

Wraps a SQLAlchemy engine with three operations:

- write(body): run `body` inside one transaction with exclusive write access.
  Everything `body` does becomes visible atomically on commit; if it raises,
  the transaction is rolled back and StoreTransactionError is raised.
- query(model, *criteria): read matching records in insertion order.
- observe(model): async iterator of full-collection snapshots, one on
  subscribe and one per committed transaction that touched `model`.

Writes run in a worker thread so the event loop keeps serving subscribers
while SQLite commits. Snapshots are taken in that thread right after the
commit, under the writer lock, so every snapshot matches exactly one commit
and observers receive them in commit order.
"""
import asyncio
import threading
from collections import defaultdict
from contextlib import nullcontext
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Set, Tuple, Type, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from fpl_data.core.database import create_session_factory, create_store_engine, init_db, is_in_memory
from fpl_data.core.exceptions import StoreTransactionError
from fpl_data.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Snapshot = Tuple[Any, ...]

_CLOSED = object()


class WriteTransaction:
    """
    Handle passed to a write body.

    Tracks which record types the body touched so the store knows whom to
    notify after commit.
    """

    def __init__(self, session: Session):
        self._session = session
        self.touched: Set[type] = set()

    def delete_all(self, model: Type[T]) -> None:
        """Delete every row of `model`."""
        self._session.execute(delete(model))
        self.touched.add(model)

    def add(self, record: T) -> T:
        """Insert a new record."""
        self._session.add(record)
        self.touched.add(type(record))
        return record

    def query(self, model: Type[T], *criteria) -> List[T]:
        """
        Read `model` rows as seen by this transaction.

        Pending inserts are flushed first, so rows added earlier in the same
        body are visible.
        """
        stmt = select(model).where(*criteria).order_by(model.row_id)
        return list(self._session.execute(stmt).scalars().unique().all())


class PersistentStore:
    """
    Transactional store with per-type change notification.

    A single writer runs at a time. File databases use WAL so readers see
    either the pre- or post-commit state without waiting for the writer. The
    in-memory database lives on one shared connection, so there reads also
    take the writer lock.
    """

    def __init__(self, engine: Optional[Engine] = None, database_url: Optional[str] = None):
        """
        Initialize the store and create tables if needed.

        Args:
            engine: Pre-built engine (takes precedence over database_url)
            database_url: SQLAlchemy URL, defaults to settings.DATABASE_URL
        """
        self.engine = engine or create_store_engine(database_url)
        self._session_factory = create_session_factory(self.engine)
        self._write_lock = threading.Lock()
        if is_in_memory(str(self.engine.url)):
            self._read_lock = self._write_lock
        else:
            self._read_lock = nullcontext()
        self._observers: Dict[type, List[asyncio.Queue]] = defaultdict(list)
        # Number of committed write transactions, advanced under the writer lock
        self._commit_seq = 0
        self._closed = False

        init_db(self.engine)

    # ========================================================================
    # Writes
    # ========================================================================

    async def write(self, body: Callable[[WriteTransaction], T]) -> T:
        """
        Run `body` in one write transaction and return its result.

        Raises:
            StoreTransactionError: If `body` or the commit raised. Nothing
                written by `body` is visible afterwards.
        """
        loop = asyncio.get_running_loop()
        return await asyncio.to_thread(self._write_blocking, body, loop)

    def _write_blocking(self, body: Callable[[WriteTransaction], T], loop: asyncio.AbstractEventLoop) -> T:
        with self._write_lock:
            session = self._session_factory()
            tx = WriteTransaction(session)
            try:
                with session.begin():
                    result = body(tx)
            except Exception as e:
                logger.error(f"Write transaction rolled back: {e}")
                raise StoreTransactionError(f"write transaction rolled back: {e}") from e
            finally:
                session.close()

            self._commit_seq += 1
            seq = self._commit_seq
            snapshots = {model: self._load_snapshot(model) for model in tx.touched}

        loop.call_soon_threadsafe(self._dispatch, seq, snapshots)
        return result

    # ========================================================================
    # Reads
    # ========================================================================

    def query(self, model: Type[T], *criteria) -> List[T]:
        """
        Return committed `model` rows matching `criteria`, in insertion order.

        Example:
            store.query(TeamRecord, TeamRecord.code == 3)
        """
        with self._read_lock:
            return list(self._select(model, *criteria))

    def _load_snapshot(self, model: type) -> Snapshot:
        return tuple(self._select(model))

    def _select(self, model: Type[T], *criteria) -> List[T]:
        session = self._session_factory()
        try:
            stmt = select(model).where(*criteria).order_by(model.row_id)
            return list(session.execute(stmt).scalars().unique().all())
        finally:
            session.close()

    # ========================================================================
    # Change notification
    # ========================================================================

    async def observe(self, model: type) -> AsyncIterator[Snapshot]:
        """
        Yield the current `model` collection, then one snapshot per commit
        touching `model`.

        Never ends on its own; stop iterating (or cancel the consuming task)
        to unsubscribe. Ends when the store is closed.

        The initial snapshot is read off the event loop. Notifications for
        commits it is known to include are skipped, so snapshots never go
        backwards.
        """
        if self._closed:
            return
        queue: asyncio.Queue = asyncio.Queue()
        self._observers[model].append(queue)
        try:
            initial_seq, initial = await asyncio.to_thread(self._load_initial, model)
            yield initial
            while True:
                item = await queue.get()
                if item is _CLOSED:
                    return
                seq, snapshot = item
                if seq <= initial_seq:
                    continue
                yield snapshot
        finally:
            self._observers[model].remove(queue)

    def observer_count(self, model: type) -> int:
        """Number of live observe() iterators for `model`."""
        return len(self._observers.get(model, []))

    def _load_initial(self, model: type) -> Tuple[int, Snapshot]:
        # The sequence is read first, so the snapshot reflects at least that commit
        with self._read_lock:
            seq = self._commit_seq
            return seq, self._load_snapshot(model)

    def _dispatch(self, seq: int, snapshots: Dict[type, Snapshot]) -> None:
        for model, snapshot in snapshots.items():
            for queue in list(self._observers.get(model, [])):
                queue.put_nowait((seq, snapshot))

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def close(self) -> None:
        """End every observe() iterator and release the engine."""
        if self._closed:
            return
        self._closed = True
        for queues in self._observers.values():
            for queue in queues:
                queue.put_nowait(_CLOSED)
        self.engine.dispose()
