"""
Async document store on SQLite.

A small Firestore-shaped store: documents are JSON objects addressed by
slash-separated paths (collection/doc[/subcollection/doc...]). Writes go
through transactions so multi-document updates commit together, and
subscribers are told about committed changes only.

File: documents/store.py
Created: 2026-10-12
Last Modified: 2026-10-19
"""

import asyncio
import inspect
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Set, Tuple, TypeVar, Union

import aiosqlite

from ..errors import InvalidArgument, LifeSignalError, NotFound, from_exception
from .common import LOCAL_DB_PATH, is_document_path, parent_collection, split_path
from .create_tables import init_document_store

log = logging.getLogger(__name__)

T = TypeVar("T")

# sqlite3's own lock wait when no timeout is configured
SQLITE_BUSY_TIMEOUT = 5.0


@dataclass(frozen=True)
class DocumentChange:
    """A committed write to one document. `data` is None for deletions."""

    path: str
    data: Optional[Dict[str, Any]]

    @property
    def doc_id(self) -> str:
        return split_path(self.path)[1]

    @property
    def deleted(self) -> bool:
        return self.data is None


ChangeCallback = Callable[[List[DocumentChange]], Union[None, Awaitable[None]]]


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _encode(data: Dict[str, Any]) -> str:
    if not isinstance(data, dict):
        raise InvalidArgument(f"Document data must be an object, got {type(data).__name__}")
    return json.dumps(data, default=_json_default)


def _check_document_path(path: str) -> Tuple[str, str]:
    try:
        return split_path(path)
    except ValueError as e:
        raise InvalidArgument(str(e)) from e


class Subscription:
    """
    Handle for a watch registration.

    `cancel()` is idempotent. Once it returns, the callback is never invoked
    again, including for changes committed before the cancel whose delivery
    had not started yet.
    """

    def __init__(self, store: "DocumentStore", target: str, callback: ChangeCallback):
        self.target = target
        self._store = store
        self._callback = callback
        self._active = True
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._store._unregister(self)
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        log.debug(f"Subscription to {self.target} cancelled")

    def _deliver(self, changes: List[DocumentChange]) -> None:
        if not self._active:
            return
        task = asyncio.get_running_loop().create_task(self._run(changes))
        self._tasks.add(task)
        self._store._pending.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(self._store._pending.discard)

    async def _run(self, changes: List[DocumentChange]) -> None:
        if not self._active:
            return
        try:
            result = self._callback(changes)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error(f"Watch callback for {self.target} failed: {e}")


class DocumentTransaction:
    """Reads and writes against one open SQLite transaction."""

    def __init__(self, conn: aiosqlite.Connection):
        self._conn = conn
        self.changes: Dict[str, Optional[Dict[str, Any]]] = {}

    async def get(self, path: str) -> Optional[Dict[str, Any]]:
        _check_document_path(path)
        async with self._conn.execute("SELECT data FROM documents WHERE path = ?", (path,)) as cursor:
            row = await cursor.fetchone()
            if row:
                return json.loads(row[0])
        return None

    async def exists(self, path: str) -> bool:
        return await self.get(path) is not None

    async def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        collection, doc_id = _check_document_path(path)

        if merge:
            existing = await self.get(path) or {}
            existing.update(data)
            data = existing

        await self._conn.execute("""
            INSERT INTO documents (path, collection, doc_id, data, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(path) DO UPDATE SET
                data = excluded.data,
                updated_at = excluded.updated_at
        """, (
            path,
            collection,
            doc_id,
            _encode(data),
            datetime.now(timezone.utc).isoformat(),
        ))
        self.changes[path] = dict(data)

    async def update(self, path: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Merge fields into an existing document. Raises NotFound if absent."""
        existing = await self.get(path)
        if existing is None:
            raise NotFound(f"Document {path} not found")
        existing.update(fields)
        await self.set(path, existing)
        return existing

    async def delete(self, path: str) -> bool:
        """Delete a document. Returns False (not an error) if it was absent."""
        _check_document_path(path)
        cursor = await self._conn.execute("DELETE FROM documents WHERE path = ?", (path,))
        deleted = cursor.rowcount > 0
        await cursor.close()
        if deleted:
            self.changes[path] = None
        return deleted

    async def list_collection(self, collection: str) -> List[Tuple[str, Dict[str, Any]]]:
        """All (doc_id, data) pairs directly inside a collection, ordered by id."""
        documents = []
        async with self._conn.execute(
            "SELECT doc_id, data FROM documents WHERE collection = ? ORDER BY doc_id",
            (collection.strip("/"),),
        ) as cursor:
            async for row in cursor:
                documents.append((row[0], json.loads(row[1])))
        return documents

    async def query(self, collection: str, field: str, value: Any) -> List[Tuple[str, Dict[str, Any]]]:
        """Documents in a collection whose field equals value."""
        if not field:
            raise InvalidArgument("Query field must not be empty")
        return [
            (doc_id, data)
            for doc_id, data in await self.list_collection(collection)
            if field in data and data[field] == value
        ]


class DocumentStore:
    """
    Async document store with get/set/update/delete/query/watch.

    Every one-shot call accepts a `timeout` in seconds; when omitted the
    store-level default applies (None means no limit).
    """

    def __init__(self, db_path: Optional[Path] = None, timeout: Optional[float] = None):
        self.db_path = Path(db_path or LOCAL_DB_PATH)
        self.timeout = timeout
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._pending: Set[asyncio.Task] = set()

    async def initialize(self) -> "DocumentStore":
        await init_document_store(self.db_path)
        return self

    def _limit(self, timeout: Optional[float]) -> Optional[float]:
        return timeout if timeout is not None else self.timeout

    @asynccontextmanager
    async def transaction(self, timeout: Optional[float] = None) -> AsyncIterator[DocumentTransaction]:
        """
        Open a write transaction. All writes commit together when the block
        exits normally and roll back if it raises. Watchers are notified
        after the commit.

        Waiting for another writer's lock is bounded by `timeout` (the store
        default when omitted, SQLite's own 5s wait when neither is set).
        """
        limit = self._limit(timeout)
        busy_timeout = limit if limit is not None else SQLITE_BUSY_TIMEOUT
        async with aiosqlite.connect(self.db_path, isolation_level=None, timeout=busy_timeout) as conn:
            await conn.execute("BEGIN IMMEDIATE")
            txn = DocumentTransaction(conn)
            try:
                yield txn
            except BaseException:
                await conn.execute("ROLLBACK")
                raise
            await conn.execute("COMMIT")

        if txn.changes:
            self._publish(txn.changes)

    async def run(self, operation: str, coro: Awaitable[T], timeout: Optional[float] = None) -> T:
        """
        Await one store-backed operation under the effective timeout.

        Taxonomy errors pass through; anything else (a locked database, a
        timeout) is mapped with `from_exception`, logged and raised.
        """
        try:
            return await asyncio.wait_for(coro, self._limit(timeout))
        except LifeSignalError:
            raise
        except Exception as e:
            error = from_exception(e, operation)
            log.error(f"Document store {operation} failed: {error}")
            raise error from e

    async def _get(self, path: str, limit: Optional[float]) -> Optional[Dict[str, Any]]:
        async with self.transaction(limit) as txn:
            return await txn.get(path)

    async def _set(self, path: str, data: Dict[str, Any], merge: bool, limit: Optional[float]) -> None:
        async with self.transaction(limit) as txn:
            await txn.set(path, data, merge=merge)

    async def _update(self, path: str, fields: Dict[str, Any], limit: Optional[float]) -> Dict[str, Any]:
        async with self.transaction(limit) as txn:
            return await txn.update(path, fields)

    async def _delete(self, path: str, limit: Optional[float]) -> bool:
        async with self.transaction(limit) as txn:
            return await txn.delete(path)

    async def _list(self, collection: str, limit: Optional[float]) -> List[Tuple[str, Dict[str, Any]]]:
        async with self.transaction(limit) as txn:
            return await txn.list_collection(collection)

    async def _query(
        self,
        collection: str,
        field: str,
        value: Any,
        limit: Optional[float],
    ) -> List[Tuple[str, Dict[str, Any]]]:
        async with self.transaction(limit) as txn:
            return await txn.query(collection, field, value)

    async def get(self, path: str, timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
        limit = self._limit(timeout)
        return await self.run("get", self._get(path, limit), limit)

    async def set(self, path: str, data: Dict[str, Any], merge: bool = False, timeout: Optional[float] = None) -> None:
        limit = self._limit(timeout)
        await self.run("set", self._set(path, data, merge, limit), limit)

    async def update(self, path: str, fields: Dict[str, Any], timeout: Optional[float] = None) -> Dict[str, Any]:
        limit = self._limit(timeout)
        return await self.run("update", self._update(path, fields, limit), limit)

    async def delete(self, path: str, timeout: Optional[float] = None) -> bool:
        limit = self._limit(timeout)
        return await self.run("delete", self._delete(path, limit), limit)

    async def list_collection(self, collection: str, timeout: Optional[float] = None) -> List[Tuple[str, Dict[str, Any]]]:
        limit = self._limit(timeout)
        return await self.run("list", self._list(collection, limit), limit)

    async def query(
        self,
        collection: str,
        field: str,
        value: Any,
        timeout: Optional[float] = None,
    ) -> List[Tuple[str, Dict[str, Any]]]:
        limit = self._limit(timeout)
        return await self.run("query", self._query(collection, field, value, limit), limit)

    def watch(self, target: str, callback: ChangeCallback) -> Subscription:
        """
        Subscribe to committed changes on a document path or a collection path.

        The callback receives the list of changes from one commit and may be
        a plain function or a coroutine function.
        """
        target = target.strip("/")
        if not target:
            raise InvalidArgument("Watch target must not be empty")
        subscription = Subscription(self, target, callback)
        self._subscriptions.setdefault(target, []).append(subscription)
        kind = "document" if is_document_path(target) else "collection"
        log.debug(f"Watching {kind} {target}")
        return subscription

    def _unregister(self, subscription: Subscription) -> None:
        subscribers = self._subscriptions.get(subscription.target, [])
        if subscription in subscribers:
            subscribers.remove(subscription)
        if not subscribers:
            self._subscriptions.pop(subscription.target, None)

    def _publish(self, changes: Dict[str, Optional[Dict[str, Any]]]) -> None:
        by_target: Dict[str, List[DocumentChange]] = {}
        for path, data in changes.items():
            change = DocumentChange(path=path, data=data)
            for target in (path, parent_collection(path)):
                if target in self._subscriptions:
                    by_target.setdefault(target, []).append(change)

        for target, target_changes in by_target.items():
            for subscription in list(self._subscriptions.get(target, [])):
                subscription._deliver(target_changes)

    async def wait_for_deliveries(self) -> None:
        """Wait until every scheduled watch callback has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def subscription_count(self) -> int:
        return sum(len(subs) for subs in self._subscriptions.values())
