"""
Pytest fixtures for mongo-bulk tests.

Provides a mocked RPC client with server-side cursor paging and fault
injection, plus MongoClient fixtures for testing without actual network
connections.
"""

from __future__ import annotations

import io
import sys
import threading
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest


class MockRpcMongo:
    """Mock for the RPC mongo namespace."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, list[dict[str, Any]]]] = {}
        self._cursors: dict[int, list[dict[str, Any]]] = {}
        self._next_cursor_id = 1000
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        # Queued faults: an Exception is raised, anything else is returned
        # as the reply.
        self.find_faults: list[Any] = []
        self.get_more_faults: list[Any] = []
        self.write_faults: list[Any] = []
        self.killed: list[int] = []

    def seed(self, database: str, collection: str, documents: list[dict[str, Any]]) -> None:
        """Insert documents directly into the mock store."""
        self._get_collection_data(database, collection).extend(dict(d) for d in documents)

    def documents(self, database: str, collection: str) -> list[dict[str, Any]]:
        """Return the stored documents of a collection."""
        return self._get_collection_data(database, collection)

    def calls_to(self, method: str) -> list[tuple[Any, ...]]:
        """Return the arguments of every call to ``method``."""
        return [args for name, args in self.calls if name == method]

    def _get_collection_data(self, database: str, collection: str) -> list[dict[str, Any]]:
        """Get or create collection data."""
        if database not in self._data:
            self._data[database] = {}
        if collection not in self._data[database]:
            self._data[database][collection] = []
        return self._data[database][collection]

    def _fault(self, faults: list[Any]) -> Any:
        if not faults:
            return None
        fault = faults.pop(0)
        if isinstance(fault, BaseException):
            raise fault
        return fault

    def _page(self, cursor_id: int, batch_size: int) -> dict[str, Any]:
        remaining = self._cursors.get(cursor_id, [])
        batch, rest = remaining[:batch_size], remaining[batch_size:]
        if rest:
            self._cursors[cursor_id] = rest
            return {"cursorId": cursor_id, "batch": batch}
        self._cursors.pop(cursor_id, None)
        return {"cursorId": 0, "batch": batch}

    async def countDocuments(
        self,
        database: str,
        collection: str,
        filter: dict[str, Any],
    ) -> int:
        """Mock countDocuments."""
        self.calls.append(("countDocuments", (database, collection, filter)))
        data = self._get_collection_data(database, collection)
        return sum(1 for doc in data if self._matches(doc, filter))

    async def find(
        self,
        database: str,
        collection: str,
        filter: dict[str, Any],
        options: dict[str, Any],
    ) -> dict[str, Any]:
        """Mock find, opening a server-side cursor over a snapshot."""
        self.calls.append(("find", (database, collection, filter, options)))
        reply = self._fault(self.find_faults)
        if reply is not None:
            return reply

        data = self._get_collection_data(database, collection)
        results = [
            self._project(doc, options.get("projection"))
            for doc in data
            if self._matches(doc, filter)
        ]

        cursor_id = self._next_cursor_id
        self._next_cursor_id += 1
        self._cursors[cursor_id] = results
        return self._page(cursor_id, options.get("batchSize") or 101)

    async def getMore(
        self,
        database: str,
        collection: str,
        cursor_id: int,
        batch_size: int,
    ) -> dict[str, Any]:
        """Mock getMore."""
        self.calls.append(("getMore", (database, collection, cursor_id, batch_size)))
        reply = self._fault(self.get_more_faults)
        if reply is not None:
            return reply

        if cursor_id not in self._cursors:
            return {"error": True, "message": f"cursor id {cursor_id} not found", "code": 43}
        return self._page(cursor_id, batch_size)

    async def killCursors(
        self,
        database: str,
        collection: str,
        cursor_ids: list[int],
    ) -> dict[str, Any]:
        """Mock killCursors."""
        self.calls.append(("killCursors", (database, collection, cursor_ids)))
        for cursor_id in cursor_ids:
            self._cursors.pop(cursor_id, None)
            self.killed.append(cursor_id)
        return {"cursorsKilled": cursor_ids}

    async def updateMany(
        self,
        database: str,
        collection: str,
        filter: dict[str, Any],
        update: dict[str, Any],
        options: dict[str, Any],
    ) -> dict[str, Any]:
        """Mock updateMany."""
        self.calls.append(("updateMany", (database, collection, filter, update, options)))
        reply = self._fault(self.write_faults)
        if reply is not None:
            return reply

        data = self._get_collection_data(database, collection)
        matched = 0
        modified = 0

        for doc in data:
            if self._matches(doc, filter):
                matched += 1
                if self._apply_update(doc, update):
                    modified += 1

        return {
            "matchedCount": matched,
            "modifiedCount": modified,
            "acknowledged": True,
        }

    async def deleteMany(
        self,
        database: str,
        collection: str,
        filter: dict[str, Any],
    ) -> dict[str, Any]:
        """Mock deleteMany."""
        self.calls.append(("deleteMany", (database, collection, filter)))
        reply = self._fault(self.write_faults)
        if reply is not None:
            return reply

        data = self._get_collection_data(database, collection)
        original_len = len(data)

        self._data[database][collection] = [
            doc for doc in data if not self._matches(doc, filter)
        ]
        deleted = original_len - len(self._data[database][collection])

        return {"deletedCount": deleted, "acknowledged": True}

    def _matches(self, doc: dict[str, Any], filter: dict[str, Any]) -> bool:
        """Check if document matches filter."""
        if not filter:
            return True

        for key, value in filter.items():
            doc_value = doc.get(key)

            if isinstance(value, dict):
                for op, op_value in value.items():
                    if op == "$ne":
                        if doc_value == op_value:
                            return False
                    elif op == "$gt":
                        if doc_value is None or doc_value <= op_value:
                            return False
                    elif op == "$lt":
                        if doc_value is None or doc_value >= op_value:
                            return False
                    elif op == "$in":
                        if doc_value not in op_value:
                            return False
                    elif op == "$exists":
                        if bool(op_value) != (key in doc):
                            return False
            elif doc_value != value:
                return False

        return True

    def _apply_update(self, doc: dict[str, Any], update: dict[str, Any]) -> bool:
        """Apply update operators to document."""
        modified = False

        for op, fields in update.items():
            if op == "$set":
                for key, value in fields.items():
                    if doc.get(key) != value:
                        doc[key] = value
                        modified = True
            elif op == "$unset":
                for key in fields:
                    if key in doc:
                        del doc[key]
                        modified = True
            elif op == "$inc":
                for key, value in fields.items():
                    doc[key] = doc.get(key, 0) + value
                    modified = True

        return modified

    def _project(
        self,
        doc: dict[str, Any],
        projection: dict[str, int] | None,
    ) -> dict[str, Any]:
        """Apply an inclusion projection to a document."""
        if not projection:
            return dict(doc)
        return {key: doc[key] for key, include in projection.items() if include and key in doc}


class MockRpcClient:
    """Mock RPC client for testing."""

    def __init__(self) -> None:
        self.mongo = MockRpcMongo()
        self._closed = False

    async def close(self) -> None:
        """Close the mock client."""
        self._closed = True


def make_docs(count: int, **fields: Any) -> list[dict[str, Any]]:
    """Build ``count`` documents with integer ids and the given fields."""
    return [{"_id": i, **fields} for i in range(1, count + 1)]


@pytest.fixture
def mock_rpc() -> MockRpcClient:
    """Create a mock RPC client."""
    return MockRpcClient()


@pytest.fixture
def mock_connect(mock_rpc: MockRpcClient, monkeypatch: pytest.MonkeyPatch):
    """Mock the rpc_do.connect function."""
    mock_rpc_do = MagicMock()
    mock_rpc_do.connect = AsyncMock(return_value=mock_rpc)

    monkeypatch.setitem(sys.modules, "rpc_do", mock_rpc_do)

    return mock_rpc_do


@pytest.fixture
async def client(mock_connect, mock_rpc: MockRpcClient):
    """Create a connected MongoClient."""
    from mongo_bulk import MongoClient

    client = MongoClient("https://test.mongo.do")
    await client.connect()
    return client


@pytest.fixture
async def database(client):
    """Create a database."""
    return client["testdb"]


@pytest.fixture
async def collection(database):
    """Create a collection."""
    return database["testcollection"]


@pytest.fixture
def cancel_flag() -> threading.Event:
    """A cancellation flag tests can set directly."""
    return threading.Event()


@pytest.fixture
def signal_handler(cancel_flag: threading.Event) -> Callable[[], tuple[threading.Event, Callable[[], None]]]:
    """Signal handler factory that never touches process signal state."""
    stopped: list[bool] = []

    def factory() -> tuple[threading.Event, Callable[[], None]]:
        return cancel_flag, lambda: stopped.append(True)

    factory.stopped = stopped  # type: ignore[attr-defined]
    return factory


@pytest.fixture
def sleeps() -> list[float]:
    """Durations passed to the recording sleeper."""
    return []


@pytest.fixture
def sleeper(sleeps: list[float]):
    """Sleeper that records durations instead of waiting."""

    async def sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return sleep


@pytest.fixture
def out() -> io.StringIO:
    """Captured terminal output of the executor."""
    return io.StringIO()


@pytest.fixture
def executor_options(signal_handler, sleeper, out) -> dict[str, Any]:
    """Keyword arguments for a quiet, deterministic BatchExecutor."""
    return {
        "signal_handler": signal_handler,
        "sleeper": sleeper,
        "out": out,
        "retry_sleep": 0.01,
    }
