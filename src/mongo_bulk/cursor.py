"""
Cursor - Async server-side cursor over document ids.

Streams ``{"_id": ...}`` documents page by page from a MongoDB query over
RPC, so only one page is held in memory at a time.
"""

from __future__ import annotations

import logging
from collections import deque
from types import TracebackType
from typing import TYPE_CHECKING, Any, AsyncIterator

from .types import OperationFailure

if TYPE_CHECKING:
    from rpc_do import RpcClient

    from .types import Filter

logger = logging.getLogger(__name__)

__all__ = ["IdCursor"]


class IdCursor:
    """
    Async cursor yielding documents that carry only their ``_id``.

    The first page is requested lazily on iteration with an ``_id``-only
    projection and ``noCursorTimeout`` set, so that long pauses between
    batches do not let the server reap the cursor. Subsequent pages are
    fetched with ``getMore``. Closing kills the server cursor.

    Example:
        async with collection.find_ids({"status": "inactive"}) as cursor:
            async for doc in cursor:
                print(doc["_id"])
    """

    __slots__ = (
        "_rpc",
        "_database",
        "_collection",
        "_filter",
        "_batch_size",
        "_cursor_id",
        "_buffer",
        "_started",
        "_closed",
    )

    def __init__(
        self,
        rpc: RpcClient,
        database: str,
        collection: str,
        filter: Filter,
        batch_size: int = 1000,
    ) -> None:
        """
        Initialize a cursor.

        Args:
            rpc: The RPC client for making calls.
            database: Database name.
            collection: Collection name.
            filter: Query filter, already in wire form.
            batch_size: Number of ids requested per page.
        """
        self._rpc = rpc
        self._database = database
        self._collection = collection
        self._filter = filter
        self._batch_size = batch_size
        self._cursor_id: Any = None
        self._buffer: deque[dict[str, Any]] = deque()
        self._started = False
        self._closed = False

    @property
    def alive(self) -> bool:
        """Check if the cursor can still yield documents."""
        if self._closed:
            return False
        return not self._started or bool(self._buffer) or bool(self._cursor_id)

    def _check_reply(self, result: Any, operation: str) -> dict[str, Any]:
        if not isinstance(result, dict):
            raise OperationFailure(f"{operation} returned an invalid reply: {result!r}")
        if result.get("error"):
            raise OperationFailure(
                result.get("message", f"{operation} failed"),
                result.get("code"),
            )
        return result

    async def _fetch_first(self) -> None:
        self._started = True
        options = {
            "projection": {"_id": 1},
            "batchSize": self._batch_size,
            "noCursorTimeout": True,
        }
        result = await self._rpc.mongo.find(
            self._database,
            self._collection,
            self._filter,
            options,
        )
        reply = self._check_reply(result, "find")
        self._cursor_id = reply.get("cursorId")
        self._buffer = deque(reply.get("batch") or [])

    async def _fetch_more(self) -> None:
        result = await self._rpc.mongo.getMore(
            self._database,
            self._collection,
            self._cursor_id,
            self._batch_size,
        )
        reply = self._check_reply(result, "getMore")
        self._cursor_id = reply.get("cursorId")
        self._buffer = deque(reply.get("batch") or [])

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        """Return async iterator."""
        return self

    async def __anext__(self) -> dict[str, Any]:
        """
        Get the next document.

        Returns:
            The next ``{"_id": ...}`` document.

        Raises:
            StopAsyncIteration: When the cursor is exhausted or closed.
            OperationFailure: When the server reports an error.
        """
        if self._closed:
            raise StopAsyncIteration

        if not self._started:
            await self._fetch_first()

        while not self._buffer:
            if not self._cursor_id:
                raise StopAsyncIteration
            await self._fetch_more()

        return self._buffer.popleft()

    async def next(self) -> dict[str, Any]:
        """Get the next document."""
        return await self.__anext__()

    async def close(self) -> None:
        """Close the cursor and release it on the server. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._buffer.clear()

        cursor_id, self._cursor_id = self._cursor_id, None
        if not cursor_id:
            return
        try:
            await self._rpc.mongo.killCursors(
                self._database,
                self._collection,
                [cursor_id],
            )
        except Exception as e:
            logger.warning("failed to kill cursor %s: %s", cursor_id, e)

    async def __aenter__(self) -> IdCursor:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"IdCursor({self._database}.{self._collection}, {self._filter!r})"
