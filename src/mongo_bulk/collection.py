"""
Collection - MongoDB collection operations used by bulk jobs.

Provides the count, id-cursor and by-id mutation operations the batch
executor drives, backed by RPC calls.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Sequence

from bson import json_util

from .cursor import IdCursor
from .types import DeleteResult, OperationFailure, UpdateResult, WriteError

if TYPE_CHECKING:
    from rpc_do import RpcClient

    from .database import Database
    from .types import Filter, Update

__all__ = ["Collection", "to_wire"]


def to_wire(document: Any) -> Any:
    """
    Convert BSON values into relaxed Extended JSON for the RPC transport.

    Args:
        document: Document, list or scalar possibly holding ``ObjectId``,
                  ``datetime``, ``Int64`` and similar values.

    Returns:
        The same structure with BSON types replaced by their Extended JSON
        form, e.g. ``{"$oid": "..."}``. Plain JSON values are unchanged.
    """
    return json.loads(
        json_util.dumps(document, json_options=json_util.RELAXED_JSON_OPTIONS)
    )


class Collection:
    """
    MongoDB collection with the async operations bulk jobs need.

    Example:
        users = db["users"]

        total = await users.count_documents({"status": "inactive"})
        async with users.find_ids({"status": "inactive"}) as cursor:
            ids = [doc["_id"] async for doc in cursor]

        await users.update_by_ids(ids, {"$set": {"status": "archived"}})
        await users.delete_by_ids(ids)
    """

    __slots__ = ("_rpc", "_database", "_name", "_full_name")

    def __init__(
        self,
        rpc: RpcClient,
        database: Database,
        name: str,
    ) -> None:
        """
        Initialize a collection.

        Args:
            rpc: The RPC client for making calls.
            database: Parent database instance.
            name: Collection name.
        """
        self._rpc = rpc
        self._database = database
        self._name = name
        self._full_name = f"{database.name}.{name}"

    @property
    def name(self) -> str:
        """Get the collection name."""
        return self._name

    @property
    def full_name(self) -> str:
        """Get the full collection name (database.collection)."""
        return self._full_name

    @property
    def database(self) -> Database:
        """Get the parent database."""
        return self._database

    async def count_documents(self, filter: Filter | None = None) -> int:
        """
        Count documents matching the filter.

        Args:
            filter: Query filter.

        Returns:
            Number of matching documents.

        Raises:
            OperationFailure: If the server reports an error.
        """
        result = await self._rpc.mongo.countDocuments(
            self._database.name,
            self._name,
            to_wire(filter or {}),
        )
        if isinstance(result, dict) and result.get("error"):
            raise OperationFailure(
                result.get("message", "Count failed"),
                result.get("code"),
            )
        return result if isinstance(result, int) else 0

    def find_ids(self, filter: Filter | None = None, batch_size: int = 1000) -> IdCursor:
        """
        Open a cursor over the ids of matching documents.

        Args:
            filter: Query filter.
            batch_size: Number of ids fetched per server round trip.

        Returns:
            IdCursor yielding ``{"_id": ...}`` documents.
        """
        return IdCursor(
            self._rpc,
            self._database.name,
            self._name,
            to_wire(filter or {}),
            batch_size,
        )

    async def delete_by_ids(self, ids: Sequence[Any]) -> DeleteResult:
        """
        Delete the documents whose ``_id`` is in ``ids``.

        Args:
            ids: Document ids, as yielded by ``find_ids``.

        Returns:
            DeleteResult with the deleted count.

        Raises:
            WriteError: If the delete fails.
        """
        try:
            result = await self._rpc.mongo.deleteMany(
                self._database.name,
                self._name,
                {"_id": {"$in": list(ids)}},
            )

            if isinstance(result, dict):
                if result.get("error"):
                    raise WriteError(
                        result.get("message", "Delete failed"),
                        result.get("code"),
                    )
                return DeleteResult(
                    deleted_count=result.get("deletedCount", 0),
                    acknowledged=result.get("acknowledged", True),
                )

            return DeleteResult()
        except WriteError:
            raise
        except Exception as e:
            raise WriteError(str(e)) from e

    async def update_by_ids(self, ids: Sequence[Any], update: Update) -> UpdateResult:
        """
        Apply one update to the documents whose ``_id`` is in ``ids``.

        Args:
            ids: Document ids, as yielded by ``find_ids``.
            update: Update operations ($set, $unset, $inc, etc.).

        Returns:
            UpdateResult with match/modify counts.

        Raises:
            WriteError: If the update fails.
        """
        try:
            result = await self._rpc.mongo.updateMany(
                self._database.name,
                self._name,
                {"_id": {"$in": list(ids)}},
                to_wire(update),
                {"upsert": False},
            )

            if isinstance(result, dict):
                if result.get("error"):
                    raise WriteError(
                        result.get("message", "Update failed"),
                        result.get("code"),
                    )
                return UpdateResult(
                    matched_count=result.get("matchedCount", 0),
                    modified_count=result.get("modifiedCount", 0),
                    acknowledged=result.get("acknowledged", True),
                )

            return UpdateResult()
        except WriteError:
            raise
        except Exception as e:
            raise WriteError(str(e)) from e

    def __repr__(self) -> str:
        return f"Collection({self._full_name!r})"
