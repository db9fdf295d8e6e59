"""
Database - MongoDB database handle.

Provides PyMongo-style access to collections of one database over RPC.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .collection import Collection

if TYPE_CHECKING:
    from rpc_do import RpcClient

    from .client import MongoClient

__all__ = ["Database"]


class Database:
    """
    MongoDB database.

    Collections can be accessed using either attribute access or subscript
    notation.

    Example:
        db = client["myapp"]

        users = db.users
        orders = db["orders"]
    """

    __slots__ = ("_rpc", "_client", "_name", "_collections")

    def __init__(
        self,
        rpc: RpcClient,
        client: MongoClient,
        name: str,
    ) -> None:
        """
        Initialize a database.

        Args:
            rpc: The RPC client for making calls.
            client: Parent MongoClient instance.
            name: Database name.
        """
        self._rpc = rpc
        self._client = client
        self._name = name
        self._collections: dict[str, Collection] = {}

    @property
    def name(self) -> str:
        """Get the database name."""
        return self._name

    @property
    def client(self) -> MongoClient:
        """Get the parent client."""
        return self._client

    def __getitem__(self, name: str) -> Collection:
        """
        Get a collection by name using subscript notation.

        Args:
            name: Collection name.

        Returns:
            Collection instance.
        """
        if name not in self._collections:
            self._collections[name] = Collection(self._rpc, self, name)
        return self._collections[name]

    def __getattr__(self, name: str) -> Collection:
        """
        Get a collection by name using attribute access.

        Args:
            name: Collection name.

        Returns:
            Collection instance.
        """
        if name.startswith("_"):
            raise AttributeError(f"'{type(self).__name__}' has no attribute '{name}'")

        return self[name]

    def get_collection(self, name: str) -> Collection:
        """Get a collection by name."""
        return self[name]

    def __repr__(self) -> str:
        return f"Database({self._name!r})"
