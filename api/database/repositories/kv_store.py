"""
Key-value store repository.
"""
from typing import Any, Dict, List, Optional

from fastapi import Depends
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.database.connection import get_db
from api.database.models.kv_entry import KVEntry


class KVStoreRepository:
    """
    Repository for the key-value namespace.

    Keys are plain strings carrying an entity prefix. Queries other than
    point lookups are prefix scans.
    """

    def __init__(self, session: AsyncSession):
        """Initialize with session."""
        self.session = session

    async def get(self, key: str) -> Optional[Any]:
        """
        Get the value stored under a key.

        Args:
            key: Full key including its prefix

        Returns:
            Stored JSON value or None if the key does not exist
        """
        result = await self.session.execute(
            select(KVEntry.value).where(KVEntry.key == key)
        )
        return result.scalar_one_or_none()

    async def set(self, key: str, value: Any) -> None:
        """
        Create or replace the value stored under a key.

        Args:
            key: Full key including its prefix
            value: JSON-serialisable value
        """
        # Use merge for upsert behavior
        await self.session.merge(KVEntry(key=key, value=value))
        await self.session.flush()

    async def mset(self, items: Dict[str, Any]) -> None:
        """Create or replace several entries at once."""
        for key, value in items.items():
            await self.session.merge(KVEntry(key=key, value=value))
        await self.session.flush()

    async def delete(self, key: str) -> bool:
        """
        Delete an entry by key.

        Returns:
            True if deleted, False if not found
        """
        result = await self.session.execute(
            delete(KVEntry).where(KVEntry.key == key)
        )
        return result.rowcount > 0

    async def get_by_prefix(self, prefix: str) -> List[Any]:
        """
        Get the values of all keys starting with a prefix.

        Args:
            prefix: Key prefix, e.g. ``report:``

        Returns:
            List of stored values ordered by key
        """
        result = await self.session.execute(
            select(KVEntry.value)
            .where(KVEntry.key.startswith(prefix, autoescape=True))
            .order_by(KVEntry.key)
        )
        return list(result.scalars().all())


async def get_kv_store(
    db: AsyncSession = Depends(get_db),
) -> KVStoreRepository:
    """FastAPI dependency providing a store bound to the request session."""
    return KVStoreRepository(db)
