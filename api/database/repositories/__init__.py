"""
Repository classes for database operations.
"""
from api.database.repositories.kv_store import KVStoreRepository

__all__ = ["KVStoreRepository"]
