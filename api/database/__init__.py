"""
Database module for Grofvuil.

Provides the SQLAlchemy async connection, the key-value model and its repository.
"""
from api.database.connection import (
    Base,
    close_db,
    get_db,
    get_engine,
    get_session,
    get_session_maker,
    init_db,
)
from api.database.repositories import KVStoreRepository

__all__ = [
    # Connection
    "Base",
    "get_engine",
    "get_session",
    "get_session_maker",
    "get_db",
    "init_db",
    "close_db",
    # Repositories
    "KVStoreRepository",
]
