"""
SQLAlchemy models for Grofvuil.
"""
from api.database.models.kv_entry import KVEntry

__all__ = ["KVEntry"]
