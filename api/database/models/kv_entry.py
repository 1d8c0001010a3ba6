"""
KVEntry SQLAlchemy model.
"""
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from api.database.connection import Base


class KVEntry(Base):
    """
    One entry of the key-value store.

    Entities share the table and are told apart by a textual key prefix
    (``report:``, ``user:``, ``user-email:``). Values are stored as JSON
    documents, as JSONB on PostgreSQL.
    """

    __tablename__ = "kv_store"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[Any] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<KVEntry(key='{self.key[:50]}')>"
