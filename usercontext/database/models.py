"""
Database Models - SQLAlchemy ORM models for persistent storage.

One row per (user identity, logical key). The memory store only ever
uses the key "memory"; the key column keeps the layout open for other
per-user documents without a schema change.
"""
from datetime import datetime

from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.orm import declarative_base

from usercontext.core.config import USER_ID_COLUMN_LENGTH

Base = declarative_base()

MEMORY_KEY = "memory"


class UserMemoryRow(Base):
    """
    Model for storing a user's memory document.

    The document column holds the full MemoryRecord JSON
    (profile, conversation, meta).
    """
    __tablename__ = "user_memory"

    user_id = Column(String(USER_ID_COLUMN_LENGTH), primary_key=True)
    key = Column(String(32), primary_key=True, default=MEMORY_KEY)
    document = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
