"""
SQLAlchemy ORM model for the catalog key-value table.

All catalog entities are stored as JSON documents under namespaced keys
(see mvdb.config for the key layout). Entity shape is enforced by the
service layer, not by the database.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, JSON

from mvdb.config import get_settings
from mvdb.db.database import Base

settings = get_settings()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KVEntry(Base):
    """One JSON document addressed by its key."""

    __tablename__ = settings.kv_table_name

    key = Column(String(255), primary_key=True)  # e.g. "master_actress_actress_1718000000000_ab12cd"
    value = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<KVEntry {self.key}>"
