"""
SQLAlchemy models for the TourOps data core.

The data core persists each entity collection as one serialized value under a
namespaced key, so a single key-value table is all the schema there is.
"""

from sqlalchemy import Column, DateTime, LargeBinary, String

from database.connection import Base
from domain.entities import utcnow


class StoreEntry(Base):
    """One serialized entity collection."""
    __tablename__ = 'store_entries'

    key = Column(String(255), primary_key=True)
    value = Column(LargeBinary, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'key': self.key,
            'size': len(self.value) if self.value is not None else 0,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
