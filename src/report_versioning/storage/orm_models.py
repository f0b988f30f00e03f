"""
SQLAlchemy models for the SQL persistence backend.
"""

from sqlalchemy import TIMESTAMP, Column, Integer, String, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class StorageEntry(Base):
    """
    One key/value entry of the persistence namespace.

    For version storage the key is ``<prefix><report_id>`` and the value the
    JSON array of that report's versions.
    """

    __tablename__ = "storage_entries"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    size_bytes = Column(Integer, nullable=False, default=0)  # UTF-8 size of value
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<StorageEntry(key={self.key}, size_bytes={self.size_bytes})>"
