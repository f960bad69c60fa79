# dreamlog/models/kv_entry.py
from sqlalchemy import Column, String, Text

from dreamlog.db.base import Base


class KeyValueEntry(Base):
    """
    Generic key/value namespace.

    User records live under ``user:{email}`` with a JSON document as value.
    The primary key is what makes insert-if-absent safe under concurrency.
    """
    __tablename__ = "kv_store"

    key = Column(String(330), primary_key=True)
    value = Column(Text, nullable=False)
