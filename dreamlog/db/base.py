# dreamlog/db/base.py
"""
SQLAlchemy declarative base for every ORM model.
"""
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Usage:
        class Dream(Base):
            __tablename__ = "dreams"
            id = Column(String(36), primary_key=True)
            ...
    """
    pass
