# dreamlog/models/dialog.py
from sqlalchemy import BigInteger, Column, Index, Integer, String, Text, UniqueConstraint

from dreamlog.db.base import Base


class DialogMessage(Base):
    """One turn of the conversation attached to a dream block."""
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_thread", "user", "dream_id", "block_id"),
    )

    # Insertion order; breaks ties between turns stored in the same millisecond
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(64), unique=True, nullable=False)

    user = Column(String(320), nullable=False)
    dream_id = Column(String(64), nullable=False)
    block_id = Column(String(128), nullable=False)

    role = Column(String(16), nullable=False)
    content = Column(Text, nullable=False)
    # Epoch milliseconds
    created_at = Column(BigInteger, nullable=False)
    # JSON object or NULL
    meta = Column(Text, nullable=True)


class DialogSummary(Base):
    """
    Rolling summary of one block's conversation.

    ``last_message_count`` is how many messages the summary already covers;
    turns after that index are still unprocessed.
    """
    __tablename__ = "dialog_summaries"
    __table_args__ = (
        UniqueConstraint("user", "dream_id", "block_id", name="uq_dialog_summaries_thread"),
    )

    id = Column(String(36), primary_key=True)
    user = Column(String(320), nullable=False)
    dream_id = Column(String(64), nullable=False)
    block_id = Column(String(128), nullable=False)

    summary = Column(Text, nullable=False, default="")
    last_message_count = Column(Integer, nullable=False, default=0)
    updated_at = Column(BigInteger, nullable=False)
