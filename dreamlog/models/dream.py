# dreamlog/models/dream.py
from sqlalchemy import BigInteger, Column, String, Text

from dreamlog.db.base import Base


class Dream(Base):
    __tablename__ = "dreams"

    id = Column(String(36), primary_key=True)

    # Owner email. Every query filters on it.
    user = Column(String(320), index=True, nullable=False)

    title = Column(Text, nullable=True)
    # Nullable only because legacy rows keep their text in `text`
    dream_text = Column("dreamText", Text, nullable=True)
    # Epoch milliseconds
    date = Column(BigInteger, nullable=True, index=True)
    category = Column(String(100), nullable=True)
    dream_summary = Column("dreamSummary", Text, nullable=True)
    global_final_interpretation = Column("globalFinalInterpretation", Text, nullable=True)

    # JSON-encoded arrays
    blocks = Column(Text, nullable=True)
    similar_artworks = Column("similarArtworks", Text, nullable=True)

    context = Column(Text, nullable=True)
    auto_summary = Column("autoSummary", Text, nullable=True)

    # --- Legacy columns, read-only ---
    # Older rows stored the text and timestamps under these names.
    legacy_text = Column("text", Text, nullable=True)
    legacy_created = Column("created", BigInteger, nullable=True)
    legacy_updated = Column("updated", BigInteger, nullable=True)
