from sqlalchemy import Column, Integer, Text, TIMESTAMP
from sqlalchemy.sql import func

from fruitmerge.database import Base


class StoredSnapshot(Base):
    """
    Serialized game store.

    The whole store is saved as one JSON document; only the row with
    ``id == SNAPSHOT_ID`` is ever read or written.
    """
    __tablename__ = "snapshots"

    id = Column(Integer, primary_key=True)
    payload = Column(Text, nullable=False)
    saved_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())


SNAPSHOT_ID = 1
