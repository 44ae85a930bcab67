"""StoreNode ORM model — one leaf of the path-scoped key/value tree."""
from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.sql import func

from eventpool.database import Base


class StoreNode(Base):
    __tablename__ = "store_nodes"

    # Full slash-separated path, e.g. "WaitingList/<event>/WAITING/<user>"
    path = Column(String(512), primary_key=True)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
