"""Index state model"""

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON
from datetime import datetime
from timeline.database.base import Base


class IndexState(Base):
    """Per-owner cursor into the Drive file listing"""

    __tablename__ = "index_states"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String(64), unique=True, nullable=False, index=True)
    cursor = Column(Text, nullable=True)  # Drive nextPageToken
    last_file_id = Column(String(255), nullable=True)  # last handled file within the current page
    last_run_at = Column(DateTime, nullable=True)
    stats_json = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<IndexState(owner_id={self.owner_id}, last_run_at={self.last_run_at})>"
