"""Usage counter model"""

from sqlalchemy import Column, Integer, String, DateTime
from datetime import datetime
from timeline.database.base import Base


class UsageCounter(Base):
    """Per-owner daily usage counters"""

    __tablename__ = "usage_counters"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String(64), unique=True, nullable=False, index=True)
    period_start = Column(DateTime, nullable=False)  # UTC midnight of the counted day
    search_count = Column(Integer, default=0, nullable=False)
    embed_chunk_count = Column(Integer, default=0, nullable=False)
    chat_message_count = Column(Integer, default=0, nullable=False)
    llm_token_estimate = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<UsageCounter(owner_id={self.owner_id}, period_start={self.period_start})>"
