"""Chat thread and message models"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
import uuid
from timeline.database.base import Base


class MessageRole(str, enum.Enum):
    """Chat message author"""
    USER = "USER"
    ASSISTANT = "ASSISTANT"


class ChatThread(Base):
    """Conversation thread owned by one user"""

    __tablename__ = "chat_threads"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(64), nullable=False, index=True)
    title = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    messages = relationship(
        "ChatMessage",
        back_populates="thread",
        cascade="all, delete-orphan",
        order_by="ChatMessage.id"
    )

    def __repr__(self):
        return f"<ChatThread(id={self.id}, owner_id={self.owner_id})>"


class ChatMessage(Base):
    """Single chat message with optional citations"""

    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    thread_id = Column(String(36), ForeignKey("chat_threads.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(Enum(MessageRole), nullable=False)
    content = Column(Text, nullable=False)
    citations_json = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    thread = relationship("ChatThread", back_populates="messages")

    __table_args__ = (
        Index('idx_thread_created', 'thread_id', 'created_at'),
    )

    def __repr__(self):
        return f"<ChatMessage(id={self.id}, role={self.role})>"
