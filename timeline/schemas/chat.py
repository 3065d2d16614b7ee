"""Chat schemas"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime

from timeline.models.chat import MessageRole


class ContextChunk(BaseModel):
    """Retrieved chunk handed to the answer generator"""
    drive_file_ref_id: str
    drive_file_name: str
    chunk_index: int
    score: float
    snippet: str


class Citation(ContextChunk):
    """Context chunk with a stable source id ("<file ref id>:<chunk index>")"""
    source_id: str


class ConversationMessage(BaseModel):
    """Prior turn of a conversation"""
    role: MessageRole
    content: str


class ChatAnswer(BaseModel):
    """Generated answer with the citations it may reference"""
    answer: str
    citations: List[Citation] = []
    tokens: int = 0


class ThreadCreate(BaseModel):
    """Create thread request"""
    title: Optional[str] = Field(None, max_length=255)


class SendMessageRequest(BaseModel):
    """Post a user message to a thread"""
    content: str
    limit: Optional[int] = None


class MessageResponse(BaseModel):
    """Stored chat message"""
    id: int
    role: MessageRole
    content: str
    citations_json: Optional[List[dict]] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChatReply(BaseModel):
    """Assistant reply to a posted message"""
    answer: str
    citations: List[Citation] = []
    message_id: int


class ThreadResponse(BaseModel):
    """Thread summary"""
    id: str
    title: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ThreadDetailResponse(ThreadResponse):
    """Thread with its messages"""
    messages: List[MessageResponse] = []


class ThreadListResponse(BaseModel):
    """Owner's threads, most recent first"""
    threads: List[ThreadResponse]
