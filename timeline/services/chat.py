"""Chat threads grounded in the owner's Drive content"""

from datetime import datetime
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from timeline.config import Settings
from timeline.exceptions import NotFoundException, ValidationException
from timeline.models.chat import ChatMessage, ChatThread, MessageRole
from timeline.rag.generator import Generator, truncate
from timeline.rag.prompt_templates import NO_EMBEDDINGS_ANSWER, NO_MATCHES_ANSWER
from timeline.schemas.chat import ChatReply, ContextChunk, ConversationMessage
from timeline.services.search import SearchService, clamp_limit
from timeline.services.usage import UsageKind, UsageLedger, require_owner

logger = logging.getLogger(__name__)

TITLE_MAX_CHARS = 80


class ChatService:
    """Thread CRUD plus the retrieve-then-generate message flow"""

    def __init__(
        self,
        db: Session,
        search: SearchService,
        generator: Generator,
        usage: UsageLedger,
        settings: Settings
    ):
        self.db = db
        self.search = search
        self.generator = generator
        self.usage = usage
        self.max_message_chars = settings.CHAT_MAX_MESSAGE_CHARS
        self.default_retrieval_limit = settings.CHAT_DEFAULT_RETRIEVAL_LIMIT
        self.max_retrieval_limit = settings.CHAT_MAX_RETRIEVAL_LIMIT
        self.history_messages = settings.CHAT_MAX_CONVERSATION_MESSAGES

    def create_thread(self, owner_id: str, title: Optional[str] = None) -> ChatThread:
        require_owner(owner_id)
        thread = ChatThread(owner_id=owner_id, title=(title or "").strip() or None)
        self.db.add(thread)
        self.db.commit()
        self.db.refresh(thread)
        logger.info(f"Created chat thread {thread.id} for owner {owner_id}")
        return thread

    def list_threads(self, owner_id: str) -> List[ChatThread]:
        require_owner(owner_id)
        return self.db.query(ChatThread).filter(
            ChatThread.owner_id == owner_id
        ).order_by(ChatThread.updated_at.desc()).all()

    def get_thread(self, owner_id: str, thread_id: str) -> ChatThread:
        require_owner(owner_id)
        thread = self.db.query(ChatThread).filter(
            ChatThread.id == thread_id,
            ChatThread.owner_id == owner_id
        ).first()
        if thread is None:
            raise NotFoundException("Thread not found.")
        return thread

    def _history(self, thread_id: str) -> List[ConversationMessage]:
        """Most recent messages, oldest first"""
        recent = self.db.query(ChatMessage).filter(
            ChatMessage.thread_id == thread_id
        ).order_by(ChatMessage.id.desc()).limit(self.history_messages).all()
        return [ConversationMessage(role=m.role, content=m.content) for m in reversed(recent)]

    def _store(self, thread: ChatThread, role: MessageRole, content: str, citations: Optional[list] = None) -> ChatMessage:
        message = ChatMessage(thread_id=thread.id, role=role, content=content, citations_json=citations)
        self.db.add(message)
        thread.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(message)
        return message

    def _fallback(self, thread: ChatThread, answer: str) -> ChatReply:
        message = self._store(thread, MessageRole.ASSISTANT, answer)
        return ChatReply(answer=answer, citations=[], message_id=message.id)

    async def send_message(
        self,
        owner_id: str,
        thread_id: str,
        content: str,
        limit: Optional[int] = None
    ) -> ChatReply:
        """
        Store a user message and answer it from retrieved context

        Args:
            owner_id: Owner id
            thread_id: Thread owned by owner_id
            content: User message
            limit: Retrieval depth, clamped to [1, CHAT_MAX_RETRIEVAL_LIMIT]

        Returns:
            Assistant answer with citations

        Raises:
            ValidationException: Empty or oversized message
            NotFoundException: Unknown thread
            QuotaExceededException: Chat message or token quota used up
        """
        thread = self.get_thread(owner_id, thread_id)

        content = (content or "").strip()
        if not content:
            raise ValidationException("Message content is required.")
        if len(content) > self.max_message_chars:
            raise ValidationException(f"Message is too long (max {self.max_message_chars} characters).")

        user_message_count = self.db.query(ChatMessage).filter(
            ChatMessage.thread_id == thread.id,
            ChatMessage.role == MessageRole.USER
        ).count()
        # Prior turns, read before the new message is stored
        conversation = self._history(thread.id)

        self.usage.assert_remaining(owner_id, UsageKind.CHAT_MESSAGES, 1)
        token_estimate = self.generator.estimate_request_tokens(content, conversation)
        self.usage.assert_remaining(owner_id, UsageKind.LLM_TOKENS, token_estimate)

        self._store(thread, MessageRole.USER, content)
        if not thread.title and user_message_count == 0:
            thread.title = truncate(content, TITLE_MAX_CHARS)
            self.db.commit()
        self.usage.record(owner_id, UsageKind.CHAT_MESSAGES, 1)

        if not self.search.has_embeddings(owner_id):
            return self._fallback(thread, NO_EMBEDDINGS_ANSWER)

        retrieval_limit = clamp_limit(limit, self.default_retrieval_limit, self.max_retrieval_limit)
        matches = await self.search.retrieve(owner_id, content, retrieval_limit)
        if not matches:
            return self._fallback(thread, NO_MATCHES_ANSWER)

        context_chunks = [
            ContextChunk(
                drive_file_ref_id=match.drive_file_ref_id,
                drive_file_name=match.drive_file_name,
                chunk_index=match.chunk_index,
                score=match.score,
                snippet=match.snippet
            )
            for match in matches
        ]
        result = await self.generator.answer(content, context_chunks, conversation)
        self.usage.record(owner_id, UsageKind.LLM_TOKENS, result.tokens)

        citations = [citation.model_dump() for citation in result.citations]
        message = self._store(thread, MessageRole.ASSISTANT, result.answer, citations)
        logger.info(f"Answered message in thread {thread.id} with {len(citations)} citations")
        return ChatReply(answer=result.answer, citations=result.citations, message_id=message.id)
