"""LLM answer generator"""

from typing import Any, Dict, List, Optional
import logging
import time

import openai
import tiktoken
from openai import AsyncOpenAI

from timeline.exceptions import ExternalAPIException
from timeline.models.chat import MessageRole
from timeline.rag.config import RAGConfig
from timeline.rag.prompt_templates import (
    FALLBACK_ANSWER,
    SYSTEM_PROMPT,
    build_user_message,
    format_source_header
)
from timeline.schemas.chat import ChatAnswer, Citation, ContextChunk, ConversationMessage

logger = logging.getLogger(__name__)

CITATION_SNIPPET_CHARS = 280
CONTEXT_SEPARATOR = "\n\n"
ELLIPSIS = "…"


def truncate(value: str, max_chars: int) -> str:
    """Cut to at most max_chars, marking the cut with an ellipsis"""
    if len(value) <= max_chars:
        return value
    if max_chars < 1:
        return ""
    return value[:max_chars - 1].rstrip() + ELLIPSIS


class Generator:
    """Grounded answer generation over retrieved chunks"""

    def __init__(self, client: AsyncOpenAI, config: RAGConfig, encoding: Any = None):
        self.client = client
        self.model = config.llm_model
        self.max_tokens = config.max_tokens
        self.temperature = config.temperature
        self.max_context_chars = config.max_context_chars
        self.max_snippet_chars = config.max_snippet_chars
        self.max_conversation_chars = config.max_conversation_chars
        self.max_conversation_messages = config.max_conversation_messages
        self._encoding = encoding

    @property
    def encoding(self):
        """Token encoder, loaded on first use"""
        if self._encoding is None:
            try:
                self._encoding = tiktoken.encoding_for_model(self.model)
            except KeyError:
                self._encoding = tiktoken.get_encoding("cl100k_base")
        return self._encoding

    def count_tokens(self, text: str) -> int:
        """Count tokens in text"""
        try:
            return len(self.encoding.encode(text))
        except Exception as e:
            logger.warning(f"Error counting tokens: {e}")
            # Rough estimate: 1 token ≈ 4 characters
            return len(text) // 4

    def count_messages_tokens(self, messages: List[Dict[str, str]]) -> int:
        """Count tokens in message list"""
        total = 0
        for message in messages:
            total += 4  # Overhead per message
            for value in message.values():
                total += self.count_tokens(str(value))
        total += 2  # Overhead for entire request
        return total

    def estimate_request_tokens(self, query: str, conversation: List[ConversationMessage]) -> int:
        """Upper-bound token estimate used for quota checks before spending"""
        history = self.trim_conversation(conversation)
        messages = [{"role": "system", "content": SYSTEM_PROMPT}]
        messages.extend({"role": m.role.value.lower(), "content": m.content} for m in history)
        messages.append({"role": "user", "content": query})
        # Context is not retrieved yet; assume the full block at ~4 chars per token
        return self.count_messages_tokens(messages) + self.max_context_chars // 4 + self.max_tokens

    def build_citations(self, chunks: List[ContextChunk]) -> List[Citation]:
        """One citation per chunk; source ids stay stable so clients can match them back"""
        return [
            Citation(
                **chunk.model_dump(exclude={"snippet"}),
                snippet=truncate(chunk.snippet, CITATION_SNIPPET_CHARS),
                source_id=f"{chunk.drive_file_ref_id}:{chunk.chunk_index}"
            )
            for chunk in chunks
        ]

    def build_context_block(self, citations: List[Citation], chunks: Optional[List[ContextChunk]] = None) -> str:
        """
        Render sources into a single block bounded by max_context_chars

        Sections keep citation order; separators count toward the budget, so
        the last sections are the ones cut short or dropped.

        Args:
            citations: Citations in rank order
            chunks: Full-length chunks aligned with citations (default: citation snippets)

        Returns:
            Context block, at most max_context_chars long
        """
        remaining = self.max_context_chars
        sections: List[str] = []

        for position, citation in enumerate(citations):
            separator_len = len(CONTEXT_SEPARATOR) if sections else 0
            if remaining <= separator_len:
                break
            remaining -= separator_len

            source_text = chunks[position].snippet if chunks is not None else citation.snippet
            snippet = truncate(source_text, self.max_snippet_chars)
            header = format_source_header(
                citation.source_id,
                citation.drive_file_name,
                citation.chunk_index,
                citation.score
            )
            block = f"{header}\n{snippet}"[:remaining]
            sections.append(block)
            remaining -= len(block)

        return CONTEXT_SEPARATOR.join(sections)

    def trim_conversation(self, conversation: List[ConversationMessage]) -> List[ConversationMessage]:
        """
        Keep the most recent messages within the count and character budgets

        The character budget is spent newest-first, so the oldest content is
        truncated or dropped. Chronological order is preserved in the output.
        """
        recent = conversation[-self.max_conversation_messages:] if self.max_conversation_messages > 0 else []
        remaining = self.max_conversation_chars
        kept: List[ConversationMessage] = []

        for message in reversed(recent):
            if remaining <= 0:
                break
            content = truncate(message.content, remaining)
            kept.append(ConversationMessage(role=message.role, content=content))
            remaining -= len(content)

        kept.reverse()
        return kept

    def build_messages(
        self,
        query: str,
        citations: List[Citation],
        conversation: List[ConversationMessage],
        chunks: Optional[List[ContextChunk]] = None
    ) -> List[Dict[str, str]]:
        context_block = self.build_context_block(citations, chunks)
        messages = [{"role": "system", "content": SYSTEM_PROMPT}]
        for message in self.trim_conversation(conversation):
            role = "user" if message.role == MessageRole.USER else "assistant"
            messages.append({"role": role, "content": message.content})
        messages.append({"role": "user", "content": build_user_message(context_block, query)})
        return messages

    async def answer(
        self,
        query: str,
        context_chunks: List[ContextChunk],
        conversation: Optional[List[ConversationMessage]] = None
    ) -> ChatAnswer:
        """
        Generate a grounded answer

        Args:
            query: User question
            context_chunks: Retrieved chunks in rank order
            conversation: Prior turns, oldest first

        Returns:
            Answer text, citations and total token usage

        Raises:
            ExternalAPIException: Chat completion failed
        """
        citations = self.build_citations(context_chunks)
        messages = self.build_messages(query, citations, conversation or [], context_chunks)
        input_tokens = self.count_messages_tokens(messages)
        logger.info(f"Generating answer with {input_tokens} input tokens and {len(citations)} sources")

        started = time.perf_counter()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens
            )
        except openai.APIStatusError as e:
            logger.error(f"Chat completion failed with status {e.status_code}")
            raise ExternalAPIException(
                f"Chat completion failed with status {e.status_code}.",
                status=e.status_code
            ) from e
        except openai.OpenAIError as e:
            logger.error(f"Chat completion failed: {e}")
            raise ExternalAPIException(f"Chat completion failed: {e}") from e

        text = ""
        if response.choices and response.choices[0].message and response.choices[0].message.content:
            text = response.choices[0].message.content.strip()

        usage = response.usage
        total_tokens = usage.total_tokens if usage else input_tokens + self.count_tokens(text)
        logger.info(
            f"Generated answer: {len(text)} chars, {total_tokens} total tokens "
            f"in {(time.perf_counter() - started) * 1000:.0f}ms"
        )

        return ChatAnswer(
            answer=text or FALLBACK_ANSWER,
            citations=citations,
            tokens=total_tokens
        )
