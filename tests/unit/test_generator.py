"""Test grounded answer generation"""

import httpx
import pytest

from tests.fakes import FakeEncoding, completion_body, error_body, make_openai_client, request_json
from timeline.exceptions import ExternalAPIException
from timeline.models.chat import MessageRole
from timeline.rag.config import RAGConfig
from timeline.rag.generator import CITATION_SNIPPET_CHARS, Generator, truncate
from timeline.rag.prompt_templates import FALLBACK_ANSWER, SYSTEM_PROMPT, format_source_header
from timeline.schemas.chat import ContextChunk, ConversationMessage


def make_generator(handler=None, **config):
    handler = handler or (lambda request: httpx.Response(200, json=completion_body("ok")))
    return Generator(make_openai_client(handler), RAGConfig(**config), encoding=FakeEncoding())


def make_chunk(ref: str, index: int = 0, snippet: str = "x" * 80, score: float = 0.9) -> ContextChunk:
    return ContextChunk(
        drive_file_ref_id=ref,
        drive_file_name="a.txt",
        chunk_index=index,
        score=score,
        snippet=snippet
    )


def test_truncate_marks_the_cut():
    assert truncate("short", 10) == "short"
    assert truncate("abcdefghij", 5) == "abcd…"
    assert len(truncate("abcdefghij", 5)) == 5
    assert truncate("abc", 0) == ""


def test_citations_carry_stable_source_ids():
    generator = make_generator()
    citations = generator.build_citations([make_chunk("ref-1", 3, snippet="y" * 1000)])

    assert citations[0].source_id == "ref-1:3"
    assert len(citations[0].snippet) == CITATION_SNIPPET_CHARS


def test_context_block_respects_budget_and_cuts_last_sections_first():
    generator = make_generator(max_context_chars=300, max_snippet_chars=1200)
    chunks = [make_chunk("ref-1"), make_chunk("ref-2"), make_chunk("ref-3")]
    citations = generator.build_citations(chunks)
    full_sections = [
        f"{format_source_header(c.source_id, c.drive_file_name, c.chunk_index, c.score)}\n{chunk.snippet}"
        for c, chunk in zip(citations, chunks)
    ]

    block = generator.build_context_block(citations, chunks)
    sections = block.split("\n\n")

    assert len(block) <= 300
    assert sections[0] == full_sections[0]
    assert sections[1] == full_sections[1]
    assert full_sections[2].startswith(sections[2])
    assert len(sections[2]) < len(full_sections[2])


def test_context_block_drops_sections_past_the_budget():
    generator = make_generator(max_context_chars=50, max_snippet_chars=1200)
    chunks = [make_chunk("ref-1"), make_chunk("ref-2")]

    block = generator.build_context_block(generator.build_citations(chunks), chunks)

    assert len(block) == 50
    assert "ref-2" not in block


def test_context_block_truncates_long_snippets():
    generator = make_generator(max_context_chars=5000, max_snippet_chars=10)
    chunks = [make_chunk("ref-1", snippet="z" * 100)]

    block = generator.build_context_block(generator.build_citations(chunks), chunks)

    assert block.endswith("z" * 9 + "…")


def test_history_budget_keeps_newest_messages():
    generator = make_generator(max_conversation_chars=12, max_conversation_messages=12)
    conversation = [
        ConversationMessage(role=MessageRole.USER, content="old message one"),
        ConversationMessage(role=MessageRole.ASSISTANT, content="mid"),
        ConversationMessage(role=MessageRole.USER, content="newest!"),
    ]

    trimmed = generator.trim_conversation(conversation)

    assert [m.content for m in trimmed] == ["o…", "mid", "newest!"]
    assert sum(len(m.content) for m in trimmed) <= 12


def test_history_count_limit():
    generator = make_generator(max_conversation_chars=1000, max_conversation_messages=2)
    conversation = [
        ConversationMessage(role=MessageRole.USER, content=f"message {i}")
        for i in range(5)
    ]

    assert [m.content for m in generator.trim_conversation(conversation)] == ["message 3", "message 4"]


def test_token_estimate_reserves_context_and_completion():
    generator = make_generator(max_context_chars=4000, max_tokens=400)

    estimate = generator.estimate_request_tokens("what is alpha", [])

    assert estimate >= 1000 + 400 + len("what is alpha".split())


@pytest.mark.asyncio
async def test_answer_sends_context_and_history():
    sent = []

    def handler(request):
        sent.append(request_json(request))
        return httpx.Response(200, json=completion_body("Alpha is first [ref-1:0].", total_tokens=42))

    generator = make_generator(handler)
    history = [
        ConversationMessage(role=MessageRole.USER, content="hi"),
        ConversationMessage(role=MessageRole.ASSISTANT, content="hello"),
    ]

    result = await generator.answer("what is alpha", [make_chunk("ref-1", snippet="alpha text")], history)

    assert result.answer == "Alpha is first [ref-1:0]."
    assert result.tokens == 42
    assert [c.source_id for c in result.citations] == ["ref-1:0"]

    messages = sent[0]["messages"]
    assert messages[0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert [m["role"] for m in messages[1:]] == ["user", "assistant", "user"]
    assert "alpha text" in messages[-1]["content"]
    assert "what is alpha" in messages[-1]["content"]


@pytest.mark.asyncio
async def test_empty_completion_falls_back():
    generator = make_generator(lambda request: httpx.Response(200, json=completion_body("")))

    result = await generator.answer("question", [make_chunk("ref-1")])

    assert result.answer == FALLBACK_ANSWER


@pytest.mark.asyncio
async def test_upstream_failure_raises():
    generator = make_generator(lambda request: httpx.Response(500, json=error_body()))

    with pytest.raises(ExternalAPIException) as exc_info:
        await generator.answer("question", [make_chunk("ref-1")])
    assert exc_info.value.upstream_status == 500
