"""Test the batched embeddings client"""

import httpx
import pytest

from tests.fakes import embeddings_body, error_body, make_openai_client, request_json
from timeline.exceptions import DataIntegrityException, ExternalAPIException
from timeline.rag.cache import EmbeddingCache
from timeline.rag.config import RAGConfig
from timeline.rag.embeddings import EmbeddingsService, is_retryable_status


def vector_for(text: str):
    return [float(ord(text[0])), float(len(text))]


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


class MemoryRedis:
    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value

    def ping(self):
        return True


def make_service(handler, sleep=None, cache=None, **config):
    return EmbeddingsService(
        make_openai_client(handler),
        RAGConfig(embed_retry_base_delay=0.5, **config),
        cache=cache,
        sleep=sleep or RecordingSleep()
    )


@pytest.mark.asyncio
async def test_shuffled_response_is_realigned():
    def handler(request):
        texts = request_json(request)["input"]
        order = [2, 0, 1]
        return httpx.Response(
            200,
            json=embeddings_body([vector_for(texts[i]) for i in order], indices=order)
        )

    service = make_service(handler)
    vectors = await service.embed_texts(["a", "bb", "ccc"])

    assert vectors == [vector_for("a"), vector_for("bb"), vector_for("ccc")]


@pytest.mark.asyncio
async def test_inputs_are_split_into_batches():
    batches = []

    def handler(request):
        texts = request_json(request)["input"]
        batches.append(texts)
        return httpx.Response(200, json=embeddings_body([vector_for(t) for t in texts]))

    service = make_service(handler, embed_batch_size=2)
    vectors = await service.embed_texts(["a", "b", "c", "d", "e"])

    assert batches == [["a", "b"], ["c", "d"], ["e"]]
    assert len(vectors) == 5
    assert vectors[4] == vector_for("e")


@pytest.mark.asyncio
async def test_empty_input_makes_no_request():
    def handler(request):
        raise AssertionError("no request expected")

    assert await make_service(handler).embed_texts([]) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [429, 500, 503])
async def test_transient_errors_are_retried_with_backoff(status):
    attempts = []
    sleep = RecordingSleep()

    def handler(request):
        attempts.append(request)
        if len(attempts) < 3:
            return httpx.Response(status, json=error_body())
        return httpx.Response(200, json=embeddings_body([[1.0, 0.0]]))

    service = make_service(handler, sleep=sleep, embed_max_retries=3)
    vectors = await service.embed_texts(["a"])

    assert vectors == [[1.0, 0.0]]
    assert len(attempts) == 3
    assert sleep.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_retries_are_bounded():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(500, json=error_body())

    service = make_service(handler, embed_max_retries=2)
    with pytest.raises(ExternalAPIException) as exc_info:
        await service.embed_texts(["a"])

    assert len(attempts) == 3
    assert exc_info.value.upstream_status == 500


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(400, json=error_body("bad input"))

    with pytest.raises(ExternalAPIException):
        await make_service(handler).embed_texts(["a"])
    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_missing_vectors_are_a_data_integrity_error():
    def handler(request):
        return httpx.Response(200, json=embeddings_body([[1.0, 0.0]]))

    with pytest.raises(DataIntegrityException):
        await make_service(handler).embed_texts(["a", "b"])


@pytest.mark.asyncio
async def test_duplicate_indices_are_a_data_integrity_error():
    def handler(request):
        return httpx.Response(200, json=embeddings_body([[1.0], [2.0]], indices=[0, 0]))

    with pytest.raises(DataIntegrityException):
        await make_service(handler).embed_texts(["a", "b"])


@pytest.mark.asyncio
async def test_query_embeddings_are_cached():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=embeddings_body([[0.25, 0.5]]))

    service = make_service(handler, cache=EmbeddingCache(MemoryRedis()))

    assert await service.embed_query("alpha") == [0.25, 0.5]
    assert await service.embed_query("alpha") == [0.25, 0.5]
    assert len(calls) == 1


def test_retryable_statuses():
    assert is_retryable_status(429)
    assert is_retryable_status(502)
    assert not is_retryable_status(400)
    assert not is_retryable_status(None)
