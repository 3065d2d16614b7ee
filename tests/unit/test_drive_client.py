"""Test the Google Drive REST client"""

import io
from datetime import datetime, timedelta

import docx
import httpx
import pytest
from PyPDF2 import PdfWriter

from tests.fakes import OWNER_ID
from timeline.drive.client import (
    DOCX,
    GOOGLE_DOC,
    NO_TEXT_LAYER_REASON,
    PDF,
    DriveClient,
    DriveFile,
    ExtractedText,
    SkippedContent,
    parse_drive_time
)
from timeline.drive.credentials import DriveConnectionTokenProvider, upsert_connection
from timeline.exceptions import DriveNotConnectedException, ExternalAPIException

BASE_URL = "https://drive.test/drive/v3"


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


async def static_token(owner_id):
    return "drive-token"


async def no_token(owner_id):
    return None


def make_client(handler, token_provider=static_token, sleep=None, max_retries=3):
    return DriveClient(
        token_provider,
        httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        base_url=BASE_URL,
        max_retries=max_retries,
        retry_base_delay=0.5,
        sleep=sleep or RecordingSleep()
    )


def docx_bytes(*paragraphs) -> bytes:
    document = docx.Document()
    for paragraph in paragraphs:
        document.add_paragraph(paragraph)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def blank_pdf_bytes() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=72, height=72)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def test_parse_drive_time_is_naive_utc():
    assert parse_drive_time("2024-01-02T03:04:05.000Z") == datetime(2024, 1, 2, 3, 4, 5)
    assert parse_drive_time("2024-01-02T05:04:05+02:00") == datetime(2024, 1, 2, 3, 4, 5)
    assert parse_drive_time(None) is None


def test_content_version_falls_back_to_checksum():
    listed = DriveFile.from_api({"id": "f", "name": "n", "mimeType": "text/plain", "md5Checksum": "abc"})
    assert listed.content_version == "abc"

    dated = DriveFile.from_api({"id": "f", "modifiedTime": "2024-01-02T03:04:05Z", "size": "12"})
    assert dated.content_version == "2024-01-02T03:04:05"
    assert dated.size_bytes == 12
    assert dated.name == "Untitled"


@pytest.mark.asyncio
async def test_list_files_sends_cursor_and_parses_page():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={
            "nextPageToken": "page-3",
            "files": [
                {"id": "a", "name": "A", "mimeType": GOOGLE_DOC, "modifiedTime": "2024-01-01T00:00:00Z"},
                {"id": "b", "name": "B", "mimeType": PDF, "size": "2048"},
            ],
        })

    listing = await make_client(handler).list_files(OWNER_ID, "page-2", 5)

    request = requests[0]
    assert request.url.path == "/drive/v3/files"
    assert request.url.params["pageSize"] == "5"
    assert request.url.params["pageToken"] == "page-2"
    assert request.url.params["q"] == "trashed = false"
    assert request.headers["Authorization"] == "Bearer drive-token"
    assert [f.id for f in listing.files] == ["a", "b"]
    assert listing.files[1].size_bytes == 2048
    assert listing.next_page_token == "page-3"


@pytest.mark.asyncio
async def test_first_page_has_no_page_token():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"files": []})

    listing = await make_client(handler).list_files(OWNER_ID, None, 10)

    assert "pageToken" not in requests[0].url.params
    assert listing.files == []
    assert listing.next_page_token is None


@pytest.mark.asyncio
async def test_google_docs_are_exported_as_text():
    def handler(request):
        assert request.url.path == "/drive/v3/files/doc-1/export"
        assert request.url.params["mimeType"] == "text/plain"
        return httpx.Response(200, content="Exported text".encode("utf-8"))

    result = await make_client(handler).fetch_text(OWNER_ID, "doc-1", GOOGLE_DOC)

    assert result == ExtractedText(text="Exported text", byte_length=13)


@pytest.mark.asyncio
async def test_docx_files_are_downloaded_and_read():
    payload = docx_bytes("First paragraph", "Second paragraph")

    def handler(request):
        assert request.url.path == "/drive/v3/files/docx-1"
        assert request.url.params["alt"] == "media"
        return httpx.Response(200, content=payload)

    result = await make_client(handler).fetch_text(OWNER_ID, "docx-1", DOCX)

    assert isinstance(result, ExtractedText)
    assert "First paragraph\nSecond paragraph" in result.text
    assert result.byte_length == len(payload)


@pytest.mark.asyncio
async def test_pdf_without_text_layer_is_skipped():
    payload = blank_pdf_bytes()

    def handler(request):
        return httpx.Response(200, content=payload)

    result = await make_client(handler).fetch_text(OWNER_ID, "pdf-1", PDF)

    assert result == SkippedContent(reason=NO_TEXT_LAYER_REASON)


@pytest.mark.asyncio
async def test_unsupported_types_are_skipped_without_a_request():
    def handler(request):
        raise AssertionError("no request expected")

    result = await make_client(handler).fetch_text(OWNER_ID, "img-1", "image/png")

    assert isinstance(result, SkippedContent)
    assert "image/png" in result.reason


@pytest.mark.asyncio
async def test_transient_errors_are_retried():
    sleep = RecordingSleep()
    responses = [httpx.Response(503), httpx.Response(429), httpx.Response(200, content=b"plain")]

    def handler(request):
        return responses.pop(0)

    result = await make_client(handler, sleep=sleep).fetch_text(OWNER_ID, "txt-1", "text/plain")

    assert result.text == "plain"
    assert sleep.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_transport_errors_give_up_after_retries():
    attempts = []

    def handler(request):
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ExternalAPIException):
        await make_client(handler, max_retries=1).list_files(OWNER_ID, None, 10)
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(404, json={"error": {"message": "File not found"}})

    with pytest.raises(ExternalAPIException) as exc_info:
        await make_client(handler).fetch_text(OWNER_ID, "gone", "text/plain")

    assert exc_info.value.upstream_status == 404
    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_missing_token_means_not_connected():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(DriveNotConnectedException):
        await make_client(handler, token_provider=no_token).list_files(OWNER_ID, None, 10)


@pytest.mark.asyncio
async def test_token_provider_reads_stored_connection(db):
    provider = DriveConnectionTokenProvider(db)
    assert await provider(OWNER_ID) is None

    upsert_connection(db, OWNER_ID, "stored-token", datetime.utcnow() + timedelta(hours=1), "me@example.com")
    assert await provider(OWNER_ID) == "stored-token"

    upsert_connection(db, OWNER_ID, "stale-token", datetime.utcnow() - timedelta(minutes=1))
    with pytest.raises(DriveNotConnectedException):
        await provider(OWNER_ID)
