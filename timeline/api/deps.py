"""FastAPI dependencies wiring services to their collaborators"""

from typing import AsyncIterator, Callable

import httpx
from fastapi import Depends
from sqlalchemy.orm import Session

from timeline.config import Settings, get_settings
from timeline.database.session import get_db
from timeline.drive.client import DriveClient
from timeline.drive.credentials import DriveConnectionTokenProvider
from timeline.rag.embeddings import EmbeddingsService
from timeline.rag.factory import get_embeddings_service, get_generator, get_vector_store
from timeline.rag.generator import Generator
from timeline.rag.vector_store import VectorStore
from timeline.services.chat import ChatService
from timeline.services.embedding_pipeline import EmbeddingPipeline
from timeline.services.feature_flags import require_feature
from timeline.services.indexer import Indexer
from timeline.services.ingestion import IngestionPipeline
from timeline.services.search import SearchService
from timeline.services.usage import UsageLedger


def feature_required(feature: str) -> Callable:
    """Dependency that rejects requests while a feature is switched off"""
    def dependency(settings: Settings = Depends(get_settings)):
        require_feature(settings, feature)
    return dependency


async def get_http_client(settings: Settings = Depends(get_settings)) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(timeout=settings.DRIVE_HTTP_TIMEOUT) as client:
        yield client


def get_usage_ledger(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
) -> UsageLedger:
    return UsageLedger(db, settings)


def get_drive_client(
    db: Session = Depends(get_db),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings)
) -> DriveClient:
    return DriveClient(
        DriveConnectionTokenProvider(db),
        http_client,
        base_url=settings.GOOGLE_DRIVE_API_URL,
        max_retries=settings.DRIVE_MAX_RETRIES,
        retry_base_delay=settings.DRIVE_RETRY_BASE_DELAY
    )


def get_indexer(
    db: Session = Depends(get_db),
    drive_client: DriveClient = Depends(get_drive_client),
    settings: Settings = Depends(get_settings)
) -> Indexer:
    return Indexer(db, drive_client, settings)


def get_ingestion_pipeline(
    db: Session = Depends(get_db),
    drive_client: DriveClient = Depends(get_drive_client),
    settings: Settings = Depends(get_settings)
) -> IngestionPipeline:
    return IngestionPipeline(db, drive_client, settings)


def get_embedding_pipeline(
    db: Session = Depends(get_db),
    embeddings: EmbeddingsService = Depends(get_embeddings_service),
    vector_store: VectorStore = Depends(get_vector_store),
    usage: UsageLedger = Depends(get_usage_ledger),
    settings: Settings = Depends(get_settings)
) -> EmbeddingPipeline:
    return EmbeddingPipeline(db, embeddings, vector_store, usage, settings)


def get_search_service(
    db: Session = Depends(get_db),
    embeddings: EmbeddingsService = Depends(get_embeddings_service),
    vector_store: VectorStore = Depends(get_vector_store),
    usage: UsageLedger = Depends(get_usage_ledger),
    settings: Settings = Depends(get_settings)
) -> SearchService:
    return SearchService(db, embeddings, vector_store, usage, settings)


def get_chat_service(
    db: Session = Depends(get_db),
    search: SearchService = Depends(get_search_service),
    generator: Generator = Depends(get_generator),
    usage: UsageLedger = Depends(get_usage_ledger),
    settings: Settings = Depends(get_settings)
) -> ChatService:
    return ChatService(db, search, generator, usage, settings)
