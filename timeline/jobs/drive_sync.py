"""Periodic Drive sync: index, ingest and embed for every connected owner"""

from typing import Any, Callable, Dict, Iterable, Optional
import asyncio
import logging

import httpx
from sqlalchemy.orm import Session, sessionmaker

from timeline.config import Settings, get_settings
from timeline.database.session import get_session_factory
from timeline.drive.client import DriveClient
from timeline.drive.credentials import DriveConnectionTokenProvider
from timeline.exceptions import QuotaExceededException
from timeline.models.drive_connection import DriveConnection
from timeline.rag.embeddings import EmbeddingsService
from timeline.rag.factory import get_embeddings_service, get_vector_store
from timeline.rag.vector_store import VectorStore
from timeline.services.embedding_pipeline import EmbeddingPipeline
from timeline.services.feature_flags import DRIVE_INDEXING, EMBEDDINGS, is_enabled
from timeline.services.indexer import Indexer
from timeline.services.ingestion import IngestionPipeline
from timeline.services.usage import UsageLedger

logger = logging.getLogger(__name__)

STAGES = ("index", "ingest", "embed")

DriveClientFactory = Callable[[Session], DriveClient]


async def sync_owner(
    db: Session,
    owner_id: str,
    drive_client: DriveClient,
    embeddings: EmbeddingsService,
    vector_store: VectorStore,
    settings: Settings,
    stages: Iterable[str] = STAGES
) -> Dict[str, Any]:
    """
    Run one round of the selected pipeline stages for an owner

    Args:
        db: Database session
        owner_id: Owner id
        drive_client: Drive client for the owner
        embeddings: Embedding client
        vector_store: Vector store
        settings: Application settings
        stages: Subset of index, ingest, embed (run in that order)

    Returns:
        Stage name to run summary
    """
    stages = set(stages)
    results: Dict[str, Any] = {}

    if is_enabled(settings, DRIVE_INDEXING):
        if "index" in stages:
            results["index"] = (await Indexer(db, drive_client, settings).run(owner_id)).model_dump()
        if "ingest" in stages:
            results["ingest"] = (await IngestionPipeline(db, drive_client, settings).run(owner_id)).model_dump()

    if "embed" in stages and is_enabled(settings, EMBEDDINGS):
        pipeline = EmbeddingPipeline(db, embeddings, vector_store, UsageLedger(db, settings), settings)
        try:
            results["embed"] = (await pipeline.run(owner_id)).model_dump()
        except QuotaExceededException as e:
            logger.warning(f"Skipping embeddings for owner {owner_id}: {e.message}")
            results["embed"] = {"error": e.code, **e.details}

    return results


async def run_sync_round(
    session_factory: sessionmaker,
    drive_client_factory: DriveClientFactory,
    embeddings: EmbeddingsService,
    vector_store: VectorStore,
    settings: Settings
) -> Dict[str, Dict[str, Any]]:
    """Sync every owner with a Drive connection; one owner's failure does not stop the rest"""
    db = session_factory()
    try:
        owner_ids = [row[0] for row in db.query(DriveConnection.owner_id).all()]
    finally:
        db.close()

    results: Dict[str, Dict[str, Any]] = {}
    for owner_id in owner_ids:
        db = session_factory()
        try:
            results[owner_id] = await sync_owner(
                db,
                owner_id,
                drive_client_factory(db),
                embeddings,
                vector_store,
                settings
            )
        except Exception as e:
            db.rollback()
            logger.error(f"Drive sync failed for owner {owner_id}: {str(e)}", exc_info=True)
            results[owner_id] = {"error": str(e)}
        finally:
            db.close()

    logger.info(f"Drive sync round finished for {len(owner_ids)} owners")
    return results


async def _sync_all_connected_async(settings: Optional[Settings] = None) -> Dict[str, Dict[str, Any]]:
    settings = settings or get_settings()
    async with httpx.AsyncClient(timeout=settings.DRIVE_HTTP_TIMEOUT) as http_client:
        def drive_client_factory(db: Session) -> DriveClient:
            return DriveClient(
                DriveConnectionTokenProvider(db),
                http_client,
                base_url=settings.GOOGLE_DRIVE_API_URL,
                max_retries=settings.DRIVE_MAX_RETRIES,
                retry_base_delay=settings.DRIVE_RETRY_BASE_DELAY
            )

        return await run_sync_round(
            get_session_factory(),
            drive_client_factory,
            get_embeddings_service(),
            get_vector_store(),
            settings
        )


def sync_all_connected() -> Dict[str, Dict[str, Any]]:
    """
    Scheduler entry point
    Runs in the BackgroundScheduler worker thread, so it owns its event loop
    """
    try:
        return asyncio.run(_sync_all_connected_async())
    except Exception as e:
        logger.error(f"Drive sync round failed: {str(e)}", exc_info=True)
        return {}
