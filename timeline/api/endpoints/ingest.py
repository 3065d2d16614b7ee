"""Index and ingestion run endpoints"""

from fastapi import APIRouter, Depends
import logging

from timeline.api.deps import feature_required, get_indexer, get_ingestion_pipeline
from timeline.schemas.pipeline import IndexRunSummary, IngestRetryResponse, IngestRunSummary
from timeline.security.auth import get_current_owner
from timeline.services.feature_flags import DRIVE_INDEXING
from timeline.services.indexer import Indexer
from timeline.services.ingestion import IngestionPipeline

router = APIRouter(dependencies=[Depends(feature_required(DRIVE_INDEXING))])
logger = logging.getLogger(__name__)


@router.post("/index/run", response_model=IndexRunSummary)
async def run_index(
    owner_id: str = Depends(get_current_owner),
    indexer: Indexer = Depends(get_indexer)
):
    """
    Index the next slice of the Drive listing

    Call repeatedly until done is true.
    """
    return await indexer.run(owner_id)


@router.post("/ingest/run", response_model=IngestRunSummary)
async def run_ingest(
    owner_id: str = Depends(get_current_owner),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline)
):
    """Ingest pending files within the per-run file and byte budgets"""
    return await pipeline.run(owner_id)


@router.post("/ingest/retry", response_model=IngestRetryResponse)
async def retry_ingest(
    owner_id: str = Depends(get_current_owner),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline)
):
    return IngestRetryResponse(requeued=pipeline.retry_errored(owner_id))
