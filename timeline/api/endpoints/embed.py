"""Embedding run endpoint"""

from typing import Optional

from fastapi import APIRouter, Depends
import logging

from timeline.api.deps import feature_required, get_embedding_pipeline
from timeline.schemas.pipeline import EmbedRunRequest, EmbedRunSummary
from timeline.security.auth import get_current_owner
from timeline.services.embedding_pipeline import EmbeddingPipeline
from timeline.services.feature_flags import EMBEDDINGS

router = APIRouter(dependencies=[Depends(feature_required(EMBEDDINGS))])
logger = logging.getLogger(__name__)


@router.post("/embed/run", response_model=EmbedRunSummary)
async def run_embed(
    body: Optional[EmbedRunRequest] = None,
    owner_id: str = Depends(get_current_owner),
    pipeline: EmbeddingPipeline = Depends(get_embedding_pipeline)
):
    """
    Embed chunks that have no embedding yet

    - **drive_file_ref_id**: Restrict the run to one file
    - **max_chunks**: Cap for this run (default EMBED_MAX_CHUNKS_PER_RUN)
    """
    body = body or EmbedRunRequest()
    return await pipeline.run(owner_id, drive_file_ref_id=body.drive_file_ref_id, max_chunks=body.max_chunks)
