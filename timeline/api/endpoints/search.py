"""Search endpoint"""

from fastapi import APIRouter, Depends
import logging

from timeline.api.deps import feature_required, get_search_service
from timeline.schemas.search import SearchRequest, SearchResponse
from timeline.security.auth import get_current_owner
from timeline.services.feature_flags import EMBEDDINGS
from timeline.services.search import SearchService

router = APIRouter(dependencies=[Depends(feature_required(EMBEDDINGS))])
logger = logging.getLogger(__name__)


@router.post("/search", response_model=SearchResponse)
async def search(
    body: SearchRequest,
    owner_id: str = Depends(get_current_owner),
    search_service: SearchService = Depends(get_search_service)
):
    results = await search_service.search(owner_id, body.query, body.limit)
    return SearchResponse(results=results)
