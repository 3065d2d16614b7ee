"""Health check endpoint"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import text
from sqlalchemy.orm import Session
import logging

from timeline.database.session import get_db
from timeline.rag.cache import EmbeddingCache
from timeline.rag.factory import get_embedding_cache, get_vector_store
from timeline.rag.vector_store import VectorStore
from timeline.schemas.response import HealthResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health", response_model=HealthResponse)
async def health_check(
    response: Response,
    db: Session = Depends(get_db),
    cache: EmbeddingCache = Depends(get_embedding_cache),
    vector_store: VectorStore = Depends(get_vector_store)
):
    """
    Health check endpoint
    Checks connectivity to:
    - Database
    - Redis (optional, the embedding cache fails open)
    - Qdrant
    """
    health_status = {
        "status": "healthy",
        "dependencies": {}
    }

    # Check database
    try:
        db.execute(text("SELECT 1"))
        health_status["dependencies"]["database"] = "connected"
    except Exception as e:
        health_status["dependencies"]["database"] = "error"
        health_status["status"] = "unhealthy"
        logger.error(f"Database health check failed: {str(e)}")

    # Check Redis
    if cache.client is None:
        health_status["dependencies"]["redis"] = "disabled"
    elif cache.health_check():
        health_status["dependencies"]["redis"] = "connected"
    else:
        health_status["dependencies"]["redis"] = "not available"

    # Check Qdrant
    if vector_store.health_check():
        health_status["dependencies"]["qdrant"] = "connected"
    else:
        health_status["dependencies"]["qdrant"] = "error"
        health_status["status"] = "unhealthy"

    if health_status["status"] != "healthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return health_status
