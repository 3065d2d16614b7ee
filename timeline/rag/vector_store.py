"""Qdrant vector database client"""

from dataclasses import dataclass
from typing import List, Dict, Any, Optional
from qdrant_client import QdrantClient
from qdrant_client.models import (
    Distance,
    VectorParams,
    PointStruct,
    Filter,
    FieldCondition,
    MatchAny,
    MatchValue
)
import logging

from timeline.exceptions import ExternalAPIException

logger = logging.getLogger(__name__)


@dataclass
class VectorHit:
    """Point id with its cosine similarity"""
    id: str
    score: float
    payload: Dict[str, Any]


class VectorStore:
    """Chunk vectors in a Qdrant collection, one point per ChunkEmbedding row"""

    def __init__(self, client: QdrantClient, collection_name: str, vector_size: int):
        self.client = client
        self.collection_name = collection_name
        self.vector_size = vector_size
        self._collection_ready = False

    def ensure_collection(self):
        """Ensure collection exists, create if not"""
        if self._collection_ready:
            return
        try:
            collections = self.client.get_collections().collections
            collection_names = [col.name for col in collections]

            if self.collection_name not in collection_names:
                logger.info(f"Creating collection: {self.collection_name}")
                self.client.create_collection(
                    collection_name=self.collection_name,
                    vectors_config=VectorParams(
                        size=self.vector_size,
                        distance=Distance.COSINE
                    )
                )
            self._collection_ready = True
        except Exception as e:
            logger.error(f"Error ensuring collection: {e}")
            raise ExternalAPIException(f"Vector store unavailable: {e}") from e

    def health_check(self) -> bool:
        """Check if Qdrant is healthy"""
        try:
            self.client.get_collections()
            return True
        except Exception as e:
            logger.error(f"Qdrant health check failed: {e}")
            return False

    def upsert(
        self,
        ids: List[str],
        vectors: List[List[float]],
        payloads: List[Dict[str, Any]]
    ):
        """
        Write points; re-upserting an existing id overwrites it in place

        Args:
            ids: Point ids (ChunkEmbedding ids)
            vectors: Embedding vectors aligned with ids
            payloads: Filter payloads aligned with ids
        """
        if not ids:
            return
        self.ensure_collection()

        points = [
            PointStruct(id=point_id, vector=vector, payload=payload)
            for point_id, vector, payload in zip(ids, vectors, payloads)
        ]
        try:
            self.client.upsert(collection_name=self.collection_name, points=points, wait=True)
        except Exception as e:
            logger.error(f"Error upserting points: {e}")
            raise ExternalAPIException(f"Vector store write failed: {e}") from e

        logger.info(f"Upserted {len(points)} points into {self.collection_name}")

    def search(
        self,
        query_vector: List[float],
        owner_id: str,
        artifact_ids: List[str],
        limit: int,
        score_threshold: Optional[float] = None
    ) -> List[VectorHit]:
        """
        Rank an owner's points by cosine similarity

        Args:
            query_vector: Query embedding vector
            owner_id: Only points of this owner are considered
            artifact_ids: Only points derived from these artifacts are considered
            limit: Maximum number of results
            score_threshold: Optional minimum similarity

        Returns:
            Hits ordered by descending score
        """
        if not artifact_ids or limit < 1:
            return []
        self.ensure_collection()

        query_filter = Filter(
            must=[
                FieldCondition(key="owner_id", match=MatchValue(value=owner_id)),
                FieldCondition(key="artifact_id", match=MatchAny(any=list(artifact_ids)))
            ]
        )
        try:
            response = self.client.query_points(
                collection_name=self.collection_name,
                query=query_vector,
                query_filter=query_filter,
                limit=limit,
                score_threshold=score_threshold,
                with_payload=True
            )
        except Exception as e:
            logger.error(f"Error searching points: {e}")
            raise ExternalAPIException(f"Vector store search failed: {e}") from e

        hits = [
            VectorHit(id=str(point.id), score=float(point.score), payload=point.payload or {})
            for point in response.points
        ]
        logger.info(f"Found {len(hits)} points for owner {owner_id}")
        return hits
