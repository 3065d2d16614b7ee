"""Search schemas"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class SearchRequest(BaseModel):
    """Search request schema"""
    query: str = Field(..., min_length=1)
    limit: Optional[int] = None


class SearchResult(BaseModel):
    """One ranked chunk"""
    score: float
    drive_file_ref_id: str
    drive_file_name: str
    chunk_index: int
    snippet: str
    updated_at: datetime


class SearchResponse(BaseModel):
    """Search response schema"""
    results: List[SearchResult]
