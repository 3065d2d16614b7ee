"""Usage endpoint"""

from fastapi import APIRouter, Depends

from timeline.api.deps import get_usage_ledger
from timeline.schemas.response import UsageResponse
from timeline.security.auth import get_current_owner
from timeline.services.usage import UsageLedger

router = APIRouter()


@router.get("/usage", response_model=UsageResponse)
async def get_usage(
    owner_id: str = Depends(get_current_owner),
    usage: UsageLedger = Depends(get_usage_ledger)
):
    """Today's usage, limits and remaining quota"""
    return usage.snapshot(owner_id)
