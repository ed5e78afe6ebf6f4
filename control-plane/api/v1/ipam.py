# control-plane/api/v1/ipam.py
"""
IPAM API Endpoints
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database.session import get_db
from schemas.base import IPAMStatsResponse
from core.ipam import ipam_service
from .deps import verify_admin_token

router = APIRouter()


@router.get(
    "/stats",
    response_model=IPAMStatsResponse,
    summary="Address block usage"
)
async def get_ipam_stats(
    db: Session = Depends(get_db),
    _: bool = Depends(verify_admin_token)
):
    return IPAMStatsResponse(**ipam_service.get_allocation_stats(db))
