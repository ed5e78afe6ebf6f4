# control-plane/api/v1/tunnels.py
"""
Tunnel API Endpoints
Creating a tunnel allocates its /24 block, deleting it releases the block
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional
import logging

from database.session import get_db
from schemas.fleet import TunnelCreate, TunnelRecord, TunnelUpdate
from schemas.base import BaseResponse, ErrorResponse, ListResponse
from core.tunnel_manager import tunnel_manager
from .deps import verify_admin_token

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_admin_token)])

NOT_FOUND = {404: {"description": "Tunnel not found", "model": ErrorResponse}}


@router.get(
    "",
    response_model=ListResponse[TunnelRecord],
    summary="List tunnels",
    description="Optionally filtered by agent or gateway"
)
async def list_tunnels(
    agent_id: Optional[str] = Query(None, description="Filter by agent"),
    gateway_id: Optional[str] = Query(None, description="Filter by gateway"),
    db: Session = Depends(get_db)
):
    tunnels = tunnel_manager.list_tunnels(db, agent_id=agent_id, gateway_id=gateway_id)
    return ListResponse[TunnelRecord](
        items=[TunnelRecord.model_validate(t) for t in tunnels],
        total=len(tunnels)
    )


@router.post(
    "",
    response_model=TunnelRecord,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Block taken concurrently", "model": ErrorResponse},
        404: {"description": "Agent or gateway not found", "model": ErrorResponse},
        503: {"description": "Address pool exhausted", "model": ErrorResponse},
    },
    summary="Create a tunnel",
    description="Allocates the lowest free 10.N.0.0/24 block; gateway gets .1, agent gets .100"
)
async def create_tunnel(
    tunnel_in: TunnelCreate,
    db: Session = Depends(get_db)
):
    tunnel = tunnel_manager.create_tunnel(
        db,
        agent_id=tunnel_in.agent_id,
        gateway_id=tunnel_in.gateway_id,
        enabled=tunnel_in.enabled,
        description=tunnel_in.description
    )
    return TunnelRecord.model_validate(tunnel)


@router.get(
    "/{tunnel_id}",
    response_model=TunnelRecord,
    responses=NOT_FOUND,
    summary="Get tunnel by ID"
)
async def get_tunnel(
    tunnel_id: str,
    db: Session = Depends(get_db)
):
    return TunnelRecord.model_validate(tunnel_manager.get_tunnel(db, tunnel_id))


@router.patch(
    "/{tunnel_id}",
    response_model=TunnelRecord,
    responses=NOT_FOUND,
    summary="Update tunnel",
    description="Only enabled and description can change; addresses are fixed at creation"
)
async def update_tunnel(
    tunnel_id: str,
    tunnel_in: TunnelUpdate,
    db: Session = Depends(get_db)
):
    tunnel = tunnel_manager.update_tunnel(
        db,
        tunnel_id,
        enabled=tunnel_in.enabled,
        description=tunnel_in.description
    )
    return TunnelRecord.model_validate(tunnel)


@router.delete(
    "/{tunnel_id}",
    response_model=BaseResponse,
    responses=NOT_FOUND,
    summary="Delete tunnel",
    description="Releases the tunnel's block for reuse"
)
async def delete_tunnel(
    tunnel_id: str,
    db: Session = Depends(get_db)
):
    tunnel_manager.delete_tunnel(db, tunnel_id)
    return BaseResponse(message=f"Tunnel {tunnel_id} deleted")
