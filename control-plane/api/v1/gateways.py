# control-plane/api/v1/gateways.py
"""
Gateway API Endpoints
CRUD for Gateways plus heartbeat and WireGuard config delivery
"""

from fastapi import APIRouter, Depends, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session
import logging

from database.session import get_db
from schemas.fleet import (
    GatewayCreate,
    GatewayCreated,
    GatewayRecord,
    GatewayUpdate,
    NodeKind,
    StatusUpdate,
)
from schemas.config import NodeTopology
from schemas.base import BaseResponse, ErrorResponse, ListResponse
from core.fleet_manager import fleet_manager
from .deps import verify_admin_token, verify_gateway_access

logger = logging.getLogger(__name__)

router = APIRouter()

NOT_FOUND = {404: {"description": "Gateway not found", "model": ErrorResponse}}


@router.get(
    "",
    response_model=ListResponse[GatewayRecord],
    summary="List all gateways"
)
async def list_gateways(
    db: Session = Depends(get_db),
    _: bool = Depends(verify_admin_token)
):
    gateways = fleet_manager.list_gateways(db)
    return ListResponse[GatewayRecord](
        items=[GatewayRecord.model_validate(g) for g in gateways],
        total=len(gateways)
    )


@router.post(
    "",
    response_model=GatewayCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new gateway",
    description="Creates the gateway and returns its API key. The key is not shown again."
)
async def create_gateway(
    gateway_in: GatewayCreate,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_admin_token)
):
    gateway = fleet_manager.create_gateway(
        db,
        name=gateway_in.name,
        public_ip=gateway_in.public_ip,
        wireguard_public_key=gateway_in.wireguard_public_key,
        region=gateway_in.region
    )
    return GatewayCreated.model_validate(gateway)


@router.get(
    "/{gateway_id}",
    response_model=GatewayRecord,
    responses=NOT_FOUND,
    summary="Get gateway by ID"
)
async def get_gateway(
    gateway_id: str,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_gateway_access)
):
    return GatewayRecord.model_validate(fleet_manager.get_gateway(db, gateway_id))


@router.patch(
    "/{gateway_id}",
    response_model=GatewayRecord,
    responses=NOT_FOUND,
    summary="Update gateway",
    description="Name, public IP, WireGuard public key or region"
)
async def update_gateway(
    gateway_id: str,
    gateway_in: GatewayUpdate,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_gateway_access)
):
    gateway = fleet_manager.update_gateway(db, gateway_id, **gateway_in.model_dump(exclude_unset=True))
    return GatewayRecord.model_validate(gateway)


@router.delete(
    "/{gateway_id}",
    response_model=BaseResponse,
    responses=NOT_FOUND,
    summary="Delete gateway",
    description="Tunnels of the gateway are kept with their gateway reference cleared."
)
async def delete_gateway(
    gateway_id: str,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_admin_token)
):
    fleet_manager.delete_gateway(db, gateway_id)
    return BaseResponse(message=f"Gateway {gateway_id} deleted")


@router.post(
    "/{gateway_id}/status",
    response_model=GatewayRecord,
    responses=NOT_FOUND,
    summary="Gateway heartbeat"
)
async def update_gateway_status(
    gateway_id: str,
    status_in: StatusUpdate,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_gateway_access)
):
    gateway = fleet_manager.update_status(db, NodeKind.GATEWAY, gateway_id, status_in.status)
    return GatewayRecord.model_validate(gateway)


@router.get(
    "/{gateway_id}/wireguard",
    response_class=PlainTextResponse,
    responses=NOT_FOUND,
    summary="Rendered WireGuard config",
    description="wg-quick config text with a private key placeholder"
)
async def get_gateway_wireguard_config(
    gateway_id: str,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_gateway_access)
):
    return PlainTextResponse(fleet_manager.render_node_config(db, NodeKind.GATEWAY, gateway_id))


@router.get(
    "/{gateway_id}/wireguard/topology",
    response_model=NodeTopology,
    responses=NOT_FOUND,
    summary="Structured WireGuard topology"
)
async def get_gateway_topology(
    gateway_id: str,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_gateway_access)
):
    return fleet_manager.build_node_topology(db, NodeKind.GATEWAY, gateway_id)
