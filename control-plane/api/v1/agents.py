# control-plane/api/v1/agents.py
"""
Agent API Endpoints
CRUD for Agents plus heartbeat and WireGuard config delivery
"""

from fastapi import APIRouter, Depends, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session
import logging

from database.session import get_db
from schemas.fleet import (
    AgentCreate,
    AgentCreated,
    AgentRecord,
    AgentUpdate,
    NodeKind,
    StatusUpdate,
)
from schemas.config import NodeTopology
from schemas.base import BaseResponse, ErrorResponse, ListResponse
from core.fleet_manager import fleet_manager
from .deps import verify_admin_token, verify_agent_access

logger = logging.getLogger(__name__)

router = APIRouter()

NOT_FOUND = {404: {"description": "Agent not found", "model": ErrorResponse}}


@router.get(
    "",
    response_model=ListResponse[AgentRecord],
    summary="List all agents"
)
async def list_agents(
    db: Session = Depends(get_db),
    _: bool = Depends(verify_admin_token)
):
    agents = fleet_manager.list_agents(db)
    return ListResponse[AgentRecord](
        items=[AgentRecord.model_validate(a) for a in agents],
        total=len(agents)
    )


@router.post(
    "",
    response_model=AgentCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new agent",
    description="Creates the agent and returns its API key. The key is not shown again."
)
async def create_agent(
    agent_in: AgentCreate,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_admin_token)
):
    agent = fleet_manager.create_agent(
        db,
        name=agent_in.name,
        wireguard_public_key=agent_in.wireguard_public_key
    )
    return AgentCreated.model_validate(agent)


@router.get(
    "/{agent_id}",
    response_model=AgentRecord,
    responses=NOT_FOUND,
    summary="Get agent by ID"
)
async def get_agent(
    agent_id: str,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_agent_access)
):
    return AgentRecord.model_validate(fleet_manager.get_agent(db, agent_id))


@router.patch(
    "/{agent_id}",
    response_model=AgentRecord,
    responses=NOT_FOUND,
    summary="Update agent name or WireGuard public key"
)
async def update_agent(
    agent_id: str,
    agent_in: AgentUpdate,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_agent_access)
):
    agent = fleet_manager.update_agent(
        db,
        agent_id,
        name=agent_in.name,
        wireguard_public_key=agent_in.wireguard_public_key
    )
    return AgentRecord.model_validate(agent)


@router.delete(
    "/{agent_id}",
    response_model=BaseResponse,
    responses=NOT_FOUND,
    summary="Delete agent",
    description="Tunnels of the agent are kept with their agent reference cleared."
)
async def delete_agent(
    agent_id: str,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_admin_token)
):
    fleet_manager.delete_agent(db, agent_id)
    return BaseResponse(message=f"Agent {agent_id} deleted")


@router.post(
    "/{agent_id}/status",
    response_model=AgentRecord,
    responses=NOT_FOUND,
    summary="Agent heartbeat"
)
async def update_agent_status(
    agent_id: str,
    status_in: StatusUpdate,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_agent_access)
):
    agent = fleet_manager.update_status(db, NodeKind.AGENT, agent_id, status_in.status)
    return AgentRecord.model_validate(agent)


@router.get(
    "/{agent_id}/wireguard",
    response_class=PlainTextResponse,
    responses=NOT_FOUND,
    summary="Rendered WireGuard config",
    description="wg-quick config text with a private key placeholder"
)
async def get_agent_wireguard_config(
    agent_id: str,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_agent_access)
):
    return PlainTextResponse(fleet_manager.render_node_config(db, NodeKind.AGENT, agent_id))


@router.get(
    "/{agent_id}/wireguard/topology",
    response_model=NodeTopology,
    responses=NOT_FOUND,
    summary="Structured WireGuard topology"
)
async def get_agent_topology(
    agent_id: str,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_agent_access)
):
    return fleet_manager.build_node_topology(db, NodeKind.AGENT, agent_id)
