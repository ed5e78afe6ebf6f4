# control-plane/core/legacy.py
"""
Legacy per-Agent addressing

Older deployments gave each Agent its own /24 (``agents.subnet``) with the
Agent on .100. Topologies are built from per-Tunnel blocks only; this module
is used by the one-time migration scripts to carry the old addresses over.
"""

from typing import Optional
from sqlalchemy.orm import Session
import logging

from database.models import Agent, Tunnel
from .fleet_manager import fleet_manager
from .ipam import addresses_for_block, ipam_service
from .subnet import parse_subnet

logger = logging.getLogger(__name__)


def legacy_virtual_ip(subnet: Optional[str]) -> Optional[str]:
    """Agent host (.100) of a legacy subnet, None if the subnet is invalid"""
    block = parse_subnet(subnet)
    if block is None:
        return None
    return block.agent_ip


def backfill_virtual_ips(db: Session, dry_run: bool = False) -> dict:
    """
    Set virtual_ip of every Agent that has a legacy subnet

    Returns:
        {"updated": [...names], "skipped": [...names with invalid subnets]}
    """
    result = {"updated": [], "skipped": []}

    agents = db.query(Agent).filter(Agent.subnet.isnot(None)).order_by(Agent.created_at, Agent.id).all()
    for agent in agents:
        virtual_ip = legacy_virtual_ip(agent.subnet)
        if virtual_ip is None:
            logger.warning(f"Agent {agent.name}: invalid subnet {agent.subnet!r}, skipped")
            result["skipped"].append(agent.name)
            continue

        if agent.virtual_ip != virtual_ip:
            agent.virtual_ip = virtual_ip
            result["updated"].append(agent.name)
            logger.info(f"Agent {agent.name}: virtual_ip -> {virtual_ip}")

    if dry_run:
        db.rollback()
    else:
        db.commit()
    return result


def migrate_agent_subnets(db: Session, gateway_id: str, dry_run: bool = False) -> dict:
    """
    Turn each legacy Agent subnet into a Tunnel to the given Gateway

    The Tunnel keeps the Agent's old block so its address does not change.
    Agents whose block is already held by a Tunnel, or whose subnet is
    invalid, are skipped.

    Raises:
        NotFoundError: If the gateway does not exist
    """
    gateway = fleet_manager.get_gateway(db, gateway_id)
    result = {"migrated": [], "skipped": []}

    with ipam_service.lock:
        used = ipam_service.get_used_numbers(db)

        agents = db.query(Agent).filter(Agent.subnet.isnot(None)).order_by(Agent.created_at, Agent.id).all()
        for agent in agents:
            block = parse_subnet(agent.subnet)
            if block is None:
                logger.warning(f"Agent {agent.name}: invalid subnet {agent.subnet!r}, skipped")
                result["skipped"].append(agent.name)
                continue
            if block.number in used:
                logger.warning(f"Agent {agent.name}: block {agent.subnet} already held by a tunnel, skipped")
                result["skipped"].append(agent.name)
                continue

            allocation = addresses_for_block(block)
            db.add(Tunnel(
                agent_id=agent.id,
                gateway_id=gateway.id,
                subnet=allocation.subnet,
                gateway_ip=allocation.gateway_ip,
                agent_ip=allocation.agent_ip,
                description="Migrated from legacy agent subnet",
            ))
            used.add(block.number)
            result["migrated"].append(agent.name)
            logger.info(f"Agent {agent.name}: tunnel to {gateway.name} on {allocation.subnet}")

        if dry_run:
            db.rollback()
        else:
            db.commit()

    return result
