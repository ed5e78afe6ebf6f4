# control-plane/core/tunnel_manager.py
"""
Tunnel Manager - Handles tunnel creation, updates and deletion
A tunnel's block is allocated on creation and released when the row is deleted
"""

from typing import Optional, List
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
import logging

from database.models import Tunnel
from .exceptions import NotFoundError, ValidationError
from .fleet_manager import fleet_manager
from .ipam import ipam_service

logger = logging.getLogger(__name__)


class TunnelManager:
    """
    Tunnel Manager

    Responsibilities:
    1. Create tunnels with a freshly allocated /24 block
    2. Toggle and describe tunnels (addresses are immutable)
    3. Delete tunnels, freeing their block for reuse
    """

    def create_tunnel(
        self,
        db: Session,
        agent_id: str,
        gateway_id: str,
        enabled: bool = True,
        description: Optional[str] = None
    ) -> Tunnel:
        """
        Create a tunnel between an Agent and a Gateway

        Raises:
            NotFoundError: If the agent or gateway does not exist
            ExhaustedError: If no block is free
            ValidationError: If the block was taken concurrently
        """
        agent = fleet_manager.get_agent(db, agent_id)
        gateway = fleet_manager.get_gateway(db, gateway_id)

        # read -> allocate -> persist must not interleave with another allocation
        with ipam_service.lock:
            allocation = ipam_service.next_allocation(db)

            tunnel = Tunnel(
                agent_id=agent.id,
                gateway_id=gateway.id,
                subnet=allocation.subnet,
                gateway_ip=allocation.gateway_ip,
                agent_ip=allocation.agent_ip,
                enabled=enabled,
                description=description,
            )

            try:
                db.add(tunnel)
                db.commit()
            except IntegrityError as e:
                db.rollback()
                logger.error(f"Database error during tunnel creation: {e}")
                raise ValidationError(f"Block {allocation.subnet} is already allocated")

        db.refresh(tunnel)
        logger.info(f"Tunnel created: {agent.name} <-> {gateway.name} on {tunnel.subnet}")
        return tunnel

    def get_tunnel(self, db: Session, tunnel_id: str) -> Tunnel:
        """
        Raises:
            NotFoundError: If the tunnel does not exist
        """
        tunnel = db.query(Tunnel).filter(Tunnel.id == tunnel_id).first()
        if not tunnel:
            raise NotFoundError("tunnel", tunnel_id)
        return tunnel

    def list_tunnels(
        self,
        db: Session,
        agent_id: Optional[str] = None,
        gateway_id: Optional[str] = None
    ) -> List[Tunnel]:
        query = db.query(Tunnel)

        if agent_id:
            query = query.filter(Tunnel.agent_id == agent_id)
        if gateway_id:
            query = query.filter(Tunnel.gateway_id == gateway_id)

        return query.order_by(Tunnel.created_at, Tunnel.id).all()

    def update_tunnel(
        self,
        db: Session,
        tunnel_id: str,
        enabled: Optional[bool] = None,
        description: Optional[str] = None
    ) -> Tunnel:
        tunnel = self.get_tunnel(db, tunnel_id)
        if enabled is not None:
            tunnel.enabled = enabled
        if description is not None:
            tunnel.description = description
        db.commit()
        db.refresh(tunnel)
        return tunnel

    def delete_tunnel(self, db: Session, tunnel_id: str) -> None:
        """Delete a tunnel, its block becomes free for the next allocation"""
        tunnel = self.get_tunnel(db, tunnel_id)
        subnet = tunnel.subnet

        db.delete(tunnel)
        db.commit()

        logger.info(f"Tunnel deleted: {tunnel_id}, released {subnet}")


# Singleton instance
tunnel_manager = TunnelManager()
