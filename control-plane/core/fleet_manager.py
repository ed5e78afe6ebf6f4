# control-plane/core/fleet_manager.py
"""
Fleet Manager - Handles Agent and Gateway registration and lifecycle
"""

from typing import Optional, List
from sqlalchemy.orm import Session
from datetime import datetime
import logging
import secrets
import string

from database.models import Agent, Gateway, Tunnel
from schemas.config import NodeTopology
from schemas.fleet import (
    AgentRecord,
    FleetSnapshot,
    GatewayRecord,
    NodeKind,
    NodeStatus,
    TunnelRecord,
)
from config import settings
from .exceptions import NotFoundError
from .topology import AllowedIpsScope, build_topology
from .wireguard_config import render_config

logger = logging.getLogger(__name__)

API_KEY_ALPHABET = string.ascii_letters + string.digits
AGENT_KEY_PREFIX = "agt_"
GATEWAY_KEY_PREFIX = "gtw_"


def generate_api_key(prefix: str, length: int = 32) -> str:
    """Random alphanumeric API key with a role prefix"""
    return prefix + "".join(secrets.choice(API_KEY_ALPHABET) for _ in range(length))


class FleetManager:
    """
    Fleet Manager for Agents and Gateways

    Responsibilities:
    1. Register Agents and Gateways with generated API keys
    2. Record heartbeats and WireGuard public key updates
    3. Delete nodes (their tunnels are kept, with the endpoint nulled)
    4. Take fleet snapshots and build per-node topologies from them
    """

    # === Agents ===

    def create_agent(
        self,
        db: Session,
        name: str,
        wireguard_public_key: Optional[str] = None
    ) -> Agent:
        agent = Agent(
            name=name,
            api_key=generate_api_key(AGENT_KEY_PREFIX),
            wireguard_public_key=wireguard_public_key,
            status=NodeStatus.OFFLINE.value,
        )
        db.add(agent)
        db.commit()
        db.refresh(agent)

        logger.info(f"Agent registered: {name} ({agent.id})")
        return agent

    def get_agent(self, db: Session, agent_id: str) -> Agent:
        """
        Raises:
            NotFoundError: If the agent does not exist
        """
        agent = db.query(Agent).filter(Agent.id == agent_id).first()
        if not agent:
            raise NotFoundError("agent", agent_id)
        return agent

    def get_agent_by_api_key(self, db: Session, api_key: str) -> Optional[Agent]:
        return db.query(Agent).filter(Agent.api_key == api_key).first()

    def list_agents(self, db: Session) -> List[Agent]:
        return db.query(Agent).order_by(Agent.created_at, Agent.id).all()

    def update_agent(
        self,
        db: Session,
        agent_id: str,
        name: Optional[str] = None,
        wireguard_public_key: Optional[str] = None
    ) -> Agent:
        agent = self.get_agent(db, agent_id)
        if name is not None:
            agent.name = name
        if wireguard_public_key is not None:
            agent.wireguard_public_key = wireguard_public_key
            logger.info(f"Agent {agent.name} public key updated: {wireguard_public_key[:20]}...")
        db.commit()
        db.refresh(agent)
        return agent

    def delete_agent(self, db: Session, agent_id: str) -> None:
        agent = self.get_agent(db, agent_id)
        name = agent.name
        db.delete(agent)
        db.commit()
        logger.info(f"Agent deleted: {name}")

    # === Gateways ===

    def create_gateway(
        self,
        db: Session,
        name: str,
        public_ip: Optional[str] = None,
        wireguard_public_key: Optional[str] = None,
        region: Optional[str] = None
    ) -> Gateway:
        gateway = Gateway(
            name=name,
            api_key=generate_api_key(GATEWAY_KEY_PREFIX),
            public_ip=public_ip,
            wireguard_public_key=wireguard_public_key,
            region=region,
            status=NodeStatus.OFFLINE.value,
        )
        db.add(gateway)
        db.commit()
        db.refresh(gateway)

        logger.info(f"Gateway registered: {name} ({gateway.id})")
        return gateway

    def get_gateway(self, db: Session, gateway_id: str) -> Gateway:
        """
        Raises:
            NotFoundError: If the gateway does not exist
        """
        gateway = db.query(Gateway).filter(Gateway.id == gateway_id).first()
        if not gateway:
            raise NotFoundError("gateway", gateway_id)
        return gateway

    def get_gateway_by_api_key(self, db: Session, api_key: str) -> Optional[Gateway]:
        return db.query(Gateway).filter(Gateway.api_key == api_key).first()

    def list_gateways(self, db: Session) -> List[Gateway]:
        return db.query(Gateway).order_by(Gateway.created_at, Gateway.id).all()

    def update_gateway(self, db: Session, gateway_id: str, **changes) -> Gateway:
        """Apply the given non-None fields (name, public_ip, wireguard_public_key, region)"""
        gateway = self.get_gateway(db, gateway_id)
        for field in ("name", "public_ip", "wireguard_public_key", "region"):
            value = changes.get(field)
            if value is not None:
                setattr(gateway, field, value)
        db.commit()
        db.refresh(gateway)
        return gateway

    def delete_gateway(self, db: Session, gateway_id: str) -> None:
        gateway = self.get_gateway(db, gateway_id)
        name = gateway.name
        db.delete(gateway)
        db.commit()
        logger.info(f"Gateway deleted: {name}")

    # === Heartbeat ===

    def update_status(
        self,
        db: Session,
        node_kind: NodeKind,
        node_id: str,
        status: NodeStatus = NodeStatus.ONLINE
    ):
        """Record a status heartbeat for an Agent or Gateway"""
        if node_kind == NodeKind.GATEWAY:
            node = self.get_gateway(db, node_id)
        else:
            node = self.get_agent(db, node_id)

        node.status = NodeStatus(status).value
        node.last_seen_at = datetime.utcnow()
        db.commit()
        db.refresh(node)
        return node

    # === Topology ===

    def get_snapshot(self, db: Session) -> FleetSnapshot:
        """Read agents, gateways and tunnels in one pass"""
        tunnels = db.query(Tunnel).order_by(Tunnel.created_at, Tunnel.id).all()
        return FleetSnapshot(
            agents=[AgentRecord.model_validate(a) for a in self.list_agents(db)],
            gateways=[GatewayRecord.model_validate(g) for g in self.list_gateways(db)],
            tunnels=[TunnelRecord.model_validate(t) for t in tunnels],
        )

    def build_node_topology(self, db: Session, node_kind: NodeKind, node_id: str) -> NodeTopology:
        """
        Raises:
            NotFoundError: If the node is not in the fleet
        """
        snapshot = self.get_snapshot(db)
        return build_topology(
            node_kind,
            node_id,
            snapshot.agents,
            snapshot.gateways,
            snapshot.tunnels,
            port=settings.WIREGUARD_PORT,
            keepalive=settings.PERSISTENT_KEEPALIVE,
            scope=AllowedIpsScope(settings.AGENT_ALLOWED_IPS_SCOPE),
        )

    def render_node_config(self, db: Session, node_kind: NodeKind, node_id: str) -> str:
        return render_config(self.build_node_topology(db, node_kind, node_id))


# Singleton instance
fleet_manager = FleetManager()
