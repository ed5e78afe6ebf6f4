# control-plane/database/models.py
"""
SQLAlchemy Database Models for the Mesh Control Plane
"""

from sqlalchemy import (
    Column, String, Boolean, DateTime, Text,
    ForeignKey, Index
)
from sqlalchemy.orm import declarative_base
from datetime import datetime
import uuid

from schemas.fleet import NodeStatus

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class Agent(Base):
    """
    Agent table - edge nodes that dial out to Gateways
    """
    __tablename__ = "agents"

    id = Column(String(36), primary_key=True, default=_uuid)

    # Identity
    name = Column(String(100), nullable=False, index=True)
    api_key = Column(String(40), unique=True, nullable=False,
                     comment="agt_ prefixed API key")

    # Legacy per-Agent addressing, superseded by per-Tunnel blocks
    subnet = Column(String(18), nullable=True,
                    comment="Legacy block (e.g., 10.1.0.0/24)")
    virtual_ip = Column(String(15), nullable=True,
                        comment="Legacy virtual IP (.100 of subnet)")

    # WireGuard
    wireguard_public_key = Column(String(44), nullable=True,
                                  comment="WireGuard public key (Base64), set once the agent reports it")

    # Status
    status = Column(String(20), default=NodeStatus.OFFLINE.value, nullable=False, index=True)
    last_seen_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Agent(id={self.id}, name={self.name}, status={self.status})>"


class Gateway(Base):
    """
    Gateway table - internet facing relay nodes
    """
    __tablename__ = "gateways"

    id = Column(String(36), primary_key=True, default=_uuid)

    # Identity
    name = Column(String(100), nullable=False, index=True)
    api_key = Column(String(40), unique=True, nullable=False,
                     comment="gtw_ prefixed API key")

    # Network
    public_ip = Column(String(45), nullable=True,
                       comment="Public IP used as WireGuard endpoint")
    region = Column(String(50), nullable=True)

    # WireGuard
    wireguard_public_key = Column(String(44), nullable=True,
                                  comment="WireGuard public key (Base64)")

    # Status
    status = Column(String(20), default=NodeStatus.OFFLINE.value, nullable=False, index=True)
    last_seen_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Gateway(id={self.id}, name={self.name}, status={self.status})>"


class Tunnel(Base):
    """
    Tunnel table - one Agent to one Gateway over a dedicated /24 block

    subnet is unique so two concurrent allocations cannot both commit the
    same block. gateway_ip and agent_ip are derived from subnet at creation
    and never updated.
    """
    __tablename__ = "tunnels"

    id = Column(String(36), primary_key=True, default=_uuid)

    # Endpoints (no cascade: Agents and Gateways are deleted independently)
    agent_id = Column(String(36), ForeignKey("agents.id", ondelete="SET NULL"), nullable=True, index=True)
    gateway_id = Column(String(36), ForeignKey("gateways.id", ondelete="SET NULL"), nullable=True, index=True)

    # Addressing
    subnet = Column(String(18), unique=True, nullable=True,
                    comment="Allocated block (e.g., 10.1.0.0/24)")
    gateway_ip = Column(String(15), nullable=True,
                        comment="Gateway host of subnet (.1)")
    agent_ip = Column(String(15), nullable=True,
                      comment="Agent host of subnet (.100)")

    # State
    enabled = Column(Boolean, default=True, nullable=False)
    description = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('ix_tunnels_agent_gateway', 'agent_id', 'gateway_id'),
    )

    def __repr__(self):
        return f"<Tunnel(id={self.id}, agent_id={self.agent_id}, gateway_id={self.gateway_id}, subnet={self.subnet})>"
