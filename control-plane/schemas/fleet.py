# control-plane/schemas/fleet.py
"""
Fleet record schemas: Agents, Gateways and Tunnels

The same models serve as the snapshot handed to the topology builder
(read from ORM rows via from_attributes) and as API response bodies.
Fields that only exist at later lifecycle stages are explicit Optionals:
an Agent without ``wireguard_public_key`` has not reported its key yet,
a Tunnel without ``subnet`` has no valid block.
"""

from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Optional, List
from datetime import datetime
from enum import Enum
import ipaddress
import re

WIREGUARD_KEY_RE = re.compile(r'^[A-Za-z0-9+/]{43}=$')


class NodeKind(str, Enum):
    """Node kinds in the mesh"""
    AGENT = "agent"      # Edge node, dials out to gateways
    GATEWAY = "gateway"  # Relay node, internet facing


class NodeStatus(str, Enum):
    """Heartbeat status"""
    ONLINE = "online"
    OFFLINE = "offline"


def _validate_wireguard_key(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if not WIREGUARD_KEY_RE.match(v):
        raise ValueError('Invalid WireGuard public key format. Must be 44 chars Base64 ending with =')
    return v


def _validate_name(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError('Name must not be empty')
    return v


# === Snapshot / Response Schemas ===

class AgentRecord(BaseModel):
    """Agent as stored"""
    id: str
    name: str
    subnet: Optional[str] = Field(None, description="Legacy per-Agent block", examples=["10.1.0.0/24"])
    virtual_ip: Optional[str] = Field(None, description="Legacy virtual IP", examples=["10.1.0.100"])
    wireguard_public_key: Optional[str] = None
    status: NodeStatus = NodeStatus.OFFLINE
    last_seen_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class GatewayRecord(BaseModel):
    """Gateway as stored"""
    id: str
    name: str
    public_ip: Optional[str] = Field(None, examples=["203.0.113.10"])
    wireguard_public_key: Optional[str] = None
    region: Optional[str] = Field(None, examples=["ap-northeast-1"])
    status: NodeStatus = NodeStatus.OFFLINE
    last_seen_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TunnelRecord(BaseModel):
    """Tunnel as stored; gateway_ip and agent_ip always derive from subnet"""
    id: str
    agent_id: Optional[str] = None
    gateway_id: Optional[str] = None
    subnet: Optional[str] = Field(None, examples=["10.1.0.0/24"])
    gateway_ip: Optional[str] = Field(None, examples=["10.1.0.1"])
    agent_ip: Optional[str] = Field(None, examples=["10.1.0.100"])
    enabled: bool = True
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AgentCreated(AgentRecord):
    """Returned once on creation, the only response carrying the API key"""
    api_key: str


class GatewayCreated(GatewayRecord):
    """Returned once on creation, the only response carrying the API key"""
    api_key: str


# === Request Schemas ===

class AgentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, examples=["home-server"])
    wireguard_public_key: Optional[str] = Field(
        None,
        description="WireGuard public key (Base64 encoded)",
        examples=["TpuMgv7zP0S6CiGuUjqUx0xVW/mi1WX/bASrXGp9dgU="]
    )

    check_name = field_validator('name')(_validate_name)
    check_key = field_validator('wireguard_public_key')(_validate_wireguard_key)


class AgentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    wireguard_public_key: Optional[str] = None

    check_name = field_validator('name')(_validate_name)
    check_key = field_validator('wireguard_public_key')(_validate_wireguard_key)


class GatewayCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, examples=["tokyo-1"])
    public_ip: Optional[str] = Field(None, examples=["203.0.113.10"])
    wireguard_public_key: Optional[str] = None
    region: Optional[str] = Field(None, max_length=50)

    check_name = field_validator('name')(_validate_name)
    check_key = field_validator('wireguard_public_key')(_validate_wireguard_key)

    @field_validator('public_ip')
    @classmethod
    def validate_public_ip(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        try:
            ipaddress.ip_address(v)
        except ValueError:
            raise ValueError(f'Invalid public IP: {v}')
        return v


class GatewayUpdate(GatewayCreate):
    name: Optional[str] = Field(None, min_length=1, max_length=100)


class StatusUpdate(BaseModel):
    """Heartbeat body"""
    status: NodeStatus = NodeStatus.ONLINE


class TunnelCreate(BaseModel):
    """Addresses are never accepted from the client, they are allocated"""
    agent_id: str
    gateway_id: str
    enabled: bool = True
    description: Optional[str] = Field(None, max_length=255)

    model_config = ConfigDict(extra="forbid")


class TunnelUpdate(BaseModel):
    enabled: Optional[bool] = None
    description: Optional[str] = Field(None, max_length=255)

    model_config = ConfigDict(extra="forbid")


class FleetSnapshot(BaseModel):
    """Consistent read of the fleet used for one topology build"""
    agents: List[AgentRecord] = Field(default_factory=list)
    gateways: List[GatewayRecord] = Field(default_factory=list)
    tunnels: List[TunnelRecord] = Field(default_factory=list)
