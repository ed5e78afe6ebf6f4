# control-plane/schemas/__init__.py
"""
Pydantic Schemas for the Mesh Control Plane API
Organized by domain: fleet records, WireGuard topology
"""

from .base import BaseResponse, ErrorResponse, ListResponse, IPAMStatsResponse, HealthResponse
from .fleet import (
    NodeKind,
    NodeStatus,
    AgentRecord,
    GatewayRecord,
    TunnelRecord,
    AgentCreated,
    GatewayCreated,
    AgentCreate,
    AgentUpdate,
    GatewayCreate,
    GatewayUpdate,
    StatusUpdate,
    TunnelCreate,
    TunnelUpdate,
    FleetSnapshot,
)
from .config import (
    PeerConfig,
    InterfaceConfig,
    NodeTopology,
)

__all__ = [
    # Base
    "BaseResponse",
    "ErrorResponse",
    "ListResponse",
    "IPAMStatsResponse",
    "HealthResponse",
    # Fleet
    "NodeKind",
    "NodeStatus",
    "AgentRecord",
    "GatewayRecord",
    "TunnelRecord",
    "AgentCreated",
    "GatewayCreated",
    "AgentCreate",
    "AgentUpdate",
    "GatewayCreate",
    "GatewayUpdate",
    "StatusUpdate",
    "TunnelCreate",
    "TunnelUpdate",
    "FleetSnapshot",
    # Topology
    "PeerConfig",
    "InterfaceConfig",
    "NodeTopology",
]
