# control-plane/schemas/config.py
"""
WireGuard topology schemas
Structured per-node configuration, rendered to wg-quick text by
core.wireguard_config or returned as JSON
"""

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List

from .fleet import NodeKind


class PeerConfig(BaseModel):
    """WireGuard peer configuration"""
    kind: NodeKind = Field(..., description="Role of the remote node")
    name: str = Field(..., description="Remote node name, rendered as a comment")
    public_key: str = Field(..., description="Peer's WireGuard public key")
    allowed_ips: List[str] = Field(default_factory=list, examples=[["10.1.0.100/32", "10.2.0.100/32"]])
    endpoint: Optional[str] = Field(None, description="Peer endpoint (IP:Port)", examples=["203.0.113.10:51820"])
    persistent_keepalive: Optional[int] = Field(None, description="Keepalive interval in seconds")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "kind": "gateway",
                "name": "tokyo-1",
                "public_key": "/ry2U1KKvVSvhfr2yGbMT57Auqes47MOhJAy0vKignA=",
                "allowed_ips": ["10.1.0.1/32"],
                "endpoint": "203.0.113.10:51820",
                "persistent_keepalive": 25
            }
        }
    )


class InterfaceConfig(BaseModel):
    """WireGuard interface of the node the topology was built for"""
    kind: NodeKind
    name: str
    addresses: List[str] = Field(default_factory=list, examples=[["10.1.0.1/24", "10.2.0.1/24"]])
    listen_port: Optional[int] = Field(None, ge=1, le=65535, description="Listen port (gateways only)")


class NodeTopology(BaseModel):
    """
    Complete peer topology for one node
    Carries no private key and no timestamps so equal fleets give equal topologies
    """
    node_kind: NodeKind
    node_id: str
    interface: InterfaceConfig
    peers: List[PeerConfig] = Field(default_factory=list)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "node_kind": "gateway",
                "node_id": "7f1c0a52-4a8e-4d3b-9a55-0c2e1f6b9d10",
                "interface": {
                    "kind": "gateway",
                    "name": "tokyo-1",
                    "addresses": ["10.1.0.1/24"],
                    "listen_port": 51820
                },
                "peers": [
                    {
                        "kind": "agent",
                        "name": "home-server",
                        "public_key": "TpuMgv7zP0S6CiGuUjqUx0xVW/mi1WX/bASrXGp9dgU=",
                        "allowed_ips": ["10.1.0.100/32"],
                        "endpoint": None,
                        "persistent_keepalive": None
                    }
                ]
            }
        }
    )
