# control-plane/core/__init__.py
"""
Core business logic modules
"""

from .exceptions import MeshError, ValidationError, ExhaustedError, NotFoundError
from .subnet import (
    AddressBlock,
    parse_subnet,
    format_subnet,
    is_valid_subnet,
    gateway_host,
    agent_host,
)
from .ipam import ipam_service, allocate_block, allocate_tunnel_addresses, IPAMService, BlockAllocation
from .topology import build_topology, AllowedIpsScope
from .wireguard_config import render_config
from .fleet_manager import fleet_manager, FleetManager
from .tunnel_manager import tunnel_manager, TunnelManager

__all__ = [
    # Errors
    "MeshError",
    "ValidationError",
    "ExhaustedError",
    "NotFoundError",
    # Subnet Codec
    "AddressBlock",
    "parse_subnet",
    "format_subnet",
    "is_valid_subnet",
    "gateway_host",
    "agent_host",
    # IPAM
    "ipam_service",
    "allocate_block",
    "allocate_tunnel_addresses",
    "IPAMService",
    "BlockAllocation",
    # Topology
    "build_topology",
    "AllowedIpsScope",
    "render_config",
    # Managers
    "fleet_manager",
    "FleetManager",
    "tunnel_manager",
    "TunnelManager",
]
