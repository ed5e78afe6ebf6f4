# control-plane/core/topology.py
"""
Topology Builder
Derives the WireGuard interface and peer list a Gateway or Agent must run
from a snapshot of Agent, Gateway and Tunnel records.

Pure: no database, no clock, no randomness. Identical input order gives
identical output order.
"""

from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple
import logging

from schemas.config import InterfaceConfig, NodeTopology, PeerConfig
from schemas.fleet import AgentRecord, GatewayRecord, NodeKind, TunnelRecord
from .exceptions import NotFoundError, ValidationError
from .subnet import AddressBlock, host_cidr, parse_subnet

logger = logging.getLogger(__name__)

WIREGUARD_PORT = 51820
PERSISTENT_KEEPALIVE = 25


class AllowedIpsScope(str, Enum):
    """How peer allowed-IPs are collected from tunnels"""
    PER_GATEWAY = "per_gateway"  # only tunnels between the two nodes
    GLOBAL = "global"            # every tunnel of the node, whichever peer it goes to


def tunnel_block(tunnel: TunnelRecord) -> Optional[AddressBlock]:
    """
    Address block of a usable tunnel

    Returns None for disabled tunnels and for null or malformed subnets,
    which then contribute no address and no peer.
    """
    if not tunnel.enabled:
        return None

    block = parse_subnet(tunnel.subnet)
    if block is None:
        logger.debug(f"Skipping tunnel {tunnel.id}: invalid subnet {tunnel.subnet!r}")
    return block


def _usable_tunnels(tunnels: Sequence[TunnelRecord]) -> List[Tuple[TunnelRecord, AddressBlock]]:
    usable = []
    for tunnel in tunnels:
        block = tunnel_block(tunnel)
        if block is not None:
            usable.append((tunnel, block))
    return usable


def build_gateway_topology(
    gateway: GatewayRecord,
    agents: Sequence[AgentRecord],
    tunnels: Sequence[TunnelRecord],
    listen_port: int = WIREGUARD_PORT,
    scope: AllowedIpsScope = AllowedIpsScope.PER_GATEWAY,
) -> NodeTopology:
    """
    Topology for a Gateway

    The gateway binds the gateway host of every tunnel in the mesh, since
    one gateway interface serves the shared overlay. Peers are the Agents,
    one per Agent in first-encounter order, each allowed its agent hosts.
    """
    usable = _usable_tunnels(tunnels)
    agent_map = {agent.id: agent for agent in agents}

    addresses = [host_cidr(block.gateway_ip(), block.prefix_len) for _, block in usable]

    # Group tunnels by agent, dict keeps first-encounter order
    allowed_by_agent: Dict[str, List[str]] = {}
    for tunnel, block in usable:
        if scope == AllowedIpsScope.PER_GATEWAY and tunnel.gateway_id != gateway.id:
            continue
        allowed_by_agent.setdefault(tunnel.agent_id, []).append(host_cidr(block.agent_ip))

    peers = []
    for agent_id, allowed_ips in allowed_by_agent.items():
        agent = agent_map.get(agent_id)
        if agent is None:
            logger.debug(f"Tunnel references unknown agent {agent_id}, no peer emitted")
            continue
        if not agent.wireguard_public_key:
            logger.debug(f"Agent {agent.name} has no public key yet, no peer emitted")
            continue

        peers.append(PeerConfig(
            kind=NodeKind.AGENT,
            name=agent.name,
            public_key=agent.wireguard_public_key,
            allowed_ips=allowed_ips,
        ))

    return NodeTopology(
        node_kind=NodeKind.GATEWAY,
        node_id=gateway.id,
        interface=InterfaceConfig(
            kind=NodeKind.GATEWAY,
            name=gateway.name,
            addresses=addresses,
            listen_port=listen_port,
        ),
        peers=peers,
    )


def build_agent_topology(
    agent: AgentRecord,
    gateways: Sequence[GatewayRecord],
    tunnels: Sequence[TunnelRecord],
    port: int = WIREGUARD_PORT,
    keepalive: int = PERSISTENT_KEEPALIVE,
    scope: AllowedIpsScope = AllowedIpsScope.PER_GATEWAY,
) -> NodeTopology:
    """
    Topology for an Agent

    One peer per Gateway in fleet order, including Gateways the Agent has
    no tunnel to. With PER_GATEWAY scope a peer is allowed only the gateway
    hosts of the Agent's tunnels to that Gateway; GLOBAL allows every
    gateway host of the Agent on every peer.
    """
    own = [(t, b) for t, b in _usable_tunnels(tunnels) if t.agent_id == agent.id]

    addresses = [host_cidr(block.agent_ip, block.prefix_len) for _, block in own]
    all_gateway_ips = [host_cidr(block.gateway_ip()) for _, block in own]

    peers = []
    for gateway in gateways:
        # A keyless Gateway cannot be a usable [Peer], it joins once it reports a key
        if not gateway.wireguard_public_key:
            logger.debug(f"Gateway {gateway.name} has no public key yet, no peer emitted")
            continue

        if scope == AllowedIpsScope.GLOBAL:
            allowed_ips = list(all_gateway_ips)
        else:
            allowed_ips = [
                host_cidr(block.gateway_ip())
                for tunnel, block in own
                if tunnel.gateway_id == gateway.id
            ]

        peers.append(PeerConfig(
            kind=NodeKind.GATEWAY,
            name=gateway.name,
            public_key=gateway.wireguard_public_key,
            allowed_ips=allowed_ips,
            endpoint=f"{gateway.public_ip}:{port}" if gateway.public_ip else None,
            persistent_keepalive=keepalive,
        ))

    return NodeTopology(
        node_kind=NodeKind.AGENT,
        node_id=agent.id,
        interface=InterfaceConfig(
            kind=NodeKind.AGENT,
            name=agent.name,
            addresses=addresses,
        ),
        peers=peers,
    )


def build_topology(
    node_kind: NodeKind,
    node_id: str,
    agents: Sequence[AgentRecord],
    gateways: Sequence[GatewayRecord],
    tunnels: Sequence[TunnelRecord],
    port: int = WIREGUARD_PORT,
    keepalive: int = PERSISTENT_KEEPALIVE,
    scope: AllowedIpsScope = AllowedIpsScope.PER_GATEWAY,
) -> NodeTopology:
    """
    Build the peer topology of one node from a fleet snapshot

    Raises:
        NotFoundError: If no node of that kind has this id
        ValidationError: If node_kind is unknown
    """
    try:
        node_kind = NodeKind(node_kind)
    except ValueError:
        raise ValidationError(f"Unknown node kind: {node_kind!r}")

    if node_kind == NodeKind.GATEWAY:
        gateway = next((g for g in gateways if g.id == node_id), None)
        if gateway is None:
            raise NotFoundError("gateway", node_id)
        return build_gateway_topology(gateway, agents, tunnels, listen_port=port, scope=scope)

    agent = next((a for a in agents if a.id == node_id), None)
    if agent is None:
        raise NotFoundError("agent", node_id)
    return build_agent_topology(agent, gateways, tunnels, port=port, keepalive=keepalive, scope=scope)
