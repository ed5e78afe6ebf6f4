"""Tests for per-node WireGuard topology derivation."""

import pytest

from conftest import AGENT_KEY, AGENT_KEY_2, GATEWAY_KEY, GATEWAY_KEY_2
from core.exceptions import NotFoundError, ValidationError
from core.topology import AllowedIpsScope, build_topology
from schemas.fleet import AgentRecord, GatewayRecord, NodeKind, TunnelRecord


def _agent(id, key=AGENT_KEY, name=None):
    return AgentRecord(id=id, name=name or id, wireguard_public_key=key)


def _gateway(id, key=GATEWAY_KEY, public_ip="203.0.113.10", name=None):
    return GatewayRecord(id=id, name=name or id, wireguard_public_key=key, public_ip=public_ip)


def _tunnel(id, agent_id, gateway_id, number, enabled=True):
    return TunnelRecord(
        id=id,
        agent_id=agent_id,
        gateway_id=gateway_id,
        subnet=f"10.{number}.0.0/24" if number is not None else None,
        gateway_ip=f"10.{number}.0.1" if number is not None else None,
        agent_ip=f"10.{number}.0.100" if number is not None else None,
        enabled=enabled,
    )


# ============================================================================
# Gateway
# ============================================================================


def test_gateway_merges_agent_tunnels_into_one_peer():
    agents = [_agent("A1")]
    gateways = [_gateway("G1")]
    tunnels = [_tunnel("T1", "A1", "G1", 1), _tunnel("T2", "A1", "G1", 2)]

    topology = build_topology(NodeKind.GATEWAY, "G1", agents, gateways, tunnels)

    assert topology.interface.addresses == ["10.1.0.1/24", "10.2.0.1/24"]
    assert topology.interface.listen_port == 51820
    assert len(topology.peers) == 1
    peer = topology.peers[0]
    assert peer.kind == NodeKind.AGENT
    assert peer.public_key == AGENT_KEY
    assert peer.allowed_ips == ["10.1.0.100/32", "10.2.0.100/32"]
    assert peer.endpoint is None
    assert peer.persistent_keepalive is None


def test_gateway_excludes_agent_without_public_key():
    agents = [_agent("A1", key=None), _agent("A2", key=AGENT_KEY_2)]
    gateways = [_gateway("G1")]
    tunnels = [_tunnel("T1", "A1", "G1", 1), _tunnel("T2", "A2", "G1", 2)]

    topology = build_topology(NodeKind.GATEWAY, "G1", agents, gateways, tunnels)

    assert [p.name for p in topology.peers] == ["A2"]
    # the keyless agent's block is still bound on the interface
    assert topology.interface.addresses == ["10.1.0.1/24", "10.2.0.1/24"]


def test_gateway_excludes_agent_without_tunnel():
    agents = [_agent("A1"), _agent("A2", key=AGENT_KEY_2)]
    topology = build_topology(
        NodeKind.GATEWAY, "G1", agents, [_gateway("G1")], [_tunnel("T1", "A1", "G1", 1)]
    )
    assert [p.name for p in topology.peers] == ["A1"]


def test_gateway_peer_order_is_first_encounter():
    agents = [_agent("A1"), _agent("A2", key=AGENT_KEY_2)]
    tunnels = [
        _tunnel("T1", "A2", "G1", 5),
        _tunnel("T2", "A1", "G1", 1),
        _tunnel("T3", "A2", "G1", 2),
    ]
    topology = build_topology(NodeKind.GATEWAY, "G1", agents, [_gateway("G1")], tunnels)

    assert [p.name for p in topology.peers] == ["A2", "A1"]
    assert topology.peers[0].allowed_ips == ["10.5.0.100/32", "10.2.0.100/32"]


def test_gateway_skips_malformed_and_disabled_tunnels():
    tunnels = [
        _tunnel("T1", "A1", "G1", None),
        TunnelRecord(id="T2", agent_id="A1", gateway_id="G1", subnet="10.0.0.0/24"),
        _tunnel("T3", "A1", "G1", 3, enabled=False),
        _tunnel("T4", "A1", "G1", 4),
    ]
    topology = build_topology(NodeKind.GATEWAY, "G1", [_agent("A1")], [_gateway("G1")], tunnels)

    assert topology.interface.addresses == ["10.4.0.1/24"]
    assert topology.peers[0].allowed_ips == ["10.4.0.100/32"]


def test_gateway_tolerates_tunnel_to_deleted_agent():
    tunnels = [_tunnel("T1", "gone", "G1", 1), _tunnel("T2", None, "G1", 2), _tunnel("T3", "A1", "G1", 3)]
    topology = build_topology(NodeKind.GATEWAY, "G1", [_agent("A1")], [_gateway("G1")], tunnels)

    assert [p.name for p in topology.peers] == ["A1"]


def test_gateway_addresses_cover_whole_mesh():
    gateways = [_gateway("G1"), _gateway("G2", key=GATEWAY_KEY_2)]
    tunnels = [_tunnel("T1", "A1", "G1", 1), _tunnel("T2", "A1", "G2", 2)]

    topology = build_topology(NodeKind.GATEWAY, "G1", [_agent("A1")], gateways, tunnels)

    assert topology.interface.addresses == ["10.1.0.1/24", "10.2.0.1/24"]
    assert topology.peers[0].allowed_ips == ["10.1.0.100/32"]


def test_gateway_global_scope_uses_every_tunnel():
    gateways = [_gateway("G1"), _gateway("G2", key=GATEWAY_KEY_2)]
    tunnels = [_tunnel("T1", "A1", "G1", 1), _tunnel("T2", "A1", "G2", 2)]

    topology = build_topology(
        NodeKind.GATEWAY, "G1", [_agent("A1")], gateways, tunnels, scope=AllowedIpsScope.GLOBAL
    )

    assert topology.peers[0].allowed_ips == ["10.1.0.100/32", "10.2.0.100/32"]


def test_gateway_addresses_derive_from_subnet_not_stored_ips():
    tunnel = TunnelRecord(
        id="T1", agent_id="A1", gateway_id="G1",
        subnet="10.9.0.0/24", gateway_ip="10.99.0.1", agent_ip="10.99.0.100",
    )
    topology = build_topology(NodeKind.GATEWAY, "G1", [_agent("A1")], [_gateway("G1")], [tunnel])

    assert topology.interface.addresses == ["10.9.0.1/24"]
    assert topology.peers[0].allowed_ips == ["10.9.0.100/32"]


# ============================================================================
# Agent
# ============================================================================


def test_agent_has_one_peer_per_gateway_scoped_allowed_ips():
    gateways = [_gateway("G1"), _gateway("G2", key=GATEWAY_KEY_2, public_ip="198.51.100.7")]
    tunnels = [
        _tunnel("T1", "A1", "G1", 1),
        _tunnel("T2", "A1", "G2", 2),
        _tunnel("T3", "A2", "G1", 3),
    ]

    topology = build_topology(NodeKind.AGENT, "A1", [_agent("A1"), _agent("A2")], gateways, tunnels)

    assert topology.interface.addresses == ["10.1.0.100/24", "10.2.0.100/24"]
    assert topology.interface.listen_port is None
    assert [p.name for p in topology.peers] == ["G1", "G2"]

    g1, g2 = topology.peers
    assert g1.allowed_ips == ["10.1.0.1/32"]
    assert g1.endpoint == "203.0.113.10:51820"
    assert g1.persistent_keepalive == 25
    assert g2.allowed_ips == ["10.2.0.1/32"]
    assert g2.endpoint == "198.51.100.7:51820"
    assert g2.public_key == GATEWAY_KEY_2


def test_agent_global_scope_unions_all_gateway_hosts():
    gateways = [_gateway("G1"), _gateway("G2", key=GATEWAY_KEY_2)]
    tunnels = [_tunnel("T1", "A1", "G1", 1), _tunnel("T2", "A1", "G2", 2)]

    topology = build_topology(
        NodeKind.AGENT, "A1", [_agent("A1")], gateways, tunnels, scope=AllowedIpsScope.GLOBAL
    )

    for peer in topology.peers:
        assert peer.allowed_ips == ["10.1.0.1/32", "10.2.0.1/32"]


def test_agent_lists_gateways_without_tunnels():
    gateways = [_gateway("G1"), _gateway("G2", key=GATEWAY_KEY_2)]
    topology = build_topology(
        NodeKind.AGENT, "A1", [_agent("A1")], gateways, [_tunnel("T1", "A1", "G1", 1)]
    )

    assert [p.name for p in topology.peers] == ["G1", "G2"]
    assert topology.peers[1].allowed_ips == []


def test_agent_skips_gateway_without_key_and_omits_missing_endpoint():
    gateways = [_gateway("G1", key=None), _gateway("G2", key=GATEWAY_KEY_2, public_ip=None)]
    topology = build_topology(NodeKind.AGENT, "A1", [_agent("A1")], gateways, [])

    assert [p.name for p in topology.peers] == ["G2"]
    assert topology.peers[0].endpoint is None
    assert topology.interface.addresses == []


def test_agent_custom_port_and_keepalive():
    topology = build_topology(
        NodeKind.AGENT, "A1", [_agent("A1")], [_gateway("G1")], [], port=51000, keepalive=15
    )
    assert topology.peers[0].endpoint == "203.0.113.10:51000"
    assert topology.peers[0].persistent_keepalive == 15


# ============================================================================
# Lookup
# ============================================================================


def test_unknown_node_raises_not_found():
    with pytest.raises(NotFoundError):
        build_topology(NodeKind.GATEWAY, "nope", [], [_gateway("G1")], [])
    with pytest.raises(NotFoundError):
        build_topology(NodeKind.AGENT, "G1", [], [_gateway("G1")], [])


def test_kind_accepts_plain_string_and_rejects_unknown():
    topology = build_topology("gateway", "G1", [], [_gateway("G1")], [])
    assert topology.node_kind == NodeKind.GATEWAY

    with pytest.raises(ValidationError):
        build_topology("router", "G1", [], [_gateway("G1")], [])


def test_identical_input_gives_identical_topology():
    agents = [_agent("A1"), _agent("A2", key=AGENT_KEY_2)]
    gateways = [_gateway("G1")]
    tunnels = [_tunnel("T1", "A2", "G1", 2), _tunnel("T2", "A1", "G1", 1)]

    first = build_topology(NodeKind.GATEWAY, "G1", agents, gateways, tunnels)
    second = build_topology(NodeKind.GATEWAY, "G1", list(agents), list(gateways), list(tunnels))
    assert first.model_dump() == second.model_dump()
