# control-plane/core/wireguard_config.py
"""
Config Renderer
Turns a NodeTopology into wg-quick style INI text
"""

from typing import List

from schemas.config import NodeTopology, PeerConfig
from schemas.fleet import NodeKind

ROLE_LABELS = {
    NodeKind.AGENT: "Agent",
    NodeKind.GATEWAY: "Gateway",
}

# Real keys are injected by key management before delivery
PRIVATE_KEY_PLACEHOLDERS = {
    NodeKind.AGENT: "<AGENT_PRIVATE_KEY>",
    NodeKind.GATEWAY: "<GATEWAY_PRIVATE_KEY>",
}


def _join(values: List[str]) -> str:
    return ", ".join(values)


def render_interface(topology: NodeTopology) -> List[str]:
    interface = topology.interface
    lines = [
        "[Interface]",
        f"# {ROLE_LABELS[interface.kind]}: {interface.name}",
        f"PrivateKey = {PRIVATE_KEY_PLACEHOLDERS[interface.kind]}",
    ]
    if interface.kind == NodeKind.GATEWAY and interface.listen_port:
        lines.append(f"ListenPort = {interface.listen_port}")
    if interface.addresses:
        lines.append(f"Address = {_join(interface.addresses)}")
    return lines


def render_peer(peer: PeerConfig) -> List[str]:
    lines = [
        "[Peer]",
        f"# {ROLE_LABELS[peer.kind]}: {peer.name}",
        f"PublicKey = {peer.public_key}",
    ]
    if peer.endpoint:
        lines.append(f"Endpoint = {peer.endpoint}")
    if peer.allowed_ips:
        lines.append(f"AllowedIPs = {_join(peer.allowed_ips)}")
    if peer.persistent_keepalive:
        lines.append(f"PersistentKeepalive = {peer.persistent_keepalive}")
    return lines


def render_config(topology: NodeTopology) -> str:
    """
    Render the full config text

    Each section ends with a blank line. Address and AllowedIPs lines are
    left out when their list is empty.
    """
    sections = [render_interface(topology)]
    sections.extend(render_peer(peer) for peer in topology.peers)

    return "".join("\n".join(section) + "\n\n" for section in sections)
