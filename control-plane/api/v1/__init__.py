# control-plane/api/v1/__init__.py
"""
API v1 modules
"""

from . import agents, gateways, tunnels, ipam

__all__ = ["agents", "gateways", "tunnels", "ipam"]
