# control-plane/core/ipam.py
"""
IP Address Management (IPAM) Service
Allocates one /24 overlay block per Tunnel and derives its fixed host addresses
"""

import threading
from typing import Iterable, Optional, Set
from sqlalchemy.orm import Session
import logging

from pydantic import BaseModel

from database.models import Tunnel
from .exceptions import ExhaustedError, ValidationError
from .subnet import (
    AddressBlock,
    MAX_BLOCK_NUMBER,
    MIN_BLOCK_NUMBER,
    block_numbers,
    format_subnet,
    is_block_number,
)

logger = logging.getLogger(__name__)

TOTAL_BLOCKS = MAX_BLOCK_NUMBER - MIN_BLOCK_NUMBER + 1


class BlockAllocation(BaseModel):
    """Address triple persisted on a new Tunnel"""
    subnet: str
    gateway_ip: str
    agent_ip: str


def allocate_block(used_numbers: Iterable[int]) -> AddressBlock:
    """
    Pick the lowest free block number

    Pure and deterministic. Callers sharing a store must serialize
    "read used numbers -> allocate -> persist".

    Raises:
        ValidationError: If used_numbers holds something that is not a block number
        ExhaustedError: If every block in [1, 254] is taken
    """
    used: Set[int] = set()
    for number in used_numbers:
        if not is_block_number(number):
            raise ValidationError(f"Invalid used block number: {number!r}")
        used.add(number)

    for number in range(MIN_BLOCK_NUMBER, MAX_BLOCK_NUMBER + 1):
        if number not in used:
            return AddressBlock(number=number)

    raise ExhaustedError()


def addresses_for_block(block: AddressBlock, gateway_index: int = 0) -> BlockAllocation:
    return BlockAllocation(
        subnet=format_subnet(block),
        gateway_ip=block.gateway_ip(gateway_index),
        agent_ip=block.agent_ip,
    )


def allocate_tunnel_addresses(used_numbers: Iterable[int]) -> BlockAllocation:
    """Allocate a block and derive its {subnet, gateway_ip, agent_ip} triple"""
    return addresses_for_block(allocate_block(used_numbers))


class IPAMService:
    """
    IPAM Service backed by the tunnels table

    Features:
    - Lowest-free-block allocation over the live tunnels
    - Process-wide lock around read/compute/persist
    - Block release on tunnel deletion (the row is the reservation)
    - Pool statistics
    """

    def __init__(self):
        # Held by the caller across allocation and commit
        self.lock = threading.Lock()

    @property
    def total_blocks(self) -> int:
        return TOTAL_BLOCKS

    def get_used_numbers(self, db: Session) -> Set[int]:
        """Block numbers held by existing tunnels, malformed subnets are ignored"""
        rows = db.query(Tunnel.subnet).filter(Tunnel.subnet.isnot(None)).all()
        return set(block_numbers(row[0] for row in rows))

    def next_allocation(self, db: Session) -> BlockAllocation:
        """
        Compute the next allocation from the current tunnels

        Must be called with ``self.lock`` held until the new tunnel is committed.

        Raises:
            ExhaustedError: If the pool is exhausted
        """
        used = self.get_used_numbers(db)
        try:
            allocation = allocate_tunnel_addresses(used)
        except ExhaustedError:
            logger.error("Address pool exhausted!")
            raise

        logger.info(f"Allocated block {allocation.subnet}")
        return allocation

    def get_allocation_stats(self, db: Session) -> dict:
        """
        Get block allocation statistics

        Returns:
            Dictionary with allocation stats
        """
        used = self.get_used_numbers(db)
        used_count = len(used)
        next_free: Optional[str] = None
        if used_count < self.total_blocks:
            next_free = format_subnet(allocate_block(used))

        return {
            "total_blocks": self.total_blocks,
            "used": used_count,
            "available": self.total_blocks - used_count,
            "next_free": next_free,
            "utilization_percent": round((used_count / self.total_blocks) * 100, 2),
        }


# Singleton instance
ipam_service = IPAMService()
