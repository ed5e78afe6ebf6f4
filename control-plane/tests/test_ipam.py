"""Tests for block allocation (pure allocator and the tunnels-backed service)."""

import pytest

from core.exceptions import ExhaustedError, ValidationError
from core.ipam import (
    IPAMService,
    allocate_block,
    allocate_tunnel_addresses,
)
from database.models import Tunnel


# ============================================================================
# Pure allocator
# ============================================================================


def test_first_allocation_is_block_one():
    assert allocate_block(set()).number == 1


def test_lowest_gap_is_reused():
    assert allocate_block({1, 2, 4, 5}).number == 3


def test_skips_contiguous_prefix():
    assert allocate_block(set(range(1, 101))).number == 101


def test_last_block():
    assert allocate_block(set(range(1, 254))).number == 254


def test_exhausted_when_all_blocks_used():
    with pytest.raises(ExhaustedError):
        allocate_block(set(range(1, 255)))


def test_same_input_gives_same_block():
    used = {3, 1, 7}
    assert allocate_block(used) == allocate_block(list(used))


@pytest.mark.parametrize("bad", [0, 255, -3, "1", 1.0, None])
def test_invalid_used_numbers_rejected(bad):
    with pytest.raises(ValidationError):
        allocate_block([1, bad])


def test_tunnel_addresses_triple():
    allocation = allocate_tunnel_addresses({1})
    assert allocation.subnet == "10.2.0.0/24"
    assert allocation.gateway_ip == "10.2.0.1"
    assert allocation.agent_ip == "10.2.0.100"


# ============================================================================
# Service
# ============================================================================


def _tunnel(db_session, subnet):
    tunnel = Tunnel(subnet=subnet)
    db_session.add(tunnel)
    db_session.commit()
    return tunnel


def test_used_numbers_ignore_malformed_subnets(db_session):
    _tunnel(db_session, "10.1.0.0/24")
    _tunnel(db_session, "10.3.0.0/24")
    _tunnel(db_session, "192.168.1.0/24")
    _tunnel(db_session, None)

    service = IPAMService()
    assert service.get_used_numbers(db_session) == {1, 3}
    assert service.next_allocation(db_session).subnet == "10.2.0.0/24"


def test_deleted_tunnel_frees_its_block(db_session):
    _tunnel(db_session, "10.1.0.0/24")
    second = _tunnel(db_session, "10.2.0.0/24")
    service = IPAMService()
    assert service.next_allocation(db_session).subnet == "10.3.0.0/24"

    db_session.delete(second)
    db_session.commit()
    assert service.next_allocation(db_session).subnet == "10.2.0.0/24"


def test_allocation_stats(db_session):
    _tunnel(db_session, "10.1.0.0/24")
    _tunnel(db_session, "10.2.0.0/24")

    stats = IPAMService().get_allocation_stats(db_session)
    assert stats["total_blocks"] == 254
    assert stats["used"] == 2
    assert stats["available"] == 252
    assert stats["next_free"] == "10.3.0.0/24"
    assert stats["utilization_percent"] == round(2 / 254 * 100, 2)
