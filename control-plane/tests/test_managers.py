"""Tests for the database-backed fleet and tunnel managers."""

import re
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from conftest import AGENT_KEY, GATEWAY_KEY
from core.exceptions import ExhaustedError, NotFoundError, ValidationError
from core.fleet_manager import fleet_manager, generate_api_key
from core.ipam import addresses_for_block, ipam_service
from core.subnet import AddressBlock
from core.tunnel_manager import tunnel_manager
from database.models import Base, Tunnel
from schemas.fleet import AgentRecord, NodeKind, NodeStatus


@pytest.fixture()
def agent(db_session):
    return fleet_manager.create_agent(db_session, "home-server", wireguard_public_key=AGENT_KEY)


@pytest.fixture()
def gateway(db_session):
    return fleet_manager.create_gateway(
        db_session, "tokyo-1", public_ip="203.0.113.10", wireguard_public_key=GATEWAY_KEY
    )


def test_generated_api_keys_carry_role_prefix():
    key = generate_api_key("agt_")
    assert re.fullmatch(r"agt_[A-Za-z0-9]{32}", key)
    assert generate_api_key("gtw_") != generate_api_key("gtw_")


def test_created_nodes_get_keys_and_start_offline(agent, gateway):
    assert agent.api_key.startswith("agt_")
    assert gateway.api_key.startswith("gtw_")
    assert agent.status == NodeStatus.OFFLINE.value
    assert gateway.status == NodeStatus.OFFLINE.value


def test_lookup_by_api_key(db_session, agent, gateway):
    assert fleet_manager.get_agent_by_api_key(db_session, agent.api_key).id == agent.id
    assert fleet_manager.get_gateway_by_api_key(db_session, gateway.api_key).id == gateway.id
    assert fleet_manager.get_agent_by_api_key(db_session, gateway.api_key) is None


def test_missing_nodes_raise_not_found(db_session):
    with pytest.raises(NotFoundError) as excinfo:
        fleet_manager.get_agent(db_session, "missing")
    assert excinfo.value.kind == "agent"
    assert excinfo.value.record_id == "missing"

    with pytest.raises(NotFoundError):
        fleet_manager.get_gateway(db_session, "missing")


def test_update_gateway_ignores_unset_fields(db_session, gateway):
    updated = fleet_manager.update_gateway(db_session, gateway.id, region="ap-northeast-1", public_ip=None)
    assert updated.region == "ap-northeast-1"
    assert updated.public_ip == "203.0.113.10"


def test_heartbeat_marks_node_online(db_session, agent):
    node = fleet_manager.update_status(db_session, NodeKind.AGENT, agent.id)
    assert node.status == "online"
    assert node.last_seen_at is not None

    record = AgentRecord.model_validate(node)
    assert record.status is NodeStatus.ONLINE

    node = fleet_manager.update_status(db_session, NodeKind.AGENT, agent.id, NodeStatus.OFFLINE)
    assert node.status == NodeStatus.OFFLINE.value


def test_tunnels_get_consecutive_blocks(db_session, agent, gateway):
    first = tunnel_manager.create_tunnel(db_session, agent.id, gateway.id)
    second = tunnel_manager.create_tunnel(db_session, agent.id, gateway.id)

    assert (first.subnet, first.gateway_ip, first.agent_ip) == ("10.1.0.0/24", "10.1.0.1", "10.1.0.100")
    assert second.subnet == "10.2.0.0/24"


def test_deleted_tunnel_block_is_reused(db_session, agent, gateway):
    first = tunnel_manager.create_tunnel(db_session, agent.id, gateway.id)
    tunnel_manager.create_tunnel(db_session, agent.id, gateway.id)

    tunnel_manager.delete_tunnel(db_session, first.id)
    third = tunnel_manager.create_tunnel(db_session, agent.id, gateway.id)
    assert third.subnet == "10.1.0.0/24"


def test_create_tunnel_requires_existing_nodes(db_session, agent):
    with pytest.raises(NotFoundError):
        tunnel_manager.create_tunnel(db_session, agent.id, "missing")
    assert db_session.query(Tunnel).count() == 0


def test_create_tunnel_when_pool_exhausted(db_session, agent, gateway):
    for number in range(1, 255):
        db_session.add(Tunnel(subnet=f"10.{number}.0.0/24"))
    db_session.commit()

    with pytest.raises(ExhaustedError):
        tunnel_manager.create_tunnel(db_session, agent.id, gateway.id)


def test_update_tunnel_toggles_enabled(db_session, agent, gateway):
    tunnel = tunnel_manager.create_tunnel(db_session, agent.id, gateway.id)
    updated = tunnel_manager.update_tunnel(db_session, tunnel.id, enabled=False, description="paused")

    assert updated.enabled is False
    assert updated.description == "paused"
    assert updated.subnet == "10.1.0.0/24"


def test_list_tunnels_filters(db_session, agent, gateway):
    other = fleet_manager.create_gateway(db_session, "osaka-1")
    tunnel_manager.create_tunnel(db_session, agent.id, gateway.id)
    tunnel_manager.create_tunnel(db_session, agent.id, other.id)

    assert len(tunnel_manager.list_tunnels(db_session, agent_id=agent.id)) == 2
    only = tunnel_manager.list_tunnels(db_session, gateway_id=other.id)
    assert [t.gateway_id for t in only] == [other.id]


def test_deleting_agent_orphans_its_tunnels(db_session, agent, gateway):
    tunnel = tunnel_manager.create_tunnel(db_session, agent.id, gateway.id)
    tunnel_id = tunnel.id

    fleet_manager.delete_agent(db_session, agent.id)

    orphan = tunnel_manager.get_tunnel(db_session, tunnel_id)
    assert orphan.agent_id is None
    assert orphan.subnet == "10.1.0.0/24"

    # the orphan still holds its block and does not break topology builds
    topology = fleet_manager.build_node_topology(db_session, NodeKind.GATEWAY, gateway.id)
    assert topology.interface.addresses == ["10.1.0.1/24"]
    assert topology.peers == []


def test_rendered_config_from_database(db_session, agent, gateway):
    tunnel_manager.create_tunnel(db_session, agent.id, gateway.id)

    text = fleet_manager.render_node_config(db_session, NodeKind.AGENT, agent.id)
    assert "# Agent: home-server" in text
    assert "Address = 10.1.0.100/24" in text
    assert "Endpoint = 203.0.113.10:51820" in text
    assert "AllowedIPs = 10.1.0.1/32" in text
    assert "PersistentKeepalive = 25" in text


def test_concurrent_tunnel_creation_gets_distinct_blocks(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'mesh.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    with Session() as db:
        agent_id = fleet_manager.create_agent(db, "home-server").id
        gateway_id = fleet_manager.create_gateway(db, "tokyo-1").id

    def create(_):
        with Session() as db:
            return tunnel_manager.create_tunnel(db, agent_id, gateway_id).subnet

    try:
        with ThreadPoolExecutor(max_workers=8) as pool:
            subnets = list(pool.map(create, range(16)))
    finally:
        engine.dispose()

    assert len(set(subnets)) == 16
    assert sorted(subnets, key=lambda s: int(s.split(".")[1])) == [
        f"10.{n}.0.0/24" for n in range(1, 17)
    ]


def test_block_collision_rolls_back(db_session, agent, gateway, monkeypatch):
    tunnel_manager.create_tunnel(db_session, agent.id, gateway.id)  # 10.1.0.0/24

    taken = addresses_for_block(AddressBlock(number=1))
    monkeypatch.setattr(ipam_service, "next_allocation", lambda db: taken)

    with pytest.raises(ValidationError):
        tunnel_manager.create_tunnel(db_session, agent.id, gateway.id)

    assert db_session.query(Tunnel).count() == 1
    assert not ipam_service.lock.locked()
