"""
Tests for the service API.

The app runs with its real lifespan (history database, scheduler loop with
the first pass delayed) around an orchestrator whose collaborators are
doubles.
"""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient

from printsync.api.websocket import ConnectionManager
from printsync.core.exceptions import RosterFetchError
from printsync.main import create_app
from printsync.scanner.address_math import Subnet
from printsync.scanner.connectivity import EndpointResult
from printsync.sync.orchestrator import SyncOrchestrator


@pytest.fixture
def cache_path(tmp_path):
    path = tmp_path / "mac_to_ip_map.json"
    path.write_text(json.dumps({
        "aa:bb:cc:dd:ee:ff": "192.168.1.50",
        "11:22:33:44:55:66": "192.168.1.60",
    }))
    return path


@pytest.fixture
def orchestrator(cache_path, socket_printer, neighbor_cache, scanner):
    api_client = MagicMock()
    api_client.fetch_roster = AsyncMock(return_value=[socket_printer])
    api_client.push_printers = AsyncMock(return_value={"details": {"warnings": [], "errors": []}})
    return SyncOrchestrator(
        api_client=api_client,
        cache_path=cache_path,
        neighbor_cache=neighbor_cache,
        scanner=scanner,
        subnet_provider=lambda: [],
        on_timeout=MagicMock(),
    )


@pytest.fixture
def client(orchestrator):
    with TestClient(create_app(orchestrator)) as test_client:
        yield test_client


class TestService:
    def test_root_and_health(self, client):
        assert client.get("/").json()["status"] == "running"

        health = client.get("/health").json()
        assert health["status"] == "healthy"
        assert health["scheduler_running"] is True
        assert health["syncing"] is False


class TestSyncRoutes:
    def test_trigger_and_history(self, client):
        """Should run a pass on demand and record it with its per-printer outcome."""
        async def validate(protocol, ip, port):
            return EndpointResult(valid=ip == "192.168.1.50")

        with patch("printsync.scanner.connectivity.validate", AsyncMock(side_effect=validate)):
            response = client.post("/api/sync")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["status"] == "completed"
        assert body["printers_total"] == 1
        assert body["printers_resolved"] == 1
        run_id = body["run_id"]
        assert run_id is not None

        runs = client.get("/api/sync/runs", params={"limit": 5}).json()
        assert runs[0]["id"] == run_id
        assert runs[0]["trigger"] == "manual"

        detail = client.get(f"/api/sync/runs/{run_id}").json()
        assert detail["resolutions"][0]["resolved_ip"] == "192.168.1.50"
        assert detail["resolutions"][0]["method"] == "cache"

        status = client.get("/api/sync/status").json()
        assert status["scheduler_running"] is True
        assert status["last_run"]["id"] == run_id

    def test_failed_pass(self, client, orchestrator):
        orchestrator.api_client.fetch_roster.side_effect = RosterFetchError("Roster request answered 503", status=503)
        body = client.post("/api/sync").json()

        assert body["success"] is False
        assert body["status"] == "failed"
        orchestrator.api_client.push_printers.assert_not_called()

    def test_unknown_run(self, client):
        assert client.get("/api/sync/runs/999999").status_code == 404


class TestCacheRoutes:
    def test_list(self, client):
        body = client.get("/api/cache").json()

        assert body["total"] == 2
        assert {"mac_address": "aa:bb:cc:dd:ee:ff", "ip_address": "192.168.1.50"} in body["entries"]

    def test_delete(self, client, cache_path):
        response = client.delete("/api/cache/AA-BB-CC-DD-EE-FF")

        assert response.status_code == 200
        assert json.loads(cache_path.read_text()) == {"11:22:33:44:55:66": "192.168.1.60"}
        assert client.delete("/api/cache/AA-BB-CC-DD-EE-FF").status_code == 404


class TestSubnetRoutes:
    def test_list(self, client):
        subnets = [Subnet(interface_name="eth0", local_address="192.168.1.10", netmask="255.255.255.0")]

        with patch("printsync.api.routes.enumerate_local_subnets", return_value=subnets):
            body = client.get("/api/subnets").json()

        assert body == [{
            "interface_name": "eth0",
            "local_address": "192.168.1.10",
            "netmask": "255.255.255.0",
            "cidr": 24,
            "network_address": "192.168.1.0",
            "broadcast_address": "192.168.1.255",
            "interface_mac": None,
        }]


class TestWebSocket:
    def test_greeting_and_ping(self, client):
        with client.websocket_connect("/ws") as websocket:
            greeting = websocket.receive_json()
            assert greeting["type"] == "connected"
            assert greeting["data"]["syncing"] is False
            assert greeting["data"]["last_result"] is None
            websocket.send_text(json.dumps({"type": "ping"}))
            assert websocket.receive_json()["type"] == "pong"

    @pytest.mark.asyncio
    async def test_broadcast_drops_dead_clients(self):
        manager = ConnectionManager()
        alive, dead = AsyncMock(), AsyncMock()
        dead.send_text.side_effect = RuntimeError("closed")
        manager.active_connections = {alive, dead}

        await manager.broadcast("printer_resolved", {"printer_id": 1})

        assert manager.active_connections == {alive}
        sent = json.loads(alive.send_text.await_args.args[0])
        assert sent["type"] == "printer_resolved"
        assert sent["data"] == {"printer_id": 1}
        assert "timestamp" in sent
