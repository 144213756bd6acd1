"""
Tests for the roster and sync HTTP client against a local aiohttp server.
"""

import socket

import pytest
from aiohttp import web

from printsync.core.exceptions import RosterFetchError, SyncPushError
from printsync.sync.api_client import PrinterApiClient
from printsync.sync.models import ResolvedPrinter


class FakeServices:
    """Central roster and local sync endpoints on one aiohttp app."""

    def __init__(self):
        self.roster_status = 200
        self.roster_body = {"data": []}
        self.push_status = 200
        self.push_body = {"data": {"details": {"warnings": [], "errors": []}}}
        self.roster_headers = None
        self.pushed = None
        self.runner = None
        self.port = None

    async def roster(self, request):
        self.roster_headers = dict(request.headers)
        return web.json_response(self.roster_body, status=self.roster_status)

    async def push(self, request):
        self.pushed = await request.json()
        return web.json_response(self.push_body, status=self.push_status)

    async def start(self):
        app = web.Application()
        app.router.add_get("/api/v1/desktop/printers", self.roster)
        app.router.add_post("/api/sync/printers", self.push)
        self.runner = web.AppRunner(app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, "127.0.0.1", 0)
        await site.start()
        self.port = self.runner.addresses[0][1]

    def client(self) -> PrinterApiClient:
        return PrinterApiClient(
            central_url=f"http://127.0.0.1:{self.port}/api/v1",
            local_url=f"http://127.0.0.1:{self.port}/api/",
            token="secret",
            timeout=5,
        )


@pytest.fixture
def services():
    return FakeServices()


class TestFetchRoster:
    @pytest.mark.asyncio
    async def test_list(self, services):
        services.roster_body = {"data": [
            {"id": 1, "name": "Office", "mac_address": "AA:BB:CC:DD:EE:FF", "protocol": "socket", "port": 9100},
            {"id": 2, "name": "Desk", "protocol": "ipp"},
        ]}
        await services.start()
        try:
            roster = await services.client().fetch_roster()
        finally:
            await services.runner.cleanup()

        assert [p.name for p in roster] == ["Office", "Desk"]
        assert roster[1].port == 631
        assert services.roster_headers["Authorization"] == "Bearer secret"
        assert services.roster_headers["accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_single_object_is_wrapped(self, services):
        services.roster_body = {"data": {"id": 1, "name": "Only"}}
        await services.start()
        try:
            roster = await services.client().fetch_roster()
        finally:
            await services.runner.cleanup()

        assert len(roster) == 1
        assert roster[0].name == "Only"

    @pytest.mark.asyncio
    async def test_http_error(self, services):
        services.roster_status = 401
        services.roster_body = {"message": "bad token"}
        await services.start()
        try:
            with pytest.raises(RosterFetchError) as exc_info:
                await services.client().fetch_roster()
        finally:
            await services.runner.cleanup()

        assert exc_info.value.status == 401
        assert exc_info.value.body == {"message": "bad token"}

    @pytest.mark.asyncio
    async def test_unreachable(self):
        with socket.socket() as sock:
            sock.bind(("127.0.0.1", 0))
            port = sock.getsockname()[1]

        client = PrinterApiClient(central_url=f"http://127.0.0.1:{port}/api/v1", timeout=2)
        with pytest.raises(RosterFetchError):
            await client.fetch_roster()


class TestPushPrinters:
    @pytest.mark.asyncio
    async def test_payload_and_answer(self, services, socket_printer):
        services.push_body = {"data": {"details": {
            "warnings": [{"id": 1, "name": "Office Laser", "warning": "down"}],
            "errors": [],
        }}}
        await services.start()
        try:
            data = await services.client().push_printers([
                ResolvedPrinter(socket_printer, resolved_ip="192.168.1.50", port_open=True, method="neighbor"),
            ])
        finally:
            await services.runner.cleanup()

        printer = services.pushed["printers"][0]
        assert printer["ip_address"] == "192.168.1.50"
        assert printer["connectivity"] == {"port": {"open": True, "number": 9100}}
        assert data["details"]["warnings"][0]["warning"] == "down"

    @pytest.mark.asyncio
    async def test_http_error(self, services, socket_printer):
        services.push_status = 500
        await services.start()
        try:
            with pytest.raises(SyncPushError) as exc_info:
                await services.client().push_printers([ResolvedPrinter(socket_printer)])
        finally:
            await services.runner.cleanup()

        assert exc_info.value.status == 500

    @pytest.mark.asyncio
    async def test_answer_without_data(self, services, socket_printer):
        services.push_body = {"ok": True}
        await services.start()
        try:
            assert await services.client().push_printers([ResolvedPrinter(socket_printer)]) is None
        finally:
            await services.runner.cleanup()
