"""
Shared fixtures.

Settings are read once at import time, so the environment is pointed at a
scratch directory before anything from printsync is imported.
"""

import os
import tempfile

_SCRATCH = tempfile.mkdtemp(prefix="printsync-tests-")
os.environ["DATA_PATH"] = os.path.join(_SCRATCH, "appData")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_SCRATCH, 'history.db')}"
os.environ["SYNC_ON_STARTUP"] = "false"
os.environ["CENTRAL_API_URL"] = "http://central.invalid/api/v1"
os.environ["LOCAL_API_URL"] = "http://local.invalid/api"

import pytest
from unittest.mock import AsyncMock, MagicMock

from printsync.scanner.address_math import Subnet
from printsync.sync.mac_ip_cache import MacIpCache
from printsync.sync.models import PrinterDescriptor


@pytest.fixture
def subnet():
    """A plain /24 home network."""
    return Subnet(interface_name="eth0", local_address="192.168.1.10", netmask="255.255.255.0")


@pytest.fixture
def socket_printer():
    return PrinterDescriptor.from_api({
        "id": 1,
        "name": "Office Laser",
        "mac_address": "AA-BB-CC-DD-EE-FF",
        "ip_address": "10.0.0.5",
        "driver": "generic",
        "protocol": "socket",
        "port": 9100,
    })


@pytest.fixture
def ipp_printer():
    return PrinterDescriptor.from_api({
        "id": 2,
        "name": "Front Desk",
        "mac_address": "11:22:33:44:55:66",
        "protocol": "IPP",
        "port": 631,
    })


@pytest.fixture
def cache():
    return MacIpCache()


@pytest.fixture
def neighbor_cache():
    """Neighbor table double that knows nothing by default."""
    neighbors = MagicMock()
    neighbors.warm = AsyncMock(return_value=None)
    neighbors.find_ip_for_mac = AsyncMock(return_value=None)
    neighbors.find_mac_for_ip = AsyncMock(return_value=None)
    neighbors.snapshot = AsyncMock(return_value=[])
    return neighbors


@pytest.fixture
def scanner():
    """Subnet scanner double that finds no hosts by default."""
    subnet_scanner = MagicMock()
    subnet_scanner.ping_sweep = AsyncMock(return_value=None)
    subnet_scanner.open_port_scan = AsyncMock(return_value=[])
    return subnet_scanner