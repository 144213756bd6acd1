"""
Tests for the OS neighbor table reader.

The table itself is never touched: parsers get canned command output and
snapshot() is mocked for the lookups.
"""

import pytest
from unittest.mock import AsyncMock, patch

from printsync.scanner import neighbor_cache as neighbor_module
from printsync.scanner.neighbor_cache import (
    NeighborCache,
    NeighborTableEntry,
    parse_arp_output,
    parse_proc_arp,
)


LINUX_ARP = """\
? (192.168.1.1) at aa:bb:cc:00:00:01 [ether] on eth0
? (192.168.1.50) at AA:BB:CC:DD:EE:FF [ether] on eth0
? (192.168.1.77) at <incomplete> on eth0
"""

MACOS_ARP = """\
? (192.168.1.1) at 0:50:56:c0:0:8 on en0 ifscope [ethernet]
? (192.168.1.255) at ff:ff:ff:ff:ff:ff on en0 ifscope [ethernet]
"""

WINDOWS_ARP = """\

Interface: 192.168.1.10 --- 0x3
  Internet Address      Physical Address      Type
  192.168.1.1           aa-bb-cc-00-00-01     dynamic
  192.168.1.50          aa-bb-cc-dd-ee-ff     dynamic
  192.168.1.255         ff-ff-ff-ff-ff-ff     static
"""

PROC_ARP = """\
IP address       HW type     Flags       HW address            Mask     Device
192.168.1.1      0x1         0x2         aa:bb:cc:00:00:01     *        eth0
192.168.1.50     0x1         0x2         aa:bb:cc:dd:ee:ff     *        eth0
192.168.1.60     0x1         0x0         00:00:00:00:00:00     *        eth0
"""


# =============================================================================
# PARSERS
# =============================================================================

class TestParsers:
    def test_linux_output(self):
        entries = parse_arp_output(LINUX_ARP)

        assert entries == [
            NeighborTableEntry(ip="192.168.1.1", mac="aa:bb:cc:00:00:01"),
            NeighborTableEntry(ip="192.168.1.50", mac="aa:bb:cc:dd:ee:ff"),
        ]

    def test_macos_short_octets_are_padded(self):
        """Should expand BSD-style single digit octets and drop broadcast entries."""
        entries = parse_arp_output(MACOS_ARP)

        assert entries == [NeighborTableEntry(ip="192.168.1.1", mac="00:50:56:c0:00:08")]

    def test_windows_output(self):
        entries = parse_arp_output(WINDOWS_ARP)

        assert [e.ip for e in entries] == ["192.168.1.1", "192.168.1.50"]
        assert entries[1].mac == "aa:bb:cc:dd:ee:ff"

    def test_proc_net_arp_skips_incomplete(self):
        entries = parse_proc_arp(PROC_ARP)

        assert [e.ip for e in entries] == ["192.168.1.1", "192.168.1.50"]


# =============================================================================
# LOOKUPS
# =============================================================================

@pytest.fixture
def table():
    neighbors = NeighborCache(ping_timeout=1, raw_arp=False)
    neighbors.snapshot = AsyncMock(return_value=parse_proc_arp(PROC_ARP))
    return neighbors


class TestLookups:
    @pytest.mark.asyncio
    async def test_find_ip_for_mac_any_spelling(self, table):
        assert await table.find_ip_for_mac("AA-BB-CC-DD-EE-FF") == "192.168.1.50"

    @pytest.mark.asyncio
    async def test_find_ip_for_unknown_mac(self, table):
        assert await table.find_ip_for_mac("11:22:33:44:55:66") is None
        assert await table.find_ip_for_mac("") is None

    @pytest.mark.asyncio
    async def test_find_mac_for_ip(self, table):
        assert await table.find_mac_for_ip("192.168.1.1") == "aa:bb:cc:00:00:01"

    @pytest.mark.asyncio
    async def test_find_mac_for_unknown_ip_without_raw_arp(self, table):
        with patch.object(table, "_arp_probe") as probe:
            assert await table.find_mac_for_ip("192.168.1.99") is None
        probe.assert_not_called()

    @pytest.mark.asyncio
    async def test_raw_arp_fallback(self, table):
        """Should ask scapy when allowed and the table has no entry."""
        with patch.object(table, "_raw_arp_allowed", return_value=True), \
                patch.object(table, "_arp_probe", return_value="AA:BB:CC:00:00:99"):
            assert await table.find_mac_for_ip("192.168.1.99") == "aa:bb:cc:00:00:99"


class TestSnapshot:
    @pytest.mark.asyncio
    async def test_reads_proc_file(self, tmp_path):
        proc_file = tmp_path / "arp"
        proc_file.write_text(PROC_ARP)

        with patch.object(neighbor_module, "PROC_ARP_PATH", proc_file):
            entries = await NeighborCache().snapshot()

        assert len(entries) == 2

    @pytest.mark.asyncio
    async def test_falls_back_to_arp_command(self, tmp_path):
        neighbors = NeighborCache()
        neighbors._run_arp_command = AsyncMock(return_value=LINUX_ARP)

        with patch.object(neighbor_module, "PROC_ARP_PATH", tmp_path / "missing"):
            entries = await neighbors.snapshot()

        assert [e.ip for e in entries] == ["192.168.1.1", "192.168.1.50"]

    @pytest.mark.asyncio
    async def test_unavailable_table_gives_empty_list(self, tmp_path):
        neighbors = NeighborCache()
        neighbors._run_arp_command = AsyncMock(side_effect=FileNotFoundError("arp"))

        with patch.object(neighbor_module, "PROC_ARP_PATH", tmp_path / "missing"):
            assert await neighbors.snapshot() == []


class TestPingCommand:
    @pytest.mark.parametrize("system,expected", [
        ("linux", ["ping", "-c", "1", "-W", "2", "10.0.0.1"]),
        ("darwin", ["ping", "-c", "1", "-t", "2", "10.0.0.1"]),
        ("windows", ["ping", "-n", "1", "-w", "2000", "10.0.0.1"]),
    ])
    def test_platform_flags(self, system, expected):
        neighbors = NeighborCache(ping_timeout=2)
        neighbors.system = system
        assert neighbors._ping_command("10.0.0.1") == expected

    @pytest.mark.asyncio
    async def test_warm_swallows_missing_ping(self):
        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=FileNotFoundError("ping"))):
            await NeighborCache().warm("10.0.0.1")
