import asyncio
import logging
import os
import platform
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from scapy.all import ARP, Ether, srp, conf

from ..core.config import settings
from .mac_codec import normalize

logger = logging.getLogger(__name__)

PROC_ARP_PATH = Path("/proc/net/arp")

IP_PATTERN = re.compile(r"(\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})")
# Accepts both zero-padded and BSD-style "0:50:56:c0:0:8" octets
MAC_PATTERN = re.compile(r"((?:[0-9A-Fa-f]{1,2}[:-]){5}[0-9A-Fa-f]{1,2})")

IGNORED_MACS = {"ff:ff:ff:ff:ff:ff", "00:00:00:00:00:00"}


@dataclass(frozen=True)
class NeighborTableEntry:
    """An IP/MAC pair currently known to the OS neighbor table."""
    ip: str
    mac: str


def _pad_mac(raw_mac: str) -> str:
    """Expand single-digit octets so normalize() sees 12 hex digits."""
    return ':'.join(part.zfill(2) for part in re.split(r'[:-]', raw_mac))


def parse_arp_output(output: str) -> List[NeighborTableEntry]:
    """
    Parse `arp -a` / `arp -an` output from Linux, macOS or Windows.

    Linux/macOS: "? (192.168.1.1) at aa:bb:cc:dd:ee:ff [ether] on eth0"
    Windows:     "  192.168.1.1          aa-bb-cc-dd-ee-ff     dynamic"
    """
    entries = []

    for line in output.split("\n"):
        ip_match = IP_PATTERN.search(line)
        mac_match = MAC_PATTERN.search(line)
        if not ip_match or not mac_match:
            continue

        mac = normalize(_pad_mac(mac_match.group(1)))
        if mac in IGNORED_MACS:
            continue
        entries.append(NeighborTableEntry(ip=ip_match.group(1), mac=mac))

    return entries


def parse_proc_arp(content: str) -> List[NeighborTableEntry]:
    """Parse /proc/net/arp, skipping incomplete (flags 0x0) entries."""
    entries = []

    for line in content.splitlines()[1:]:
        parts = line.split()
        if len(parts) < 4:
            continue
        ip, _hw_type, flags, hw_address = parts[:4]
        if flags == "0x0":
            continue

        mac = normalize(hw_address)
        if mac in IGNORED_MACS:
            continue
        entries.append(NeighborTableEntry(ip=ip, mac=mac))

    return entries


class NeighborCache:
    """Access to the OS ARP/neighbor cache."""

    def __init__(self, ping_timeout: Optional[int] = None, raw_arp: Optional[bool] = None):
        self.ping_timeout = ping_timeout or settings.PING_TIMEOUT
        self.raw_arp = settings.RAW_ARP_ENABLED if raw_arp is None else raw_arp
        self.system = platform.system().lower()
        conf.verb = 0  # Disable scapy verbose output

    def _ping_command(self, ip: str) -> List[str]:
        if self.system == "windows":
            return ["ping", "-n", "1", "-w", str(self.ping_timeout * 1000), ip]
        if self.system == "darwin":
            return ["ping", "-c", "1", "-t", str(self.ping_timeout), ip]
        return ["ping", "-c", "1", "-W", str(self.ping_timeout), ip]

    async def warm(self, ip: str) -> None:
        """Send one ICMP echo so the OS resolves and caches the MAC of ip."""
        try:
            process = await asyncio.create_subprocess_exec(
                *self._ping_command(ip),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL
            )
            await process.wait()
        except Exception as e:
            logger.debug(f"Ping {ip} failed: {e}")

    async def snapshot(self) -> List[NeighborTableEntry]:
        """Read every IP/MAC pair from the neighbor table; [] when unavailable."""
        try:
            if PROC_ARP_PATH.exists():
                return parse_proc_arp(PROC_ARP_PATH.read_text())
            return parse_arp_output(await self._run_arp_command())
        except Exception as e:
            logger.error(f"Error reading neighbor table: {e}")
            return []

    async def _run_arp_command(self) -> str:
        cmd = ["arp", "-a"] if self.system == "windows" else ["arp", "-an"]
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            logger.warning(f"arp command failed: {stderr.decode(errors='ignore').strip()}")
        return stdout.decode(errors='ignore')

    async def find_ip_for_mac(self, mac: str) -> Optional[str]:
        target = normalize(mac)
        if not target:
            return None

        for entry in await self.snapshot():
            if entry.mac == target:
                logger.debug(f"MAC {target} found in neighbor table at {entry.ip}")
                return entry.ip

        logger.debug(f"MAC {target} not found in neighbor table")
        return None

    async def find_mac_for_ip(self, ip: str) -> Optional[str]:
        """Look ip up in the neighbor table; call warm(ip) first."""
        for entry in await self.snapshot():
            if entry.ip == ip:
                return entry.mac

        if self._raw_arp_allowed():
            loop = asyncio.get_running_loop()
            raw_mac = await loop.run_in_executor(None, self._arp_probe, ip)
            if raw_mac:
                return normalize(raw_mac)

        return None

    def _raw_arp_allowed(self) -> bool:
        return self.raw_arp and hasattr(os, "geteuid") and os.geteuid() == 0

    def _arp_probe(self, ip: str) -> Optional[str]:
        """Send a single ARP request for ip and return the replying MAC (blocking)."""
        try:
            packet = Ether(dst="ff:ff:ff:ff:ff:ff") / ARP(pdst=ip)
            answered = srp(packet, timeout=self.ping_timeout, verbose=False)[0]
            if answered:
                return answered[0][1].hwsrc.lower()
        except Exception as e:
            logger.debug(f"ARP probe {ip} failed: {e}")

        return None
