"""
IPv4 subnet math for the locally attached networks.

Subnets are derived from the live interface list on every pass and are
never persisted.
"""

import ipaddress
import logging
from dataclasses import dataclass, field
from itertools import islice
from typing import List, Optional

import netifaces

logger = logging.getLogger(__name__)

# Never scan more than a /24 worth of hosts, even on a misconfigured /8
MAX_HOSTS = 254


@dataclass(frozen=True)
class Subnet:
    """An IPv4 network reachable through a local interface."""
    interface_name: str
    local_address: str
    netmask: str
    interface_mac: Optional[str] = None
    cidr: int = field(init=False)
    network_address: str = field(init=False)
    broadcast_address: str = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "cidr", netmask_to_cidr(self.netmask))
        object.__setattr__(self, "network_address", network_address(self.local_address, self.netmask))
        object.__setattr__(self, "broadcast_address", broadcast_address(self.local_address, self.netmask))

    @property
    def notation(self) -> str:
        return f"{self.network_address}/{self.cidr}"


def _octets(address: str) -> List[int]:
    return [int(x) for x in address.split('.')]


def netmask_to_cidr(netmask: str) -> int:
    """Count the set bits of a dotted netmask."""
    return sum(bin(x).count('1') for x in _octets(netmask))


def network_address(address: str, netmask: str) -> str:
    ip_parts = _octets(address)
    mask_parts = _octets(netmask)
    return '.'.join(str(ip_parts[i] & mask_parts[i]) for i in range(4))


def broadcast_address(address: str, netmask: str) -> str:
    ip_parts = _octets(address)
    mask_parts = _octets(netmask)
    return '.'.join(str(ip_parts[i] | (255 - mask_parts[i])) for i in range(4))


def host_addresses(subnet: Subnet) -> List[str]:
    """
    List the host addresses of a subnet in ascending order.

    Network and broadcast addresses are excluded and the list is capped at
    MAX_HOSTS entries. Point-to-point (/31) and host (/32) routes yield
    nothing to scan.
    """
    host_count = min(MAX_HOSTS, 2 ** (32 - subnet.cidr) - 2)
    if host_count <= 0:
        return []

    network = ipaddress.ip_network(subnet.notation)
    return [str(ip) for ip in islice(network.hosts(), host_count)]


def enumerate_local_subnets() -> List[Subnet]:
    """Return one Subnet per IPv4 address on every non-loopback interface."""
    subnets = []

    for interface in netifaces.interfaces():
        try:
            addrs = netifaces.ifaddresses(interface)
        except ValueError:
            # Interface vanished between listing and query
            continue

        ipv4_entries = addrs.get(netifaces.AF_INET, [])
        if not ipv4_entries:
            continue

        link_entries = addrs.get(netifaces.AF_LINK, [])
        mac = link_entries[0].get('addr') if link_entries else None

        for entry in ipv4_entries:
            ip = entry.get('addr')
            netmask = entry.get('netmask')
            if not ip or not netmask or ip.startswith('127.'):
                continue
            # netifaces can report prefix-style masks on some platforms
            if '/' in netmask:
                netmask = str(ipaddress.ip_network(f"0.0.0.0/{netmask.split('/')[1]}").netmask)

            subnets.append(Subnet(
                interface_name=interface,
                local_address=ip,
                netmask=netmask,
                interface_mac=mac,
            ))

    logger.debug(f"Local subnets: {[s.notation for s in subnets]}")
    return subnets
