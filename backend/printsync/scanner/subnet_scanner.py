import asyncio
import logging
from typing import Iterable, List, Optional, Sequence

from ..core.config import settings
from . import connectivity
from .address_math import Subnet, host_addresses
from .neighbor_cache import NeighborCache

logger = logging.getLogger(__name__)

# Conventional port added to the sweep when the printer's own port differs
ALTERNATE_PORTS = {
    "ipp": 631,
    "ipps": 631,
    "lpd": 515,
    "socket": 9100,
}


def ports_to_check(port: int, protocol: Optional[str]) -> List[int]:
    ports = [port]
    alternate = ALTERNATE_PORTS.get((protocol or "").lower())
    if alternate is not None and alternate != port:
        ports.append(alternate)
    return ports


def _batches(items: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


class SubnetScanner:
    """Batched sweeps over a subnet's host addresses."""

    def __init__(self, neighbor_cache: NeighborCache, parallelism: Optional[int] = None,
                 connection_timeout: Optional[float] = None):
        self.neighbor_cache = neighbor_cache
        self.parallelism = parallelism or settings.PARALLELISM
        self.connection_timeout = connection_timeout
        self.batch_timeout = settings.PING_BATCH_TIMEOUT

    async def ping_sweep(self, subnet: Subnet) -> None:
        """Ping every host of the subnet to populate the OS neighbor table."""
        hosts = host_addresses(subnet)
        batches = list(_batches(hosts, self.parallelism))
        logger.info(f"Ping sweep of {subnet.notation}: {len(hosts)} hosts")

        for index, batch in enumerate(batches, start=1):
            try:
                await asyncio.wait_for(
                    asyncio.gather(
                        *(self.neighbor_cache.warm(ip) for ip in batch),
                        return_exceptions=True
                    ),
                    timeout=self.batch_timeout
                )
            except asyncio.TimeoutError:
                pass

            if index % 5 == 0 or index == len(batches):
                logger.info(f"Ping sweep progress: {round(index / len(batches) * 100)}%")

    async def _probe_host(self, ip: str, ports: List[int]) -> Optional[str]:
        for port in ports:
            if await connectivity.test_port(ip, port, self.connection_timeout):
                return ip
        return None

    async def open_port_scan(self, subnet: Subnet, port: int, protocol: Optional[str]) -> List[str]:
        """
        Find the hosts of subnet accepting connections on port or the protocol's alternate port.

        Returns:
            Responding IPs, deduplicated, in discovery order
        """
        hosts = host_addresses(subnet)
        ports = ports_to_check(port, protocol)
        batches = list(_batches(hosts, self.parallelism))
        logger.info(f"Scanning {len(hosts)} hosts of {subnet.notation} for ports {ports}")

        found: List[str] = []
        for index, batch in enumerate(batches, start=1):
            results = await asyncio.gather(
                *(self._probe_host(ip, ports) for ip in batch),
                return_exceptions=True
            )
            for result in results:
                if isinstance(result, str) and result not in found:
                    found.append(result)

            if index % 5 == 0 or index == len(batches):
                logger.info(f"Port scan progress: {round(index / len(batches) * 100)}% - "
                            f"{len(found)} hosts responding")

        logger.info(f"Port scan of {subnet.notation} done, {len(found)} hosts with open ports")
        return found
