"""
Per-printer IP resolution.

A printer is resolved by the first strategy that yields a validated
address, in this order:

1. the cached MAC -> IP mapping, re-validated before it is trusted
2. the OS neighbor table
3. an open-port sweep of every local subnet, matching MACs host by host
4. the roster's own ip_address, if it answers locally

Validation means a live IPP path for ipp/ipps and an open TCP port for
everything else. A printer nothing resolves is reported with
resolved_ip=None; its cache entry is left alone because the failure may be
transient. Only explicit feedback from the local service removes entries.
"""

import logging
from typing import List, Optional, Sequence

from ..scanner import connectivity
from ..scanner.address_math import Subnet
from ..scanner.mac_codec import normalize
from ..scanner.neighbor_cache import NeighborCache
from ..scanner.subnet_scanner import SubnetScanner
from .mac_ip_cache import MacIpCache
from .models import PrinterDescriptor, ResolvedPrinter

logger = logging.getLogger(__name__)


class ResolutionEngine:
    """Resolves printers to currently reachable IPs."""

    def __init__(self, cache: MacIpCache, neighbor_cache: NeighborCache, scanner: SubnetScanner):
        self.cache = cache
        self.neighbor_cache = neighbor_cache
        self.scanner = scanner

    async def _validate(self, printer: PrinterDescriptor, ip: str) -> connectivity.EndpointResult:
        return await connectivity.validate(printer.protocol, ip, printer.port)

    def _accept(self, printer: PrinterDescriptor, ip: str, result: connectivity.EndpointResult,
                method: str, remember: bool = True) -> ResolvedPrinter:
        if remember:
            self.cache.put(printer.mac_address, ip)
        logger.info(f"Printer {printer.name} resolved via {method}: {ip}:{printer.port}"
                    f"{' path ' + result.path if result.path else ''}")
        return ResolvedPrinter(
            printer=printer,
            resolved_ip=ip,
            port_open=True,
            path=result.path,
            method=method,
        )

    async def resolve(self, printer: PrinterDescriptor, subnets: Sequence[Subnet]) -> ResolvedPrinter:
        """Run the resolution strategies for one printer, stopping at the first success."""
        if not printer.mac_address:
            logger.info(f"Printer {printer.name} has no MAC address, keeping roster data")
            return ResolvedPrinter(printer=printer)

        mac = normalize(printer.mac_address)
        logger.info(f"Resolving printer {printer.name} (MAC {mac}, {printer.protocol}:{printer.port})")

        cached_ip = self.cache.lookup(printer.mac_address)
        if cached_ip:
            result = await self._validate(printer, cached_ip)
            if result.valid:
                return self._accept(printer, cached_ip, result, "cache", remember=False)
            logger.info(f"Cached IP {cached_ip} of {printer.name} is not answering, rediscovering")

        neighbor_ip = await self.neighbor_cache.find_ip_for_mac(mac)
        if neighbor_ip:
            result = await self._validate(printer, neighbor_ip)
            if result.valid:
                return self._accept(printer, neighbor_ip, result, "neighbor")
            logger.info(f"Neighbor table IP {neighbor_ip} of {printer.name} failed validation")

        scanned = await self._scan_subnets(printer, mac, subnets)
        if scanned is not None:
            return scanned

        if printer.external_ip:
            result = await self._validate(printer, printer.external_ip)
            if result.valid:
                return self._accept(printer, printer.external_ip, result, "external")

        logger.info(f"Could not resolve {printer.name}, keeping roster data")
        return ResolvedPrinter(printer=printer)

    async def _scan_subnets(self, printer: PrinterDescriptor, mac: str,
                            subnets: Sequence[Subnet]) -> Optional[ResolvedPrinter]:
        for subnet in subnets:
            candidates: List[str] = await self.scanner.open_port_scan(subnet, printer.port, printer.protocol)

            for ip in candidates:
                await self.neighbor_cache.warm(ip)
                device_mac = await self.neighbor_cache.find_mac_for_ip(ip)
                if not device_mac or normalize(device_mac) != mac:
                    continue

                logger.info(f"MAC {mac} matched at {ip}")
                if connectivity.is_ipp_family(printer.protocol):
                    result = await connectivity.detect_endpoint(
                        connectivity.scheme_for(printer.protocol), ip, printer.port
                    )
                    if not result.valid:
                        logger.info(f"No valid IPP endpoint on {ip}:{printer.port}")
                        continue
                else:
                    result = connectivity.EndpointResult(valid=True)

                return self._accept(printer, ip, result, "scan")

        return None
