"""
Reachability probes for printers.

test_port() is a bare TCP connect used at scale during sweeps, so its
timeout is deliberately short. detect_endpoint() walks the usual IPP
resource paths over HTTP(S) and accepts the first one that answers with
anything below 500: many IPP stacks reply 400/404/405 to a plain GET while
still being live.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import aiohttp

from ..core.config import settings

logger = logging.getLogger(__name__)

# Probed in this order; the first live one wins
IPP_PATHS: Tuple[str, ...] = (
    "/ipp/print",
    "/ipp",
    "/printer",
    "/printers/printer",
    "/",
    "/IPP/Print",
    "/print",
)

IPP_PROTOCOLS = frozenset({"ipp", "ipps"})


@dataclass(frozen=True)
class EndpointResult:
    valid: bool
    path: Optional[str] = None


def is_ipp_family(protocol: Optional[str]) -> bool:
    return (protocol or "").lower() in IPP_PROTOCOLS


def scheme_for(protocol: Optional[str]) -> str:
    return "https" if (protocol or "").lower() == "ipps" else "http"


async def test_port(ip: str, port: int, timeout: Optional[float] = None) -> bool:
    """Return True when a TCP connection to ip:port succeeds within timeout."""
    timeout = settings.CONNECTION_TIMEOUT if timeout is None else timeout
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(ip, port),
            timeout=timeout
        )
    except (asyncio.TimeoutError, ConnectionRefusedError, OSError):
        return False

    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


async def detect_endpoint(scheme: str, ip: str, port: int,
                          timeout: Optional[float] = None) -> EndpointResult:
    """
    Find the first IPP resource path on ip:port that answers below 500.

    Args:
        scheme: "http" or "https" (certificate checks are disabled, printers
            mostly ship self-signed certificates)
        ip: Printer address
        port: Service port, usually 631
        timeout: Per-request timeout in seconds

    Returns:
        EndpointResult(valid=True, path=...) for the first live path,
        EndpointResult(valid=False) when none qualifies
    """
    timeout = settings.ENDPOINT_TIMEOUT if timeout is None else timeout
    logger.debug(f"Checking {scheme} endpoints on {ip}:{port}")

    async with aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=timeout),
        connector=aiohttp.TCPConnector(ssl=False)
    ) as session:
        for path in IPP_PATHS:
            url = f"{scheme}://{ip}:{port}{path}"
            try:
                async with session.get(url, allow_redirects=False) as response:
                    if response.status < 500:
                        logger.debug(f"Endpoint {url} answered {response.status}")
                        return EndpointResult(valid=True, path=path)
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                logger.debug(f"Endpoint {url} failed: {e!r}")

    return EndpointResult(valid=False)


async def validate(protocol: Optional[str], ip: str, port: int) -> EndpointResult:
    """
    Apply the protocol's validation rule to ip:port.

    IPP-family printers must expose a live IPP path; every other protocol
    only needs the port to accept connections.
    """
    if is_ipp_family(protocol):
        return await detect_endpoint(scheme_for(protocol), ip, port)
    return EndpointResult(valid=await test_port(ip, port))
