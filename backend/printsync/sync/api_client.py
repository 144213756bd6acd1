import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from ..core.config import settings
from ..core.exceptions import RosterFetchError, SyncPushError
from .models import PrinterDescriptor, ResolvedPrinter

logger = logging.getLogger(__name__)


class PrinterApiClient:
    """HTTP client for the central roster service and the local print server."""

    def __init__(self, central_url: Optional[str] = None, local_url: Optional[str] = None,
                 token: Optional[str] = None, timeout: Optional[float] = None):
        self.central_url = (central_url or settings.CENTRAL_API_URL).rstrip("/")
        self.local_url = (local_url or settings.LOCAL_API_URL).rstrip("/")
        self.token = settings.API_TOKEN if token is None else token
        self.timeout = aiohttp.ClientTimeout(total=timeout or settings.HTTP_TIMEOUT)

    async def fetch_roster(self) -> List[PrinterDescriptor]:
        """
        Get the printers assigned to this workstation.

        Raises:
            RosterFetchError: on transport errors, non-200 answers or bodies
                without a "data" member
        """
        url = f"{self.central_url}/desktop/printers"
        headers = {
            "Authorization": f"Bearer {self.token}",
            "accept": "application/json",
        }

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(url, headers=headers) as response:
                    body = await self._read_json(response)
                    if response.status != 200:
                        raise RosterFetchError(
                            f"Roster request answered {response.status}",
                            status=response.status, body=body
                        )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RosterFetchError(f"Roster request failed: {e!r}") from e

        data = body.get("data") if isinstance(body, dict) else None
        if data is None:
            data = []
        if not isinstance(data, list):
            data = [data]

        printers = [PrinterDescriptor.from_api(item) for item in data if isinstance(item, dict)]
        logger.info(f"Received {len(printers)} printers from the central service")
        return printers

    async def push_printers(self, printers: List[ResolvedPrinter]) -> Optional[Dict[str, Any]]:
        """
        Send resolved printers to the local print server.

        Returns:
            The "data" member of the answer (holds details.warnings/errors), if any

        Raises:
            SyncPushError: on transport errors or non-200 answers
        """
        url = f"{self.local_url}/sync/printers"
        payload = {"printers": [p.to_payload() for p in printers]}

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(url, json=payload) as response:
                    body = await self._read_json(response)
                    if response.status != 200:
                        raise SyncPushError(
                            f"Sync push answered {response.status}",
                            status=response.status, body=body
                        )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SyncPushError(f"Sync push failed: {e!r}") from e

        data = body.get("data") if isinstance(body, dict) else None
        return data if isinstance(data, dict) else None

    @staticmethod
    async def _read_json(response: aiohttp.ClientResponse) -> Any:
        try:
            return await response.json(content_type=None)
        except (ValueError, aiohttp.ContentTypeError):
            return None
