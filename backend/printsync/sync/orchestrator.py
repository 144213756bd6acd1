import asyncio
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..core.config import settings
from ..core.exceptions import CollaboratorError, SyncInProgressError, SyncTimeoutError
from ..db import history
from ..scanner.address_math import Subnet, enumerate_local_subnets
from ..scanner.neighbor_cache import NeighborCache
from ..scanner.subnet_scanner import SubnetScanner
from .api_client import PrinterApiClient
from .mac_ip_cache import MacIpCache
from .models import PrinterDescriptor, ResolvedPrinter
from .resolution import ResolutionEngine

logger = logging.getLogger(__name__)


def _terminate_process() -> None:
    # A pass that overruns is assumed to be stuck in a network call that
    # cancellation cannot reach; the supervisor restarts the service.
    os._exit(1)


@dataclass
class SyncResult:
    """Summary of one pass."""
    status: str  # completed, failed
    run_id: Optional[int] = None
    printers: List[ResolvedPrinter] = field(default_factory=list)
    warnings: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    cache_invalidations: int = 0
    error_message: Optional[str] = None

    @property
    def printers_resolved(self) -> int:
        return sum(1 for p in self.printers if p.resolved)

    def summary(self) -> dict:
        return {
            "run_id": self.run_id,
            "status": self.status,
            "printers_total": len(self.printers),
            "printers_resolved": self.printers_resolved,
            "warnings": len(self.warnings),
            "errors": len(self.errors),
            "cache_invalidations": self.cache_invalidations,
            "error_message": self.error_message,
        }


class SyncOrchestrator:
    """Runs resolution passes: roster in, resolved printers out, cache kept in between."""

    def __init__(
        self,
        api_client: Optional[PrinterApiClient] = None,
        cache_path: Optional[Path] = None,
        neighbor_cache: Optional[NeighborCache] = None,
        scanner: Optional[SubnetScanner] = None,
        subnet_provider: Callable[[], List[Subnet]] = enumerate_local_subnets,
        max_execution_time: Optional[float] = None,
        printer_workers: Optional[int] = None,
        sync_interval: Optional[int] = None,
        on_timeout: Callable[[], None] = _terminate_process,
    ):
        self.api_client = api_client or PrinterApiClient()
        self.cache_path = Path(cache_path or settings.mac_ip_map_path)
        self.neighbor_cache = neighbor_cache or NeighborCache()
        self.scanner = scanner or SubnetScanner(self.neighbor_cache)
        self.subnet_provider = subnet_provider
        self.max_execution_time = max_execution_time or settings.MAX_EXECUTION_TIME
        self.printer_workers = printer_workers or settings.PRINTER_WORKERS
        self.sync_interval = sync_interval or settings.SYNC_INTERVAL
        self.on_timeout = on_timeout

        self.cache: Optional[MacIpCache] = None
        self.last_result: Optional[SyncResult] = None
        self._pass_lock = asyncio.Lock()
        self._running = False
        self._sync_task: Optional[asyncio.Task] = None
        self._callbacks = []

    @property
    def is_syncing(self) -> bool:
        return self._pass_lock.locked()

    @property
    def is_running(self) -> bool:
        return self._running

    def register_callback(self, callback):
        """Register an async callback for pass progress events."""
        self._callbacks.append(callback)

    def unregister_callback(self, callback):
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    async def _notify_callbacks(self, event_type: str, data: dict):
        for callback in self._callbacks:
            try:
                await callback(event_type, data)
            except Exception as e:
                logger.warning(f"Callback error: {e}")

    def load_cache(self) -> MacIpCache:
        self.cache = MacIpCache.load(self.cache_path)
        return self.cache

    def save_cache_if_dirty(self) -> None:
        if self.cache is not None and self.cache.dirty:
            self.cache.save(self.cache_path)

    async def run_pass(self, trigger: str = "manual") -> SyncResult:
        """
        Run one complete pass, bounded by max_execution_time.

        Raises:
            SyncInProgressError: another pass holds the lock
            SyncTimeoutError: the pass overran; nothing was pushed unless the
                push had already completed
        """
        if self._pass_lock.locked():
            raise SyncInProgressError("A printer sync pass is already running")

        async with self._pass_lock:
            run_id = await history.start_run(trigger)
            await self._notify_callbacks("sync_started", {"run_id": run_id, "trigger": trigger})

            try:
                result = await asyncio.wait_for(self._run(run_id), timeout=self.max_execution_time)
            except asyncio.TimeoutError:
                message = f"Sync pass exceeded {self.max_execution_time}s"
                logger.critical(message)
                await history.finish_run(run_id, "timeout", error_message=message)
                await self._notify_callbacks("sync_failed", {"run_id": run_id, "error": message})
                raise SyncTimeoutError(message) from None
            except Exception as e:
                await history.finish_run(run_id, "failed", error_message=str(e))
                await self._notify_callbacks("sync_failed", {"run_id": run_id, "error": str(e)})
                raise

            self.last_result = result
            event = "sync_completed" if result.status == "completed" else "sync_failed"
            await self._notify_callbacks(event, result.summary())
            return result

    async def _run(self, run_id: Optional[int]) -> SyncResult:
        cache = self.load_cache()

        try:
            roster = await self.api_client.fetch_roster()
        except CollaboratorError as e:
            logger.error(f"Error fetching printers from the central service: {e} {e.body or ''}")
            await history.finish_run(run_id, "failed", error_message=str(e))
            return SyncResult(status="failed", run_id=run_id, error_message=str(e))

        for printer in roster:
            if printer.mac_address:
                logger.info(f"- {printer.name}: MAC {printer.mac_address}, driver {printer.driver}, "
                            f"protocol {printer.protocol}, port {printer.port}")

        subnets = self.subnet_provider()
        logger.info(f"Local networks: {[s.notation for s in subnets]}")
        for subnet in subnets:
            try:
                await self.scanner.ping_sweep(subnet)
            except Exception as e:
                logger.warning(f"Ping sweep of {subnet.notation} failed: {e}")
                continue

            if logger.isEnabledFor(logging.DEBUG):
                entries = await self.neighbor_cache.snapshot()
                logger.debug(f"Neighbor table after sweeping {subnet.notation}: {len(entries)} entries")
                for entry in entries:
                    logger.debug(f"  {entry.ip} -> {entry.mac}")

        resolved = await self.resolve_all(roster, subnets, cache)

        self.save_cache_if_dirty()

        logger.info(f"Pushing {len(resolved)} printers to the local service")
        try:
            response = await self.api_client.push_printers(resolved)
        except CollaboratorError as e:
            logger.error(f"Error syncing printers with the local service: {e} {e.body or ''}")
            await history.finish_run(run_id, "failed", resolved=resolved, printers_total=len(roster),
                                     error_message=str(e))
            return SyncResult(status="failed", run_id=run_id, printers=resolved, error_message=str(e))

        details = (response or {}).get("details")
        if not isinstance(details, dict):
            details = {}
        warnings = details.get("warnings") or []
        errors = details.get("errors") or []
        if not isinstance(warnings, list):
            warnings = [warnings]
        if not isinstance(errors, list):
            errors = [errors]

        invalidations = self.apply_warnings(cache, roster, warnings)
        if invalidations:
            self.save_cache_if_dirty()

        if errors:
            logger.warning("Errors reported by the local service:")
            for error in errors:
                if isinstance(error, dict):
                    logger.warning(f"- {error.get('name') or 'unknown printer'}: {error.get('error')}")
                else:
                    logger.warning(f"- {error}")

        await history.finish_run(
            run_id, "completed", resolved=resolved, printers_total=len(roster),
            warnings=len(warnings), errors=len(errors), cache_invalidations=invalidations,
        )
        return SyncResult(
            status="completed",
            run_id=run_id,
            printers=resolved,
            warnings=warnings,
            errors=errors,
            cache_invalidations=invalidations,
        )

    async def resolve_all(self, roster: Sequence[PrinterDescriptor], subnets: Sequence[Subnet],
                          cache: MacIpCache) -> List[ResolvedPrinter]:
        """Resolve every printer with at most printer_workers in flight; keeps roster order."""
        engine = ResolutionEngine(cache, self.neighbor_cache, self.scanner)
        semaphore = asyncio.Semaphore(self.printer_workers)

        async def resolve_one(printer: PrinterDescriptor) -> ResolvedPrinter:
            async with semaphore:
                try:
                    result = await engine.resolve(printer, subnets)
                except Exception:
                    logger.exception(f"Unexpected error resolving printer {printer.name}")
                    result = ResolvedPrinter(printer=printer)

            await self._notify_callbacks("printer_resolved", {
                "id": printer.id,
                "name": printer.name,
                "resolved_ip": result.resolved_ip,
                "method": result.method,
                "port_open": result.port_open,
            })
            return result

        return list(await asyncio.gather(*(resolve_one(p) for p in roster)))

    @staticmethod
    def apply_warnings(cache: MacIpCache, roster: Sequence[PrinterDescriptor],
                       warnings: Sequence[Dict[str, Any]]) -> int:
        """Forget the cached IP of every printer the local service reports as unreachable."""
        by_id = {p.id: p for p in roster}
        invalidated = 0

        if warnings:
            logger.warning("Warnings reported by the local service:")
        for warning in warnings:
            if not isinstance(warning, dict):
                logger.warning(f"- {warning}")
                continue
            logger.warning(f"- {warning.get('name')}: {warning.get('warning')}")

            connectivity = warning.get("connectivity")
            port_info = connectivity.get("port") if isinstance(connectivity, dict) else None
            if not isinstance(port_info, dict):
                continue
            if port_info.get("open") is not False:
                continue

            printer = by_id.get(warning.get("id"))
            if printer and printer.mac_address and cache.invalidate(printer.mac_address):
                invalidated += 1

        return invalidated

    async def start_background_sync(self, run_immediately: Optional[bool] = None):
        """Start the periodic sync loop."""
        if self._running:
            return

        self._running = True
        first_delay = 0 if (settings.SYNC_ON_STARTUP if run_immediately is None else run_immediately) \
            else self.sync_interval
        self._sync_task = asyncio.create_task(self._sync_loop(first_delay))

    async def stop_background_sync(self):
        """Stop the periodic sync loop."""
        self._running = False
        if self._sync_task:
            self._sync_task.cancel()
            try:
                await self._sync_task
            except asyncio.CancelledError:
                pass
            self._sync_task = None

    async def _sync_loop(self, first_delay: float):
        if first_delay:
            await asyncio.sleep(first_delay)

        while self._running:
            try:
                await self.run_pass(trigger="scheduled")
            except SyncInProgressError:
                logger.info("Sync already in progress, skipping scheduled pass")
            except SyncTimeoutError:
                logger.critical("Terminating after sync pass timeout")
                self.on_timeout()
            except Exception:
                logger.exception("Sync pass error")

            await asyncio.sleep(self.sync_interval)
