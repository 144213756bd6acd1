"""
Sync run bookkeeping.

History is informational: every function here logs and swallows database
errors so a locked or missing database never fails a pass.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from . import database
from .models import SyncRun, PrinterResolution

logger = logging.getLogger(__name__)


async def start_run(trigger: str) -> Optional[int]:
    """Insert a running SyncRun and return its id (None if the database is unavailable)."""
    try:
        async with database.AsyncSessionLocal() as session:
            run = SyncRun(trigger=trigger, status="running", started_at=datetime.now(timezone.utc))
            session.add(run)
            await session.commit()
            return run.id
    except SQLAlchemyError as e:
        logger.warning(f"Could not record sync run start: {e}")
        return None


async def finish_run(run_id: Optional[int], status: str, resolved: Iterable = (),
                     printers_total: int = 0, warnings: int = 0, errors: int = 0,
                     cache_invalidations: int = 0, error_message: Optional[str] = None) -> None:
    """Close a SyncRun and store the per-printer outcomes."""
    if run_id is None:
        return

    try:
        async with database.AsyncSessionLocal() as session:
            result = await session.execute(select(SyncRun).where(SyncRun.id == run_id))
            run = result.scalar_one_or_none()
            if run is None:
                return

            resolved = list(resolved)
            run.status = status
            run.completed_at = datetime.now(timezone.utc)
            run.printers_total = printers_total
            run.printers_resolved = sum(1 for r in resolved if r.resolved)
            run.warnings = warnings
            run.errors = errors
            run.cache_invalidations = cache_invalidations
            run.error_message = error_message

            for item in resolved:
                printer = item.printer
                session.add(PrinterResolution(
                    run_id=run_id,
                    printer_id=str(printer.id) if printer.id is not None else None,
                    name=printer.name,
                    mac_address=printer.mac_address,
                    protocol=printer.protocol,
                    resolved_ip=item.resolved_ip,
                    method=item.method,
                    port=printer.port,
                    port_open=item.port_open,
                    path=item.path,
                ))

            await session.commit()
    except SQLAlchemyError as e:
        logger.warning(f"Could not record sync run {run_id} result: {e}")
