from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from sqlalchemy.orm import selectinload

from ..db.database import get_db
from ..db.models import SyncRun
from ..core.exceptions import SyncInProgressError, SyncTimeoutError
from ..scanner.address_math import enumerate_local_subnets
from ..scanner.mac_codec import normalize
from ..sync.mac_ip_cache import MacIpCache
from ..sync.orchestrator import SyncOrchestrator
from .schemas import (
    CacheEntry,
    CacheResponse,
    SubnetResponse,
    SyncRunDetailResponse,
    SyncRunResponse,
    SyncStatusResponse,
    SyncTriggerResponse,
)

router = APIRouter()


def get_orchestrator(request: Request) -> SyncOrchestrator:
    return request.app.state.orchestrator


def _current_cache(orchestrator: SyncOrchestrator) -> MacIpCache:
    if orchestrator.cache is None:
        orchestrator.load_cache()
    return orchestrator.cache


@router.post("/sync", response_model=SyncTriggerResponse)
async def trigger_sync(
    background_tasks: BackgroundTasks,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Run a printer sync pass now and wait for it."""
    try:
        result = await orchestrator.run_pass(trigger="manual")
    except SyncInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SyncTimeoutError as e:
        # Same policy as the scheduler: the process is restarted after a stuck pass
        background_tasks.add_task(orchestrator.on_timeout)
        raise HTTPException(status_code=504, detail=str(e))

    summary = result.summary()
    success = result.status == "completed"
    return SyncTriggerResponse(
        success=success,
        message="Printers synchronized successfully" if success else f"Sync failed: {result.error_message}",
        run_id=summary["run_id"],
        status=summary["status"],
        printers_total=summary["printers_total"],
        printers_resolved=summary["printers_resolved"],
        warnings=summary["warnings"],
        errors=summary["errors"],
        cache_invalidations=summary["cache_invalidations"],
    )


@router.get("/sync/status", response_model=SyncStatusResponse)
async def get_sync_status(
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
    db: AsyncSession = Depends(get_db),
):
    """Scheduler state and the most recent run."""
    result = await db.execute(select(SyncRun).order_by(desc(SyncRun.started_at)).limit(1))
    last_run = result.scalar_one_or_none()

    return SyncStatusResponse(
        scheduler_running=orchestrator.is_running,
        syncing=orchestrator.is_syncing,
        sync_interval=orchestrator.sync_interval,
        last_run=SyncRunResponse.model_validate(last_run) if last_run else None,
    )


@router.get("/sync/runs", response_model=list[SyncRunResponse])
async def get_sync_runs(
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Get recent sync runs."""
    result = await db.execute(
        select(SyncRun)
        .order_by(desc(SyncRun.started_at))
        .limit(limit)
    )
    return [SyncRunResponse.model_validate(r) for r in result.scalars().all()]


@router.get("/sync/runs/{run_id}", response_model=SyncRunDetailResponse)
async def get_sync_run(run_id: int, db: AsyncSession = Depends(get_db)):
    """Get one sync run with its per-printer outcomes."""
    result = await db.execute(
        select(SyncRun)
        .options(selectinload(SyncRun.resolutions))
        .where(SyncRun.id == run_id)
    )
    run = result.scalar_one_or_none()

    if not run:
        raise HTTPException(status_code=404, detail="Sync run not found")

    return SyncRunDetailResponse.model_validate(run)


@router.get("/cache", response_model=CacheResponse)
async def get_cache(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """List the MAC -> IP mappings."""
    entries = _current_cache(orchestrator).entries()
    return CacheResponse(
        path=str(orchestrator.cache_path),
        entries=[CacheEntry(mac_address=mac, ip_address=ip) for mac, ip in sorted(entries.items())],
        total=len(entries),
    )


@router.delete("/cache/{mac_address}")
async def delete_cache_entry(
    mac_address: str,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Forget the cached IP of a printer so the next pass rediscovers it."""
    if orchestrator.is_syncing:
        raise HTTPException(status_code=409, detail="A printer sync pass is running, try again later")

    cache = _current_cache(orchestrator)
    if not cache.invalidate(mac_address):
        raise HTTPException(status_code=404, detail="MAC address not cached")

    orchestrator.save_cache_if_dirty()
    return {"message": f"Mapping for {normalize(mac_address)} removed"}


@router.get("/subnets", response_model=list[SubnetResponse])
async def get_subnets():
    """Local IPv4 networks that a pass would scan."""
    return [
        SubnetResponse(
            interface_name=s.interface_name,
            local_address=s.local_address,
            netmask=s.netmask,
            cidr=s.cidr,
            network_address=s.network_address,
            broadcast_address=s.broadcast_address,
            interface_mac=s.interface_mac,
        )
        for s in enumerate_local_subnets()
    ]
