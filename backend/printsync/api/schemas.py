from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional


class PrinterResolutionResponse(BaseModel):
    """Per-printer outcome of a sync run."""
    model_config = ConfigDict(from_attributes=True)

    printer_id: Optional[str] = None
    name: Optional[str] = None
    mac_address: Optional[str] = None
    protocol: Optional[str] = None
    resolved_ip: Optional[str] = None
    method: Optional[str] = None
    port: Optional[int] = None
    port_open: bool = False
    path: Optional[str] = None


class SyncRunResponse(BaseModel):
    """Sync run response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    started_at: datetime
    completed_at: Optional[datetime] = None
    status: str
    trigger: Optional[str] = None
    printers_total: int = 0
    printers_resolved: int = 0
    warnings: int = 0
    errors: int = 0
    cache_invalidations: int = 0
    error_message: Optional[str] = None


class SyncRunDetailResponse(SyncRunResponse):
    resolutions: list[PrinterResolutionResponse] = []


class SyncTriggerResponse(BaseModel):
    """Result of a manually triggered pass."""
    success: bool
    message: str
    run_id: Optional[int] = None
    status: Optional[str] = None
    printers_total: int = 0
    printers_resolved: int = 0
    warnings: int = 0
    errors: int = 0
    cache_invalidations: int = 0


class SyncStatusResponse(BaseModel):
    scheduler_running: bool
    syncing: bool
    sync_interval: int
    last_run: Optional[SyncRunResponse] = None


class CacheEntry(BaseModel):
    mac_address: str
    ip_address: str


class CacheResponse(BaseModel):
    path: str
    entries: list[CacheEntry]
    total: int


class SubnetResponse(BaseModel):
    interface_name: str
    local_address: str
    netmask: str
    cidr: int
    network_address: str
    broadcast_address: str
    interface_mac: Optional[str] = None
