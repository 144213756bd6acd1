from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from .database import Base


class SyncRun(Base):
    """One resolution pass over the printer roster."""

    __tablename__ = "sync_runs"

    id = Column(Integer, primary_key=True, index=True)
    started_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), index=True)
    completed_at = Column(DateTime)
    status = Column(String(20), default="running")  # running, completed, failed, timeout
    trigger = Column(String(20), default="scheduled")  # scheduled, manual, cli
    printers_total = Column(Integer, default=0)
    printers_resolved = Column(Integer, default=0)
    warnings = Column(Integer, default=0)
    errors = Column(Integer, default=0)
    cache_invalidations = Column(Integer, default=0)
    error_message = Column(Text)

    resolutions = relationship("PrinterResolution", back_populates="run", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<SyncRun(id={self.id}, status={self.status}, resolved={self.printers_resolved}/{self.printers_total})>"


class PrinterResolution(Base):
    """Outcome for one printer within a sync run."""

    __tablename__ = "printer_resolutions"

    id = Column(Integer, primary_key=True, index=True)
    run_id = Column(Integer, ForeignKey("sync_runs.id"), nullable=False, index=True)
    printer_id = Column(String(64))
    name = Column(String(255))
    mac_address = Column(String(64), index=True)
    protocol = Column(String(10))
    resolved_ip = Column(String(45))  # None when unresolved
    method = Column(String(20))  # cache, neighbor, scan, external
    port = Column(Integer)
    port_open = Column(Boolean, default=False)
    path = Column(String(255))
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    run = relationship("SyncRun", back_populates="resolutions")

    def __repr__(self):
        return f"<PrinterResolution(run={self.run_id}, mac={self.mac_address}, ip={self.resolved_ip})>"
