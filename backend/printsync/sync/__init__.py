# Printer resolution and sync
from .mac_ip_cache import MacIpCache
from .models import PrinterDescriptor, ResolvedPrinter
from .orchestrator import SyncOrchestrator, SyncResult
from .resolution import ResolutionEngine

__all__ = [
    "MacIpCache",
    "PrinterDescriptor",
    "ResolvedPrinter",
    "ResolutionEngine",
    "SyncOrchestrator",
    "SyncResult",
]
