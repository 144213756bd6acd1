# Database module
from .database import get_db, init_db, Base
from .models import SyncRun, PrinterResolution

__all__ = ["get_db", "init_db", "Base", "SyncRun", "PrinterResolution"]
