"""
Persistent MAC -> last-known-good IP map.

The file is a flat JSON object keyed by normalized MAC. Entries written by
older releases may use other casings or separators, so lookups fall back
to every equivalent spelling of the MAC.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Union

from ..scanner.mac_codec import equivalent_keys, normalize

logger = logging.getLogger(__name__)


class MacIpCache:
    """Lock-guarded MAC -> IP map with dirty tracking."""

    def __init__(self, entries: Optional[Dict[str, str]] = None):
        self._entries: Dict[str, str] = dict(entries or {})
        self._lock = threading.Lock()
        self._dirty = False

    @property
    def dirty(self) -> bool:
        return self._dirty

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, mac: str) -> bool:
        return self.lookup(mac) is not None

    def entries(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._entries)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "MacIpCache":
        """Read the map from path; a missing or unreadable file gives an empty cache."""
        path = Path(path)
        if not path.exists():
            logger.info(f"No MAC->IP map at {path}, starting empty")
            return cls()

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"Error loading MAC->IP map from {path}: {e}")
            return cls()

        if not isinstance(data, dict):
            logger.error(f"MAC->IP map at {path} is not a JSON object, ignoring it")
            return cls()

        entries = {str(k): str(v) for k, v in data.items() if isinstance(v, str) and v}
        logger.info(f"MAC->IP map loaded: {len(entries)} entries")
        return cls(entries)

    def save(self, path: Union[str, Path]) -> bool:
        """Write the map to path. Returns False (and logs) on failure."""
        path = Path(path)
        with self._lock:
            snapshot = dict(self._entries)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(snapshot, indent=2), encoding="utf-8")
        except OSError as e:
            logger.error(f"Error saving MAC->IP map to {path}: {e}")
            return False

        with self._lock:
            self._dirty = False
        logger.info(f"MAC->IP map saved ({len(snapshot)} entries)")
        return True

    def lookup(self, mac: Optional[str]) -> Optional[str]:
        if not mac:
            return None

        with self._lock:
            ip = self._entries.get(normalize(mac))
            if ip:
                return ip
            for key in equivalent_keys(mac):
                ip = self._entries.get(key)
                if ip:
                    return ip
        return None

    def put(self, mac: str, ip: str) -> None:
        key = normalize(mac)
        if not key:
            return

        with self._lock:
            if self._entries.get(key) != ip:
                self._entries[key] = ip
                self._dirty = True

    def invalidate(self, mac: Optional[str]) -> bool:
        """Drop every entry stored for mac under any spelling. Returns True if one existed."""
        if not mac:
            return False

        keys = [normalize(mac)] + equivalent_keys(mac)
        removed = False
        with self._lock:
            for key in keys:
                if self._entries.pop(key, None) is not None:
                    removed = True
            if removed:
                self._dirty = True

        if removed:
            logger.info(f"Removed MAC->IP mapping for {normalize(mac)}")
        return removed
