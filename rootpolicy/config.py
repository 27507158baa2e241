"""
Configuration for the rootpolicy CLI and HTTP layers.

Settings come from ROOTPOLICY_* environment variables, read once at
import. The verification core never reads configuration; it takes
everything as explicit arguments.
"""

import os
import threading
import time
from pathlib import Path
from typing import Dict, NamedTuple, Optional

# ============================================================
# Environment
# ============================================================

ENV = os.getenv("ROOTPOLICY_ENV", "dev")  # dev|stage|prod

# Per-signature verification workers (1 = sequential)
MAX_WORKERS = int(os.getenv("ROOTPOLICY_MAX_WORKERS", "1"))

LOG_LEVEL = os.getenv("ROOTPOLICY_LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("ROOTPOLICY_LOG_JSON", "true").lower() in ("1", "true", "yes")

# Policy served by GET /trust and used as the CLI default
POLICY_PATH = os.getenv("ROOTPOLICY_POLICY_PATH", "trust/root_policy.json")

# Largest request body accepted by POST /verify
MAX_DOCUMENT_BYTES = int(os.getenv("ROOTPOLICY_MAX_DOCUMENT_BYTES", str(1024 * 1024)))

# Seconds a loaded policy file is served from memory
CONFIG_CACHE_TTL = int(os.getenv("ROOTPOLICY_CONFIG_CACHE_TTL", "60"))


# ============================================================
# Policy file cache
# ============================================================

class _Entry(NamedTuple):
    data: bytes
    loaded_at: float


class CachedFile:
    """
    Thread-safe TTL cache of raw file contents.

    Entries hold bytes, never decoded JSON: signatures are checked against
    the file exactly as written.
    """

    def __init__(self, ttl_seconds: int = 60):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.RLock()

    def _fresh(self, entry: Optional[_Entry]) -> bool:
        return entry is not None and time.monotonic() - entry.loaded_at <= self.ttl_seconds

    def get_bytes(self, path: str, force_reload: bool = False) -> bytes:
        """Return the file's bytes, re-reading once the entry is older than the TTL."""
        with self._lock:
            entry = self._entries.get(path)
            if force_reload or not self._fresh(entry):
                entry = _Entry(Path(path).read_bytes(), time.monotonic())
                self._entries[path] = entry
            return entry.data

    def invalidate(self, path: Optional[str] = None) -> None:
        """Drop one path, or every path when none is given."""
        with self._lock:
            if path is None:
                self._entries.clear()
            else:
                self._entries.pop(path, None)


_policy_cache = CachedFile(ttl_seconds=CONFIG_CACHE_TTL)


def load_policy_bytes(path: Optional[str] = None) -> bytes:
    """Raw bytes of the given policy file, or of POLICY_PATH."""
    return _policy_cache.get_bytes(path or POLICY_PATH)


def invalidate_config_cache() -> None:
    _policy_cache.invalidate()


# ============================================================
# Health checks
# ============================================================

def validate_config() -> Dict[str, bool]:
    """Check name -> ok, as reported by GET /healthz."""
    return {
        "policy": Path(POLICY_PATH).is_file(),
        "max_workers": MAX_WORKERS >= 1,
        "max_document_bytes": MAX_DOCUMENT_BYTES > 0,
    }
