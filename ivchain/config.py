"""
Configuration module for IVChain.

Centralizes configuration with environment variable support and a
thread-safe TTL cache for JSON files (the oracle trust file).
"""

import json
import os
import threading
import time
from typing import Any, Dict, Optional

# ============================================================
# Environment Configuration
# ============================================================

# Admission
MAX_STALENESS_SECONDS = int(os.getenv("IVCHAIN_MAX_STALENESS_SECONDS", "600"))
SIGNING_DOMAIN = os.getenv("IVCHAIN_SIGNING_DOMAIN", "IVChainOracle")
SIGNING_DOMAIN_VERSION = os.getenv("IVCHAIN_SIGNING_DOMAIN_VERSION", "1")

# Storage
LEDGER_BACKEND = os.getenv("IVCHAIN_LEDGER_BACKEND", "memory")  # memory|sqlite
DB_PATH = os.getenv("IVCHAIN_DB_PATH", "data/ivchain.db")

# Trust
ORACLE_TRUST_PATH = os.getenv("IVCHAIN_ORACLE_TRUST_PATH", "trust/oracle_signer.json")

# Logging
LOG_LEVEL = os.getenv("IVCHAIN_LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("IVCHAIN_LOG_JSON", "true").lower() in ("1", "true", "yes")

# Cache TTL (seconds)
CONFIG_CACHE_TTL = int(os.getenv("CONFIG_CACHE_TTL", "60"))


# ============================================================
# Cached Configuration Loaders
# ============================================================

class CachedConfig:
    """
    Thread-safe cached configuration loader.
    Reloads configuration files periodically based on TTL.
    """

    def __init__(self, ttl_seconds: int = 60):
        self._cache: Dict[str, Any] = {}
        self._timestamps: Dict[str, float] = {}
        self._lock = threading.RLock()
        self._ttl = ttl_seconds

    def _is_stale(self, key: str) -> bool:
        if key not in self._timestamps:
            return True
        return (time.time() - self._timestamps[key]) > self._ttl

    def get_json(self, path: str, force_reload: bool = False) -> Dict[str, Any]:
        """
        Load JSON file with caching.
        Returns cached version if within TTL, otherwise reloads.
        """
        with self._lock:
            if not force_reload and path in self._cache and not self._is_stale(path):
                return self._cache[path]

            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)

            self._cache[path] = data
            self._timestamps[path] = time.time()
            return data

    def invalidate(self, path: Optional[str] = None) -> None:
        """Invalidate cache for a specific path or all paths."""
        with self._lock:
            if path:
                self._cache.pop(path, None)
                self._timestamps.pop(path, None)
            else:
                self._cache.clear()
                self._timestamps.clear()


# Global cached config instance
_config_cache = CachedConfig(ttl_seconds=CONFIG_CACHE_TTL)


def load_json_cached(path: str) -> Dict[str, Any]:
    """Load JSON file with caching."""
    return _config_cache.get_json(path)


def load_oracle_trust(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the oracle trust file: {"kid": ..., "public_key_b64": ...}, plus an
    optional "owner_public_key_b64" naming the key allowed to rotate the signer.

    Raises:
        FileNotFoundError: if the file does not exist
        ValueError: if public_key_b64 is missing
    """
    trust = load_json_cached(path or ORACLE_TRUST_PATH)
    if not trust.get("public_key_b64"):
        raise ValueError("oracle trust file has no public_key_b64")
    return trust


def invalidate_config_cache() -> None:
    """Invalidate all cached configuration."""
    _config_cache.invalidate()

