"""
Configuration module for the VPN portal.

Centralizes all configuration with environment variable support,
validation, and caching for performance.
"""

import os
import json
import threading
import time
from typing import Dict, Any, Optional
from pathlib import Path

from pydantic import ValidationError

from .errors import ConfigurationError
from .models import PortalConfig

# ============================================================
# Environment Configuration
# ============================================================

# Paths
DB_PATH = os.getenv("VPNPORTAL_DB_PATH", "data/vpnportal.db")
CONFIG_PATH = os.getenv("VPNPORTAL_CONFIG_PATH", "config/config.json")
TLS_CRYPT_PATH = os.getenv("VPNPORTAL_TLS_CRYPT_PATH", "data/tls-crypt.key")
CA_DIR = os.getenv("VPNPORTAL_CA_DIR", "data/ca")

# Client configuration
SHUFFLE_HOSTS = os.getenv("VPNPORTAL_SHUFFLE_HOSTS", "1").lower() in ("1", "true", "yes")

# Logging
LOG_LEVEL = os.getenv("VPNPORTAL_LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("VPNPORTAL_LOG_JSON", "1").lower() in ("1", "true", "yes")

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


def parse_portal_config(data: Dict[str, Any]) -> PortalConfig:
    """Build a PortalConfig from already decoded JSON."""
    try:
        return PortalConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"invalid portal configuration: {e}") from e


def load_portal_config(path: Optional[str] = None) -> PortalConfig:
    """
    Load the portal configuration (session expiry and profile list).

    Raises ConfigurationError if the file is missing or malformed.
    """
    path = path or CONFIG_PATH
    try:
        data = _config_cache.get_json(path)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"unable to load portal configuration from {path}: {e}") from e
    return parse_portal_config(data)


def invalidate_config_cache() -> None:
    """Invalidate all cached configuration."""
    _config_cache.invalidate()


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, bool]:
    """
    Validate that all required configuration files exist.
    Returns dict of path -> exists.
    """
    paths = {
        "portal_config": CONFIG_PATH,
        "tls_crypt": TLS_CRYPT_PATH,
        "ca_dir": CA_DIR,
    }
    return {name: Path(path).exists() for name, path in paths.items()}

