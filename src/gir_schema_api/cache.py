"""Caching layer for built GIR models.

Provides:
    * In-memory dictionary cache with TTL + source file mtime staleness checks.
    * A cached parser wrapper that memoizes :class:`GIRModel` objects per
      (path, builder configuration).

Design goals:
    1. Deterministic keys: All cache keys are md5 hashes of argument tuples.
    2. Predictable invalidation: TTL expiry OR upstream file modification time.
    3. Isolation: every cached model owns its registry, so cache hits never
       leak names between documents.

Quick examples:

Local cache get/set::

    from gir_schema_api.cache import SchemaCache
    cache = SchemaCache(default_ttl=5)
    key = cache._make_key('gir', '/path/to/Gtk-3.0.gir')
    cache.set(key, {'parsed': True})
    assert cache.get(key)['parsed'] is True

Cached parser convenience::

    from gir_schema_api.cache import get_cached_parser
    parser = get_cached_parser()
    model = parser.parse(Path('Gtk-3.0.gir'))
    print(model.prefix)
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
import sys
import time
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, cast

from .gir_parser import BuilderConfig, GIRModel, parse_gir

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Cache entry with TTL and versioning."""

    data: Any
    timestamp: float = field(default_factory=time.time)
    ttl: float = 3600.0  # 1 hour default
    etag: str = ""
    file_mtime: float = 0.0

    def is_expired(self) -> bool:
        """Check if cache entry has expired."""
        return time.time() - self.timestamp > self.ttl

    def is_stale(self, file_path: Path) -> bool:
        """Check if cache is stale based on file modification time."""
        if not file_path.exists():
            return True
        current_mtime = file_path.stat().st_mtime
        return current_mtime > self.file_mtime


class SchemaCache:
    """Simple in-memory cache for built models.

    Notes:
        * Single-thread oriented; FastAPI sync endpoints only read from it
          after the first build.
        * Memory footprint estimation is approximate (shallow object sizes).
    """

    def __init__(self, default_ttl: float = 3600.0):
        """Initialize cache with default TTL in seconds."""
        self.default_ttl = default_ttl
        self._cache: Dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def _make_key(self, *args) -> str:
        """Create cache key from arguments."""
        key_data = str(args).encode()
        return hashlib.md5(key_data).hexdigest()

    def get(self, key: str) -> Optional[Any]:
        """Retrieve a value if present and not expired.

        Args:
            key: Opaque cache key (md5 hex string).
        Returns:
            Cached value or None if absent/expired.
        """
        entry = self._cache.get(key)

        if entry is None:
            self.misses += 1
            return None

        if entry.is_expired():
            del self._cache[key]
            self.misses += 1
            return None

        self.hits += 1
        return entry.data

    def set(
        self,
        key: str,
        data: Any,
        ttl: Optional[float] = None,
        file_path: Optional[Path] = None,
    ) -> None:
        """Insert or replace a value in the cache.

        Args:
            key: Cache key.
            data: Arbitrary Python object (stored as is).
            ttl: Optional time-to-live override in seconds (defaults to instance default).
            file_path: Optional source file whose mtime + md5 contribute to stale detection.
        """
        etag = ""
        file_mtime = 0.0

        if file_path and file_path.exists():
            file_mtime = file_path.stat().st_mtime
            with file_path.open("rb") as f:
                etag = hashlib.md5(f.read()).hexdigest()

        self._cache[key] = CacheEntry(
            data=data, ttl=ttl or self.default_ttl, etag=etag, file_mtime=file_mtime
        )

    def etag(self, key: str) -> str:
        """Content hash of the source file recorded for ``key`` ("" if unknown)."""
        entry = self._cache.get(key)
        return entry.etag if entry is not None else ""

    def invalidate(self, key: str) -> None:
        """Remove specific entry from cache."""
        self._cache.pop(key, None)

    def clear(self) -> None:
        """Clear all cache entries."""
        self._cache.clear()

    def _estimate_memory_usage(self) -> float:
        """Estimate memory usage of cache in MB."""
        total_size = sys.getsizeof(self._cache)
        for key, entry in self._cache.items():
            total_size += sys.getsizeof(key)
            total_size += sys.getsizeof(entry)
            total_size += sys.getsizeof(entry.data)
        return total_size / (1024 * 1024)

    def get_cache_stats(self) -> Dict[str, Any]:
        """Get current cache statistics."""
        return {
            "cache_size": len(self._cache),
            "memory_usage_mb": self._estimate_memory_usage(),
            "default_ttl": self.default_ttl,
            "hits": self.hits,
            "misses": self.misses,
        }

    def check_file_staleness(self, key: str, file_path: Path) -> bool:
        """Check if cached entry is stale based on file modification."""
        entry = self._cache.get(key)
        if entry is None:
            return True
        return entry.is_stale(file_path)


_PAIR_SEPARATOR = re.compile(r",(?=\s*[A-Za-z_]\w*=)")


def builder_config_from_key(config_key: Optional[str]) -> BuilderConfig:
    """Build a :class:`BuilderConfig` from ``key=value`` pairs.

    Pairs are comma separated; a comma only starts a new pair when a
    ``key=`` follows it, so values such as ``prefix_delimiter=,`` stay intact.
    ``blacklist`` takes ``|``-separated names.

    Example:
        >>> sorted(builder_config_from_key("error_type_name=GError,blacklist=Foo|Bar").blacklist)
        ['Bar', 'Foo']
    """
    config = BuilderConfig()
    if not config_key:
        return config
    for pair in _PAIR_SEPARATOR.split(config_key):
        if "=" not in pair:
            continue
        key, value = pair.split("=", 1)
        key = key.strip()
        value = value.strip()
        if not hasattr(config, key):
            logger.warning("Ignoring unknown builder option '%s'", key)
            continue
        if key == "blacklist":
            setattr(config, key, frozenset(name for name in value.split("|") if name))
        else:
            setattr(config, key, value)
    return config


class CachedGIRParser:
    """Parser wrapper that memoizes built models per path and configuration."""

    def __init__(
        self,
        cache: Optional[SchemaCache] = None,
        builder_config: Optional[BuilderConfig] = None,
        gir_path: Optional[Path] = None,
    ):
        """Initialize with optional cache, builder config, and default document path."""
        self.cache = cache or _schema_cache
        self.builder_config = builder_config or BuilderConfig()
        self.gir_path = gir_path

    def cache_key(self, gir_path: Path) -> str:
        return self.cache._make_key("gir", str(gir_path), repr(self.builder_config))

    def parse(
        self,
        gir_path: Optional[Path] = None,
        force_refresh: bool = False,
    ) -> Optional[GIRModel]:
        """Build (or reuse) the model for a GIR document.

        Args:
            gir_path: Path override (defaults to instance gir_path).
            force_refresh: Skip cache and rebuild if True.
        Returns:
            The model, or None when the document cannot be loaded.
        Raises:
            ValueError: If no path is provided/resolved.
        """
        if gir_path is None:
            if self.gir_path is None:
                raise ValueError("No GIR path provided and no default gir_path set")
            gir_path = self.gir_path
        gir_path = Path(gir_path)
        cache_key = self.cache_key(gir_path)

        if not force_refresh:
            if not self.cache.check_file_staleness(cache_key, gir_path):
                cached = self.cache.get(cache_key)
                if cached is not None:
                    return cast(GIRModel, cached)

        model = parse_gir(gir_path, config=self.builder_config)
        if model is not None:
            self.cache.set(cache_key, model, file_path=gir_path)
        return model


# Global cache instance
_schema_cache = SchemaCache(default_ttl=float(os.getenv("GIR_CACHE_TTL", "3600")))


@lru_cache(maxsize=4)
def get_cached_parser(builder_config_key: Optional[str] = None) -> CachedGIRParser:
    """Get or create a cached parser instance.

    Args:
        builder_config_key: Optional ``key=value`` string (see
            :func:`builder_config_from_key`).

    Returns:
        CachedGIRParser instance sharing the process-wide cache.
    """
    return CachedGIRParser(
        cache=_schema_cache, builder_config=builder_config_from_key(builder_config_key)
    )
