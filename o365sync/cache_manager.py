"""Local cache for downloaded endpoint feeds."""
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional


class CacheManager:
    """Keeps the last downloaded copy of each feed as raw bytes."""

    def __init__(self, cache_dir: Path, use_cache: bool = False):
        """
        Args:
            cache_dir: Directory to store cache files
            use_cache: If True, serve reads from the cache when a copy exists.
                       Fresh downloads are written either way.
        """
        self.cache_dir = Path(cache_dir)
        self.use_cache = use_cache
        self.logger = logging.getLogger(__name__)

        self.cache_dir.mkdir(parents=True, exist_ok=True)

        if use_cache:
            self.logger.info("Feed cache: READ from cache when available (%s)", self.cache_dir)
        else:
            self.logger.info("Feed cache: always download, keep a copy in %s", self.cache_dir)

    def _get_cache_file(self, cache_key: str) -> Path:
        safe_key = re.sub(r"[^A-Za-z0-9_.-]+", "_", cache_key)
        return self.cache_dir / f"{safe_key}.cache"

    def get(self, cache_key: str) -> Optional[bytes]:
        """Return the cached bytes, or None when caching is off or nothing is cached."""
        if not self.use_cache:
            self.logger.debug("Cache disabled, skipping read for: %s", cache_key)
            return None

        cache_file = self._get_cache_file(cache_key)
        if not cache_file.exists():
            self.logger.info("Cache miss: %s", cache_key)
            return None

        try:
            data = cache_file.read_bytes()
        except OSError as exc:
            self.logger.error("Error reading cache file %s: %s", cache_file, exc)
            return None

        mtime = datetime.fromtimestamp(cache_file.stat().st_mtime)
        self.logger.info("Cache hit: %s (cached on %s)", cache_key, mtime.strftime("%Y-%m-%d %H:%M:%S"))
        return data

    def set(self, cache_key: str, data: bytes) -> None:
        cache_file = self._get_cache_file(cache_key)
        try:
            cache_file.write_bytes(data)
        except OSError as exc:
            self.logger.error("Error writing cache file %s: %s", cache_file, exc)
            return
        self.logger.info("Cached: %s (%s KB)", cache_key, round(cache_file.stat().st_size / 1024, 2))

    def delete(self, cache_key: str) -> bool:
        """Delete a single cache entry. Returns True if a file was removed."""
        cache_file = self._get_cache_file(cache_key)
        if not cache_file.exists():
            return False
        try:
            cache_file.unlink()
        except OSError as exc:
            self.logger.error("Error deleting cache file %s: %s", cache_file, exc)
            return False
        self.logger.info("Cache invalidated: %s", cache_key)
        return True

    def list_cache_files(self) -> list[dict]:
        cache_files = []
        for cache_file in self.cache_dir.glob("*.cache"):
            stat = cache_file.stat()
            cache_files.append({
                "key": cache_file.stem,
                "size_kb": round(stat.st_size / 1024, 2),
                "modified": datetime.fromtimestamp(stat.st_mtime).strftime("%Y-%m-%d %H:%M:%S"),
            })
        return sorted(cache_files, key=lambda x: x["modified"], reverse=True)
