"""A simple file-based cache with expiration."""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Awaitable, Callable

from phpkeeper.core.config import CACHE_DIR, Homebrew
from phpkeeper.core.errors import CacheError, TransientError
from phpkeeper.core.logging import get_logger

log = get_logger(__name__)


class Cache:
    """A simple file-based cache with expiration.

    Entries are also invalidated whenever the Homebrew Cellar changes, so
    that anything installed or removed outside phpkeeper is picked up.
    """

    def __init__(self, namespace: str, root: Path | None = None, cellar: Path | None = None):
        self.cache_path = (root or CACHE_DIR) / namespace
        self.cache_path.mkdir(parents=True, exist_ok=True)
        self.cellar = cellar or Homebrew.cellar
        log.debug(
            "cache_initialized",
            namespace=namespace,
            path=str(self.cache_path)
        )

    def _file(self, key: str) -> Path:
        return self.cache_path / f"{key}.json"

    def _update_token(self) -> str:
        """Token derived from the Cellar modification time."""
        try:
            return str(int(self.cellar.stat().st_mtime))
        except FileNotFoundError:
            return "0"

    def invalidate(self, key: str) -> None:
        self._file(key).unlink(missing_ok=True)
        log.debug("cache_invalidated", key=key, namespace=self.cache_path.name)

    async def get_or_set(
        self,
        key: str,
        ttl: int,
        loader: Callable[[], Awaitable[Any]],
        allow_stale: bool = False,
    ) -> Any:
        """Get a cached value or set it using the loader coroutine.

        Args:
            key: The cache key.
            ttl: Time-to-live in seconds.
            loader: A callable returning an awaitable of the value to cache.
            allow_stale: Serve an expired entry when the loader fails transiently.

        Returns:
            Cached or fresh value.
        """
        f = self._file(key)
        now = int(time.time())
        token = self._update_token()
        stale_data = None
        stale_ts = now

        if f.exists():
            try:
                data = json.loads(f.read_text())
            except json.JSONDecodeError:
                log.warning("cache_corrupted", key=key, namespace=self.cache_path.name)
                data = {}
            except OSError as e:
                raise CacheError(
                    "Failed to read cache entry",
                    key=key,
                    namespace=self.cache_path.name,
                    context={"error": str(e)}
                ) from e

            if data and now - data.get("_ts", 0) < ttl and data.get("_token") == token:
                log.info(
                    "cache_hit",
                    key=key,
                    namespace=self.cache_path.name,
                    age_seconds=now - data["_ts"],
                )
                return data.get("value")

            if data:
                reason = "expired" if now - data.get("_ts", 0) >= ttl else "token_mismatch"
                log.debug("cache_invalid", key=key, namespace=self.cache_path.name, reason=reason)
                stale_data = data.get("value")
                stale_ts = data.get("_ts", now)

        log.info("cache_miss", key=key, namespace=self.cache_path.name)

        try:
            value = await loader()
        except TransientError as e:
            if allow_stale and stale_data is not None:
                log.warning(
                    "cache_fallback_stale",
                    key=key,
                    namespace=self.cache_path.name,
                    age_seconds=now - stale_ts,
                    error=str(e)
                )
                return stale_data
            raise

        try:
            f.write_text(json.dumps({"_ts": now, "_token": token, "value": value}))
            log.debug("cache_set", key=key, namespace=self.cache_path.name)
        except OSError as e:
            log.error("cache_write_error", key=key, namespace=self.cache_path.name, error=str(e))
            raise CacheError(
                "Failed to write cache entry",
                key=key,
                namespace=self.cache_path.name,
                context={"error": str(e)}
            ) from e

        return value
