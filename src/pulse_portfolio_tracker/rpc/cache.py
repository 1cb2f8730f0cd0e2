"""Namespaced TTL cache for prices, wallet snapshots and transaction pages."""

import logging
import threading
import time
from collections.abc import Callable
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class CacheNamespace(StrEnum):
    """Cache namespaces, each with its own default TTL."""

    PRICE = "price"
    BALANCE = "balance"
    TX_PAGE = "tx_page"


class CacheConfig:
    """
    TTL configuration for the cache.

    Parameters
    ----------
    price_ttl : float
        Default time-to-live in seconds for price quotes
    balance_ttl : float
        Default time-to-live in seconds for wallet snapshots
    tx_page_ttl : float
        Default time-to-live in seconds for transaction pages
    sweep_interval : float
        Seconds between proactive sweeps of expired entries

    """

    def __init__(
        self,
        price_ttl: float = 300.0,
        balance_ttl: float = 180.0,
        tx_page_ttl: float = 600.0,
        sweep_interval: float = 300.0,
    ) -> None:
        self.price_ttl = price_ttl
        self.balance_ttl = balance_ttl
        self.tx_page_ttl = tx_page_ttl
        self.sweep_interval = sweep_interval

    def ttl_for(self, namespace: CacheNamespace) -> float:
        """
        Get the default TTL of a namespace.

        Parameters
        ----------
        namespace : CacheNamespace
            Cache namespace

        Returns
        -------
        float
            TTL in seconds

        """
        return {
            CacheNamespace.PRICE: self.price_ttl,
            CacheNamespace.BALANCE: self.balance_ttl,
            CacheNamespace.TX_PAGE: self.tx_page_ttl,
        }[namespace]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheConfig":
        """Build a config from the ``cache`` section of pulsechain.yaml."""
        return cls(
            price_ttl=float(data.get("price_ttl", 300)),
            balance_ttl=float(data.get("balance_ttl", 180)),
            tx_page_ttl=float(data.get("tx_page_ttl", 600)),
            sweep_interval=float(data.get("sweep_interval", 300)),
        )


class CacheEntry:
    """
    Cache entry with an absolute expiry timestamp.

    Parameters
    ----------
    value : Any
        Cached value
    expires_at : float
        Clock reading after which the entry is stale

    """

    __slots__ = ("expires_at", "value")

    def __init__(self, value: Any, expires_at: float) -> None:
        self.value = value
        self.expires_at = expires_at

    def is_expired(self, now: float) -> bool:
        """
        Check if cache entry has expired.

        Parameters
        ----------
        now : float
            Current clock reading

        Returns
        -------
        bool
            True if expired, False otherwise

        """
        return now >= self.expires_at


def normalize_key(key: str) -> str:
    """Lowercase a cache key so addresses match regardless of checksum casing."""
    return key.lower()


def tx_page_key(address: str, limit: int, cursor: str | None) -> str:
    """
    Build the composite key for a transaction page.

    Parameters
    ----------
    address : str
        Wallet address
    limit : int
        Page size
    cursor : str | None
        Provider cursor, None for the first page

    Returns
    -------
    str
        Key of the form ``{address}_{limit}_{cursor or 'null'}``

    """
    return f"{address.lower()}_{limit}_{cursor or 'null'}"


class TTLCache:
    """
    In-memory cache with one map and one lock per namespace.

    Expired entries are evicted on read and by ``sweep``. The clock is
    injectable so expiry can be tested without sleeping.

    Parameters
    ----------
    config : CacheConfig | None
        TTL configuration
    clock : Callable[[], float] | None
        Monotonic time source, ``time.monotonic`` by default

    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.config = config or CacheConfig()
        self._clock = clock or time.monotonic
        self._entries: dict[CacheNamespace, dict[str, CacheEntry]] = {ns: {} for ns in CacheNamespace}
        self._locks: dict[CacheNamespace, threading.Lock] = {ns: threading.Lock() for ns in CacheNamespace}
        self._hits = 0
        self._misses = 0

    def get(self, namespace: CacheNamespace, key: str) -> Any | None:
        """
        Get cached value if it exists and hasn't expired.

        Parameters
        ----------
        namespace : CacheNamespace
            Cache namespace
        key : str
            Cache key (lowercased before lookup)

        Returns
        -------
        Any | None
            Cached value if found and valid, None otherwise

        """
        key = normalize_key(key)
        now = self._clock()
        with self._locks[namespace]:
            entry = self._entries[namespace].get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(now):
                del self._entries[namespace][key]
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def set(self, namespace: CacheNamespace, key: str, value: Any, ttl: float | None = None) -> None:
        """
        Store value in cache with TTL.

        Parameters
        ----------
        namespace : CacheNamespace
            Cache namespace
        key : str
            Cache key
        value : Any
            Value to cache
        ttl : float | None
            Time-to-live in seconds. Uses the namespace default if None.

        """
        ttl = self.config.ttl_for(namespace) if ttl is None else ttl
        entry = CacheEntry(value, self._clock() + ttl)
        with self._locks[namespace]:
            self._entries[namespace][normalize_key(key)] = entry

    def invalidate(self, namespace: CacheNamespace, key: str) -> bool:
        """
        Remove one entry.

        Returns
        -------
        bool
            True if an entry was removed

        """
        with self._locks[namespace]:
            return self._entries[namespace].pop(normalize_key(key), None) is not None

    def invalidate_prefix(self, namespace: CacheNamespace, prefix: str) -> int:
        """Remove every entry whose key starts with ``prefix``. Returns the count removed."""
        prefix = normalize_key(prefix)
        with self._locks[namespace]:
            keys = [key for key in self._entries[namespace] if key.startswith(prefix)]
            for key in keys:
                del self._entries[namespace][key]
        return len(keys)

    def clear(self, namespace: CacheNamespace | None = None) -> None:
        """
        Clear cached entries.

        Parameters
        ----------
        namespace : CacheNamespace | None
            Namespace to clear, every namespace if None

        """
        namespaces = [namespace] if namespace is not None else list(CacheNamespace)
        for ns in namespaces:
            with self._locks[ns]:
                self._entries[ns].clear()

    def sweep(self) -> int:
        """
        Remove all expired entries from every namespace.

        Returns
        -------
        int
            Number of entries removed

        """
        now = self._clock()
        removed = 0
        for ns in CacheNamespace:
            with self._locks[ns]:
                expired_keys = [key for key, entry in self._entries[ns].items() if entry.is_expired(now)]
                for key in expired_keys:
                    del self._entries[ns][key]
            removed += len(expired_keys)
        if removed:
            logger.debug("Swept %d expired cache entries", removed)
        return removed

    def stats(self) -> dict[str, int]:
        """
        Get entry counts per namespace plus hit/miss counters.

        Returns
        -------
        dict[str, int]
            Counts keyed by namespace name, ``hits`` and ``misses``

        """
        result: dict[str, int] = {}
        for ns in CacheNamespace:
            with self._locks[ns]:
                result[ns.value] = len(self._entries[ns])
        result["hits"] = self._hits
        result["misses"] = self._misses
        return result


class CacheSweeper:
    """
    Daemon thread that calls ``TTLCache.sweep`` on a fixed interval.

    Parameters
    ----------
    cache : TTLCache
        Cache to sweep
    interval : float | None
        Seconds between sweeps, the cache's configured interval if None

    """

    def __init__(self, cache: TTLCache, interval: float | None = None) -> None:
        self.cache = cache
        self.interval = interval if interval is not None else cache.config.sweep_interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Start sweeping in the background. No-op if already running."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="cache-sweeper", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 1.0) -> None:
        """Signal the sweeper to stop and wait for it."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.cache.sweep()
            except Exception:
                logger.exception("Cache sweep failed")

    def __enter__(self) -> "CacheSweeper":
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Context manager exit."""
        self.stop()
