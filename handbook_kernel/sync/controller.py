"""
Sync Controller — the client's only stateful orchestrator.

One cycle:
  CHECKING_CACHE → (online or forced: FETCHING | offline: READING_CACHE)
                 → (FETCH_SUCCESS | FETCH_FAILURE) → SETTLED

Behavioral Contract:
- A cache failure never prevents a fetch; a fetch failure never prevents
  falling back to the cache.
- A successful fetch replaces the cached envelope wholesale.
- Staleness only changes the status text; stale data is still served.
- Cycles are serialized; the envelope written last belongs to the cycle that
  finished last.
- Every outcome is a SyncResult, never an exception.
"""

import asyncio
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from handbook_kernel.client_cache.store import EnvelopeCache, SqliteKeyValueStore
from handbook_kernel.models.config import ClientConfig
from handbook_kernel.models.directory import Snapshot
from handbook_kernel.models.errors import FetchError
from handbook_kernel.models.sync import SyncResult, SyncStatus
from handbook_kernel.models.view import CachedEnvelope
from handbook_kernel.sync.fetcher import HandbookFetcher
from handbook_kernel.sync.network import HostReachability
from handbook_kernel.transform.pipeline import build_view

logger = logging.getLogger(__name__)

MSG_LOADED = "Data loaded from server."
MSG_CACHE_AFTER_ERROR = "Network error. Showing data from local cache."
MSG_CACHE = "Data loaded from cache."
MSG_STALE_CACHE = "Data loaded from cache ({hours}h ago, refresh recommended)."
MSG_FETCH_FAILED = "Failed to load data. Check the connection to the server."
MSG_OFFLINE_NO_CACHE = "No network connection and no local cache."
ERR_UNAVAILABLE = "Data unavailable"


class SnapshotFetcher(Protocol):
    def fetch(self) -> Snapshot: ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(moment: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _to_epoch_ms(moment: datetime) -> float:
    return moment.timestamp() * 1000.0


def _from_epoch_ms(value: float) -> datetime:
    return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)


class SyncController:
    """Decides between server and local cache and produces the view model."""

    def __init__(
        self,
        cache: EnvelopeCache,
        fetcher: SnapshotFetcher,
        network_probe: Callable[[], bool],
        config: Optional[ClientConfig] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.cache = cache
        self.fetcher = fetcher
        self.network_probe = network_probe
        self.config = config or ClientConfig()
        self.clock = clock
        self._cycle_lock = threading.Lock()
        self._last_result: Optional[SyncResult] = None

    @classmethod
    def from_config(cls, config: ClientConfig) -> "SyncController":
        """Wire the default SQLite cache, HTTP fetcher and host probe."""
        return cls(
            cache=EnvelopeCache(SqliteKeyValueStore(config.cache_db_path), key=config.cache_key),
            fetcher=HandbookFetcher(config.api_url, config.fetch_timeout_seconds),
            network_probe=HostReachability(config.api_url, config.probe_timeout_seconds),
            config=config,
        )

    @property
    def last_result(self) -> Optional[SyncResult]:
        return self._last_result

    def sync(self, force_refresh: bool = False, now: Optional[datetime] = None) -> SyncResult:
        """Run one sync cycle. A naive `now` is taken to be UTC."""
        now = _as_utc(now or self.clock())
        with self._cycle_lock:
            result = self._run_cycle(force_refresh, now)
            self._last_result = result
        logger.info("Sync settled: %s", result.status.value)
        return result

    async def sync_async(self, force_refresh: bool = False) -> SyncResult:
        """Run a cycle without blocking the event loop."""
        return await asyncio.to_thread(self.sync, force_refresh)

    def refresh(self) -> SyncResult:
        """User-requested update: fetch even when the probe says offline."""
        return self.sync(force_refresh=True)

    def clear_cache(self) -> bool:
        return self.cache.clear()

    def _run_cycle(self, force_refresh: bool, now: Optional[datetime]) -> SyncResult:
        cached = self.cache.read()

        online = self._is_online()
        if online or force_refresh:
            try:
                snapshot = self.fetcher.fetch()
            except FetchError as e:
                logger.error("Failed to load handbook from server: %s", e)
                return self._after_fetch_failure(cached, str(e))
            return self._after_fetch_success(snapshot, now)

        return self._offline(cached, now)

    def _is_online(self) -> bool:
        try:
            return bool(self.network_probe())
        except Exception:
            logger.warning("Network probe failed; assuming offline", exc_info=True)
            return False

    def _after_fetch_success(self, snapshot: Snapshot, now: Optional[datetime]) -> SyncResult:
        fetched_at = now or self.clock()
        envelope = CachedEnvelope(
            data=build_view(snapshot),
            timestamp=snapshot.timestamp,
            fetch_time=_to_epoch_ms(fetched_at),
        )
        self.cache.write(envelope)
        return SyncResult(
            status=SyncStatus.LOADED_FROM_SERVER,
            message=MSG_LOADED,
            view=envelope.data,
            last_updated=_from_epoch_ms(envelope.fetch_time),
        )

    def _after_fetch_failure(self, cached: Optional[CachedEnvelope], error: str) -> SyncResult:
        if cached is not None:
            return SyncResult(
                status=SyncStatus.SERVED_FROM_CACHE_AFTER_ERROR,
                message=MSG_CACHE_AFTER_ERROR,
                view=cached.data,
                last_updated=_from_epoch_ms(cached.fetch_time),
                error=error,
            )
        return SyncResult(
            status=SyncStatus.UNAVAILABLE,
            message=MSG_FETCH_FAILED,
            error=error,
        )

    def _offline(self, cached: Optional[CachedEnvelope], now: Optional[datetime]) -> SyncResult:
        if cached is None:
            return SyncResult(
                status=SyncStatus.UNAVAILABLE,
                message=MSG_OFFLINE_NO_CACHE,
                error=ERR_UNAVAILABLE,
            )

        fetched_at = _from_epoch_ms(cached.fetch_time)
        age_hours = self.cache_age_hours(fetched_at, now or self.clock())
        if age_hours >= self.config.max_cache_age_hours:
            status = SyncStatus.SERVED_STALE_CACHE
            message = MSG_STALE_CACHE.format(hours=age_hours)
        else:
            status = SyncStatus.SERVED_FROM_CACHE
            message = MSG_CACHE

        return SyncResult(
            status=status,
            message=message,
            view=cached.data,
            last_updated=fetched_at,
            cache_age_hours=age_hours,
        )

    @staticmethod
    def cache_age_hours(fetched_at: datetime, now: datetime) -> int:
        """Whole hours elapsed, truncated. A clock behind the fetch time counts as 0."""
        seconds = (_as_utc(now) - _as_utc(fetched_at)).total_seconds()
        return max(0, int(seconds // 3600))
