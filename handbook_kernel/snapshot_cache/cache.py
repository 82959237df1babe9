"""
Server Snapshot Cache — single-slot, freshness-checked store of the parsed source.

States:
  EMPTY → LOADING → POPULATED(key)
  POPULATED(key) --same key--> POPULATED(key)   (cached snapshot returned)
  POPULATED(key) --new key---> LOADING → POPULATED(new key)

Behavioral Contract:
- A snapshot is only ever replaced whole, never mutated.
- Concurrent callers that miss on the same freshness key share one in-flight
  load (single-flight) and receive its result or its error.
- A returned snapshot is never older than the key observed when the call
  began, unless the PRESERVE policy is serving the last good snapshot after a
  failed reload.
- A missing source leaves the slot untouched.
- Under PRESERVE, a key that failed to parse is not parsed again until the
  source changes; the last good snapshot is served meanwhile.
"""

import logging
import threading
import time
from typing import Optional

from handbook_kernel.models.config import ReloadFailurePolicy
from handbook_kernel.models.directory import Snapshot
from handbook_kernel.models.errors import LoadError, SourceMalformedError
from handbook_kernel.normalizer.records import build_snapshot
from handbook_kernel.source.oracle import SourceFreshnessOracle
from handbook_kernel.source.workbook import WorkbookReader

logger = logging.getLogger(__name__)


class _Flight:
    """One in-flight load, shared by every caller waiting on the same key."""

    def __init__(self, key: float):
        self.key = key
        self._done = threading.Event()
        self._snapshot: Optional[Snapshot] = None
        self._error: Optional[LoadError] = None

    def resolve(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        self._done.set()

    def fail(self, error: LoadError) -> None:
        self._error = error
        self._done.set()

    def wait(self) -> Snapshot:
        self._done.wait()
        if self._error is not None:
            raise self._error
        return self._snapshot


class SnapshotCache:
    """Owns the server-side snapshot. Shared by all request handlers."""

    def __init__(
        self,
        oracle: SourceFreshnessOracle,
        reader: Optional[WorkbookReader] = None,
        reload_failure_policy: ReloadFailurePolicy = ReloadFailurePolicy.DISCARD,
    ):
        self.oracle = oracle
        self.reader = reader or WorkbookReader()
        self.reload_failure_policy = reload_failure_policy

        self._lock = threading.Lock()
        self._snapshot: Optional[Snapshot] = None
        self._inflight: Optional[_Flight] = None
        self._failed_key: Optional[float] = None
        self._load_count = 0

    @property
    def current(self) -> Optional[Snapshot]:
        """The snapshot in the slot, without any freshness check."""
        return self._snapshot

    @property
    def status(self) -> str:
        return "active" if self._snapshot is not None else "empty"

    @property
    def load_count(self) -> int:
        """Number of times the source has been parsed."""
        return self._load_count

    def clear(self) -> None:
        with self._lock:
            self._snapshot = None
            self._failed_key = None

    def get_snapshot(self) -> Snapshot:
        """
        Return a snapshot matching the source's current freshness key,
        reloading the source only when the key changed.
        """
        while True:
            key = self.oracle.freshness_key()

            with self._lock:
                cached = self._snapshot
                if cached is not None and cached.timestamp == key:
                    logger.info("Returning cached snapshot (key=%s)", key)
                    return cached
                if cached is not None and key == self._failed_key:
                    logger.info(
                        "Source unchanged since failed reload; serving key=%s", cached.timestamp
                    )
                    return cached

                flight = self._inflight
                leader = flight is None
                if leader:
                    flight = _Flight(key)
                    self._inflight = flight

            if leader:
                return self._run_load(flight)

            if flight.key == key:
                return flight.wait()

            # A load for an older key is running; let it settle, then re-check.
            try:
                flight.wait()
            except LoadError:
                pass

    def _run_load(self, flight: _Flight) -> Snapshot:
        try:
            snapshot = self._load(flight.key)
        except LoadError as e:
            fallback = self._handle_failure(e, flight.key)
            if fallback is not None:
                flight.resolve(fallback)
                return fallback
            flight.fail(e)
            raise
        except Exception as e:
            # Anything the reader did not classify still counts as a bad source.
            error = SourceMalformedError(f"Unexpected error while loading source: {e}")
            logger.exception("Unexpected error while loading %s", self.oracle.path)
            fallback = self._handle_failure(error, flight.key)
            if fallback is not None:
                flight.resolve(fallback)
                return fallback
            flight.fail(error)
            raise error from e
        else:
            flight.resolve(snapshot)
            return snapshot
        finally:
            with self._lock:
                if self._inflight is flight:
                    self._inflight = None

    def _load(self, key: float) -> Snapshot:
        logger.info("Loading handbook data from %s", self.oracle.path)
        started = time.monotonic()
        self._load_count += 1

        sheets = self.reader.read(self.oracle.path)
        snapshot = build_snapshot(key, sheets)

        with self._lock:
            self._snapshot = snapshot
            self._failed_key = None

        logger.info(
            "Handbook data loaded. Office: %d, cabinets: %d (%.1f ms)",
            len(snapshot.office),
            len(snapshot.cabinets),
            (time.monotonic() - started) * 1000.0,
        )
        return snapshot

    def _handle_failure(self, error: LoadError, key: float) -> Optional[Snapshot]:
        """Apply the reload failure policy. Returns a snapshot to serve, if any."""
        if not isinstance(error, SourceMalformedError):
            logger.error("Handbook source unavailable: %s", error)
            return None

        if self.reload_failure_policy == ReloadFailurePolicy.PRESERVE:
            with self._lock:
                previous = self._snapshot
                if previous is not None:
                    self._failed_key = key
            if previous is not None:
                logger.warning(
                    "Reload failed (%s); serving last good snapshot (key=%s)",
                    error,
                    previous.timestamp,
                )
                return previous

        logger.error("Failed to parse handbook source: %s", error)
        with self._lock:
            self._snapshot = None
        return None
