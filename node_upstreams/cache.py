"""Upstream snapshot cache with single-flight refresh and stale-while-revalidate reads."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from .config import UpstreamsConfig
from .debounce import Debouncer
from .discovery import DiscoveryClient
from .discovery.models import Upstream, build_upstreams
from .exceptions import DiscoveryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """Upstreams from one successful refresh, with the time it completed."""

    upstreams: tuple[Upstream, ...] = ()
    refreshed_at: float | None = None  # None until the first successful refresh


class UpstreamCache:
    """Serves the last known upstream list and keeps it fresh via a discovery client.

    ``get_upstreams`` returns immediately while the snapshot is younger than
    the freshness window. Once it is stale, the first caller to take the
    refresh lock becomes the refresher and blocks until discovery succeeds,
    retrying after a fixed backoff for as long as the provider keeps failing.
    Every other caller gets the previous snapshot without waiting.

    The snapshot and its timestamp are swapped as one immutable object, so a
    reader never sees a partially updated list.
    """

    def __init__(
        self,
        client: DiscoveryClient,
        name_prefix: str,
        config: UpstreamsConfig,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] | None = None,
    ):
        self._client = client
        self._name_prefix = name_prefix
        self._config = config
        self._clock = clock
        self._closed = threading.Event()
        self._sleep = sleep if sleep is not None else self._closed.wait
        self._refresh_lock = threading.Lock()
        # Guards snapshot writes only; never held across discovery
        self._state_lock = threading.Lock()
        self._debouncer = Debouncer(config.debounce_seconds, clock) if config.debounce else None
        self._snapshot = Snapshot()

    # ── Reads ───────────────────────────────────────────────────────

    def get_upstreams(self, request: Any = None) -> tuple[Upstream, ...]:
        """Return the current upstreams, refreshing first if this caller wins the refresh lock.

        ``request`` is accepted for parity with proxy upstream-source hooks and
        is not inspected. Never raises.
        """
        snapshot = self._snapshot
        if self._is_fresh(snapshot):
            return snapshot.upstreams

        # Non-blocking acquire is the check-and-set of the refreshing flag
        if not self._refresh_lock.acquire(blocking=False):
            logger.debug("Refresh already in progress, serving previous snapshot")
            return snapshot.upstreams

        try:
            # Another refresher may have finished between the check and the acquire
            if not self._is_fresh(self._snapshot):
                self._refresh()
        finally:
            self._refresh_lock.release()
        return self._snapshot.upstreams

    @property
    def upstreams(self) -> tuple[Upstream, ...]:
        """The current snapshot, without triggering a refresh."""
        return self._snapshot.upstreams

    @property
    def refreshing(self) -> bool:
        return self._refresh_lock.locked()

    @property
    def last_refresh(self) -> float | None:
        return self._snapshot.refreshed_at

    @property
    def first_seen(self) -> dict[str, float]:
        return self._debouncer.first_seen if self._debouncer is not None else {}

    def seconds_since_refresh(self) -> float | None:
        """Age of the snapshot, or None if no refresh has ever succeeded."""
        refreshed_at = self._snapshot.refreshed_at
        if refreshed_at is None:
            return None
        return self._clock() - refreshed_at

    def invalidate(self) -> None:
        """Mark the snapshot stale so the next caller refreshes it."""
        with self._state_lock:
            self._snapshot = Snapshot(upstreams=self._snapshot.upstreams)

    def close(self) -> None:
        """Stop a refresh that is waiting out a retry backoff."""
        self._closed.set()

    # ── Refresh ─────────────────────────────────────────────────────

    def _is_fresh(self, snapshot: Snapshot) -> bool:
        if snapshot.refreshed_at is None:
            return False
        return self._clock() - snapshot.refreshed_at < self._config.freshness_seconds

    def _refresh(self) -> None:
        """Run discovery until it succeeds or the cache is closed. Caller holds the lock."""
        backoff = self._config.retry_backoff_seconds
        start = self._clock()
        attempt = 0

        while not self._closed.is_set():
            attempt += 1
            try:
                addresses = self._client.list_addresses(self._name_prefix)
            except DiscoveryError as exc:
                logger.error(
                    "Listing node addresses failed, retrying in %ss: %s", backoff, exc,
                    extra={"attempt": attempt, "prefix": self._name_prefix},
                )
            except Exception:
                logger.exception(
                    "Unexpected error listing node addresses, retrying in %ss", backoff,
                    extra={"attempt": attempt, "prefix": self._name_prefix},
                )
            else:
                self._publish(addresses)
                logger.info(
                    "Refresh complete",
                    extra={"attempt": attempt, "elapsed_seconds": round(self._clock() - start, 2)},
                )
                return
            self._sleep(backoff)

        logger.warning("Cache closed, abandoning refresh after %d attempts", attempt)

    def _publish(self, addresses: list[str]) -> None:
        if self._debouncer is not None:
            active = self._debouncer.observe(addresses)
        else:
            active = list(addresses)

        upstreams = build_upstreams(active, self._config.port)
        with self._state_lock:
            self._snapshot = Snapshot(upstreams=upstreams, refreshed_at=self._clock())
        logger.info(
            "Upstreams updated: %d active of %d discovered", len(active), len(addresses),
            extra={"addresses": list(addresses), "active": active},
        )
