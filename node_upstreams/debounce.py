"""First-seen debounce policy that holds back newly appearing node addresses."""

from __future__ import annotations

import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)


class Debouncer:
    """Tracks when each address was first observed and releases it after a window.

    An address is only emitted once it has been present in every discovery
    result for at least ``window_seconds``. Addresses missing from a result
    lose their history and must sit out the full window again if they return.
    The very first population is backdated by the window so that a cold
    process can use its initial discovery immediately.
    """

    def __init__(self, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self._window = window_seconds
        self._clock = clock
        self._first_seen: dict[str, float] = {}
        self._populated = False

    @property
    def first_seen(self) -> dict[str, float]:
        return dict(self._first_seen)

    def observe(self, addresses: list[str]) -> list[str]:
        """Record one discovery result and return the addresses that are usable now."""
        now = self._clock()
        current = set(addresses)

        for address in set(self._first_seen) - current:
            logger.info("Address %s disappeared, forgetting first-seen time", address)
            del self._first_seen[address]

        stamp = now if self._populated else now - self._window
        for address in addresses:
            if address not in self._first_seen:
                self._first_seen[address] = stamp
        if self._first_seen:
            self._populated = True

        return [a for a in addresses if now - self._first_seen[a] >= self._window]
