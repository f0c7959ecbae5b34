"""Watch loop that keeps an upstream source warm and logs snapshot changes."""

from __future__ import annotations

import logging
import signal
import time
from types import FrameType

from .config import AppConfig
from .discovery.models import Upstream
from .source import NodeUpstreamSource

logger = logging.getLogger(__name__)


class Watcher:
    """Polls ``get_upstreams`` on a fixed interval until a shutdown signal arrives."""

    def __init__(self, config: AppConfig, source: NodeUpstreamSource):
        self._config = config
        self._source = source
        self._shutdown = False
        self._last: tuple[Upstream, ...] | None = None

    def run_once(self) -> tuple[Upstream, ...]:
        """Fetch upstreams once, logging them if they changed since the last poll."""
        upstreams = self._source.get_upstreams()
        if upstreams != self._last:
            logger.info(
                "Upstreams changed: %d targets", len(upstreams),
                extra={"upstreams": [u.dial for u in upstreams]},
            )
            self._last = upstreams
        return upstreams

    def run(self) -> None:
        """Run the polling loop until shutdown signal."""
        self._install_signal_handlers()
        interval = self._config.watch.interval_seconds
        logger.info("Watcher started, polling every %ss", interval)

        while not self._shutdown:
            self.run_once()
            age = self._source.cache.seconds_since_refresh()
            logger.debug(
                "Snapshot age %s", "unknown" if age is None else f"{age:.1f}s",
                extra={"seconds_since_refresh": None if age is None else round(age, 1)},
            )
            self._interruptible_sleep(interval)

        logger.info("Watcher stopped")

    def stop(self) -> None:
        self._shutdown = True
        self._source.cache.close()

    def _interruptible_sleep(self, seconds: float) -> None:
        """Sleep in short increments so we can respond to shutdown signals."""
        end = time.monotonic() + seconds
        while not self._shutdown and time.monotonic() < end:
            remaining = end - time.monotonic()
            time.sleep(min(remaining, 1.0))

    def _install_signal_handlers(self) -> None:
        signal.signal(signal.SIGTERM, self._handle_shutdown)
        signal.signal(signal.SIGINT, self._handle_shutdown)
        signal.signal(signal.SIGHUP, self._handle_reload)

    def _handle_shutdown(self, signum: int, frame: FrameType | None) -> None:
        sig_name = signal.Signals(signum).name
        logger.info("Received %s, shutting down", sig_name)
        self.stop()

    def _handle_reload(self, signum: int, frame: FrameType | None) -> None:
        logger.info("Received SIGHUP, invalidating upstream snapshot")
        self._source.cache.invalidate()
