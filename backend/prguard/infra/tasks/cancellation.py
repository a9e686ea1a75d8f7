"""Process-wide shutdown implementation of the CancellationToken port.

Celery's ``worker_shutting_down`` signal sets a module-level event; every
running scan observes it between files and between retries and stops,
leaving its job ``running`` for recovery on the next worker start.
"""

from __future__ import annotations

import logging
import threading

from prguard.domain.scanning.ports import CancellationToken

logger = logging.getLogger(__name__)

_shutdown = threading.Event()


def request_shutdown() -> None:
    if not _shutdown.is_set():
        logger.info("Shutdown requested; running scans will stop at the next checkpoint")
    _shutdown.set()


def reset_shutdown() -> None:
    """Clear the flag (tests, or a worker that recovers from a warm restart)."""
    _shutdown.clear()


class ShutdownCancellationToken(CancellationToken):
    def __init__(self, event: threading.Event | None = None) -> None:
        self._event = event or _shutdown

    def is_cancelled(self) -> bool:
        return self._event.is_set()
