"""Request tracer implementations.

Hey future me - the tracer is how a UI shows "currently reading: /music/x.flac" during a
scan. Discovery calls add()/remove() around every blocking read (via trace_request). Keep
these implementations dumb and fast, they sit on the hot path of every import.
"""

import logging
import threading
from collections import Counter

from soundshelf.domain.ports.tracing import IRequestTracer

logger = logging.getLogger(__name__)


class InFlightRequestTracer(IRequestTracer):
    """Keeps track of urls with I/O currently in flight.

    The same url may be in flight more than once (e.g. duration probe and tag
    read), so entries are counted. Plugins run parts of their work in worker
    threads, hence the lock.
    """

    def __init__(self) -> None:
        self._in_flight: Counter[str] = Counter()
        self._lock = threading.Lock()
        self.total_requests = 0

    def add(self, url: str) -> None:
        with self._lock:
            self._in_flight[url] += 1
            self.total_requests += 1
        logger.debug("I/O start: %s", url)

    def remove(self, url: str) -> None:
        with self._lock:
            if self._in_flight[url] <= 1:
                self._in_flight.pop(url, None)
            else:
                self._in_flight[url] -= 1
        logger.debug("I/O done: %s", url)

    @property
    def in_flight(self) -> list[str]:
        """Urls with at least one request in flight."""
        with self._lock:
            return sorted(self._in_flight)
