"""Request tracer port - purely observational hooks around blocking I/O."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class IRequestTracer(ABC):
    """Notified before and after I/O-bound sub-operations.

    Implementations must be cheap and must never gate progress.
    """

    @abstractmethod
    def add(self, url: str) -> None:
        """I/O on url is about to start."""
        ...

    @abstractmethod
    def remove(self, url: str) -> None:
        """I/O on url finished (successfully or not)."""
        ...


# Yo, use this instead of calling tracer.add/remove by hand! It handles tracer=None and
# swallows (but logs) tracer failures - a broken progress display must NEVER break an import.
@contextmanager
def trace_request(tracer: IRequestTracer | None, url: str) -> Iterator[None]:
    """Notify tracer around the wrapped block."""
    if tracer is not None:
        try:
            tracer.add(url)
        except Exception as e:
            logger.warning("Request tracer add() failed for %s: %s", url, e)
    try:
        yield
    finally:
        if tracer is not None:
            try:
                tracer.remove(url)
            except Exception as e:
                logger.warning("Request tracer remove() failed for %s: %s", url, e)
