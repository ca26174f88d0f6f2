"""DiscoverLog - persisted memory of what discovery already processed.

Hey future me - this is what makes re-scans cheap! Every directory walk, file import and
metadata grab is logged with a timestamp. On the next scan the Discoverer asks
needs_rediscover(action, url) and skips everything whose modification time is not newer
than what we logged. The log is keyed by (action, NORMALIZED url), so "/a/./b.flac" and
"/a/b.flac" count as the same entry.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from soundshelf.domain.value_objects.locators import modification_time, normalize_url


class DiscoverAction(str, Enum):
    """Kind of work a log entry records."""

    DISCOVERING = "discovering"
    IMPORTING = "importing"
    GRABBING = "grabbing"


@dataclass(frozen=True)
class DiscoverLogItem:
    """One processed (action, url) with the capability to re-open url later.

    Attributes:
        action: What was done to url
        url: Locator as it was logged
        capability: Opaque access token, empty when none could be issued
        timestamp: When the action ran (aware UTC)
    """

    action: DiscoverAction
    url: str
    capability: bytes = field(default=b"", repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def key(self) -> tuple[DiscoverAction, str]:
        return self.action, normalize_url(self.url)


@dataclass(frozen=True)
class DiscoverLog:
    """Mergeable, append-only log of discover actions."""

    items: tuple[DiscoverLogItem, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.items, tuple):
            object.__setattr__(self, "items", tuple(self.items))

    @classmethod
    def empty(cls) -> "DiscoverLog":
        return cls()

    def __len__(self) -> int:
        return len(self.items)

    def latest(self, action: DiscoverAction, url: str) -> DiscoverLogItem | None:
        """Most recent entry for (action, url), None if never logged."""
        key = (action, normalize_url(url))
        found: DiscoverLogItem | None = None
        for item in self.items:
            if item.key != key:
                continue
            if found is None or item.timestamp >= found.timestamp:
                found = item
        return found

    def needs_rediscover(
        self,
        action: DiscoverAction,
        url: str,
        mtime_reader: Callable[[str], datetime | None] = modification_time,
    ) -> bool:
        """Decide whether url must be processed again for action.

        Args:
            action: The action about to run
            url: Locator to check
            mtime_reader: Returns url's modification time, None if unreadable

        Returns:
            True if url was never logged for action, its modification time is
            unreadable, or it changed after the latest logged timestamp
        """
        item = self.latest(action, url)
        if item is None:
            return True
        mtime = mtime_reader(url)
        if mtime is None:
            return True
        return mtime > item.timestamp

    def log(
        self,
        action: DiscoverAction,
        url: str,
        capability: bytes = b"",
        timestamp: datetime | None = None,
    ) -> "DiscoverLog":
        """Return a new log with an entry for (action, url) appended."""
        item = DiscoverLogItem(
            action=action,
            url=url,
            capability=capability,
            timestamp=timestamp or datetime.now(UTC),
        )
        return DiscoverLog(self.items + (item,))

    # Listen up, merge is a union keyed by (action, normalized url). The later timestamp wins,
    # and on an exact tie the entry that comes LAST (other's, when merging self with other)
    # wins. Key order is first-seen order. Merging the same logs again changes nothing, which
    # is what lets parallel discovery branches fold in any order.
    def merge(self, other: "DiscoverLog") -> "DiscoverLog":
        """Union of two logs, keeping the newest entry per key."""
        return DiscoverLog.from_items((*self.items, *other.items))

    @classmethod
    def from_items(cls, items: Iterable[DiscoverLogItem]) -> "DiscoverLog":
        pool: dict[tuple[DiscoverAction, str], DiscoverLogItem] = {}
        for item in items:
            existing = pool.get(item.key)
            if existing is not None and item.timestamp < existing.timestamp:
                continue
            pool[item.key] = item
        return cls(tuple(pool.values()))
