"""Metadata value object - canonical uppercase tag key to single string value.

Hey future me - tag keys arrive in every casing imaginable ("Artist", "artist", "ARTIST")
depending on the container format. We canonicalize to UPPERCASE on the way in, so every
comparison later (merge guards, consolidation) can use plain dict lookups. Metadata is
immutable: all "setters" return a new instance, which keeps Track/Album hashable.
"""

from collections.abc import Iterable, Iterator, Mapping
from typing import Any


class MetadataKey:
    """Canonical metadata keys shared by importers, grabbers and consolidation."""

    TITLE = "TITLE"
    VERSION = "VERSION"
    ALBUM = "ALBUM"
    TRACKNUMBER = "TRACKNUMBER"
    DISCNUMBER = "DISCNUMBER"
    ARTIST = "ARTIST"
    ALBUMARTIST = "ALBUMARTIST"
    PERFORMER = "PERFORMER"
    COMPOSER = "COMPOSER"
    AUTHOR = "AUTHOR"
    CONTRIBUTOR = "CONTRIBUTOR"
    CREATOR = "CREATOR"
    PUBLISHER = "PUBLISHER"
    COPYRIGHT = "COPYRIGHT"
    LICENSE = "LICENSE"
    ORGANIZATION = "ORGANIZATION"
    DESCRIPTION = "DESCRIPTION"
    GENRE = "GENRE"
    DATE = "DATE"
    LANGUAGE = "LANGUAGE"
    LOCATION = "LOCATION"
    ISRC = "ISRC"
    COMMENT = "COMMENT"
    ENCODER = "ENCODER"

    # Not part of the common set, but written by plenty of taggers
    YEAR = "YEAR"
    TOTALDISCS = "TOTALDISCS"
    TOTALTRACKS = "TOTALTRACKS"
    DISCTOTAL = "DISCTOTAL"
    TRACKTOTAL = "TRACKTOTAL"


def canonical_key(key: str) -> str:
    """Normalize a tag key to its canonical uppercase form."""
    return key.strip().upper()


class Metadata(Mapping[str, str]):
    """Immutable mapping of canonical key to value."""

    __slots__ = ("_values",)

    def __init__(
        self,
        values: Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
        **kwargs: str,
    ) -> None:
        merged: dict[str, str] = {}
        items: Iterable[tuple[str, str]]
        if values is None:
            items = ()
        elif isinstance(values, Mapping):
            items = values.items()
        else:
            items = values
        for key, value in items:
            merged[canonical_key(key)] = str(value)
        for key, value in kwargs.items():
            merged[canonical_key(key)] = str(value)
        self._values = merged

    def __getitem__(self, key: str) -> str:
        return self._values[canonical_key(key)]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and canonical_key(key) in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __hash__(self) -> int:
        return hash(frozenset(self._values.items()))

    def __repr__(self) -> str:
        return f"Metadata({self._values!r})"

    def get_int(self, key: str) -> int | None:
        """Value parsed as integer, None if absent or not a plain number.

        Track numbers like "3/12" are read as 3.
        """
        value = self.get(key)
        if value is None:
            return None
        head = value.split("/", 1)[0].strip()
        try:
            return int(head)
        except ValueError:
            return None

    def with_value(self, key: str, value: str | None) -> "Metadata":
        """Return a copy with key set to value (or removed when value is None)."""
        values = dict(self._values)
        if value is None:
            values.pop(canonical_key(key), None)
        else:
            values[canonical_key(key)] = value
        return Metadata(values)

    def without(self, *keys: str) -> "Metadata":
        """Return a copy with the given keys removed."""
        drop = {canonical_key(k) for k in keys}
        return Metadata({k: v for k, v in self._values.items() if k not in drop})

    def merged(self, other: Mapping[str, str]) -> "Metadata":
        """Merge other into self, existing values win on conflicting keys.

        This is the default merge rule: the receiver keeps what it has and only
        gains keys it lacked.

        Args:
            other: Incoming metadata

        Returns:
            New Metadata containing the union of keys
        """
        values = dict(self._values)
        for key, value in other.items():
            values.setdefault(canonical_key(key), value)
        return Metadata(values)

    def overridden_by(self, other: Mapping[str, str]) -> "Metadata":
        """Merge other into self, incoming values win on conflicting keys."""
        values = dict(self._values)
        for key, value in other.items():
            values[canonical_key(key)] = value
        return Metadata(values)

    def to_dict(self) -> dict[str, Any]:
        """Plain dict copy (used by persistence)."""
        return dict(self._values)
