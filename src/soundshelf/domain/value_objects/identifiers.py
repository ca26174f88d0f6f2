"""Identifier value objects.

Hey future me - every record on the shelf (Album, Track, PlaylistItem, Playlist) is keyed
by a plain 128-bit uuid.UUID. Python orders UUIDs by their integer value, which is exactly
a big-endian comparison of the high 64 bits followed by the low 64 bits. That total order is
what the merge code uses as deterministic tie-break, so NEVER compare str(uuid) instead!
"""

import secrets
import time
import uuid

AlbumId = uuid.UUID
TrackId = uuid.UUID
PlaylistId = uuid.UUID
PlaylistItemId = uuid.UUID

_LOW_64_BITS = (1 << 64) - 1


def new_identifier() -> uuid.UUID:
    """Create a random identifier."""
    return uuid.uuid4()


# Listen up, Album ids are "monotonic": microseconds since the epoch in the high half and
# 64 random bits in the low half. Sorting albums by id therefore roughly sorts them by
# creation time, and album merge keeps the OLDER album (smaller id). Don't swap this for
# uuid4() or re-scans will start replacing long-lived album ids with fresh ones!
def new_monotonic_identifier() -> uuid.UUID:
    """Create an identifier whose natural order approximates creation order.

    Returns:
        UUID with creation time (microseconds) in the high 64 bits and
        random data in the low 64 bits
    """
    micros = time.time_ns() // 1000
    return uuid.UUID(int=((micros & _LOW_64_BITS) << 64) | secrets.randbits(64))
