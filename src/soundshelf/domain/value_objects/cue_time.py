"""CueTime value object (cue sheet time units).

One time unit is one CD frame, 1/75 of a second. Negative raw values are
sentinels: INVALID marks an unset bound, the others mirror the special
values a decoder can report for a duration.
"""

import math
import re
from dataclasses import dataclass
from functools import total_ordering
from typing import ClassVar

TIMESCALE = 75

_CUE_TIME_PATTERN = re.compile(r"^(\d\d):(\d\d):(\d\d)$")

_INVALID = -1
_INDEFINITE = -2
_NEGATIVE_INFINITY = -3
_POSITIVE_INFINITY = -4


@total_ordering
@dataclass(frozen=True)
class CueTime:
    """Point in time or duration measured in CD frames.

    Attributes:
        value: Frame count, or a negative sentinel
    """

    value: int

    INVALID: ClassVar["CueTime"]
    INDEFINITE: ClassVar["CueTime"]
    NEGATIVE_INFINITY: ClassVar["CueTime"]
    POSITIVE_INFINITY: ClassVar["CueTime"]
    ZERO: ClassVar["CueTime"]

    @classmethod
    def from_parts(cls, minutes: int, seconds: int, frames: int) -> "CueTime | None":
        """Build a CueTime from MM:SS:FF parts, None if any part is out of range."""
        if minutes < 0 or seconds < 0 or frames < 0:
            return None
        if frames >= TIMESCALE or seconds >= 60:
            return None
        return cls((minutes * 60 + seconds) * TIMESCALE + frames)

    @classmethod
    def parse(cls, text: str) -> "CueTime | None":
        """Parse a cue sheet timestamp like "03:25:41".

        Args:
            text: Timestamp in MM:SS:FF form

        Returns:
            Parsed CueTime or None if the text is malformed
        """
        match = _CUE_TIME_PATTERN.match(text.strip())
        if not match:
            return None
        return cls.from_parts(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    @classmethod
    def from_seconds(cls, seconds: float | None) -> "CueTime":
        """Convert a decoder duration in seconds, INVALID when unknown."""
        if seconds is None or math.isnan(seconds):
            return cls.INVALID
        if seconds == float("inf"):
            return cls.POSITIVE_INFINITY
        if seconds == float("-inf"):
            return cls.NEGATIVE_INFINITY
        if seconds < 0:
            return cls.INVALID
        return cls(int(seconds * TIMESCALE))

    @property
    def is_valid(self) -> bool:
        return self.value >= 0

    @property
    def minutes(self) -> int:
        return self.value // TIMESCALE // 60

    @property
    def seconds(self) -> int:
        return self.value // TIMESCALE % 60

    @property
    def frames(self) -> int:
        return self.value % TIMESCALE

    @property
    def total_seconds(self) -> float | None:
        """Length in seconds, None for sentinels."""
        if not self.is_valid:
            return None
        return self.value / TIMESCALE

    @staticmethod
    def distance(lhs: "CueTime", rhs: "CueTime") -> "CueTime | None":
        """Absolute difference of two valid times, None if either is a sentinel."""
        if not (lhs.is_valid and rhs.is_valid):
            return None
        return CueTime(abs(lhs.value - rhs.value))

    @staticmethod
    def difference(lhs: "CueTime", rhs: "CueTime") -> "CueTime | None":
        """lhs - rhs for valid times with lhs >= rhs, otherwise None."""
        if not (lhs.is_valid and rhs.is_valid) or lhs.value < rhs.value:
            return None
        return CueTime(lhs.value - rhs.value)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, CueTime):
            return NotImplemented
        if self.is_valid and other.is_valid:
            return self.value < other.value
        # Unset and indefinite times have no position on the timeline.
        if self.value in (_INVALID, _INDEFINITE) or other.value in (_INVALID, _INDEFINITE):
            raise ValueError(f"CueTime {self} is not comparable with {other}")
        if self.value == _NEGATIVE_INFINITY:
            return other.value != _NEGATIVE_INFINITY
        if other.value == _POSITIVE_INFINITY:
            return self.value != _POSITIVE_INFINITY
        return False

    def __str__(self) -> str:
        if self.value == _INVALID:
            return "invalid"
        if self.value == _INDEFINITE:
            return "indefinite"
        if self.value == _NEGATIVE_INFINITY:
            return "-inf"
        if self.value == _POSITIVE_INFINITY:
            return "+inf"
        return f"{self.minutes:02d}:{self.seconds:02d}:{self.frames:02d}"


CueTime.INVALID = CueTime(_INVALID)
CueTime.INDEFINITE = CueTime(_INDEFINITE)
CueTime.NEGATIVE_INFINITY = CueTime(_NEGATIVE_INFINITY)
CueTime.POSITIVE_INFINITY = CueTime(_POSITIVE_INFINITY)
CueTime.ZERO = CueTime(0)
