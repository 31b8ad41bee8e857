from __future__ import annotations

"""
🎯 Videogate • HTTP Range resolution
===================================

Parses a single `Range: bytes=...` header against a known object size.

Outcomes
--------
- `FULL_OBJECT`    no header; serve 200 with the whole body
- `RangeInterval`  a validated, inclusive `[start, end]` inside the object
- `INVALID_RANGE`  malformed, multi-range, or out of bounds; the caller
                   degrades to a full-object 200 (never 416)

Supported forms (RFC 9110 §14.1.2, single range only)
-----------------------------------------------------
    bytes=500-999   explicit interval
    bytes=500-      from 500 to EOF
    bytes=-500      last 500 bytes

Out-of-bounds values are rejected, not clamped: an `end` past EOF or a
suffix longer than the object is `INVALID_RANGE`.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

__all__ = [
    "RangeInterval",
    "RangeOutcome",
    "FULL_OBJECT",
    "INVALID_RANGE",
    "parse_range",
]

_BYTE_RANGE_RE = re.compile(r"^bytes\s*=\s*(\d*)\s*-\s*(\d*)$", re.IGNORECASE)


class RangeOutcome(Enum):
    FULL_OBJECT = "full_object"
    INVALID = "invalid"


FULL_OBJECT = RangeOutcome.FULL_OBJECT
INVALID_RANGE = RangeOutcome.INVALID


@dataclass(frozen=True)
class RangeInterval:
    """Inclusive byte interval, `0 <= start <= end < size` by construction."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, total_size: int) -> str:
        return f"bytes {self.start}-{self.end}/{total_size}"

    def header_value(self) -> str:
        """Value for an outbound `Range` request header."""
        return f"bytes={self.start}-{self.end}"


def parse_range(header: Optional[str], size: int) -> Union[RangeInterval, RangeOutcome]:
    if header is None:
        return FULL_OBJECT
    raw = header.strip()
    if not raw:
        return FULL_OBJECT

    m = _BYTE_RANGE_RE.match(raw)
    if not m:
        # Includes multi-range ("bytes=0-1,5-6") and other units.
        return INVALID_RANGE

    start_s, end_s = m.groups()
    if not start_s and not end_s:
        return INVALID_RANGE
    if size <= 0:
        return INVALID_RANGE

    if not start_s:
        suffix = int(end_s)
        if suffix <= 0 or suffix > size:
            return INVALID_RANGE
        return RangeInterval(start=size - suffix, end=size - 1)

    start = int(start_s)
    end = int(end_s) if end_s else size - 1
    if not (0 <= start <= end < size):
        return INVALID_RANGE
    return RangeInterval(start=start, end=end)
