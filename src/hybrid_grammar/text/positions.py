"""Grapheme, UTF-16 and byte coordinate mapping for one text snapshot.

Checkers work on Python code point indices, the editor expects UTF-16 code
unit offsets, and token-based remote services count UTF-8 bytes. A
`PositionMapper` is built once per text and answers conversions between all
of them in O(1) (O(log n) for byte lookups). It must be rebuilt whenever the
text changes.

Grapheme clusters are split with the `regex` module's ``\\X`` pattern, which
follows the Unicode extended grapheme cluster rules.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
import logging
from typing import Any, NamedTuple

import regex

logger = logging.getLogger(__name__)

_GRAPHEME_RE = regex.compile(r"\X")


@dataclass(frozen=True, slots=True)
class PositionMap:
    """Cluster/unit lookup tables for one exact string.

    Both arrays end with a sentinel equal to the total count so half-open
    ranges can be queried at the end of the text.
    """

    cluster_to_unit: tuple[int, ...]
    unit_to_cluster: tuple[int, ...]
    cluster_to_byte: tuple[int, ...]
    total_clusters: int
    total_units: int
    total_bytes: int


class Coordinate(NamedTuple):
    """The same position expressed in all three coordinate systems."""

    grapheme: int
    utf16: int
    byte: int


class RangeCheck(NamedTuple):
    valid: bool
    reason: str | None = None


def _units(cp: str) -> int:
    return 2 if ord(cp) > 0xFFFF else 1


def _utf8_len(cp: str) -> int:
    o = ord(cp)
    if o < 0x80:
        return 1
    if o < 0x800:
        return 2
    if o < 0x10000:
        return 3
    return 4


class PositionMapper:
    """Bidirectional offset conversion for a single text snapshot.

    Lookups clamp out-of-range inputs to the valid bounds instead of raising,
    mirroring how an editor treats a cursor past the end of the document.
    """

    def __init__(self, text: str) -> None:
        self._text = text
        cluster_to_unit: list[int] = []
        cluster_to_byte: list[int] = []
        unit_to_cluster: list[int] = []
        index_to_unit: list[int] = []
        index_to_byte: list[int] = []
        unit_to_index: list[int] = []

        unit = 0
        byte = 0
        index = 0
        for cluster_index, cluster in enumerate(_GRAPHEME_RE.findall(text)):
            cluster_to_unit.append(unit)
            cluster_to_byte.append(byte)
            for cp in cluster:
                width = _units(cp)
                index_to_unit.append(unit)
                index_to_byte.append(byte)
                unit_to_cluster.extend([cluster_index] * width)
                unit_to_index.extend([index] * width)
                unit += width
                byte += _utf8_len(cp)
                index += 1

        total_clusters = len(cluster_to_unit)
        cluster_to_unit.append(unit)
        cluster_to_byte.append(byte)
        unit_to_cluster.append(total_clusters)
        index_to_unit.append(unit)
        index_to_byte.append(byte)
        unit_to_index.append(index)

        self._map = PositionMap(
            cluster_to_unit=tuple(cluster_to_unit),
            unit_to_cluster=tuple(unit_to_cluster),
            cluster_to_byte=tuple(cluster_to_byte),
            total_clusters=total_clusters,
            total_units=unit,
            total_bytes=byte,
        )
        self._index_to_unit = tuple(index_to_unit)
        self._index_to_byte = tuple(index_to_byte)
        self._unit_to_index = tuple(unit_to_index)

    @property
    def text(self) -> str:
        return self._text

    @property
    def position_map(self) -> PositionMap:
        return self._map

    @property
    def total_clusters(self) -> int:
        return self._map.total_clusters

    @property
    def total_units(self) -> int:
        return self._map.total_units

    @property
    def total_bytes(self) -> int:
        return self._map.total_bytes

    # --- Grapheme <-> UTF-16 ---

    def unit_to_grapheme(self, offset: int) -> int:
        """Index of the cluster containing UTF-16 unit `offset`."""
        offset = min(max(offset, 0), self._map.total_units)
        return self._map.unit_to_cluster[offset]

    def grapheme_to_unit(self, index: int) -> int:
        """UTF-16 offset at which cluster `index` starts."""
        index = min(max(index, 0), self._map.total_clusters)
        return self._map.cluster_to_unit[index]

    # --- Grapheme <-> byte ---

    def grapheme_to_byte(self, index: int) -> int:
        index = min(max(index, 0), self._map.total_clusters)
        return self._map.cluster_to_byte[index]

    def byte_to_grapheme(self, offset: int) -> int:
        """Index of the cluster containing UTF-8 byte `offset`."""
        offset = min(max(offset, 0), self._map.total_bytes)
        return bisect_right(self._map.cluster_to_byte, offset) - 1

    # --- Code point <-> UTF-16 ---

    def index_to_unit(self, index: int) -> int:
        """UTF-16 offset of Python string index `index`."""
        index = min(max(index, 0), len(self._text))
        return self._index_to_unit[index]

    def unit_to_index(self, offset: int) -> int:
        """Python string index of the code point containing unit `offset`."""
        offset = min(max(offset, 0), self._map.total_units)
        return self._unit_to_index[offset]

    def unit_to_byte(self, offset: int) -> int:
        return self._index_to_byte[self.unit_to_index(offset)]

    # --- Ranges ---

    def validate_range(self, start: int, end: int) -> tuple[int, int]:
        """Clamp a UTF-16 range into ``[0, total_units]`` with start <= end."""
        safe_start = min(max(start, 0), self._map.total_units)
        safe_end = max(safe_start, min(end, self._map.total_units))
        return safe_start, safe_end

    def validate_utf16_range(self, start: int, end: int) -> RangeCheck:
        """Report whether a UTF-16 range is in bounds and on cluster boundaries."""
        total = self._map.total_units
        if not (0 <= start <= end <= total):
            return RangeCheck(False, f"range [{start}, {end}) outside [0, {total}]")
        for name, offset in (("start", start), ("end", end)):
            cluster = self._map.unit_to_cluster[offset]
            if self._map.cluster_to_unit[cluster] != offset:
                return RangeCheck(
                    False, f"{name} offset {offset} splits grapheme cluster {cluster}"
                )
        return RangeCheck(True)

    def snap_to_clusters(self, start: int, end: int) -> tuple[int, int]:
        """Widen a UTF-16 range so it covers whole grapheme clusters."""
        start, end = self.validate_range(start, end)
        first = self._map.unit_to_cluster[start]
        last = self._map.unit_to_cluster[end]
        snapped_end = self._map.cluster_to_unit[last]
        if snapped_end < end:
            snapped_end = self._map.cluster_to_unit[last + 1]
        return self._map.cluster_to_unit[first], snapped_end

    def slice_units(self, start: int, end: int) -> str:
        """Substring covered by a (clamped) UTF-16 range."""
        start, end = self.validate_range(start, end)
        return self._text[self.unit_to_index(start) : self.unit_to_index(end)]

    def coordinate(self, index: int) -> Coordinate:
        """Coordinates of the start of grapheme cluster `index`."""
        index = min(max(index, 0), self._map.total_clusters)
        return Coordinate(
            grapheme=index,
            utf16=self._map.cluster_to_unit[index],
            byte=self._map.cluster_to_byte[index],
        )

    def debug_info(self) -> dict[str, Any]:
        """Totals plus the first ten cluster coordinates, for troubleshooting."""
        sample = [
            self.coordinate(i)._asdict()
            for i in range(min(10, self._map.total_clusters))
        ]
        return {
            "total_graphemes": self._map.total_clusters,
            "total_utf16_units": self._map.total_units,
            "total_bytes": self._map.total_bytes,
            "sample_mappings": sample,
        }
