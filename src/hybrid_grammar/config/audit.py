"""Source tracking for configuration resolution."""

from collections import Counter
from collections.abc import Iterable

from .types import ConfigOrigin, SourceMap


class SourceTracker:
    """Records which source supplied each field as layers are merged."""

    def __init__(self) -> None:
        self._origins: dict[str, ConfigOrigin] = {}

    def set_origin(self, field: str, origin: ConfigOrigin) -> None:
        self._origins[field] = origin

    def set_multiple(self, fields: Iterable[str], origin: ConfigOrigin) -> None:
        for field in fields:
            self._origins[field] = origin

    def has_origin(self, field: str) -> bool:
        return field in self._origins

    def get_source_map(self) -> SourceMap:
        """Snapshot of the origins recorded so far."""
        return dict(self._origins)


def origin_summary(source_map: SourceMap) -> dict[str, int]:
    """Count fields per origin, e.g. ``{"default": 20, "env": 2}``.

    Safe for telemetry: no configuration values are included.
    """
    return dict(Counter(source_map.values()))
