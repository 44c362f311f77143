"""Configuration data types.

Configuration is resolved once, frozen, and then passed to the components
that need it. `ResolvedConfig` carries the frozen values together with the
origin of each field; `FrozenConfig` is what the engine actually consumes.
"""

from collections.abc import Mapping
import dataclasses
from typing import Any, Literal, NamedTuple

ConfigOrigin = Literal["programmatic", "env", "file", "default"]
SourceMap = Mapping[str, ConfigOrigin]

ENV_PREFIX = "HYBRID_GRAMMAR_"
SENSITIVE_FIELDS = frozenset({"api_key"})


@dataclasses.dataclass(frozen=True)
class FrozenConfig:
    """Immutable engine configuration.

    Field meanings and defaults are documented on `GrammarSettings`.
    """

    language: str
    remote_backend: str
    api_key: str | None
    model: str
    endpoint_url: str | None
    remote_timeout_seconds: float
    remote_retries: int
    price_per_1k_tokens: float
    max_cost_per_check: float
    max_client_words: int
    cache_enabled: bool
    cache_max_size: int
    cache_ttl_seconds: float
    cache_compression_threshold_bytes: int
    cache_sweep_interval_seconds: float
    cache_persist_path: str | None
    daily_cost_limit_free: float
    daily_cost_limit_premium: float
    max_concurrent_free: int
    max_concurrent_premium: int
    queue_timeout_ms: float
    metrics_max_age_seconds: float
    metrics_max_stored: int
    max_processing_time_ms: float
    max_queue_wait_ms: float
    min_cache_hit_rate: float

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in dataclasses.fields(cls))

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    def __str__(self) -> str:
        """String representation with the API key redacted."""
        values = self.to_dict()
        if values["api_key"]:
            values["api_key"] = "[REDACTED]"
        body = ", ".join(f"{k}={v!r}" for k, v in values.items())
        return f"FrozenConfig({body})"

    def __repr__(self) -> str:
        return self.__str__()


class ResolvedConfig(NamedTuple):
    """Frozen configuration plus the origin of every field.

    Field values are also readable directly, e.g. ``resolved.model``.
    """

    config: FrozenConfig
    origin: SourceMap

    def __getattr__(self, name: str) -> Any:
        if name in FrozenConfig.field_names():
            return getattr(self.config, name)
        raise AttributeError(name)

    def __str__(self) -> str:
        return f"ResolvedConfig(config={self.config}, origin={dict(self.origin)!r})"

    def __repr__(self) -> str:
        return self.__str__()

    def to_frozen(self) -> FrozenConfig:
        return self.config

    def with_overrides(self, **overrides: Any) -> "ResolvedConfig":
        """Return a copy with `overrides` applied and marked programmatic.

        Unknown fields are ignored. The merged values are validated again.
        """
        from .schema import GrammarSettings

        known = {k: v for k, v in overrides.items() if k in FrozenConfig.field_names()}
        values = {**self.config.to_dict(), **known}
        settings = GrammarSettings(**values)
        origin = dict(self.origin)
        origin.update(dict.fromkeys(known, "programmatic"))
        return ResolvedConfig(config=FrozenConfig(**settings.to_dict()), origin=origin)

    def audit(self) -> str:
        """Redacted report of where each field came from, one line per field."""
        lines = []
        for field in FrozenConfig.field_names():
            origin = self.origin.get(field)
            if origin is None:
                continue
            value = getattr(self.config, field)
            if field in SENSITIVE_FIELDS:
                if value is None:
                    display = f"{origin}:None"
                elif origin == "env":
                    display = f"env:{ENV_PREFIX}{field.upper()}=[REDACTED]"
                else:
                    display = f"{origin}:<redacted>"
            elif origin == "env":
                display = f"env:{ENV_PREFIX}{field.upper()}={value}"
            else:
                display = f"{origin}:{value}"
            lines.append(f"{field}: {display}")
        return "\n".join(lines)
