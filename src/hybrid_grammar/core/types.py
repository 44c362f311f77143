"""Core data types that flow through the analysis engine.

Everything here is an immutable value object: suggestions, decisions and
results are produced once per request and never mutated. Conversions to and
from plain dictionaries exist so results can be cached, persisted and
exported without custom encoders.
"""

from __future__ import annotations

import dataclasses
from enum import Enum
import typing
import uuid

# --- Minimal guard helpers ---


def _require(
    *,
    condition: bool,
    message: str,
    exc: type[Exception] = ValueError,
    field_name: str | None = None,
) -> None:
    """Centralized validation with optional field context for clearer errors."""
    if not condition:
        if field_name:
            raise exc(f"{field_name}: {message}")
        raise exc(message)


def _coerce_enum[E: Enum](enum_cls: type[E], value: object, field_name: str) -> E:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.lower())
        except ValueError:
            pass
    allowed = ", ".join(m.value for m in enum_cls)
    raise ValueError(f"{field_name}: must be one of [{allowed}], got {value!r}")


def new_suggestion_id() -> str:
    """Return a short random identifier for a suggestion."""
    return uuid.uuid4().hex[:12]


# --- Enumerations ---


class Severity(str, Enum):
    """How strongly a suggestion should be surfaced."""

    ERROR = "error"
    WARNING = "warning"
    SUGGESTION = "suggestion"


class SuggestionType(str, Enum):
    """Broad family a suggestion belongs to."""

    SPELLING = "spelling"
    GRAMMAR = "grammar"
    STYLE = "style"
    PASSIVE = "passive"


class Priority(str, Enum):
    """Caller intent trading latency against quality."""

    FAST = "fast"
    BALANCED = "balanced"
    QUALITY = "quality"


class Tier(str, Enum):
    """Billing tier of the caller."""

    FREE = "free"
    PREMIUM = "premium"


class QueuePriority(str, Enum):
    """Admission priority inside a tier."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class ProcessingMode(str, Enum):
    """How a result was produced."""

    CLIENT = "client"
    HYBRID = "hybrid"


# Suggestion type -> UI category
_CATEGORIES: dict[SuggestionType, str] = {
    SuggestionType.SPELLING: "correctness",
    SuggestionType.GRAMMAR: "correctness",
    SuggestionType.STYLE: "clarity",
    SuggestionType.PASSIVE: "clarity",
}


# --- Value objects ---


@dataclasses.dataclass(frozen=True, slots=True)
class TextRange:
    """Half-open range of UTF-16 code unit offsets."""

    start: int
    end: int

    def __post_init__(self) -> None:
        """Validate range ordering."""
        _require(
            condition=isinstance(self.start, int) and isinstance(self.end, int),
            message="offsets must be int",
            field_name="range",
            exc=TypeError,
        )
        _require(
            condition=0 <= self.start <= self.end,
            message=f"requires 0 <= start <= end, got [{self.start}, {self.end})",
            field_name="range",
        )

    @property
    def length(self) -> int:
        return self.end - self.start

    def contains(self, other: TextRange) -> bool:
        return self.start <= other.start and other.end <= self.end

    def to_dict(self) -> dict[str, int]:
        return {"start": self.start, "end": self.end}


@dataclasses.dataclass(frozen=True, slots=True)
class Suggestion:
    """A single issue found in the text, positioned in UTF-16 units."""

    id: str
    rule: str
    message: str
    severity: Severity
    range: TextRange
    type: SuggestionType
    confidence: int
    flagged_text: str
    replacement: str | None = None
    can_regenerate: bool = False
    regenerate_id: str | None = None

    def __post_init__(self) -> None:
        """Validate invariants and coerce enum fields given as strings."""
        object.__setattr__(
            self, "severity", _coerce_enum(Severity, self.severity, "severity")
        )
        object.__setattr__(
            self, "type", _coerce_enum(SuggestionType, self.type, "type")
        )
        _require(
            condition=isinstance(self.range, TextRange),
            message="must be a TextRange",
            field_name="range",
            exc=TypeError,
        )
        _require(
            condition=isinstance(self.confidence, int)
            and 0 <= self.confidence <= 100,
            message=f"must be an int in [0, 100], got {self.confidence!r}",
            field_name="confidence",
        )
        _require(
            condition=isinstance(self.flagged_text, str),
            message="must be str",
            field_name="flagged_text",
            exc=TypeError,
        )

    @property
    def category(self) -> str:
        """UI grouping: correctness for spelling/grammar, clarity otherwise."""
        return _CATEGORIES[self.type]

    def with_changes(self, **changes: typing.Any) -> Suggestion:
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, typing.Any]:
        return {
            "id": self.id,
            "rule": self.rule,
            "message": self.message,
            "severity": self.severity.value,
            "range": self.range.to_dict(),
            "type": self.type.value,
            "confidence": self.confidence,
            "flagged_text": self.flagged_text,
            "replacement": self.replacement,
            "can_regenerate": self.can_regenerate,
            "regenerate_id": self.regenerate_id,
        }

    @classmethod
    def from_dict(cls, data: typing.Mapping[str, typing.Any]) -> Suggestion:
        rng = data["range"]
        return cls(
            id=str(data["id"]),
            rule=str(data["rule"]),
            message=str(data["message"]),
            severity=data["severity"],
            range=TextRange(int(rng["start"]), int(rng["end"])),
            type=data["type"],
            confidence=int(data["confidence"]),
            flagged_text=str(data["flagged_text"]),
            replacement=data.get("replacement"),
            can_regenerate=bool(data.get("can_regenerate", False)),
            regenerate_id=data.get("regenerate_id"),
        )


@dataclasses.dataclass(frozen=True, slots=True)
class ProcessingDecision:
    """Outcome of the decision policy for one request."""

    use_client_only: bool
    reason: str
    estimated_cost: float
    estimated_latency_ms: int

    def to_dict(self) -> dict[str, typing.Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: typing.Mapping[str, typing.Any]) -> ProcessingDecision:
        return cls(
            use_client_only=bool(data["use_client_only"]),
            reason=str(data["reason"]),
            estimated_cost=float(data["estimated_cost"]),
            estimated_latency_ms=int(data["estimated_latency_ms"]),
        )


@dataclasses.dataclass(frozen=True, slots=True)
class CheckOptions:
    """Per-request options for `check_grammar`.

    Enum fields accept their string values, e.g. ``CheckOptions(priority="quality")``.
    Only the fields returned by `cache_fields()` influence the analysis result;
    the remaining ones steer admission and accounting.
    """

    priority: Priority = Priority.BALANCED
    include_style: bool = False
    enhance_passive_voice: bool = False
    tier: Tier = Tier.FREE
    language: str = "en"
    queue_priority: QueuePriority = QueuePriority.NORMAL
    caller_id: str = "anonymous"
    timeout_ms: float | None = None

    def __post_init__(self) -> None:
        """Coerce enum fields and validate the rest."""
        object.__setattr__(
            self, "priority", _coerce_enum(Priority, self.priority, "priority")
        )
        object.__setattr__(self, "tier", _coerce_enum(Tier, self.tier, "tier"))
        object.__setattr__(
            self,
            "queue_priority",
            _coerce_enum(QueuePriority, self.queue_priority, "queue_priority"),
        )
        _require(
            condition=isinstance(self.language, str) and self.language.strip() != "",
            message="must be a non-empty str",
            field_name="language",
        )
        _require(
            condition=isinstance(self.caller_id, str) and self.caller_id != "",
            message="must be a non-empty str",
            field_name="caller_id",
        )
        _require(
            condition=self.timeout_ms is None or self.timeout_ms > 0,
            message="must be positive when provided",
            field_name="timeout_ms",
        )

    def cache_fields(self) -> dict[str, typing.Any]:
        """Options that change the analysis output and so belong in cache keys."""
        return {
            "enhance_passive_voice": self.enhance_passive_voice,
            "include_style": self.include_style,
            "language": self.language,
            "priority": self.priority.value,
            "tier": self.tier.value,
        }


@dataclasses.dataclass(frozen=True, slots=True)
class CheckResult:
    """Final output of `check_grammar`."""

    suggestions: tuple[Suggestion, ...]
    mode: ProcessingMode
    timing_ms: float
    decision: ProcessingDecision
    cached: bool = False

    def __post_init__(self) -> None:
        """Freeze the suggestion sequence and coerce the mode."""
        object.__setattr__(self, "suggestions", tuple(self.suggestions))
        object.__setattr__(
            self, "mode", _coerce_enum(ProcessingMode, self.mode, "mode")
        )

    def to_dict(self) -> dict[str, typing.Any]:
        return {
            "suggestions": [s.to_dict() for s in self.suggestions],
            "mode": self.mode.value,
            "timing_ms": self.timing_ms,
            "decision": self.decision.to_dict(),
            "cached": self.cached,
        }

    @classmethod
    def from_dict(cls, data: typing.Mapping[str, typing.Any]) -> CheckResult:
        return cls(
            suggestions=tuple(Suggestion.from_dict(s) for s in data["suggestions"]),
            mode=data["mode"],
            timing_ms=float(data["timing_ms"]),
            decision=ProcessingDecision.from_dict(data["decision"]),
            cached=bool(data.get("cached", False)),
        )
