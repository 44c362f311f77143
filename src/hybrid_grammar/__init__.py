"""Hybrid grammar and style analysis engine."""

import importlib.metadata
import logging

from hybrid_grammar.analysis import (
    DecisionPolicy,
    InMemoryPersonalDictionary,
    LocalAnalysisPipeline,
    PersonalDictionary,
)
from hybrid_grammar.cache import CacheConfig, CacheStats, GrammarResultCache, ResultCache
from hybrid_grammar.config import FrozenConfig, ResolvedConfig, resolve_config
from hybrid_grammar.core.types import (
    CheckOptions,
    CheckResult,
    Priority,
    ProcessingDecision,
    ProcessingMode,
    QueuePriority,
    Severity,
    Suggestion,
    SuggestionType,
    TextRange,
    Tier,
)
from hybrid_grammar.exceptions import (
    AdmissionError,
    CacheError,
    ConfigurationError,
    CostThresholdExceededError,
    HybridGrammarError,
    InvalidInputError,
    QueueTimeoutError,
    RemoteCallError,
)
from hybrid_grammar.orchestrator import (
    AnalysisOrchestrator,
    create_orchestrator,
    should_auto_refine,
)
from hybrid_grammar.scheduling import Analytics, MetricsRecorder, RequestScheduler
from hybrid_grammar.telemetry import TelemetryContext, TelemetryReporter
from hybrid_grammar.text import PositionMapper

try:
    __version__ = importlib.metadata.version("hybrid-grammar")
except importlib.metadata.PackageNotFoundError:
    __version__ = "development"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [  # noqa: RUF022
    # Orchestration
    "AnalysisOrchestrator",
    "create_orchestrator",
    "should_auto_refine",
    # Components
    "DecisionPolicy",
    "LocalAnalysisPipeline",
    "PersonalDictionary",
    "InMemoryPersonalDictionary",
    "PositionMapper",
    "ResultCache",
    "GrammarResultCache",
    "CacheConfig",
    "CacheStats",
    "RequestScheduler",
    "MetricsRecorder",
    "Analytics",
    # Configuration
    "resolve_config",
    "ResolvedConfig",
    "FrozenConfig",
    # Telemetry
    "TelemetryContext",
    "TelemetryReporter",
    # Data model
    "CheckOptions",
    "CheckResult",
    "ProcessingDecision",
    "ProcessingMode",
    "Suggestion",
    "TextRange",
    "Severity",
    "SuggestionType",
    "Priority",
    "QueuePriority",
    "Tier",
    # Exceptions
    "HybridGrammarError",
    "InvalidInputError",
    "RemoteCallError",
    "CacheError",
    "AdmissionError",
    "QueueTimeoutError",
    "CostThresholdExceededError",
    "ConfigurationError",
]
