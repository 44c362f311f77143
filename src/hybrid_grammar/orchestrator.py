"""Request orchestration for grammar checks.

`AnalysisOrchestrator.check_grammar` composes the engine:

1. Look the request up in the result cache.
2. On a miss, let `DecisionPolicy` choose client-only or hybrid processing.
3. Wait for admission through the `RequestScheduler`, then run the local
   checker pipeline.
4. In hybrid mode with passive-voice enhancement requested, send the affected
   sentences to the remote rewriter and turn the passive suggestions into
   sentence-level rewrites.
5. Cache the result and record cost and performance metrics.

Any failure in steps 2-5 other than an admission rejection is caught once, at
the top, and answered with a plain local run. Only if that local run fails
too does the caller see an exception.
"""

from __future__ import annotations

from collections.abc import Callable
import dataclasses
import logging
import time
from typing import TYPE_CHECKING, Any, Self

from hybrid_grammar import constants
from hybrid_grammar.analysis import DecisionPolicy, LocalAnalysisPipeline
from hybrid_grammar.cache import CacheConfig, CacheStats, GrammarResultCache, JSONFileStore
from hybrid_grammar.core.types import (
    CheckOptions,
    CheckResult,
    ProcessingDecision,
    ProcessingMode,
    Suggestion,
    SuggestionType,
    TextRange,
)
from hybrid_grammar.exceptions import AdmissionError, InvalidInputError
from hybrid_grammar.remote import MockRemoteService, build_remote_service
from hybrid_grammar.scheduling import (
    Analytics,
    MetricsConfig,
    MetricsRecorder,
    RequestScheduler,
    SchedulerConfig,
)
from hybrid_grammar.telemetry import TelemetryContext, TelemetryContextProtocol
from hybrid_grammar.text.positions import PositionMapper
from hybrid_grammar.text.segmentation import (
    Sentence,
    sentence_containing,
    utf16_length,
    word_count,
)

if TYPE_CHECKING:
    from hybrid_grammar.analysis import PersonalDictionary
    from hybrid_grammar.config import FrozenConfig, ResolvedConfig
    from hybrid_grammar.remote import SentenceRewriter, SpellingCorrector

logger = logging.getLogger(__name__)

FALLBACK_REASON = "Fallback to client processing due to error"
_REWRITE_MESSAGE = "Consider rewriting this sentence in the active voice."

_REWRITE_TYPES = frozenset({SuggestionType.PASSIVE, SuggestionType.STYLE})


def should_auto_refine(suggestion: Suggestion) -> bool:
    """Whether a suggestion is weak enough to be worth a remote refinement.

    Spelling suggestions qualify below the auto-refine confidence or without
    a replacement; passive and style suggestions qualify when they have no
    replacement or one that does not change the flagged text.
    """
    if suggestion.type is SuggestionType.SPELLING:
        return (
            suggestion.confidence < constants.AUTO_REFINE_CONFIDENCE
            or not suggestion.replacement
        )
    if suggestion.type in _REWRITE_TYPES:
        replacement = (suggestion.replacement or "").strip()
        return not replacement or replacement == suggestion.flagged_text.strip()
    return False


class AnalysisOrchestrator:
    """Entry point for grammar checks, refinement and analytics.

    Every collaborator is injected; anything omitted gets a default built
    around the deterministic mock remote service. Pass ``cache=None`` with
    ``cache_enabled=False`` to run without a result cache.

    Args:
        policy: Client-only versus hybrid decision policy.
        pipeline: Local checker pipeline.
        cache: Result cache for finished checks.
        cache_enabled: When False no cache is created or consulted.
        scheduler: Admission control; shares `recorder` for daily spend.
        recorder: Metric streams and analytics.
        rewriter: Remote sentence rewriter.
        speller: Remote spelling corrector.
        model: Model name recorded with remote cost metrics.
        telemetry: Optional telemetry context.
        clock: Wall-clock source in seconds for the default components.
    """

    def __init__(
        self,
        *,
        policy: DecisionPolicy | None = None,
        pipeline: LocalAnalysisPipeline | None = None,
        cache: GrammarResultCache | None = None,
        cache_enabled: bool = True,
        scheduler: RequestScheduler | None = None,
        recorder: MetricsRecorder | None = None,
        rewriter: SentenceRewriter | None = None,
        speller: SpellingCorrector | None = None,
        model: str | None = None,
        telemetry: TelemetryContextProtocol | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if recorder is None:
            recorder = scheduler.recorder if scheduler is not None else MetricsRecorder(clock=clock)
        self._recorder = recorder
        self._scheduler = scheduler or RequestScheduler(recorder=recorder, clock=clock)
        self._policy = policy or DecisionPolicy()
        self._pipeline = pipeline or LocalAnalysisPipeline()
        if cache is None and cache_enabled:
            cache = GrammarResultCache(metrics=recorder, clock=clock)
        self._cache = cache
        if rewriter is None or speller is None:
            mock = MockRemoteService()
            rewriter = rewriter or mock
            speller = speller or mock
        self._rewriter = rewriter
        self._speller = speller
        self._model = model
        self._telemetry = telemetry or TelemetryContext()

    # --- Accessors ---

    @property
    def recorder(self) -> MetricsRecorder:
        return self._recorder

    @property
    def scheduler(self) -> RequestScheduler:
        return self._scheduler

    @property
    def cache(self) -> GrammarResultCache | None:
        return self._cache

    # --- Grammar check ---

    async def check_grammar(
        self, text: str, options: CheckOptions | None = None
    ) -> CheckResult:
        """Analyse `text` and return its suggestions.

        Raises:
            InvalidInputError: If `text` is not a non-empty string.
            AdmissionError: If the scheduler rejects or times out the request.
        """
        if not isinstance(text, str) or not text.strip():
            raise InvalidInputError("text must be a non-empty string")
        options = options or CheckOptions()
        started = time.perf_counter()

        with self._telemetry("orchestrator.check_grammar", tier=options.tier.value):
            hit = self._lookup(text, options)
            if hit is not None:
                elapsed = _elapsed_ms(started)
                self._recorder.record_performance(
                    processing_mode=hit.mode.value,
                    text_length=utf16_length(text),
                    word_count=word_count(text),
                    processing_time_ms=elapsed,
                    suggestions_count=len(hit.suggestions),
                    cached=True,
                    tier=options.tier.value,
                )
                return dataclasses.replace(hit, timing_ms=elapsed, cached=True)

            try:
                return await self._process(text, options, started)
            except AdmissionError:
                raise
            except Exception as e:
                logger.warning("Analysis failed, running local fallback: %s", e)
                self._telemetry.count("orchestrator.fallback")
                return await self._fallback(text, options, started, e)

    def _lookup(self, text: str, options: CheckOptions) -> CheckResult | None:
        if self._cache is None:
            return None
        try:
            return self._cache.get_result(text, options)
        except Exception as e:
            logger.warning("Cache lookup failed, treating as miss: %s", e)
            return None

    async def _process(
        self, text: str, options: CheckOptions, started: float
    ) -> CheckResult:
        decision = self._policy.decide(text, options)
        hybrid = not decision.use_client_only
        logger.debug("Decision for %d-word text: %s", word_count(text), decision.reason)

        enqueued = time.perf_counter()
        queue_wait_ms = 0.0
        remote_called = False

        async def _run() -> list[Suggestion]:
            nonlocal queue_wait_ms, remote_called
            queue_wait_ms = _elapsed_ms(enqueued)
            suggestions = await self._pipeline.analyze(text)
            if hybrid and options.enhance_passive_voice:
                suggestions, remote_called = await self._enhance_passive(
                    text, suggestions, options.language
                )
            return suggestions

        suggestions = await self._scheduler.submit(
            _run,
            priority=options.queue_priority,
            tier=options.tier,
            estimated_cost=decision.estimated_cost if hybrid else 0.0,
            timeout_ms=options.timeout_ms,
            caller_id=options.caller_id,
        )

        result = CheckResult(
            suggestions=tuple(suggestions),
            mode=ProcessingMode.HYBRID if hybrid else ProcessingMode.CLIENT,
            timing_ms=_elapsed_ms(started),
            decision=decision,
        )
        if self._cache is not None:
            await self._cache.set_result(text, options, result)

        # Only a request that reached the rewriter spends remote budget.
        if remote_called:
            self._recorder.record_cost(
                provider="remote",
                total_tokens=self._policy.estimate_tokens(text),
                cost=decision.estimated_cost,
                tier=options.tier.value,
                caller_id=options.caller_id,
                model=self._model,
            )
        else:
            self._recorder.record_cost(
                provider="client",
                total_tokens=0,
                cost=0.0,
                tier=options.tier.value,
                caller_id=options.caller_id,
            )
        self._recorder.record_performance(
            processing_mode=result.mode.value,
            text_length=utf16_length(text),
            word_count=word_count(text),
            processing_time_ms=result.timing_ms,
            suggestions_count=len(result.suggestions),
            estimated_cost=decision.estimated_cost if hybrid else 0.0,
            tier=options.tier.value,
            queue_wait_ms=queue_wait_ms,
        )
        return result

    async def _fallback(
        self, text: str, options: CheckOptions, started: float, error: Exception
    ) -> CheckResult:
        suggestions = await self._pipeline.analyze(text)
        elapsed = _elapsed_ms(started)
        self._recorder.record_performance(
            processing_mode=ProcessingMode.CLIENT.value,
            text_length=utf16_length(text),
            word_count=word_count(text),
            processing_time_ms=elapsed,
            suggestions_count=len(suggestions),
            tier=options.tier.value,
            error_occurred=True,
            error_type=type(error).__name__,
        )
        return CheckResult(
            suggestions=tuple(suggestions),
            mode=ProcessingMode.CLIENT,
            timing_ms=elapsed,
            decision=ProcessingDecision(
                use_client_only=True,
                reason=FALLBACK_REASON,
                estimated_cost=0.0,
                estimated_latency_ms=constants.CLIENT_LATENCY_MS,
            ),
        )

    async def _enhance_passive(
        self, text: str, suggestions: list[Suggestion], language: str
    ) -> tuple[list[Suggestion], bool]:
        """Replace passive suggestions with one sentence rewrite per sentence.

        Returns the suggestions and whether the rewriter was called.
        """
        mapper = PositionMapper(text)
        groups: dict[Sentence, list[Suggestion]] = {}
        for suggestion in suggestions:
            if suggestion.type is not SuggestionType.PASSIVE:
                continue
            sentence = sentence_containing(
                text,
                mapper.unit_to_index(suggestion.range.start),
                mapper.unit_to_index(suggestion.range.end),
            )
            if sentence is not None:
                groups.setdefault(sentence, []).append(suggestion)
        if not groups:
            return suggestions, False

        sentences = list(groups)
        with self._telemetry("orchestrator.remote_rewrite", sentences=len(sentences)):
            rewrites = await self._rewriter.rewrite_sentences(
                [s.text for s in sentences], language=language
            )

        replaced: dict[str, Suggestion] = {}
        dropped: set[str] = set()
        for sentence, rewrite in zip(sentences, rewrites, strict=False):
            replacement = rewrite.best_replacement
            if not rewrite.has_passive_voice or replacement is None:
                continue
            first, *rest = groups[sentence]
            replaced[first.id] = first.with_changes(
                message=_REWRITE_MESSAGE,
                replacement=replacement,
                range=TextRange(
                    mapper.index_to_unit(sentence.start), mapper.index_to_unit(sentence.end)
                ),
                flagged_text=sentence.text,
                can_regenerate=True,
                regenerate_id=first.id,
            )
            dropped.update(s.id for s in rest)

        enhanced = [replaced.get(s.id, s) for s in suggestions if s.id not in dropped]
        enhanced.sort(key=lambda s: (s.range.start, s.range.end))
        return enhanced, True

    # --- Refinement ---

    async def refine_suggestion(
        self, suggestion: Suggestion, context: str
    ) -> Suggestion | None:
        """Ask the remote rewriter for a better sentence-level replacement.

        Returns None when the suggestion is not a passive or style one, the
        inputs do not line up, the remote call fails or nothing changes.
        """
        located = _locate(suggestion, context)
        if located is None or suggestion.type not in _REWRITE_TYPES:
            return None
        mapper, sentence = located
        try:
            with self._telemetry("orchestrator.refine", type=suggestion.type.value):
                rewrites = await self._rewriter.rewrite_sentences([sentence.text])
        except Exception as e:
            logger.warning("Refinement of %s failed: %s", suggestion.id, e)
            return None

        replacement = rewrites[0].best_replacement if rewrites else None
        if replacement is None or replacement == suggestion.replacement:
            return None
        return suggestion.with_changes(
            replacement=replacement,
            range=TextRange(
                mapper.index_to_unit(sentence.start), mapper.index_to_unit(sentence.end)
            ),
            flagged_text=sentence.text,
            confidence=constants.REFINED_CONFIDENCE,
            can_regenerate=True,
            regenerate_id=suggestion.id,
        )

    async def refine_spelling_suggestion(
        self, suggestion: Suggestion, context: str
    ) -> Suggestion | None:
        """Ask the remote spelling service to correct the flagged word.

        Returns None for non-spelling suggestions, invalid inputs, remote
        failures, or when the remote proposal matches the current one.
        """
        located = _locate(suggestion, context)
        if located is None or suggestion.type is not SuggestionType.SPELLING:
            return None
        mapper, sentence = located
        try:
            with self._telemetry("orchestrator.refine_spelling"):
                corrections = await self._speller.correct_spelling(sentence.text)
        except Exception as e:
            logger.warning("Spelling refinement of %s failed: %s", suggestion.id, e)
            return None

        base = mapper.index_to_unit(sentence.start)
        relative = TextRange(suggestion.range.start - base, suggestion.range.end - base)
        match = next(
            (c for c in corrections if c.original == suggestion.flagged_text),
            None,
        ) or next(
            (c for c in corrections if c.start < relative.end and relative.start < c.end),
            None,
        )
        if match is None or not match.proposed:
            return None
        if match.proposed in (suggestion.replacement, suggestion.flagged_text):
            return None

        new_range = suggestion.range
        flagged = suggestion.flagged_text
        start, end = mapper.validate_range(base + match.start, base + match.end)
        if start < end and mapper.slice_units(start, end) == match.original:
            new_range, flagged = TextRange(start, end), match.original
        return suggestion.with_changes(
            replacement=match.proposed,
            range=new_range,
            flagged_text=flagged,
            confidence=constants.REFINED_CONFIDENCE,
        )

    def should_auto_refine(self, suggestion: Suggestion) -> bool:
        return should_auto_refine(suggestion)

    # --- Analytics and cache ---

    def get_analytics(self, window_ms: float = 3_600_000) -> Analytics:
        return self._recorder.get_analytics(window_ms)

    def export_metrics(self) -> dict[str, Any]:
        return self._recorder.export_metrics()

    async def clear_cache(self) -> None:
        if self._cache is not None:
            await self._cache.clear()

    def get_cache_stats(self) -> CacheStats | None:
        return self._cache.get_stats() if self._cache is not None else None

    # --- Lifecycle ---

    async def start(self) -> None:
        """Load persisted cache entries and start background tasks."""
        if self._cache is not None:
            await self._cache.load_from_store()
            self._cache.start()
        self._scheduler.start()

    async def aclose(self) -> None:
        if self._cache is not None:
            await self._cache.aclose()
        await self._scheduler.aclose()
        services: list[object] = [self._rewriter]
        if self._speller is not self._rewriter:
            services.append(self._speller)
        for service in services:
            close = getattr(service, "aclose", None)
            if close is not None:
                await close()

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def _elapsed_ms(since: float) -> float:
    return (time.perf_counter() - since) * 1000


def _locate(
    suggestion: Suggestion, context: str
) -> tuple[PositionMapper, Sentence] | None:
    """Mapper and containing sentence, or None if the inputs do not agree."""
    if not isinstance(suggestion, Suggestion) or not isinstance(context, str):
        return None
    if not context.strip():
        return None
    mapper = PositionMapper(context)
    if suggestion.range.end > mapper.total_units:
        return None
    if mapper.slice_units(suggestion.range.start, suggestion.range.end) != suggestion.flagged_text:
        return None
    sentence = sentence_containing(
        context,
        mapper.unit_to_index(suggestion.range.start),
        mapper.unit_to_index(suggestion.range.end),
    )
    if sentence is None:
        return None
    return mapper, sentence


def create_orchestrator(
    config: ResolvedConfig | FrozenConfig | None = None,
    *,
    rewriter: SentenceRewriter | None = None,
    speller: SpellingCorrector | None = None,
    dictionary: PersonalDictionary | None = None,
    telemetry: TelemetryContextProtocol | None = None,
    clock: Callable[[], float] = time.time,
) -> AnalysisOrchestrator:
    """Build an orchestrator with every component wired from configuration.

    With no `config`, it is resolved from the environment and config files.
    Explicit `rewriter`/`speller` take precedence over the configured backend.
    """
    if config is None:
        from hybrid_grammar.config import resolve_config

        config = resolve_config()
    frozen: FrozenConfig = config.to_frozen() if hasattr(config, "to_frozen") else config

    recorder = MetricsRecorder(
        MetricsConfig(
            max_age_seconds=frozen.metrics_max_age_seconds,
            max_stored=frozen.metrics_max_stored,
            daily_cost_limit_free=frozen.daily_cost_limit_free,
            daily_cost_limit_premium=frozen.daily_cost_limit_premium,
            max_cost_per_check=frozen.max_cost_per_check,
            max_processing_time_ms=frozen.max_processing_time_ms,
            max_queue_wait_ms=frozen.max_queue_wait_ms,
            min_cache_hit_rate=frozen.min_cache_hit_rate,
        ),
        clock=clock,
    )
    scheduler = RequestScheduler(
        SchedulerConfig(
            daily_cost_limit_free=frozen.daily_cost_limit_free,
            daily_cost_limit_premium=frozen.daily_cost_limit_premium,
            max_concurrent_free=frozen.max_concurrent_free,
            max_concurrent_premium=frozen.max_concurrent_premium,
            default_timeout_ms=frozen.queue_timeout_ms,
        ),
        recorder,
        clock=clock,
    )

    cache = None
    if frozen.cache_enabled:
        persist_path = frozen.cache_persist_path
        cache = GrammarResultCache(
            CacheConfig(
                max_size=frozen.cache_max_size,
                ttl_seconds=frozen.cache_ttl_seconds,
                key_prefix=constants.GRAMMAR_CACHE_PREFIX,
                compression_threshold=frozen.cache_compression_threshold_bytes,
                sweep_interval_seconds=frozen.cache_sweep_interval_seconds,
                persist=persist_path is not None,
            ),
            store=JSONFileStore(persist_path) if persist_path else None,
            metrics=recorder,
            clock=clock,
        )

    if rewriter is None or speller is None:
        remote = build_remote_service(frozen)
        rewriter = rewriter or remote
        speller = speller or remote

    return AnalysisOrchestrator(
        policy=DecisionPolicy(
            max_cost_per_check=frozen.max_cost_per_check,
            max_client_words=frozen.max_client_words,
            price_per_1k_tokens=frozen.price_per_1k_tokens,
        ),
        pipeline=LocalAnalysisPipeline(
            dictionary=dictionary, language=frozen.language, telemetry=telemetry
        ),
        cache=cache,
        cache_enabled=frozen.cache_enabled,
        scheduler=scheduler,
        recorder=recorder,
        rewriter=rewriter,
        speller=speller,
        model=frozen.model if frozen.remote_backend == "gemini" else None,
        telemetry=telemetry,
        clock=clock,
    )
