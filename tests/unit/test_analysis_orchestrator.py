"""AnalysisOrchestrator: caching, hybrid enhancement, fallback and refinement."""

import pytest

from hybrid_grammar.analysis import LocalAnalysisPipeline
from hybrid_grammar.analysis.checkers import PassiveVoiceChecker
from hybrid_grammar.cache import GrammarResultCache
from hybrid_grammar.core.types import (
    CheckOptions,
    ProcessingMode,
    SuggestionType,
    TextRange,
)
from hybrid_grammar.exceptions import (
    CostThresholdExceededError,
    InvalidInputError,
    QueueTimeoutError,
    RemoteCallError,
)
from hybrid_grammar.orchestrator import FALLBACK_REASON, should_auto_refine
from hybrid_grammar.remote import RewriteSuggestion, SentenceRewrite
from hybrid_grammar.telemetry import TELEMETRY_ENV_VAR, InMemoryReporter, TelemetryContext
from hybrid_grammar.text import slice_utf16

pytestmark = pytest.mark.unit

PASSIVE = "The report was written by me."
HYBRID = CheckOptions(enhance_passive_voice=True)


class StubRewriter:
    """Returns one fixed rewrite for every sentence and records its calls."""

    def __init__(self, replacement=None):
        self.replacement = replacement
        self.calls = []

    async def rewrite_sentences(self, sentences, *, language="en"):
        self.calls.append(list(sentences))
        suggestions = (
            (RewriteSuggestion("passive", self.replacement),) if self.replacement else ()
        )
        return [SentenceRewrite(s, True, suggestions) for s in sentences]


class FailingRemote:
    async def rewrite_sentences(self, sentences, *, language="en"):
        raise RemoteCallError("call failed: unreachable", service="stub")

    async def correct_spelling(self, sentence):
        raise RemoteCallError("call failed: unreachable", service="stub")


class BrokenCache(GrammarResultCache):
    def get_result(self, text, options):
        raise RuntimeError("corrupt entry")


def _passive_only():
    return LocalAnalysisPipeline([PassiveVoiceChecker()])


class TestCheckGrammar:
    @pytest.mark.asyncio
    async def test_client_only_end_to_end(self, orchestrator_factory):
        text = "Their going to the store. A elephant is big."
        orchestrator = orchestrator_factory()

        result = await orchestrator.check_grammar(text)

        assert result.mode is ProcessingMode.CLIENT
        assert result.decision.reason == "default"
        assert not result.cached
        by_replacement = {s.replacement: s for s in result.suggestions}
        assert by_replacement["They're"].range == TextRange(0, 5)
        assert by_replacement["They're"].confidence == 85
        assert by_replacement["An elephant"].flagged_text == "A elephant"
        assert by_replacement["An elephant"].confidence == 80
        for suggestion in result.suggestions:
            assert (
                slice_utf16(text, suggestion.range.start, suggestion.range.end)
                == suggestion.flagged_text
            )

    @pytest.mark.asyncio
    async def test_client_run_records_zero_cost(self, orchestrator_factory):
        orchestrator = orchestrator_factory()

        await orchestrator.check_grammar("Fine text.")

        [cost] = orchestrator.recorder.cost_metrics()
        assert (cost.provider, cost.cost) == ("client", 0.0)
        [perf] = orchestrator.recorder.performance_metrics()
        assert perf.processing_mode == "client"
        assert not perf.error_occurred

    @pytest.mark.asyncio
    async def test_second_identical_request_is_a_cache_hit(self, orchestrator_factory):
        orchestrator = orchestrator_factory()
        text = "Their going home."

        first = await orchestrator.check_grammar(text)
        second = await orchestrator.check_grammar(text)

        assert second.cached
        assert second.suggestions == first.suggestions
        assert second.mode is first.mode
        assert [m.cached for m in orchestrator.recorder.performance_metrics()] == [False, True]
        assert len(orchestrator.recorder.cost_metrics()) == 1

    @pytest.mark.asyncio
    async def test_different_options_miss_the_cache(self, orchestrator_factory):
        orchestrator = orchestrator_factory()

        await orchestrator.check_grammar("Fine text.")
        result = await orchestrator.check_grammar("Fine text.", CheckOptions(include_style=True))

        assert not result.cached

    @pytest.mark.asyncio
    async def test_cached_suggestions_always_match_the_requested_text(
        self, orchestrator_factory
    ):
        orchestrator = orchestrator_factory()
        angstrom = "The \u212b\u212b \u212b\u212b is here."
        a_ring = "The \u00c5\u00c5 \u00c5\u00c5 is here."

        await orchestrator.check_grammar(angstrom)
        result = await orchestrator.check_grammar(a_ring)

        for suggestion in result.suggestions:
            assert (
                slice_utf16(a_ring, suggestion.range.start, suggestion.range.end)
                == suggestion.flagged_text
            )

    @pytest.mark.asyncio
    async def test_cache_lookup_failure_is_a_miss(self, orchestrator_factory, clock):
        orchestrator = orchestrator_factory(cache=BrokenCache(clock=clock))

        result = await orchestrator.check_grammar("Fine text.")

        assert not result.cached
        assert result.mode is ProcessingMode.CLIENT

    @pytest.mark.asyncio
    async def test_without_cache(self, orchestrator_factory):
        orchestrator = orchestrator_factory(cache_enabled=False)

        await orchestrator.check_grammar("Fine text.")
        result = await orchestrator.check_grammar("Fine text.")

        assert not result.cached
        assert orchestrator.get_cache_stats() is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad", ["", "   \n", 42, None])
    async def test_invalid_text(self, orchestrator_factory, bad):
        with pytest.raises(InvalidInputError):
            await orchestrator_factory().check_grammar(bad)


class TestHybridEnhancement:
    @pytest.mark.asyncio
    async def test_passive_suggestion_becomes_sentence_rewrite(
        self, orchestrator_factory, mock_remote
    ):
        orchestrator = orchestrator_factory(pipeline=_passive_only(), rewriter=mock_remote)

        result = await orchestrator.check_grammar(PASSIVE, HYBRID)

        assert result.mode is ProcessingMode.HYBRID
        [suggestion] = result.suggestions
        assert suggestion.type is SuggestionType.PASSIVE
        assert suggestion.range == TextRange(0, 29)
        assert suggestion.flagged_text == PASSIVE
        assert suggestion.replacement == "I wrote the report."
        assert suggestion.can_regenerate
        assert suggestion.regenerate_id == suggestion.id
        assert mock_remote.rewrite_calls == [(PASSIVE,)]

    @pytest.mark.asyncio
    async def test_one_rewrite_per_sentence(self, orchestrator_factory):
        text = "The cake was baked and the pie was eaten by Sam."
        rewriter = StubRewriter("Sam baked the cake and ate the pie.")
        orchestrator = orchestrator_factory(pipeline=_passive_only(), rewriter=rewriter)

        result = await orchestrator.check_grammar(text, HYBRID)

        [suggestion] = result.suggestions
        assert suggestion.range == TextRange(0, len(text))
        assert suggestion.replacement == "Sam baked the cake and ate the pie."
        assert rewriter.calls == [[text]]

    @pytest.mark.asyncio
    async def test_sentences_are_batched_in_one_call(self, orchestrator_factory):
        text = "The cake was baked by Sam. The pie was eaten by Kim."
        rewriter = StubRewriter("Rewritten.")
        orchestrator = orchestrator_factory(pipeline=_passive_only(), rewriter=rewriter)

        result = await orchestrator.check_grammar(text, HYBRID)

        assert rewriter.calls == [["The cake was baked by Sam.", "The pie was eaten by Kim."]]
        assert [s.range for s in result.suggestions] == [TextRange(0, 26), TextRange(27, 52)]

    @pytest.mark.asyncio
    async def test_no_rewrite_keeps_local_suggestions(self, orchestrator_factory):
        orchestrator = orchestrator_factory(
            pipeline=_passive_only(), rewriter=StubRewriter(None)
        )

        result = await orchestrator.check_grammar(PASSIVE, HYBRID)

        [suggestion] = result.suggestions
        assert suggestion.flagged_text == "was written"
        assert not suggestion.can_regenerate

    @pytest.mark.asyncio
    async def test_style_request_is_hybrid_without_rewriting(self, orchestrator_factory):
        rewriter = StubRewriter("unused")
        orchestrator = orchestrator_factory(pipeline=_passive_only(), rewriter=rewriter)

        result = await orchestrator.check_grammar(PASSIVE, CheckOptions(include_style=True))

        assert result.mode is ProcessingMode.HYBRID
        assert rewriter.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("text", "options"),
        [
            (PASSIVE, CheckOptions(include_style=True, caller_id="alice")),
            ("Sam baked the cake.", CheckOptions(enhance_passive_voice=True, caller_id="alice")),
        ],
        ids=["style-only", "no-passive-sentence"],
    )
    async def test_hybrid_run_without_remote_call_spends_nothing(
        self, orchestrator_factory, text, options
    ):
        rewriter = StubRewriter("unused")
        orchestrator = orchestrator_factory(pipeline=_passive_only(), rewriter=rewriter)

        result = await orchestrator.check_grammar(text, options)

        assert result.mode is ProcessingMode.HYBRID
        assert rewriter.calls == []
        [cost] = orchestrator.recorder.cost_metrics()
        assert (cost.provider, cost.cost) == ("client", 0.0)
        assert orchestrator.recorder.daily_cost("alice") == 0.0

    @pytest.mark.asyncio
    async def test_hybrid_run_records_remote_cost(self, orchestrator_factory, mock_remote):
        orchestrator = orchestrator_factory(pipeline=_passive_only(), rewriter=mock_remote)

        result = await orchestrator.check_grammar(PASSIVE, HYBRID)

        [cost] = orchestrator.recorder.cost_metrics()
        assert cost.provider == "remote"
        assert cost.cost == result.decision.estimated_cost > 0
        assert cost.total_tokens == 8

    @pytest.mark.asyncio
    async def test_remote_failure_falls_back_to_client(self, orchestrator_factory):
        orchestrator = orchestrator_factory(pipeline=_passive_only(), rewriter=FailingRemote())

        result = await orchestrator.check_grammar(PASSIVE, HYBRID)

        assert result.mode is ProcessingMode.CLIENT
        assert result.decision.reason == FALLBACK_REASON
        assert result.decision.estimated_cost == 0.0
        assert [s.flagged_text for s in result.suggestions] == ["was written"]
        [perf] = orchestrator.recorder.performance_metrics()
        assert perf.error_occurred
        assert perf.error_type == "RemoteCallError"
        assert orchestrator.recorder.cost_metrics() == ()
        assert orchestrator.get_cache_stats().size == 0


class TestAdmission:
    @pytest.mark.asyncio
    async def test_queue_timeout_reaches_the_caller(self, orchestrator_factory):
        orchestrator = orchestrator_factory()
        orchestrator.scheduler.pause()

        with pytest.raises(QueueTimeoutError):
            await orchestrator.check_grammar("Fine text.", CheckOptions(timeout_ms=10))

        assert orchestrator.recorder.performance_metrics() == ()

    @pytest.mark.asyncio
    async def test_cost_ceiling_reaches_the_caller(self, orchestrator_factory, mock_remote):
        orchestrator = orchestrator_factory(rewriter=mock_remote)
        orchestrator.recorder.record_cost(
            provider="remote", total_tokens=1, cost=1.0, caller_id="alice"
        )

        with pytest.raises(CostThresholdExceededError):
            await orchestrator.check_grammar(
                PASSIVE, CheckOptions(enhance_passive_voice=True, caller_id="alice")
            )

        assert orchestrator.recorder.performance_metrics() == ()


class TestRefinement:
    @pytest.mark.asyncio
    async def test_refine_passive_suggestion(
        self, orchestrator_factory, make_suggestion, mock_remote
    ):
        orchestrator = orchestrator_factory(rewriter=mock_remote)
        suggestion = make_suggestion(11, 22, "was written", type=SuggestionType.PASSIVE)

        refined = await orchestrator.refine_suggestion(suggestion, PASSIVE)

        assert refined.replacement == "I wrote the report."
        assert refined.range == TextRange(0, 29)
        assert refined.confidence == 90
        assert refined.can_regenerate
        assert refined.regenerate_id == "s-11-22"

    @pytest.mark.asyncio
    async def test_refine_rejects_unsuitable_input(
        self, orchestrator_factory, make_suggestion
    ):
        orchestrator = orchestrator_factory()
        passive = make_suggestion(11, 22, "was written", type=SuggestionType.PASSIVE)

        assert await orchestrator.refine_suggestion(make_suggestion(0, 3, "The"), PASSIVE) is None
        assert await orchestrator.refine_suggestion(passive, "Something else entirely.") is None
        assert await orchestrator.refine_suggestion(passive, "   ") is None
        assert await orchestrator.refine_suggestion(passive, "short") is None
        assert await orchestrator.refine_suggestion("not a suggestion", PASSIVE) is None

    @pytest.mark.asyncio
    async def test_refine_without_a_better_rewrite(self, orchestrator_factory, make_suggestion):
        orchestrator = orchestrator_factory()
        text = "The window was broken."
        suggestion = make_suggestion(11, 21, "was broken", type=SuggestionType.PASSIVE)

        assert await orchestrator.refine_suggestion(suggestion, text) is None

    @pytest.mark.asyncio
    async def test_refine_remote_failure(self, orchestrator_factory, make_suggestion, caplog):
        orchestrator = orchestrator_factory(rewriter=FailingRemote(), speller=FailingRemote())
        passive = make_suggestion(11, 22, "was written", type=SuggestionType.PASSIVE)
        spelling = make_suggestion(2, 9, "recieve")

        assert await orchestrator.refine_suggestion(passive, PASSIVE) is None
        assert await orchestrator.refine_spelling_suggestion(spelling, "I recieve mail.") is None
        assert "failed" in caplog.text

    @pytest.mark.asyncio
    async def test_refine_spelling(self, orchestrator_factory, make_suggestion, mock_remote):
        orchestrator = orchestrator_factory(speller=mock_remote)
        suggestion = make_suggestion(2, 9, "recieve", confidence=60)

        refined = await orchestrator.refine_spelling_suggestion(suggestion, "I recieve mail.")

        assert refined.replacement == "receive"
        assert refined.range == TextRange(2, 9)
        assert refined.flagged_text == "recieve"
        assert refined.confidence == 90
        assert mock_remote.spelling_calls == ["I recieve mail."]

    @pytest.mark.asyncio
    async def test_refine_spelling_in_a_later_sentence(
        self, orchestrator_factory, make_suggestion, mock_remote
    ):
        orchestrator = orchestrator_factory(speller=mock_remote)
        context = "All good here. I recieve mail."
        suggestion = make_suggestion(17, 24, "recieve")

        refined = await orchestrator.refine_spelling_suggestion(suggestion, context)

        assert refined.range == TextRange(17, 24)
        assert refined.replacement == "receive"
        assert mock_remote.spelling_calls == ["I recieve mail."]

    @pytest.mark.asyncio
    async def test_refine_spelling_rejects_unsuitable_input(
        self, orchestrator_factory, make_suggestion
    ):
        orchestrator = orchestrator_factory()
        context = "I recieve mail."

        same = make_suggestion(2, 9, "recieve", replacement="receive")
        grammar = make_suggestion(2, 9, "recieve", type=SuggestionType.GRAMMAR)
        misplaced = make_suggestion(0, 7, "recieve")

        assert await orchestrator.refine_spelling_suggestion(same, context) is None
        assert await orchestrator.refine_spelling_suggestion(grammar, context) is None
        assert await orchestrator.refine_spelling_suggestion(misplaced, context) is None


class TestShouldAutoRefine:
    @pytest.mark.parametrize(
        ("kwargs", "expected"),
        [
            ({"replacement": "receive", "confidence": 60}, True),
            ({"replacement": "receive", "confidence": 85}, False),
            ({"replacement": None, "confidence": 95}, True),
            ({"type": SuggestionType.PASSIVE}, True),
            ({"type": SuggestionType.STYLE, "replacement": " recieve "}, True),
            ({"type": SuggestionType.STYLE, "replacement": "get"}, False),
            ({"type": SuggestionType.GRAMMAR, "confidence": 10}, False),
        ],
    )
    def test_rules(self, make_suggestion, orchestrator_factory, kwargs, expected):
        suggestion = make_suggestion(2, 9, "recieve", **kwargs)

        assert should_auto_refine(suggestion) is expected
        assert orchestrator_factory().should_auto_refine(suggestion) is expected


class TestAnalyticsAndLifecycle:
    @pytest.mark.asyncio
    async def test_analytics_and_export(self, orchestrator_factory):
        orchestrator = orchestrator_factory()
        await orchestrator.check_grammar("Their going home.")

        analytics = orchestrator.get_analytics()
        exported = orchestrator.export_metrics()

        assert analytics.performance.total_requests == 1
        assert analytics.cost.cost_savings_percentage == 100.0
        assert len(exported["performance"]) == 1

    @pytest.mark.asyncio
    async def test_clear_cache(self, orchestrator_factory):
        orchestrator = orchestrator_factory()
        await orchestrator.check_grammar("Fine text.")
        assert orchestrator.get_cache_stats().size == 1

        await orchestrator.clear_cache()

        assert orchestrator.get_cache_stats().size == 0
        assert not (await orchestrator.check_grammar("Fine text.")).cached

    @pytest.mark.asyncio
    async def test_async_context_manager(self, orchestrator_factory):
        async with orchestrator_factory() as orchestrator:
            result = await orchestrator.check_grammar("Fine text.")
            assert orchestrator.cache.running

        assert result.mode is ProcessingMode.CLIENT
        assert not orchestrator.cache.running

    @pytest.mark.asyncio
    async def test_telemetry_scopes(self, orchestrator_factory, monkeypatch):
        monkeypatch.setenv(TELEMETRY_ENV_VAR, "1")
        reporter = InMemoryReporter()
        orchestrator = orchestrator_factory(
            pipeline=_passive_only(), telemetry=TelemetryContext(reporter)
        )

        await orchestrator.check_grammar(PASSIVE, HYBRID)

        assert "orchestrator.check_grammar" in reporter.timings
        assert "orchestrator.check_grammar.orchestrator.remote_rewrite" in reporter.timings
