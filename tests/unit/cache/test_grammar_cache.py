import pytest

from hybrid_grammar.cache import GRAMMAR_CACHE_CONFIG, GrammarResultCache, grammar_cache_key
from hybrid_grammar.core.types import (
    CheckOptions,
    CheckResult,
    ProcessingDecision,
    ProcessingMode,
)

pytestmark = pytest.mark.unit

TEXT = "Their going to the store."


def _result(make_suggestion):
    return CheckResult(
        suggestions=(make_suggestion(0, 5, "Their", replacement="They're"),),
        mode=ProcessingMode.CLIENT,
        timing_ms=3.0,
        decision=ProcessingDecision(
            use_client_only=True,
            reason="default",
            estimated_cost=0.0,
            estimated_latency_ms=50,
        ),
    )


def test_key_ignores_option_order():
    first = grammar_cache_key(TEXT, {"include_style": True, "language": "en"})
    second = grammar_cache_key(TEXT, {"language": "en", "include_style": True})

    assert first == second
    assert len(first) == 64


def test_key_depends_on_result_affecting_options_only():
    base = grammar_cache_key(TEXT, CheckOptions())

    assert grammar_cache_key(TEXT, CheckOptions(caller_id="bob", timeout_ms=10)) == base
    assert grammar_cache_key(TEXT, CheckOptions(queue_priority="high")) == base
    assert grammar_cache_key(TEXT, CheckOptions(include_style=True)) != base
    assert grammar_cache_key(TEXT, CheckOptions(language="de")) != base


def test_key_depends_on_text():
    assert grammar_cache_key("a", CheckOptions()) != grammar_cache_key("b", CheckOptions())


def test_canonically_equivalent_texts_keep_distinct_lengths():
    composed = grammar_cache_key("caf\u00e9", CheckOptions())
    decomposed = grammar_cache_key("cafe\u0301", CheckOptions())

    assert composed != decomposed


@pytest.mark.asyncio
async def test_compatibility_equivalent_texts_do_not_share_suggestions(
    clock, make_suggestion
):
    angstrom = "The \u212b\u212b \u212b\u212b is here."
    a_ring = "The \u00c5\u00c5 \u00c5\u00c5 is here."
    cache = GrammarResultCache(clock=clock)
    result = CheckResult(
        suggestions=(make_suggestion(4, 9, "\u212b\u212b \u212b\u212b"),),
        mode=ProcessingMode.CLIENT,
        timing_ms=1.0,
        decision=ProcessingDecision(
            use_client_only=True,
            reason="default",
            estimated_cost=0.0,
            estimated_latency_ms=50,
        ),
    )

    await cache.set_result(angstrom, CheckOptions(), result)

    assert grammar_cache_key(angstrom, CheckOptions()) == grammar_cache_key(
        a_ring, CheckOptions()
    )
    assert cache.get_result(a_ring, CheckOptions()) is None
    assert cache.get_result(angstrom, CheckOptions()) == result


def test_default_configuration():
    cache = GrammarResultCache()

    assert cache.config is GRAMMAR_CACHE_CONFIG
    assert cache.config.key_prefix == "grammar"
    assert cache.config.max_size == 500
    assert cache.config.ttl_seconds == 600


@pytest.mark.asyncio
async def test_result_round_trip(clock, make_suggestion):
    cache = GrammarResultCache(clock=clock)
    result = _result(make_suggestion)

    await cache.set_result(TEXT, CheckOptions(), result)

    assert cache.get_result(TEXT, CheckOptions()) == result
    assert cache.get_result(TEXT, CheckOptions(include_style=True)) is None


@pytest.mark.asyncio
async def test_results_expire(clock, make_suggestion):
    cache = GrammarResultCache(clock=clock)
    await cache.set_result(TEXT, CheckOptions(), _result(make_suggestion))

    clock.advance(600)

    assert cache.get_result(TEXT, CheckOptions()) is None
