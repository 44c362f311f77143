"""End-to-end workflows through create_orchestrator and resolved configuration."""

import json

import pytest

from hybrid_grammar import CheckOptions, ProcessingMode, create_orchestrator
from hybrid_grammar.analysis import InMemoryPersonalDictionary
from hybrid_grammar.config import config_scope, resolve_config
from hybrid_grammar.exceptions import CostThresholdExceededError
from hybrid_grammar.remote import MockRemoteService

pytestmark = pytest.mark.integration

TEXT = "Their going to the store. A elephant is big."


@pytest.fixture
def resolve(isolated_config_sources):
    def _resolve(pyproject_content="", **overrides):
        with isolated_config_sources(pyproject_content=pyproject_content) as project:
            return resolve_config(overrides, project_root=project)

    return _resolve


@pytest.mark.asyncio
async def test_cache_survives_a_restart(resolve, tmp_path):
    cache_file = tmp_path / "state" / "grammar-cache.json"
    config = resolve(cache_persist_path=str(cache_file))

    async with create_orchestrator(config) as first:
        original = await first.check_grammar(TEXT)

    assert not original.cached
    assert "grammar" in json.loads(cache_file.read_text())

    async with create_orchestrator(config) as second:
        restored = await second.check_grammar(TEXT)

    assert restored.cached
    assert restored.suggestions == original.suggestions
    assert restored.decision == original.decision


@pytest.mark.asyncio
async def test_project_file_configures_the_engine(resolve):
    config = resolve(
        pyproject_content='[tool.hybrid_grammar]\ncache_enabled = false\nmax_concurrent_free = 1\n'
    )

    orchestrator = create_orchestrator(config)
    await orchestrator.check_grammar(TEXT)

    assert orchestrator.get_cache_stats() is None
    assert orchestrator.scheduler.config.max_concurrent_free == 1
    await orchestrator.aclose()


@pytest.mark.asyncio
async def test_personal_dictionary_filters_spelling(resolve):
    text = "I keep my zorblax in the garage."
    config = resolve(cache_enabled=False)

    plain = await create_orchestrator(config).check_grammar(text)
    filtered = await create_orchestrator(
        config, dictionary=InMemoryPersonalDictionary(["Zorblax"])
    ).check_grammar(text)

    assert "zorblax" in [s.flagged_text for s in plain.suggestions]
    assert "zorblax" not in [s.flagged_text for s in filtered.suggestions]


@pytest.mark.asyncio
async def test_hybrid_workflow_with_configured_mock_backend(resolve):
    orchestrator = create_orchestrator(resolve(remote_backend="mock"))

    result = await orchestrator.check_grammar(
        "The report was written by me.", CheckOptions(enhance_passive_voice=True)
    )

    assert result.mode is ProcessingMode.HYBRID
    assert "I wrote the report." in [s.replacement for s in result.suggestions]
    analytics = orchestrator.get_analytics()
    assert analytics.performance.server_percentage == 100.0
    assert analytics.cost.server_cost > 0
    await orchestrator.aclose()


@pytest.mark.asyncio
async def test_injected_remote_overrides_configured_backend(resolve):
    remote = MockRemoteService()
    config = resolve(remote_backend="gemini", api_key="sk-unused")

    orchestrator = create_orchestrator(config, rewriter=remote, speller=remote)
    await orchestrator.check_grammar(
        "The report was written by me.", CheckOptions(enhance_passive_voice=True)
    )

    assert remote.rewrite_calls == [("The report was written by me.",)]


@pytest.mark.asyncio
async def test_ambient_scope_is_used_when_no_config_is_passed(resolve):
    base = resolve()

    with config_scope(base.with_overrides(cache_enabled=False)):
        orchestrator = create_orchestrator()

    assert orchestrator.get_cache_stats() is None
    result = await orchestrator.check_grammar(TEXT)
    assert result.mode is ProcessingMode.CLIENT


@pytest.mark.asyncio
async def test_daily_ceiling_comes_from_configuration(resolve):
    orchestrator = create_orchestrator(resolve(daily_cost_limit_free=0.00001))

    with pytest.raises(CostThresholdExceededError):
        await orchestrator.check_grammar(
            "The report was written by me.", CheckOptions(enhance_passive_voice=True)
        )
