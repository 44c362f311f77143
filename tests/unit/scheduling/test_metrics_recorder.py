"""Metric streams, daily accounting, analytics and recommendations."""

import pytest

from hybrid_grammar.scheduling import MetricsConfig, MetricsRecorder, percentile

pytestmark = pytest.mark.unit

DAY = 24 * 60 * 60


def _perf(recorder, **overrides):
    fields = {
        "processing_mode": "client",
        "text_length": 100,
        "word_count": 20,
        "processing_time_ms": 10.0,
        "suggestions_count": 2,
    }
    fields.update(overrides)
    return recorder.record_performance(**fields)


@pytest.fixture
def recorder(clock):
    return MetricsRecorder(clock=clock)


class TestPercentile:
    @pytest.mark.parametrize(
        ("values", "p", "expected"),
        [
            (list(range(1, 21)), 95, 19),
            ([1, 2, 3, 4], 50, 2),
            ([5], 95, 5),
            ([], 50, 0.0),
            ([3, 1, 2], 100, 3),
            ([3, 1, 2], 0, 1),
        ],
    )
    def test_nearest_rank(self, values, p, expected):
        assert percentile(values, p) == expected


class TestDailyCost:
    def test_costs_accumulate_per_caller(self, recorder):
        recorder.record_cost(provider="remote", total_tokens=100, cost=0.2, caller_id="alice")
        recorder.record_cost(provider="remote", total_tokens=100, cost=0.3, caller_id="alice")
        recorder.record_cost(provider="client", total_tokens=0, cost=0.0, caller_id="bob")

        assert recorder.daily_cost("alice") == pytest.approx(0.5)
        assert recorder.daily_cost("bob") == 0.0
        assert recorder.total_cost_today() == pytest.approx(0.5)

    def test_counters_reset_on_a_new_day(self, recorder, clock):
        recorder.record_cost(provider="remote", total_tokens=100, cost=0.2, caller_id="alice")
        _perf(recorder)

        clock.advance(DAY)

        assert recorder.daily_cost("alice") == 0.0
        assert recorder.requests_today == 0

    def test_threshold_flag(self, recorder):
        over_check = recorder.record_cost(provider="remote", total_tokens=1, cost=0.06)
        under = recorder.record_cost(provider="remote", total_tokens=1, cost=0.01, caller_id="c")

        assert over_check.cost_threshold_exceeded
        assert not under.cost_threshold_exceeded

    def test_daily_limit_flag_uses_tier(self, recorder):
        for _ in range(25):
            metric = recorder.record_cost(
                provider="remote", total_tokens=1, cost=0.045, tier="free", caller_id="f"
            )
        premium = recorder.record_cost(
            provider="remote", total_tokens=1, cost=0.045, tier="premium", caller_id="f"
        )

        assert metric.cost_threshold_exceeded
        assert not premium.cost_threshold_exceeded


class TestRetention:
    def test_old_records_are_pruned(self, clock):
        recorder = MetricsRecorder(MetricsConfig(max_age_seconds=60), clock=clock)
        _perf(recorder)

        clock.advance(61)
        _perf(recorder)

        assert len(recorder.performance_metrics()) == 1

    def test_stream_size_is_bounded(self, clock):
        recorder = MetricsRecorder(MetricsConfig(max_stored=3), clock=clock)

        for i in range(5):
            _perf(recorder, suggestions_count=i)

        assert [m.suggestions_count for m in recorder.performance_metrics()] == [2, 3, 4]

    def test_reset_keeps_listeners(self, recorder):
        seen = []
        recorder.add_listener(lambda kind, metric: seen.append(kind))
        _perf(recorder)

        recorder.reset()
        _perf(recorder)

        assert len(recorder.performance_metrics()) == 1
        assert seen == ["performance", "performance"]


class TestListeners:
    def test_listener_receives_every_record(self, recorder):
        seen = []
        recorder.add_listener(lambda kind, metric: seen.append((kind, metric.id)))

        perf = _perf(recorder)
        cost = recorder.record_cost(provider="client", total_tokens=0, cost=0.0)

        assert seen == [("performance", perf.id), ("cost", cost.id)]

    def test_unsubscribe(self, recorder):
        seen = []
        unsubscribe = recorder.add_listener(lambda kind, metric: seen.append(kind))

        unsubscribe()
        _perf(recorder)

        assert seen == []

    def test_failing_listener_does_not_break_recording(self, recorder, caplog):
        def broken(kind, metric):
            raise RuntimeError("listener bug")

        seen = []
        recorder.add_listener(broken)
        recorder.add_listener(lambda kind, metric: seen.append(kind))

        _perf(recorder)

        assert seen == ["performance"]
        assert len(recorder.performance_metrics()) == 1
        assert "Metric listener failed" in caplog.text


class TestAnalytics:
    def test_empty_window(self, recorder):
        analytics = recorder.get_analytics()

        assert analytics.performance is None
        assert analytics.cache is None
        assert analytics.cost is None
        assert analytics.system_health is None
        assert analytics.recommendations == ()

    def test_performance_summary(self, recorder):
        _perf(recorder, processing_time_ms=10.0, queue_wait_ms=4.0)
        _perf(
            recorder,
            processing_mode="hybrid",
            processing_time_ms=30.0,
            error_occurred=True,
            error_type="RemoteCallError",
        )

        summary = recorder.get_analytics().performance

        assert summary.total_requests == 2
        assert summary.avg_processing_time_ms == 20.0
        assert summary.median_processing_time_ms == 20.0
        assert summary.p95_processing_time_ms == 30.0
        assert summary.client_only_percentage == 50.0
        assert summary.server_percentage == 50.0
        assert summary.error_rate == 50.0
        assert summary.avg_queue_wait_ms == 2.0

    def test_window_excludes_older_records(self, recorder, clock):
        _perf(recorder)
        clock.advance(10)
        _perf(recorder)

        analytics = recorder.get_analytics(window_ms=5_000)

        assert analytics.performance.total_requests == 1

    def test_cost_summary(self, recorder):
        recorder.record_cost(provider="remote", total_tokens=400, cost=0.002)
        recorder.record_cost(provider="client", total_tokens=0, cost=0.0)
        recorder.record_cost(provider="client", total_tokens=0, cost=0.0, rate_limit_hit=True)
        recorder.record_cost(provider="client", total_tokens=0, cost=0.0)

        summary = recorder.get_analytics().cost

        assert summary.total_cost == pytest.approx(0.002)
        assert summary.server_cost == pytest.approx(0.002)
        assert summary.client_cost == 0.0
        assert summary.cost_savings_percentage == 75.0
        assert summary.rate_limit_hit_rate == 25.0
        assert summary.total_tokens == 400

    def test_cache_summary(self, recorder):
        for action in ("set", "hit", "hit", "miss", "evict"):
            recorder.record_cache_metric(action=action, cache_type="grammar", key_hash="k", size=2)

        summary = recorder.get_analytics().cache

        assert (summary.hits, summary.misses, summary.evictions) == (2, 1, 1)
        assert summary.hit_rate == pytest.approx(200 / 3)
        assert summary.total_operations == 5
        assert summary.avg_cache_size == 2.0


class TestRecommendations:
    def test_low_cache_hit_rate(self, recorder):
        for action in ("hit", "miss", "miss", "miss"):
            recorder.record_cache_metric(action=action, cache_type="grammar", key_hash="k")

        recommendations = recorder.get_analytics().recommendations

        assert any("Cache hit rate below threshold" in r for r in recommendations)

    def test_no_cache_recommendation_without_lookups(self, recorder):
        recorder.record_cache_metric(action="set", cache_type="grammar", key_hash="k")

        assert recorder.get_analytics().recommendations == ()

    def test_server_cost_share(self, recorder):
        recorder.record_cost(provider="remote", total_tokens=100, cost=0.01)
        recorder.record_cost(provider="client", total_tokens=0, cost=0.0)

        recommendations = recorder.get_analytics().recommendations

        assert "Server cost share above 30%. Consider increasing client-side processing" in (
            recommendations
        )

    def test_slow_processing_and_errors(self, recorder):
        _perf(recorder, processing_time_ms=9000.0, error_occurred=True)

        recommendations = recorder.get_analytics().recommendations

        assert "Consider increasing client-side processing to reduce latency" in recommendations
        assert any("Error rate is high" in r for r in recommendations)

    def test_queue_size(self, recorder):
        recorder.record_system_health(active_requests=3, queue_size=12)

        recommendations = recorder.get_analytics().recommendations

        assert any("Average queue size high" in r for r in recommendations)


class TestSystemHealth:
    def test_sample_uses_last_minute(self, recorder, clock):
        _perf(recorder, processing_time_ms=500.0, error_occurred=True)
        clock.advance(120)
        _perf(recorder, processing_time_ms=10.0)
        _perf(recorder, processing_time_ms=30.0)
        recorder.record_cache_metric(action="hit", cache_type="grammar", key_hash="k")
        recorder.record_cache_metric(action="miss", cache_type="grammar", key_hash="k")
        recorder.record_cost(provider="remote", total_tokens=10, cost=0.25)

        sample = recorder.record_system_health(active_requests=2, queue_size=1)

        assert sample.error_rate == 0.0
        assert sample.avg_response_time_ms == 20.0
        assert sample.cache_hit_rate == 50.0
        assert sample.total_cost_today == pytest.approx(0.25)
        assert sample.total_requests_today == 3


def test_export_metrics(recorder, clock):
    _perf(recorder)
    recorder.record_cost(provider="client", total_tokens=0, cost=0.0)

    exported = recorder.export_metrics()

    assert set(exported) == {
        "performance",
        "cache",
        "cost",
        "system_health",
        "config",
        "exported_at",
    }
    assert exported["performance"][0]["processing_mode"] == "client"
    assert exported["config"]["max_stored"] == 10_000
    assert exported["exported_at"] == clock.now
