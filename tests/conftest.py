"""
Global test configuration: environment isolation, markers and shared fixtures.
"""

from collections.abc import Callable, Generator
from contextlib import contextmanager
import logging
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from hybrid_grammar.analysis import LocalAnalysisPipeline
from hybrid_grammar.core.types import Severity, Suggestion, SuggestionType, TextRange
from hybrid_grammar.orchestrator import AnalysisOrchestrator
from hybrid_grammar.remote import MockRemoteService
from hybrid_grammar.scheduling import MetricsRecorder, RequestScheduler

ENV_PREFIX = "HYBRID_GRAMMAR_"


# --- Environment Isolation (Autouse) ---


@pytest.fixture(autouse=True)
def isolate_grammar_env(request, monkeypatch):
    """Ensure a clean HYBRID_GRAMMAR_* environment for each test.

    Escape hatch: @pytest.mark.allow_env_pollution keeps the current env.
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("DEBUG", raising=False)


@pytest.fixture(autouse=True)
def neutral_home_config(request, monkeypatch, tmp_path_factory, isolate_grammar_env):  # noqa: ARG001
    """Point the home config at an isolated, initially missing temp file.

    Escape hatch: @pytest.mark.allow_real_home_config uses the real path.
    """
    if request.node.get_closest_marker("allow_real_home_config"):
        return
    fake_home_dir = tmp_path_factory.mktemp("home_config_isolated")
    monkeypatch.setenv(
        f"{ENV_PREFIX}CONFIG_HOME", str(fake_home_dir / "hybrid_grammar.toml")
    )


@pytest.fixture
def isolated_config_sources(tmp_path):
    """Isolate every configuration source and optionally populate some.

    Yields the project directory to pass as ``project_root``.
    """

    @contextmanager
    def _setup(
        *,
        pyproject_content: str = "",
        home_content: str = "",
        env_vars: dict[str, str] | None = None,
    ) -> Generator[Path]:
        clean_env = {k: v for k, v in os.environ.items() if not k.startswith(ENV_PREFIX)}
        for key, value in (env_vars or {}).items():
            if not key.startswith(ENV_PREFIX):
                key = f"{ENV_PREFIX}{key.upper()}"
            clean_env[key] = value

        project_dir = tmp_path / "project"
        project_dir.mkdir(exist_ok=True)
        if pyproject_content:
            (project_dir / "pyproject.toml").write_text(pyproject_content)

        home_config_path = tmp_path / "home" / "hybrid_grammar.toml"
        home_config_path.parent.mkdir(exist_ok=True)
        if home_content:
            home_config_path.write_text(home_content)
        clean_env[f"{ENV_PREFIX}CONFIG_HOME"] = str(home_config_path)

        with patch.dict(os.environ, clean_env, clear=True):
            yield project_dir

    return _setup


# --- Logging Fixtures ---


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Sets the log level for noisy external libraries to WARNING."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# --- Test Environment Markers ---


def pytest_configure(config):
    """Configure custom markers for test organization."""
    markers = [
        "unit: Fast, isolated unit tests",
        "integration: Component integration tests with mocked remote services",
        "allow_env_pollution: Keep HYBRID_GRAMMAR_* variables for this test",
        "allow_real_home_config: Read the real home configuration file",
    ]
    for marker in markers:
        config.addinivalue_line("markers", marker)


# --- Core Fixtures ---


class FakeClock:
    """Manually advanced wall clock for time-dependent components."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_suggestion() -> Callable[..., Suggestion]:
    """Factory for suggestions with sensible defaults."""

    def _make(
        start: int,
        end: int,
        flagged_text: str,
        *,
        type: SuggestionType = SuggestionType.SPELLING,  # noqa: A002
        replacement: str | None = None,
        confidence: int = 60,
        severity: Severity = Severity.ERROR,
    ) -> Suggestion:
        return Suggestion(
            id=f"s-{start}-{end}",
            rule=f"test.{type.value}",
            message="test suggestion",
            severity=severity,
            range=TextRange(start, end),
            type=type,
            confidence=confidence,
            flagged_text=flagged_text,
            replacement=replacement,
        )

    return _make


@pytest.fixture
def mock_remote() -> MockRemoteService:
    return MockRemoteService()


@pytest.fixture
def orchestrator_factory(clock) -> Callable[..., AnalysisOrchestrator]:
    """Build an orchestrator on the fake clock with injectable collaborators."""

    def _build(**kwargs) -> AnalysisOrchestrator:
        recorder = kwargs.pop("recorder", None) or MetricsRecorder(clock=clock)
        kwargs.setdefault("scheduler", RequestScheduler(recorder=recorder, clock=clock))
        kwargs.setdefault("pipeline", LocalAnalysisPipeline())
        return AnalysisOrchestrator(recorder=recorder, clock=clock, **kwargs)

    return _build
