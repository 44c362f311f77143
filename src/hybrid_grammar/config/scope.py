"""Context-scoped configuration.

A scope only affects `resolve_config()` calls made inside it. Components
built from a `FrozenConfig` keep that config regardless of later scopes.
"""

from collections.abc import Generator
from contextlib import contextmanager
import contextvars
from typing import Any

from .types import ResolvedConfig

_ambient_resolved_config: contextvars.ContextVar[ResolvedConfig] = contextvars.ContextVar(
    "hybrid_grammar_resolved_config"
)


def get_ambient_resolved_config() -> ResolvedConfig | None:
    """The config set by the innermost active scope, if any."""
    return _ambient_resolved_config.get(None)


@contextmanager
def config_scope(config: ResolvedConfig) -> Generator[None]:
    """Use `config` for every `resolve_config()` call inside the block.

    Example:
        base = resolve_config()
        with config_scope(base.with_overrides(cache_enabled=False)):
            orchestrator = create_orchestrator()
    """
    token = _ambient_resolved_config.set(config)
    try:
        yield
    finally:
        _ambient_resolved_config.reset(token)


@contextmanager
def config_override(**overrides: Any) -> Generator[None]:
    """Scope the current configuration with a few fields replaced."""
    base = get_ambient_resolved_config()
    if base is None:
        from .api import resolve_config

        base = resolve_config()
    with config_scope(base.with_overrides(**overrides)):
        yield
