"""Configuration: resolve once, freeze, then pass to components.

Example:
    from hybrid_grammar.config import resolve_config

    config = resolve_config({"cache_enabled": False})
    frozen = config.to_frozen()
"""

from .api import (
    check_environment,
    get_effective_profile,
    list_available_profiles,
    resolve_config,
    validate_profile,
)
from .audit import SourceTracker, origin_summary
from .schema import GrammarSettings
from .scope import config_override, config_scope, get_ambient_resolved_config
from .types import ConfigOrigin, FrozenConfig, ResolvedConfig, SourceMap

__all__ = [
    "ConfigOrigin",
    "FrozenConfig",
    "GrammarSettings",
    "ResolvedConfig",
    "SourceMap",
    "SourceTracker",
    "check_environment",
    "config_override",
    "config_scope",
    "get_ambient_resolved_config",
    "get_effective_profile",
    "list_available_profiles",
    "origin_summary",
    "resolve_config",
    "validate_profile",
]
