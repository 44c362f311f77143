"""Entry points for configuration resolution."""

from pathlib import Path
from typing import Any

from .resolver import ConfigResolver
from .scope import get_ambient_resolved_config
from .types import ResolvedConfig

_resolver = ConfigResolver()


def resolve_config(
    programmatic: dict[str, Any] | None = None,
    *,
    profile: str | None = None,
    use_env_file: str | Path | None = None,
    project_root: Path | None = None,
) -> ResolvedConfig:
    """Resolve configuration from all sources.

    Inside a `config_scope()` the scoped config is the base and only
    `programmatic` is applied on top of it.

    Example:
        config = resolve_config({"remote_backend": "gemini", "api_key": key})
        print(config.audit())
    """
    ambient = get_ambient_resolved_config()
    if ambient is not None:
        return ambient.with_overrides(**programmatic) if programmatic else ambient
    return _resolver.resolve(
        programmatic=programmatic,
        profile=profile,
        use_env_file=use_env_file,
        project_root=project_root,
    )


def list_available_profiles(project_root: Path | None = None) -> dict[str, list[str]]:
    return _resolver.list_available_profiles(project_root)


def get_effective_profile() -> str | None:
    return _resolver.get_effective_profile()


def validate_profile(profile: str, project_root: Path | None = None) -> dict[str, bool]:
    """Check that `profile` exists in at least one configuration file.

    Raises:
        ValueError: If no file defines it.
    """
    in_project, in_home = _resolver.validate_profile_exists(profile, project_root)
    if not in_project and not in_home:
        available = list_available_profiles(project_root)
        raise ValueError(
            f"Profile '{profile}' not found. "
            f"Available profiles: {available['project'] + available['home']}"
        )
    return {"project": in_project, "home": in_home}


def check_environment() -> dict[str, str]:
    """Currently set ``HYBRID_GRAMMAR_*`` variables, secrets redacted."""
    return _resolver.env_loader.get_env_summary()
