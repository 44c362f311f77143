"""Configuration resolution with precedence handling.

Precedence, highest first:
Programmatic > Environment > Project file > Home file > Defaults
"""

import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from hybrid_grammar.exceptions import ConfigFileError, ConfigurationError

from .audit import SourceTracker
from .env_loader import EnvironmentConfigLoader
from .file_loader import FileConfigLoader
from .schema import GrammarSettings
from .types import ConfigOrigin, FrozenConfig, ResolvedConfig

logger = logging.getLogger(__name__)

PROFILE_ENV = "HYBRID_GRAMMAR_PROFILE"


class ConfigResolver:
    """Merges every configuration source into one validated `ResolvedConfig`."""

    def __init__(self) -> None:
        self.file_loader = FileConfigLoader()
        self.env_loader = EnvironmentConfigLoader()

    def resolve(
        self,
        programmatic: dict[str, Any] | None = None,
        *,
        profile: str | None = None,
        use_env_file: str | Path | None = None,
        project_root: Path | None = None,
    ) -> ResolvedConfig:
        """Resolve configuration from all sources.

        Args:
            programmatic: Overrides with the highest precedence.
            profile: Profile to load from files; defaults to ``HYBRID_GRAMMAR_PROFILE``.
            use_env_file: Optional .env file to load first.
            project_root: Directory to search for pyproject.toml.

        Raises:
            ConfigurationError: If a source is invalid or validation fails.
            ConfigFileError: If the project file is malformed.
        """
        if profile is None:
            profile = self.get_effective_profile()

        tracker = SourceTracker()
        merged: dict[str, Any] = GrammarSettings.defaults()
        tracker.set_multiple(merged, "default")

        def _apply(values: dict[str, Any], origin: ConfigOrigin) -> None:
            for field, value in values.items():
                if field in merged:
                    merged[field] = value
                    tracker.set_origin(field, origin)

        # Home file problems never block startup
        try:
            _apply(self.file_loader.load_home_config(profile=profile), "file")
        except ConfigFileError as e:
            logger.warning("Ignoring home configuration: %s", e)

        try:
            _apply(
                self.file_loader.load_project_config(
                    project_root=project_root, profile=profile
                ),
                "file",
            )
        except ConfigFileError:
            if profile is None:
                raise
            logger.debug("Profile %r not available in project configuration", profile)

        try:
            _apply(self.env_loader.load_env_config(env_file=use_env_file), "env")
        except (ValueError, FileNotFoundError) as e:
            raise ConfigurationError(f"Environment configuration error: {e}") from e

        if programmatic:
            _apply(programmatic, "programmatic")

        try:
            settings = GrammarSettings(**merged)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {e}") from e

        return ResolvedConfig(
            config=FrozenConfig(**settings.to_dict()),
            origin=tracker.get_source_map(),
        )

    def get_effective_profile(self) -> str | None:
        return os.getenv(PROFILE_ENV) or None

    def list_available_profiles(
        self, project_root: Path | None = None
    ) -> dict[str, list[str]]:
        return self.file_loader.list_available_profiles(project_root)

    def validate_profile_exists(
        self, profile: str, project_root: Path | None = None
    ) -> tuple[bool, bool]:
        """Return ``(in_project, in_home)`` for `profile`."""
        available = self.list_available_profiles(project_root)
        return profile in available["project"], profile in available["home"]
