"""TOML configuration files with profile support.

Two files are consulted: the nearest ``pyproject.toml`` (section
``[tool.hybrid_grammar]``) and a home file, ``~/.config/hybrid_grammar.toml``
unless ``HYBRID_GRAMMAR_CONFIG_HOME`` points elsewhere. Both may define named
profiles under a ``profiles`` table.
"""

import os
from pathlib import Path
import tomllib
from typing import Any

from hybrid_grammar.exceptions import ConfigFileError

SECTION = "hybrid_grammar"
HOME_OVERRIDE_ENV = "HYBRID_GRAMMAR_CONFIG_HOME"


class FileConfigLoader:
    """Reads configuration sections from TOML files."""

    def load_project_config(
        self, project_root: Path | None = None, profile: str | None = None
    ) -> dict[str, Any]:
        """Load ``[tool.hybrid_grammar]`` or one of its profiles.

        Returns an empty dict when there is no pyproject.toml or no section.

        Raises:
            ConfigFileError: If the file cannot be parsed or the profile is missing.
        """
        path = self.find_pyproject_toml(project_root)
        if path is None:
            return {}
        section = self._read(path).get("tool", {}).get(SECTION, {})
        if not section:
            return {}
        return self._select(path, section, profile)

    def load_home_config(self, profile: str | None = None) -> dict[str, Any]:
        """Load the home file, or one of its profiles.

        Raises:
            ConfigFileError: If the file cannot be parsed or the profile is missing.
        """
        path = self.home_config_path()
        if not path.exists():
            return {}
        return self._select(path, self._read(path), profile)

    def list_available_profiles(
        self, project_root: Path | None = None
    ) -> dict[str, list[str]]:
        """Profile names per source; unreadable files contribute none."""
        profiles: dict[str, list[str]] = {"project": [], "home": []}
        try:
            path = self.find_pyproject_toml(project_root)
            if path is not None:
                section = self._read(path).get("tool", {}).get(SECTION, {})
                profiles["project"] = list(section.get("profiles", {}))
        except ConfigFileError:
            pass
        try:
            home = self.home_config_path()
            if home.exists():
                profiles["home"] = list(self._read(home).get("profiles", {}))
        except ConfigFileError:
            pass
        return profiles

    def find_pyproject_toml(self, start_dir: Path | None = None) -> Path | None:
        """Nearest pyproject.toml in `start_dir` or its parents."""
        current = Path(start_dir or Path.cwd()).resolve()
        for directory in (current, *current.parents):
            candidate = directory / "pyproject.toml"
            if candidate.exists():
                return candidate
        return None

    def home_config_path(self) -> Path:
        override = os.getenv(HOME_OVERRIDE_ENV)
        if override:
            return Path(override).expanduser()
        return Path.home() / ".config" / f"{SECTION}.toml"

    @staticmethod
    def _read(path: Path) -> dict[str, Any]:
        try:
            with path.open(mode="rb") as f:
                return tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigFileError(path, f"Failed to parse TOML: {e}", cause=e) from e

    @staticmethod
    def _select(path: Path, data: dict[str, Any], profile: str | None) -> dict[str, Any]:
        profiles = data.get("profiles", {})
        if profile:
            if profile not in profiles:
                raise ConfigFileError(
                    path,
                    f"Profile '{profile}' not found. Available profiles: {list(profiles)}",
                )
            return dict(profiles[profile])
        base = dict(data)
        base.pop("profiles", None)
        return base
