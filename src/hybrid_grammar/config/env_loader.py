"""Environment variable configuration.

Reads ``HYBRID_GRAMMAR_<FIELD>`` variables for the known settings fields,
optionally after loading a ``.env`` file. Values are returned as raw strings;
coercion happens when the merged configuration is validated.
"""

import os
from pathlib import Path

from .schema import GrammarSettings
from .types import ENV_PREFIX, SENSITIVE_FIELDS


def env_var_names() -> dict[str, str]:
    """Map of environment variable name to settings field."""
    return {f"{ENV_PREFIX}{name.upper()}": name for name in GrammarSettings.model_fields}


class EnvironmentConfigLoader:
    """Collects settings from the process environment."""

    def load_env_config(self, env_file: str | Path | None = None) -> dict[str, str]:
        """Return the fields that are explicitly set in the environment.

        Raises:
            FileNotFoundError: If `env_file` is given but missing.
            ValueError: If `env_file` is malformed.
        """
        if env_file:
            self._load_env_file(env_file)
        return {
            field: os.environ[var]
            for var, field in env_var_names().items()
            if var in os.environ
        }

    def get_env_summary(self) -> dict[str, str]:
        """Currently set variables, with secrets redacted."""
        return {
            var: "<redacted>" if field in SENSITIVE_FIELDS else os.environ[var]
            for var, field in env_var_names().items()
            if var in os.environ
        }

    @staticmethod
    def _load_env_file(env_file: str | Path) -> None:
        """Load KEY=VALUE lines into os.environ without overriding existing keys."""
        env_path = Path(env_file)
        if not env_path.exists():
            raise FileNotFoundError(f"Environment file not found: {env_path}")
        try:
            lines = env_path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            raise ValueError(f"Failed to read environment file {env_path}: {e}") from e

        for line_num, raw in enumerate(lines, 1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                raise ValueError(
                    f"Invalid format at line {line_num}: {line}. Expected KEY=VALUE format."
                )
            key, value = (part.strip() for part in line.split("=", 1))
            if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
                value = value[1:-1]
            os.environ.setdefault(key, value)
