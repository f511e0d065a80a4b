"""
Configuration file loading.

Loads ``config.yaml`` and an optional ``config.{env}.yaml`` overlay.
"""

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

from sftpstream.config.resolver import resolve_config
from sftpstream.exceptions import ConfigurationError

CONFIG_FILENAME = "config.yaml"


class Config:
    """sftpstream configuration container with dict-like access."""

    def __init__(self, data: dict[str, Any]):
        self.data = data

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (``sftp.factory.host``)."""
        value: Any = self.data
        for k in key.split("."):
            if not isinstance(value, dict):
                return default
            value = value.get(k)
            if value is None:
                return default
        return value

    def section(self, key: str) -> dict[str, Any]:
        """Return a nested section as a plain dict (empty when missing)."""
        value = self.get(key, {})
        if not isinstance(value, dict):
            raise ConfigurationError(f"Configuration '{key}' must be a mapping, got {type(value).__name__}")
        return value

    def __getitem__(self, key: str) -> Any:
        if "." in key:
            return self.get(key)
        if key in self.data:
            value = self.data[key]
            if isinstance(value, dict):
                return Config(value)
            return value
        raise KeyError(f"Config key '{key}' not found")

    def __contains__(self, key: str) -> bool:
        value: Any = self.data
        for k in key.split("."):
            if not isinstance(value, dict) or k not in value:
                return False
            value = value[k]
        return True

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def keys(self):
        return self.data.keys()

    def items(self):
        return self.data.items()

    def validate(self) -> None:
        """Validate the top-level structure (sections must be mappings)."""
        if not isinstance(self.data, dict):
            raise ConfigurationError(f"Configuration must be a mapping, got {type(self.data).__name__}")

        errors = []
        for name in ("sftp", "trigger", "metadata", "output", "aws", "sink", "logging"):
            section = self.data.get(name)
            if section is not None and not isinstance(section, dict):
                errors.append(f"Configuration '{name}' must be a mapping, got {type(section).__name__}")
        if errors:
            raise ConfigurationError("\n".join(errors))


def load_config(project_path: Path | None = None, env: str | None = None) -> Config:
    """
    Load sftpstream configuration.

    Args:
        project_path: Directory holding ``config.yaml`` (default: current directory)
        env: Environment name; ``config.{env}.yaml`` is merged over the base file

    Returns:
        Config instance with merged, resolved configuration

    Raises:
        ConfigurationError: If the file is missing or is not valid YAML
    """
    if project_path is None:
        project_path = Path.cwd()

    base_config_path = project_path / CONFIG_FILENAME
    if not base_config_path.is_file():
        raise ConfigurationError(
            f"Configuration file not found: {base_config_path}\n"
            f"  Suggestion: Create a {CONFIG_FILENAME} file in your project root"
        )

    config_data = _read_yaml(base_config_path)

    if env:
        env_config_path = project_path / f"config.{env}.yaml"
        if env_config_path.exists():
            _merge_dict(config_data, _read_yaml(env_config_path))

    config = Config(resolve_config(config_data, env or "dev"))
    config.validate()
    return config


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        where = f" at line {mark.line + 1}, column {mark.column + 1}" if mark is not None else ""
        raise ConfigurationError(f"Error parsing {path.name}{where}:\n  {e}\n  File: {path}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path.name} must contain a mapping, got {type(data).__name__}")
    return data


def _merge_dict(base: dict, override: dict) -> None:
    """Recursively merge override into base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _merge_dict(base[key], value)
        else:
            base[key] = value
