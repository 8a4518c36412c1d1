"""
Configuration file loading.

Loads config.yaml (plus an optional config.{env}.yaml overlay) into a
dict-like Config container.
"""

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

from bucketflow.config.resolver import resolve_config
from bucketflow.exceptions import ConfigurationError


class Config:
    """Bucketflow configuration container with dict-like access."""

    def __init__(self, data: dict[str, Any]):
        self.data = data

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation."""
        keys = key.split(".")
        value = self.data
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default
        return value

    def __getitem__(self, key: str) -> Any:
        """Dict-like access: config['key'] or config['nested.key']."""
        if isinstance(key, str) and "." in key:
            return self.get(key)
        if key in self.data:
            value = self.data[key]
            # Return nested dicts as Config objects for chaining
            if isinstance(value, dict):
                return Config(value)
            return value
        raise KeyError(f"Config key '{key}' not found")

    def __contains__(self, key: str) -> bool:
        """Check if key exists in config."""
        if isinstance(key, str) and "." in key:
            value = self.data
            for k in key.split("."):
                if not isinstance(value, dict) or k not in value:
                    return False
                value = value[k]
            return True
        return key in self.data

    def __iter__(self) -> "Iterator[str]":
        """Iterate over top-level keys."""
        return iter(self.data)

    def keys(self):
        """Get top-level keys."""
        return self.data.keys()

    def items(self):
        """Get top-level items."""
        return self.data.items()


def load_config(config_path: Path | None = None, env: str | None = None) -> Config:
    """
    Load Bucketflow configuration.

    Args:
        config_path: Path to a YAML file, or a directory holding config.yaml
            (default: current directory)
        env: Environment name (dev, staging, prod); merges config.{env}.yaml
            from the same directory when present

    Returns:
        Config instance with merged configuration

    Raises:
        ConfigurationError: If the file is missing or not valid YAML
    """
    if config_path is None:
        config_path = Path.cwd()
    config_path = Path(config_path)
    if config_path.is_dir():
        config_path = config_path / "config.yaml"

    if not config_path.is_file():
        raise ConfigurationError(
            f"Configuration file not found: {config_path}\n"
            f"  Suggestion: Create a config.yaml file or pass --config"
        )

    config_data = _read_yaml(config_path)

    if env:
        env_config_path = config_path.with_name(f"{config_path.stem}.{env}{config_path.suffix}")
        if env_config_path.is_file():
            # env overrides base
            _merge_dict(config_data, _read_yaml(env_config_path))

    config_data = resolve_config(config_data, env or "dev")
    return Config(config_data)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        if hasattr(e, "problem_mark"):
            mark = e.problem_mark
            raise ConfigurationError(
                f"Error parsing {path.name} at line {mark.line + 1}, column {mark.column + 1}:\n"
                f"  {e}\n"
                f"  Suggestion: Check YAML syntax, ensure proper indentation and quotes"
            ) from e
        raise ConfigurationError(f"Error parsing {path.name}: {e}") from e
    except PermissionError as e:
        raise ConfigurationError(f"Permission denied reading {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration must be a mapping, got {type(data).__name__} in {path}")
    return data


def _merge_dict(base: dict, override: dict):
    """Recursively merge override into base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _merge_dict(base[key], value)
        else:
            base[key] = value
