"""YAML configuration for rubriccheck.

Settings live in ``config/`` at the project root: ``default.yaml`` ships with the code and
``local.yaml`` (git-ignored) holds the OpenAI key and per-machine overrides.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml

LOG = logging.getLogger(__name__)

ConfigType = dict[str, Any]

CONFIG_DIR_ENV = "RUBRICCHECK_CONFIG_DIR"
API_KEY_ENV = "OPENAI_API_KEY"

_MISSING = object()


def deep_merge(base: Any, override: Any) -> Any:
    """Merge ``override`` into a copy of ``base``; nested dicts merge, anything else replaces."""
    if not (isinstance(base, dict) and isinstance(override, dict)):
        return copy.deepcopy(override)
    merged = copy.deepcopy(base)
    for key, value in override.items():
        merged[key] = deep_merge(base[key], value) if key in base else copy.deepcopy(value)
    return merged


def _read_yaml(path: Path) -> ConfigType:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise TypeError(f"YAML config file {path} must be a dict")
    return data


def load_configs(*path_configs: str) -> ConfigType:
    """Load YAML files in order, later files overriding earlier ones.

    Args:
        *path_configs: Paths to YAML configuration files; missing ones are skipped

    Returns:
        Merged configuration dictionary

    Raises:
        TypeError: If a config file doesn't contain a dict
        ValueError: If no configs are loaded
    """
    result: ConfigType = {}
    for path in map(Path, path_configs):
        if not path.is_file():
            LOG.warning("Skipping missing config file %r", str(path))
            continue
        LOG.info("loading config from %s", path)
        result = deep_merge(result, _read_yaml(path))
    if not result:
        raise ValueError("No configs loaded")
    return result


def config_dir() -> Path:
    """``$RUBRICCHECK_CONFIG_DIR`` if set, else ``config/`` next to the package."""
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override)
    # libs -> rubriccheck -> project root
    return Path(__file__).resolve().parent.parent.parent / "config"


def _with_env_api_key(configs: ConfigType) -> ConfigType:
    api_key = os.environ.get(API_KEY_ENV)
    openai_conf = configs.get("openai") or {}
    if api_key and not openai_conf.get("api_key"):
        configs = deep_merge(configs, {"openai": {"api_key": api_key}})
    return configs


def _yaml_files(directory: Path) -> Iterable[Path]:
    return sorted(p for p in directory.iterdir() if p.suffix in (".yaml", ".yml"))


def load_default_configs() -> ConfigType:
    """Load ``default.yaml`` then ``local.yaml`` from the config directory."""
    directory = config_dir()
    configs = load_configs(str(directory / "default.yaml"), str(directory / "local.yaml"))
    return _with_env_api_key(configs)


def load_all_configs() -> ConfigType:
    """Load every ``*.yaml``/``*.yml`` in the config directory in alphabetical order.

    ``openai.api_key`` falls back to ``$OPENAI_API_KEY`` when no file sets it.

    Raises:
        ValueError: If the directory is missing or holds no YAML files
    """
    directory = config_dir()
    if not directory.is_dir():
        raise ValueError(f"Config directory not found: {directory}")

    yaml_files = [str(p) for p in _yaml_files(directory)]
    if not yaml_files:
        raise ValueError("No YAML files found in config directory")

    LOG.info("Loading configs from: %s", yaml_files)
    return _with_env_api_key(load_configs(*yaml_files))


def get_config(key: str, config: Optional[ConfigType] = None, default: Any = _MISSING) -> Any:
    """Look up a dot-separated key such as ``"grading.min_latency_seconds"``.

    Args:
        key: Dot-separated path to the value
        config: Configuration dict (if None, the default configs are loaded)
        default: Returned when the key is absent; without it a KeyError is raised

    Raises:
        KeyError: If the key is not found and no default was given
    """
    if config is None:
        config = load_default_configs()

    parts = key.split(".")
    value: Any = config
    for depth, part in enumerate(parts):
        if isinstance(value, dict) and part in value:
            value = value[part]
            continue
        if default is not _MISSING:
            return default
        if not isinstance(value, dict):
            raise KeyError(f"Cannot access {part} in non-dict value at {'.'.join(parts[:depth])}")
        raise KeyError(f"Key {key} not found in configuration")
    return value
