# npm_reports/config.py
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional, Union

import yaml
from platformdirs import user_config_path

from .errors import ConfigError

logger = logging.getLogger(__name__)

APP_NAME = "npmparse"
CONFIG_FILENAME = "npmparse.yaml"
NPM_EXECUTABLE_ENV_VAR = "NPMPARSE_NPM"


@dataclass(frozen=True)
class ParserConfig:
    npm_executable: str = "npm"
    working_directory: Optional[str] = None
    log_level: str = "WARNING"
    audit_args: tuple[str, ...] = ("audit", "--json")
    outdated_args: tuple[str, ...] = ("outdated", "--json", "--long")


def default_config_paths() -> list[Path]:
    """Config files looked for when none is given: current directory first, then the user config dir."""
    return [Path.cwd() / CONFIG_FILENAME, user_config_path(appname=APP_NAME) / "config.yaml"]


def _coerce(name: str, value, default):
    if isinstance(default, tuple):
        if isinstance(value, list) and all(isinstance(v, str) for v in value):
            return tuple(value)
        raise TypeError(f"'{name}' must be a list of strings")
    if default is None or isinstance(default, str):
        if isinstance(value, str) or (value is None and default is None):
            return value
        raise TypeError(f"'{name}' must be a string")
    raise TypeError(f"'{name}' has no supported type")


def config_from_mapping(data: dict, source: str = "config") -> ParserConfig:
    """Builds a ParserConfig from a mapping, warning about and skipping bad entries."""
    config = ParserConfig()
    known = {f.name: getattr(config, f.name) for f in fields(ParserConfig)}
    overrides = {}
    for name, value in data.items():
        if name not in known:
            logger.warning(f"Ignoring unknown setting '{name}' in {source}")
            continue
        try:
            overrides[name] = _coerce(name, value, known[name])
        except TypeError as e:
            logger.warning(f"Ignoring invalid setting in {source}: {e}. Found: {type(value).__name__}")
    return replace(config, **overrides)


def _read_yaml(path: Path) -> Optional[dict]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            loaded_yaml = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Error parsing YAML configuration file '{path.resolve()}': {e}")
        return None
    except OSError as e:
        logger.error(f"Could not read configuration file '{path.resolve()}': {e}")
        return None
    if loaded_yaml is None:
        return {}
    if not isinstance(loaded_yaml, dict):
        logger.warning(f"Config file '{path.resolve()}' does not contain a valid dictionary structure.")
        return None
    return loaded_yaml


def load_config(config_path: Optional[Union[str, Path]] = None) -> ParserConfig:
    """
    Loads settings from a YAML file and the environment.

    An explicit ``config_path`` must exist. Otherwise the first existing file
    of default_config_paths() is used, or the defaults when there is none.
    A file that cannot be parsed is reported and the defaults are kept.
    """
    if config_path is not None:
        candidates = [Path(config_path)]
        if not candidates[0].is_file():
            raise ConfigError(f"Configuration file not found: {config_path}")
    else:
        candidates = [path for path in default_config_paths() if path.is_file()]

    config = ParserConfig()
    if candidates:
        path = candidates[0]
        logger.debug(f"Loading configuration from '{path.resolve()}'")
        data = _read_yaml(path)
        if data is not None:
            config = config_from_mapping(data, str(path))
    else:
        logger.debug("No configuration file found, using defaults")

    npm_override = os.environ.get(NPM_EXECUTABLE_ENV_VAR)
    if npm_override:
        config = replace(config, npm_executable=npm_override)
    return config
