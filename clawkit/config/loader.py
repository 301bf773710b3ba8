"""Read and write the JSON config file."""

import json
from pathlib import Path

from loguru import logger

from clawkit.config.schema import Config
from clawkit.config.settings import get_settings
from clawkit.config.validation import validate_config_object
from clawkit.errors import ConfigError
from clawkit.utils.helpers import ensure_dir, get_data_path


def get_config_path() -> Path:
    """Config file location: ``CLAWKIT_CONFIG_PATH`` or ``~/.clawkit/config.json``."""
    override = get_settings().config_path
    if override is not None:
        return override.expanduser()
    return get_data_path() / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate the config file.

    A missing file yields the default Config. Unreadable JSON or a tree that
    fails validation raises ConfigError carrying the individual issues.
    """
    path = config_path or get_config_path()
    if not path.exists():
        logger.info(f"No config at {path}, using defaults")
        return Config()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to read config {path}: {e}") from e

    result = validate_config_object(data)
    if not result.ok:
        for issue in result.issues:
            logger.error(f"Config issue in {path}: {issue}")
        raise ConfigError(f"Invalid config at {path}", issues=result.issues)

    logger.debug(f"Loaded config from {path}")
    return result.config


def save_config(config: Config, config_path: Path | None = None) -> Path:
    """Write *config* as camelCase JSON and return the path written."""
    path = config_path or get_config_path()
    ensure_dir(path.parent)
    data = config.model_dump(by_alias=True, exclude_none=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return path
