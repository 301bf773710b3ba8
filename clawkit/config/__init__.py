"""Configuration schema, validation and loading."""

from clawkit.config.loader import get_config_path, load_config, save_config
from clawkit.config.schema import Config
from clawkit.config.validation import ConfigIssue, ConfigValidationResult, validate_config_object

__all__ = [
    "Config",
    "ConfigIssue",
    "ConfigValidationResult",
    "validate_config_object",
    "get_config_path",
    "load_config",
    "save_config",
]
