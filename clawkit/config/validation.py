"""Validate a raw config tree without raising."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from loguru import logger
from pydantic import ValidationError

from clawkit.config.schema import Config
from clawkit.errors import ConfigError


@dataclass
class ConfigIssue:
    """One validation failure, located by a dotted path into the tree."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path or '<root>'}: {self.message}"


@dataclass
class ConfigValidationResult:
    """Outcome of validate_config_object: either a Config or a list of issues."""

    ok: bool
    config: Config | None = None
    issues: list[ConfigIssue] = field(default_factory=list)


def _format_loc(loc: tuple[int | str, ...]) -> str:
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path = f"{path}.{part}" if path else part
    return path


def validate_config_object(raw: Any) -> ConfigValidationResult:
    """
    Validate *raw* against the config schema.

    Any key may be omitted at any depth; unknown keys and mistyped leaves are
    rejected. Invalid input is a normal result, so this never raises for it.

    Args:
        raw: JSON-like tree, usually the parsed config file.

    Returns:
        ConfigValidationResult with ``ok`` and either ``config`` or ``issues``.
    """
    try:
        config = Config.model_validate(raw)
    except ValidationError as e:
        issues = [
            ConfigIssue(path=_format_loc(err["loc"]), message=err["msg"])
            for err in e.errors()
        ]
        logger.debug(f"Config validation failed with {len(issues)} issue(s)")
        return ConfigValidationResult(ok=False, issues=issues)
    return ConfigValidationResult(ok=True, config=config)


def ensure_config(cfg: Config | Mapping[str, Any]) -> Config:
    """Return *cfg* if it is already a Config, else validate it.

    Raises:
        ConfigError: the raw tree fails validation.
    """
    if isinstance(cfg, Config):
        return cfg
    result = validate_config_object(cfg)
    if not result.ok:
        raise ConfigError("Invalid config", issues=result.issues)
    return result.config
