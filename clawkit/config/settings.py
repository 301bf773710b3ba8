"""Process-level settings read from the environment."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class RuntimeSettings(BaseSettings):
    """Environment overrides (``CLAWKIT_*``) that apply before the config file is read."""

    model_config = SettingsConfigDict(env_prefix="CLAWKIT_", extra="ignore")

    config_path: Path | None = None
    log_level: str | None = None
    media_dir: Path | None = None  # Parent dir for downloaded attachments; system temp when unset
    fetch_max_bytes: int = 20 * 1024 * 1024


def get_settings() -> RuntimeSettings:
    """Read settings fresh from the current environment."""
    return RuntimeSettings()
