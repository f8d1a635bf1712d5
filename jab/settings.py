"""Runtime settings for the jab command."""

from __future__ import annotations

from pathlib import Path

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from jab.errors import ConfigurationError

CONFIG_FILE_NAME = "config"


class JabSettings(BaseSettings):
    """Where jab keeps its registry and project repositories."""

    model_config = SettingsConfigDict(env_prefix="JAB_", extra="ignore")

    home: Path = Path("~/.jab")
    registry_url: str | None = None
    log_level: str = "WARNING"

    @property
    def root_dir(self) -> Path:
        return self.home.expanduser()

    @property
    def config_path(self) -> Path:
        return self.root_dir / CONFIG_FILE_NAME


def load_settings() -> JabSettings:
    """Read settings from the ``JAB_*`` environment."""

    try:
        return JabSettings()
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid jab settings: {exc}") from exc


__all__ = ["CONFIG_FILE_NAME", "JabSettings", "load_settings"]
