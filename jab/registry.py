"""Project registry: project name to database uri, stored as JSON."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from jab.base import RegistryStore
from jab.errors import ConfigIOError, ConfigParseError, ProjectConfigDoesNotExistError

logger = logging.getLogger(__name__)


class ProjectConfig(BaseModel):
    """Registered connection settings for one project."""

    model_config = ConfigDict(frozen=True)

    name: str
    db_uri: str


class ProjectRegistry(BaseModel):
    """All registered projects keyed by name."""

    projects: dict[str, ProjectConfig] = Field(default_factory=dict)

    @classmethod
    def empty(cls) -> ProjectRegistry:
        return cls(projects={})

    def register_project_config(self, config: ProjectConfig) -> None:
        """Insert or replace the config registered under ``config.name``."""

        self.projects[config.name] = config

    def project_config(self, name: str) -> ProjectConfig:
        try:
            return self.projects[name]
        except KeyError:
            raise ProjectConfigDoesNotExistError(name) from None

    def project_names(self) -> list[str]:
        return list(self.projects)


class JsonRegistryStore(RegistryStore):
    """Registry persisted as a single pretty-printed JSON file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def ensure(self) -> None:
        if not self.path.exists():
            logger.debug("Creating empty registry at %s", self.path)
            self.persist(ProjectRegistry.empty())

    def read(self) -> ProjectRegistry:
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigIOError(f"Failed to read registry {self.path}: {exc}") from exc

        try:
            return ProjectRegistry.model_validate_json(text)
        except ValidationError as exc:
            raise ConfigParseError(f"Malformed registry {self.path}: {exc}") from exc

    def persist(self, registry: ProjectRegistry) -> None:
        payload = registry.model_dump_json(indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                    handle.write("\n")
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise ConfigIOError(f"Failed to write registry {self.path}: {exc}") from exc


def create_json_registry_store(path: str | Path) -> JsonRegistryStore:
    return JsonRegistryStore(path)
