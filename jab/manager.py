"""Project lifecycle on top of the registry and the project repositories."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from jab.base import ProjectManager, RegistryStore, SnapshotRepoFactory
from jab.errors import ConfigIOError, ConfigurationError
from jab.impl.git import GitSnapshotRepoFactory
from jab.impl.sql import SqlRegistryStore
from jab.project import Project
from jab.registry import JsonRegistryStore, ProjectConfig, ProjectRegistry
from jab.settings import JabSettings

logger = logging.getLogger(__name__)


class MainProjectManager(ProjectManager):
    """
    Project manager backed by a registry store and a repository factory.

    The registry is read once on first use; mutations re-read it, apply the
    change and persist the whole registry.
    """

    def __init__(
        self,
        root_dir: Path,
        store: RegistryStore,
        repo_factory: SnapshotRepoFactory | None = None,
    ) -> None:
        self.root_dir = Path(root_dir)
        self.store = store
        self.repo_factory = repo_factory or GitSnapshotRepoFactory()
        self._registry: ProjectRegistry | None = None

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("MainProjectManager(...)")
        else:
            with p.group(4, "MainProjectManager(", ")"):
                p.breakable()
                p.text(f"root_dir={self.root_dir},")
                p.breakable()
                p.text("store=")
                p.pretty(self.store)
                p.breakable()

    @property
    def registry(self) -> ProjectRegistry:
        if self._registry is None:
            self._registry = self.store.read()
        return self._registry

    def bootstrap(self) -> None:
        try:
            self.root_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ConfigIOError(f"Cannot create {self.root_dir}: {exc}") from exc
        self.store.ensure()

    def create_project(self, project_dir: Path, name: str, db_uri: str) -> Project:
        project = Project.create(project_dir, name, db_uri, self.repo_factory)

        # A failed persist leaves the repository on disk; re-running create reuses it
        self._registry = self.store.read()
        self._registry.register_project_config(
            ProjectConfig(name=project.name(), db_uri=project.db_uri())
        )
        self.store.persist(self._registry)

        logger.info("Created project %s at %s", name, project.repo_path)
        return project

    def open_project(self, project_dir: Path, name: str, db_uri: str) -> Project:
        return Project.open(project_dir, name, db_uri, self.repo_factory)

    def open_registered_project(self, name: str) -> Project:
        config = self.registry.project_config(name)
        return self.open_project(self.root_dir, name, config.db_uri)

    def list_project_names(self) -> list[str]:
        return self.registry.project_names()


def create_project_manager(settings: JabSettings) -> MainProjectManager:
    store: RegistryStore
    if settings.registry_url:
        try:
            engine = create_engine(settings.registry_url)
        except (ImportError, SQLAlchemyError) as exc:
            # The url may carry credentials, keep it out of the message
            raise ConfigurationError(
                f"Invalid registry url: {type(exc).__name__}"
            ) from exc
        store = SqlRegistryStore(sessionmaker(bind=engine))
    else:
        store = JsonRegistryStore(settings.config_path)

    return MainProjectManager(settings.root_dir, store)
