"""A named project: one snapshot repository plus its database uri."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Iterator

from jab.base import DUMP_FILE_NAME, Commit, Dump, SnapshotRepo, SnapshotRepoFactory
from jab.errors import (
    CommitNotFoundError,
    ConfigurationError,
    ProjectNotFoundError,
    RepositoryNotFoundError,
)
from jab.impl.git import GitSnapshotRepoFactory

logger = logging.getLogger(__name__)

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class Project:
    """Handle binding a project name to its repository and database.

    The repository lives at ``project_dir / name`` and tracks a single
    ``dump.sql`` file. Handles are cheap; the repository is opened on first
    use when the project was created with :meth:`open`.
    """

    def __init__(
        self,
        project_dir: Path,
        name: str,
        db_uri: str,
        repo_factory: SnapshotRepoFactory | None = None,
        repo: SnapshotRepo | None = None,
    ) -> None:
        if not _NAME_PATTERN.fullmatch(name):
            raise ConfigurationError(
                f"Invalid project name '{name}': use letters, digits, '.', '_' or '-'"
            )

        self.project_dir = Path(project_dir)
        self._name = name
        self._db_uri = db_uri
        self.repo_factory = repo_factory or GitSnapshotRepoFactory()
        self._repo = repo

    @classmethod
    def create(
        cls,
        project_dir: Path,
        name: str,
        db_uri: str,
        repo_factory: SnapshotRepoFactory | None = None,
    ) -> Project:
        project = cls(project_dir, name, db_uri, repo_factory)
        logger.debug("Initializing repository for %s at %s", name, project.repo_path)
        project._repo = project.repo_factory.initialize(project.repo_path)
        return project

    @classmethod
    def open(
        cls,
        project_dir: Path,
        name: str,
        db_uri: str,
        repo_factory: SnapshotRepoFactory | None = None,
    ) -> Project:
        return cls(project_dir, name, db_uri, repo_factory)

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("Project(...)")
        else:
            with p.group(4, "Project(", ")"):
                p.breakable()
                p.text(f"name='{self._name}',")
                p.breakable()
                p.text(f"repo_path={self.repo_path},")
                p.breakable()

    def name(self) -> str:
        return self._name

    def db_uri(self) -> str:
        return self._db_uri

    @property
    def repo_path(self) -> Path:
        return self.project_dir / self._name

    @property
    def dump_path(self) -> Path:
        """Dump file path relative to :attr:`repo_path`."""
        return Path(DUMP_FILE_NAME)

    @property
    def absolute_dump_path(self) -> Path:
        return self.repo_path / self.dump_path

    @property
    def repo(self) -> SnapshotRepo:
        if self._repo is None:
            try:
                repo = self.repo_factory.open(self.repo_path)
            except RepositoryNotFoundError as exc:
                raise ProjectNotFoundError(self._name, self.repo_path) from exc

            # Opening searches parent directories; only the project's own repo counts
            if repo.root.resolve() != self.repo_path.resolve():
                raise ProjectNotFoundError(self._name, self.repo_path)
            self._repo = repo
        return self._repo

    def sync_dump(self, dump: Dump) -> None:
        self.repo.write_dump(dump)

    def commit_dump(self, message: str, dump: Dump) -> str | None:
        self.sync_dump(dump)
        return self.repo.commit(message)

    def commit_iterator(self) -> Iterator[Commit]:
        return self.repo.history()

    def get_dump_at_commit(self, commit_hash: str) -> Dump:
        return self.repo.content_at(commit_hash)

    def get_latest_dump(self) -> Dump:
        head = self.repo.head()
        if head is None:
            raise CommitNotFoundError("HEAD")
        return self.repo.content_at(head)
