from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator

if TYPE_CHECKING:
    from jab.project import Project
    from jab.registry import ProjectRegistry

DUMP_FILE_NAME = "dump.sql"

Dump = bytes


@dataclass(frozen=True)
class Commit:
    """
    Immutable record of one committed snapshot of the dump file.
    """

    hash: str
    message: str
    parent: str | None = None

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        p.text(f"Commit({self.hash[:7]}, {self.message!r})")


class SnapshotRepo:
    """
    Versioned directory tracking a single dump file.

    History is a single line of commits; a commit is only created when the
    dump content differs from what HEAD records.
    """

    @property
    def root(self) -> Path:
        """Top-level directory of the repository."""
        raise NotImplementedError()

    def write_dump(self, data: Dump) -> None:
        """Overwrite the dump file in the working tree."""
        raise NotImplementedError()

    def commit(self, message: str) -> str | None:
        """Record the working dump file. Returns None when nothing changed."""
        raise NotImplementedError()

    def head(self) -> str | None:
        """Hash of the current tip commit, None for an empty history."""
        raise NotImplementedError()

    def resolve(self, ref: str) -> str:
        """Resolve a commit reference to its full hash."""
        raise NotImplementedError()

    def history(self) -> Iterator[Commit]:
        """Walk commits from HEAD to the root, newest first."""
        raise NotImplementedError()

    def content_at(self, ref: str) -> Dump:
        """Return the dump file bytes recorded in the given commit."""
        raise NotImplementedError()


class SnapshotRepoFactory:
    """Creates or locates snapshot repositories by path."""

    def initialize(self, path: Path) -> SnapshotRepo:
        """Open the repository at ``path``, creating it if needed."""
        raise NotImplementedError()

    def open(self, path: Path) -> SnapshotRepo:
        """Open an existing repository at or above ``path``."""
        raise NotImplementedError()


class RegistryStore:
    """Durable storage for the project registry."""

    def ensure(self) -> None:
        """Create an empty registry if none is stored yet."""
        raise NotImplementedError()

    def read(self) -> ProjectRegistry:
        raise NotImplementedError()

    def persist(self, registry: ProjectRegistry) -> None:
        raise NotImplementedError()


class ProjectManager:
    """
    Keeps the project registry and the project repositories in sync.
    """

    def bootstrap(self) -> None:
        """Prepare the root directory and an empty registry."""
        raise NotImplementedError()

    def create_project(self, project_dir: Path, name: str, db_uri: str) -> Project:
        """Create the project repository and register it."""
        raise NotImplementedError()

    def open_project(self, project_dir: Path, name: str, db_uri: str) -> Project:
        """Bind a project handle without touching the registry."""
        raise NotImplementedError()

    def list_project_names(self) -> list[str]:
        """List the names of all registered projects."""
        raise NotImplementedError()
