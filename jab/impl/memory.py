import hashlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

from jab.base import (
    DUMP_FILE_NAME,
    Commit,
    Dump,
    RegistryStore,
    SnapshotRepo,
    SnapshotRepoFactory,
)
from jab.errors import (
    CommitNotFoundError,
    PathNotFoundInTreeError,
    RepositoryNotFoundError,
)
from jab.registry import ProjectConfig, ProjectRegistry


@dataclass
class MemoryCommit:
    message: str
    parent: str | None
    content: Dump | None


@dataclass
class MemoryRepoState:
    commits: dict[str, MemoryCommit] = field(default_factory=dict)
    head: str | None = None
    working: Dump | None = None


MemoryRepoData = dict[str, MemoryRepoState]
MemoryRegistryData = dict[str, str]


class MemorySnapshotRepo(SnapshotRepo):
    def __init__(self, state: MemoryRepoState, path: str = "") -> None:
        self.state = state
        self.path = path
        self.dump_path = DUMP_FILE_NAME

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("MemorySnapshotRepo(...)")
        else:
            with p.group(4, "MemorySnapshotRepo(", ")"):
                p.breakable()
                p.text(f"path='{self.path}',")
                p.breakable()
                p.text(f"commits={len(self.state.commits)},")
                p.breakable()

    @property
    def root(self) -> Path:
        return Path(self.path)

    def write_dump(self, data: Dump) -> None:
        self.state.working = bytes(data)

    def commit(self, message: str) -> str | None:
        head = self.state.head
        if head is not None:
            if self.state.commits[head].content == self.state.working:
                return None

        digest = hashlib.sha1()
        digest.update(f"parent {head}\n".encode())
        digest.update(f"seq {len(self.state.commits)}\n".encode())
        digest.update(f"message {message}\n".encode())
        digest.update(self.state.working or b"")
        commit_hash = digest.hexdigest()

        self.state.commits[commit_hash] = MemoryCommit(
            message=message, parent=head, content=self.state.working
        )
        self.state.head = commit_hash
        return commit_hash

    def head(self) -> str | None:
        return self.state.head

    def resolve(self, ref: str) -> str:
        if ref == "HEAD" and self.state.head is not None:
            return self.state.head
        if ref in self.state.commits:
            return ref

        if len(ref) >= 4:
            matches = [h for h in self.state.commits if h.startswith(ref)]
            if len(matches) == 1:
                return matches[0]
        raise CommitNotFoundError(ref)

    def history(self) -> Iterator[Commit]:
        commit_hash = self.state.head
        while commit_hash is not None:
            commit = self.state.commits[commit_hash]
            yield Commit(hash=commit_hash, message=commit.message, parent=commit.parent)
            commit_hash = commit.parent

    def content_at(self, ref: str) -> Dump:
        commit = self.state.commits[self.resolve(ref)]
        if commit.content is None:
            raise PathNotFoundInTreeError(ref, self.dump_path)
        return commit.content


class MemorySnapshotRepoFactory(SnapshotRepoFactory):
    """Keeps repositories in a shared dict keyed by path."""

    def __init__(self, data: MemoryRepoData) -> None:
        self.data = data

    def initialize(self, path: Path) -> SnapshotRepo:
        key = str(Path(path).absolute())
        return MemorySnapshotRepo(self.data.setdefault(key, MemoryRepoState()), key)

    def open(self, path: Path) -> SnapshotRepo:
        start = Path(path).absolute()
        for candidate in (start, *start.parents):
            state = self.data.get(str(candidate))
            if state is not None:
                return MemorySnapshotRepo(state, str(candidate))
        raise RepositoryNotFoundError(f"No repository found at or above {start}")


class MemoryRegistryStore(RegistryStore):
    def __init__(self, data: MemoryRegistryData) -> None:
        self.data = data

    def ensure(self) -> None:
        pass

    def read(self) -> ProjectRegistry:
        registry = ProjectRegistry.empty()
        for name, db_uri in self.data.items():
            registry.register_project_config(ProjectConfig(name=name, db_uri=db_uri))
        return registry

    def persist(self, registry: ProjectRegistry) -> None:
        self.data.clear()
        self.data.update(
            {name: config.db_uri for name, config in registry.projects.items()}
        )


def create_memory_snapshot_repo(data: MemoryRepoData, path: str | Path) -> SnapshotRepo:
    return MemorySnapshotRepoFactory(data).initialize(Path(path))
