from .base import DUMP_FILE_NAME, Commit, ProjectManager, RegistryStore, SnapshotRepo
from .impl.git import GitSnapshotRepo, create_git_snapshot_repo
from .impl.memory import create_memory_snapshot_repo
from .manager import MainProjectManager, create_project_manager
from .project import Project
from .registry import JsonRegistryStore, ProjectConfig, ProjectRegistry
from .settings import JabSettings

__all__ = [
    "DUMP_FILE_NAME",
    "Commit",
    "ProjectManager",
    "RegistryStore",
    "SnapshotRepo",
    "GitSnapshotRepo",
    "create_git_snapshot_repo",
    "create_memory_snapshot_repo",
    "MainProjectManager",
    "create_project_manager",
    "Project",
    "JsonRegistryStore",
    "ProjectConfig",
    "ProjectRegistry",
    "JabSettings",
]
