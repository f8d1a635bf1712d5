"""
Error types raised by jab.

- JabError: base of everything below
- ConfigurationError: registry and db uri problems
- RepositoryError: snapshot repository problems
- ContentLookupError: a commit or a file inside a commit cannot be found
- ExternalProcessError: pg_dump / pg_restore failures
"""

from __future__ import annotations


class JabError(Exception):
    """Base exception for all jab errors."""


class ConfigurationError(JabError):
    """Registry or connection settings are missing or malformed."""


class ConfigParseError(ConfigurationError):
    """The registry could not be parsed."""


class ConfigIOError(ConfigurationError):
    """The registry could not be read or written."""


class ProjectConfigDoesNotExistError(ConfigurationError, LookupError):
    """No project with the given name is registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Project '{name}' is not registered")
        self.name = name


class DatabaseUriError(ConfigurationError, ValueError):
    """The database uri is not of the form ``user[:password]@host/db``."""


class RepositoryError(JabError):
    """Base class for snapshot repository failures."""


class GitCommandError(RepositoryError):
    """A git command failed."""

    def __init__(self, command: list[str], returncode: int | None, stderr: str) -> None:
        message = f"git command failed: git {' '.join(command)}"
        if returncode is not None:
            message += f"\nExit code {returncode}: {stderr}"
        elif stderr:
            message += f"\n{stderr}"
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class RepositoryInitError(RepositoryError):
    """A repository could not be created or opened for initialization."""


class RepositoryNotFoundError(RepositoryError):
    """No repository exists at or above the given path."""


class CommitError(RepositoryError):
    """A tree or commit object could not be written."""


class ProjectNotFoundError(RepositoryError):
    """The project directory does not hold a repository."""

    def __init__(self, name: str, path: object) -> None:
        super().__init__(f"Project '{name}' has no repository at {path}")
        self.name = name
        self.path = path


class ContentLookupError(JabError, LookupError):
    """A reference did not resolve to stored content."""


class CommitNotFoundError(ContentLookupError):
    def __init__(self, ref: str) -> None:
        super().__init__(f"Commit '{ref}' not found")
        self.ref = ref


class PathNotFoundInTreeError(ContentLookupError):
    def __init__(self, ref: str, path: str) -> None:
        super().__init__(f"'{path}' does not exist in commit '{ref}'")
        self.ref = ref
        self.path = path


class ExternalProcessError(JabError):
    """An external dump or restore command failed.

    Attributes:
        command: Name of the executable
        stderr: Verbatim error output of the process
    """

    def __init__(self, command: str, stderr: str) -> None:
        super().__init__(f"{command} failed: {stderr}")
        self.command = command
        self.stderr = stderr
