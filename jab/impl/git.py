import logging
import re
import subprocess
from pathlib import Path
from typing import Any, Iterator

from jab.base import DUMP_FILE_NAME, Commit, Dump, SnapshotRepo, SnapshotRepoFactory
from jab.errors import (
    CommitError,
    CommitNotFoundError,
    GitCommandError,
    PathNotFoundInTreeError,
    RepositoryError,
    RepositoryInitError,
    RepositoryNotFoundError,
)

logger = logging.getLogger(__name__)

# Dump bytes are stored verbatim: no eol conversion, no clean/smudge filters.
_DUMP_ATTRIBUTES = f"/{DUMP_FILE_NAME} -text -diff -filter\n"

# Hex SHAs and ref names such as HEAD, HEAD~2 or master.
_GIT_REF_RE = re.compile(r"^[a-zA-Z0-9_./@~^{}\-]+$")


def _is_valid_ref(ref: str) -> bool:
    return bool(ref) and not ref.startswith("-") and bool(_GIT_REF_RE.match(ref))


def _run_git_bytes(cwd: Path, args: list[str]) -> bytes:
    logger.debug("git %s (cwd=%s)", " ".join(args), cwd)
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            check=True,
        )
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or b"").decode(errors="replace").strip()
        raise GitCommandError(args, exc.returncode, stderr) from exc
    except OSError as exc:
        # Missing git executable or missing working directory
        raise GitCommandError(args, None, str(exc)) from exc
    return result.stdout


def _run_git(cwd: Path, args: list[str]) -> str:
    return _run_git_bytes(cwd, args).decode().strip()


def _pin_dump_attributes(work_path: Path) -> None:
    """Write the repository-local attributes that keep the dump byte-exact."""

    attributes_path = work_path / _run_git(
        work_path, ["rev-parse", "--git-path", "info/attributes"]
    )
    existing = ""
    if attributes_path.exists():
        existing = attributes_path.read_text(errors="replace")
    if _DUMP_ATTRIBUTES in existing:
        return

    if existing and not existing.endswith("\n"):
        existing += "\n"
    attributes_path.parent.mkdir(parents=True, exist_ok=True)
    attributes_path.write_text(existing + _DUMP_ATTRIBUTES)


class GitSnapshotRepo(SnapshotRepo):
    """
    Snapshot repository stored as a plain git repository.

    Only ``dump.sql`` is ever staged. Commits are written with plumbing
    commands so that an unchanged dump never produces an empty commit.
    """

    def __init__(self, work_path: str | Path) -> None:
        self.work_path = Path(work_path).absolute()
        self.dump_path = DUMP_FILE_NAME

    @classmethod
    def initialize(cls, path: str | Path) -> "GitSnapshotRepo":
        work_path = Path(path).absolute()
        try:
            if not (work_path / ".git").exists():
                work_path.mkdir(parents=True, exist_ok=True)
                _run_git(work_path, ["init", "--quiet"])
                logger.info("Initialized snapshot repository at %s", work_path)

            toplevel = Path(_run_git(work_path, ["rev-parse", "--show-toplevel"]))
            if toplevel.resolve() == work_path.resolve():
                _pin_dump_attributes(work_path)
        except (OSError, GitCommandError) as exc:
            raise RepositoryInitError(
                f"Cannot initialize repository at {work_path}: {exc}"
            ) from exc

        if toplevel.resolve() != work_path.resolve():
            raise RepositoryInitError(
                f"Repository at {work_path} is broken, git resolved it to {toplevel}"
            )
        return cls(work_path)

    @classmethod
    def open(cls, path: str | Path) -> "GitSnapshotRepo":
        start = Path(path).absolute()
        if not start.is_dir():
            raise RepositoryNotFoundError(f"No repository found at {start}")

        try:
            toplevel = _run_git(start, ["rev-parse", "--show-toplevel"])
        except GitCommandError as exc:
            raise RepositoryNotFoundError(
                f"No repository found at or above {start}"
            ) from exc
        return cls(Path(toplevel))

    @property
    def root(self) -> Path:
        return self.work_path

    def _rev_parse(self, ref: str) -> str | None:
        try:
            return _run_git(self.work_path, ["rev-parse", "--verify", "--quiet", ref])
        except GitCommandError as exc:
            # --verify --quiet exits 1 when the ref does not resolve
            if exc.returncode == 1:
                return None
            raise

    def _stage_dump(self) -> None:
        _pin_dump_attributes(self.work_path)
        if (self.work_path / self.dump_path).exists():
            # The dump is tracked on purpose, even if user excludes match it
            _run_git(
                self.work_path,
                [
                    "-c",
                    "core.autocrlf=false",
                    "-c",
                    "core.safecrlf=false",
                    "add",
                    "--force",
                    "--",
                    self.dump_path,
                ],
            )
        else:
            _run_git(
                self.work_path,
                ["rm", "--cached", "--quiet", "--ignore-unmatch", "--", self.dump_path],
            )

    def _commit_tree(self, tree: str, parent: str | None, message: str) -> str:
        args = ["commit-tree", "--no-gpg-sign", "-m", message]
        if parent is not None:
            args += ["-p", parent]
        return _run_git(self.work_path, [*args, tree])

    def _read_commit(self, commit_hash: str) -> Commit:
        raw = _run_git_bytes(self.work_path, ["cat-file", "commit", commit_hash])
        header, _, body = raw.decode(errors="replace").partition("\n\n")

        parent = None
        for line in header.splitlines():
            if line.startswith("parent "):
                parent = line.split(" ", 1)[1]
                break

        return Commit(hash=commit_hash, message=body.rstrip("\n"), parent=parent)

    def write_dump(self, data: Dump) -> None:
        file_path = self.work_path / self.dump_path
        try:
            file_path.write_bytes(data)
        except OSError as exc:
            raise RepositoryError(f"Cannot write dump to {file_path}: {exc}") from exc

    def commit(self, message: str) -> str | None:
        try:
            head = self.head()
            old_tree = None
            if head is not None:
                old_tree = _run_git(self.work_path, ["rev-parse", f"{head}^{{tree}}"])

            self._stage_dump()
            new_tree = _run_git(self.work_path, ["write-tree"])

            if old_tree is None:
                commit_hash = self._commit_tree(new_tree, None, message)
                _run_git(self.work_path, ["update-ref", "HEAD", commit_hash])
                logger.info("Created root commit %s", commit_hash)
                return commit_hash

            changed = _run_git(
                self.work_path, ["diff-index", "--cached", "--name-only", old_tree]
            )
            if not changed:
                logger.info("Dump unchanged since %s, skipping commit", head)
                return None

            commit_hash = self._commit_tree(new_tree, head, message)
            _run_git(self.work_path, ["update-ref", "HEAD", commit_hash, head])
        except (OSError, GitCommandError) as exc:
            raise CommitError(f"Cannot commit dump in {self.work_path}: {exc}") from exc

        logger.info("Created commit %s", commit_hash)
        return commit_hash

    def head(self) -> str | None:
        return self._rev_parse("HEAD^{commit}")

    def resolve(self, ref: str) -> str:
        if not _is_valid_ref(ref):
            raise CommitNotFoundError(ref)

        commit_hash = self._rev_parse(f"{ref}^{{commit}}")
        if commit_hash is None:
            raise CommitNotFoundError(ref)
        return commit_hash

    def history(self) -> Iterator[Commit]:
        head = self.head()
        if head is None:
            return

        out = _run_git(self.work_path, ["rev-list", "--first-parent", head])
        for commit_hash in out.splitlines():
            yield self._read_commit(commit_hash)

    def content_at(self, ref: str) -> Dump:
        commit_hash = self.resolve(ref)

        # <mode> SP <type> SP <object> TAB <path>
        entry = _run_git(self.work_path, ["ls-tree", commit_hash, self.dump_path])
        if not entry:
            raise PathNotFoundInTreeError(ref, self.dump_path)

        blob_hash = entry.split("\t", 1)[0].split()[2]
        return _run_git_bytes(self.work_path, ["cat-file", "blob", blob_hash])

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("GitSnapshotRepo(...)")
        else:
            with p.group(4, "GitSnapshotRepo(", ")"):
                p.breakable()
                p.text(f"path={self.work_path},")
                p.breakable()


class GitSnapshotRepoFactory(SnapshotRepoFactory):
    def initialize(self, path: Path) -> SnapshotRepo:
        return GitSnapshotRepo.initialize(path)

    def open(self, path: Path) -> SnapshotRepo:
        return GitSnapshotRepo.open(path)


def create_git_snapshot_repo(work_path: str | Path) -> GitSnapshotRepo:
    return GitSnapshotRepo.initialize(work_path)
