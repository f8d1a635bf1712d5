"""CLI entry point for the ``jab`` command."""

from __future__ import annotations

import argparse
import logging
import sys

from jab import postgres
from jab.errors import JabError
from jab.manager import MainProjectManager, create_project_manager
from jab.project import Project
from jab.settings import JabSettings, load_settings

_LOGGER = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jab",
        description=(
            "Database state management, think of it as git for database dumps. "
            "Commit the current db state and restore any previous one."
        ),
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging verbosity (DEBUG, INFO, WARNING, ERROR)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    project_parser = subparsers.add_parser("project", help="Project cli")
    project_sub = project_parser.add_subparsers(dest="project_command", required=True)

    create_parser = project_sub.add_parser("create", help="Create a project")
    create_parser.add_argument("name", help="Project name")
    create_parser.add_argument(
        "--database-uri",
        dest="database_uri",
        required=True,
        help='Database uri, for example: --database-uri="user:secret@localhost/mydb"',
    )

    project_sub.add_parser("list", help="List projects")

    commit_parser = project_sub.add_parser("commit", help="Commit current db state")
    commit_parser.add_argument("project", help="Project name")
    commit_parser.add_argument(
        "-m", "--message", required=True, help="Commit message"
    )

    log_parser = project_sub.add_parser("log", help="Show list of changes log")
    log_parser.add_argument("project", help="Project name")

    show_parser = project_sub.add_parser("show", help="Show dump for a specific commit")
    show_parser.add_argument("project", help="Project name")
    show_parser.add_argument("commit_hash", nargs="?", default=None)

    restore_parser = project_sub.add_parser(
        "restore", help="Restore dump for a specific commit"
    )
    restore_parser.add_argument("project", help="Project name")
    restore_parser.add_argument("commit_hash", nargs="?", default=None)

    return parser


def configure_logging(level: str) -> None:
    """Configure root logger for console output."""

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s %(name)s - %(message)s",
    )


def handle_create(manager: MainProjectManager, name: str, db_uri: str) -> int:
    _LOGGER.debug("Creating project...")
    project = manager.create_project(manager.root_dir, name, db_uri)
    print(f"Done creating {project.name()}")
    return 0


def handle_list(manager: MainProjectManager) -> int:
    print("Available projects:")
    for name in manager.list_project_names():
        print(f"* {name}")
    return 0


def handle_commit(manager: MainProjectManager, name: str, message: str) -> int:
    project = manager.open_registered_project(name)
    dump = postgres.dump(project.db_uri())

    commit_hash = project.commit_dump(message, dump)
    if commit_hash is None:
        print("Nothing to commit")
    else:
        print(commit_hash)
    return 0


def handle_log(manager: MainProjectManager, name: str) -> int:
    project = manager.open_registered_project(name)
    _LOGGER.debug("Running log")

    for commit in project.commit_iterator():
        summary = commit.message.splitlines()[0] if commit.message else ""
        print(f"* {commit.hash} {summary}")
    return 0


def _read_dump(project: Project, commit_hash: str | None) -> bytes:
    if commit_hash is None:
        _LOGGER.debug("Reading last commit")
        return project.get_latest_dump()

    _LOGGER.debug("Reading commit %s...", commit_hash)
    return project.get_dump_at_commit(commit_hash)


def handle_show(manager: MainProjectManager, name: str, commit_hash: str | None) -> int:
    project = manager.open_registered_project(name)
    dump = _read_dump(project, commit_hash)
    sys.stdout.buffer.write(dump)
    sys.stdout.flush()
    return 0


def handle_restore(
    manager: MainProjectManager, name: str, commit_hash: str | None
) -> int:
    project = manager.open_registered_project(name)
    dump = _read_dump(project, commit_hash)

    result = postgres.restore(project.db_uri(), dump)
    _LOGGER.debug("Result %s", result)
    return 0


def main(argv: list[str] | None = None, settings: JabSettings | None = None) -> int:
    """Entry point for the ``jab`` CLI."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = settings or load_settings()
        configure_logging(args.log_level or settings.log_level)
        _LOGGER.debug("Preparing jab..")

        manager = create_project_manager(settings)
        manager.bootstrap()

        if args.project_command == "create":
            return handle_create(manager, args.name, args.database_uri)
        if args.project_command == "list":
            return handle_list(manager)
        if args.project_command == "commit":
            return handle_commit(manager, args.project, args.message)
        if args.project_command == "log":
            return handle_log(manager, args.project)
        if args.project_command == "show":
            return handle_show(manager, args.project, args.commit_hash)
        if args.project_command == "restore":
            return handle_restore(manager, args.project, args.commit_hash)
    except JabError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":  # pragma: no cover - manual invocation
    sys.exit(main())
