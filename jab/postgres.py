"""pg_dump / pg_restore wrappers.

Dumps are opaque bytes in PostgreSQL custom format (``pg_dump -Fc``).
Anything written to stderr by either tool is treated as a failure, even
when the exit status is zero.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from jab.errors import DatabaseUriError, ExternalProcessError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DbConnectionConfig:
    """Connection settings parsed from ``user[:password]@host/db``."""

    db_name: str
    host: str
    username: str
    password: str | None = None
    port: str | None = None

    @classmethod
    def parse(cls, db_uri: str) -> DbConnectionConfig:
        target, _, db_name = db_uri.partition("/")
        credentials, _, host = target.rpartition("@")
        username, _, password = credentials.partition(":")
        host, _, port = host.partition(":")

        if not (db_name and host and username):
            # The uri may carry a password, keep it out of the message
            raise DatabaseUriError(
                "Invalid database uri, expected user[:password]@host/db"
            )
        return cls(
            db_name=db_name,
            host=host,
            username=username,
            password=password or None,
            port=port or None,
        )

    def __repr__(self) -> str:
        return (
            f"DbConnectionConfig(db_name={self.db_name!r}, host={self.host!r}, "
            f"username={self.username!r}, port={self.port!r}, "
            f"password={'***' if self.password else None})"
        )


def _run(
    command: list[str], env: Mapping[str, str] | None = None
) -> subprocess.CompletedProcess[bytes]:
    program = command[0]
    logger.debug("Running %s", program)
    try:
        result = subprocess.run(command, capture_output=True, env=env)
    except OSError as exc:
        raise ExternalProcessError(program, str(exc)) from exc

    stderr = result.stderr.decode(errors="replace").strip()
    if stderr:
        raise ExternalProcessError(program, stderr)
    if result.returncode != 0:
        raise ExternalProcessError(program, f"exited with status {result.returncode}")
    return result


def dump(db_uri: str) -> bytes:
    """Dump the database at ``db_uri`` and return the raw dump bytes."""

    result = _run(["pg_dump", f"postgres://{db_uri}", "-Fc"])
    logger.debug("pg_dump produced %d bytes", len(result.stdout))
    return result.stdout


def restore(db_uri: str, data: bytes) -> str:
    """Restore ``data`` into the database at ``db_uri``.

    Existing objects are dropped first (``pg_restore --clean``). Returns the
    tool's stdout.
    """

    config = DbConnectionConfig.parse(db_uri)
    logger.debug("Parsed config %r", config)

    env = {**os.environ, "PGPASSWORD": config.password or ""}

    command = [
        "pg_restore",
        "--clean",
        f"--username={config.username}",
        f"--dbname={config.db_name}",
        f"--host={config.host}",
    ]
    if config.port:
        command.append(f"--port={config.port}")

    with tempfile.NamedTemporaryFile(prefix="jab-", suffix=".dump", delete=False) as handle:
        dump_path = Path(handle.name)

    try:
        try:
            dump_path.write_bytes(data)
        except OSError as exc:
            raise ExternalProcessError("pg_restore", f"cannot stage dump: {exc}") from exc
        result = _run([*command, str(dump_path)], env=env)
    finally:
        logger.debug("Cleaning out temp file %s", dump_path)
        dump_path.unlink(missing_ok=True)

    return result.stdout.decode(errors="replace")


__all__ = ["DbConnectionConfig", "dump", "restore"]
