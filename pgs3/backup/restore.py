# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
pgs3 Restore - select an artifact and restore it into a database.

Selection is either an explicit artifact name or the newest .dump for a
database. The target database decides the restore mode:

- existing database: pg_restore --clean, dropping objects before
  recreating them (an overwrite, not a merge)
- missing database: CREATE DATABASE ... TEMPLATE template0, then a plain
  additive pg_restore
"""

import tempfile
from dataclasses import dataclass
from datetime import datetime, UTC
from pathlib import Path
from typing import List

import structlog

from pgs3.artifacts import RemoteListingEntry, latest_by_database
from pgs3.config import RunConfiguration
from pgs3.database import DatabaseCatalog
from pgs3.exceptions import RestoreError
from pgs3.invoker import ProcessInvoker
from pgs3.retry import RetryPolicy
from pgs3.storage import ObjectStore

logger = structlog.get_logger()

SCRATCH_PREFIX = "pgs3-"


@dataclass(frozen=True)
class RestoreRequest:
    """Which artifact to restore into which database."""

    database: str
    artifact_name: str | None = None

    @property
    def use_latest(self) -> bool:
        return self.artifact_name is None


@dataclass
class RestoreResult:
    """Result of a restore run."""

    database: str
    artifact_key: str
    created: bool
    clean: bool
    dry_run: bool
    duration_seconds: float = 0.0


async def list_backups(
    config: RunConfiguration,
    store: ObjectStore,
    policy: RetryPolicy,
    sub_prefix: str = "",
) -> List[RemoteListingEntry]:
    """List the destination, optionally narrowed to a sub-prefix."""
    prefix = f"{config.listing_prefix}{sub_prefix.lstrip('/')}"
    return await policy.run(
        lambda: store.list_entries(prefix),
        f"list s3://{config.bucket}/{prefix}",
    )


def select_latest(entries: List[RemoteListingEntry], database: str) -> RemoteListingEntry:
    """
    Pick the newest .dump entry for a database.

    Raises:
        RestoreError: If the listing holds no backup for the database
    """
    entry = latest_by_database(entries).get(database)
    if entry is None:
        raise RestoreError(
            f"No backup found for {database}.",
            details={"database": database},
        )
    return entry


def restore_arguments(config: RunConfiguration, database: str, clean: bool) -> List[str]:
    """pg_restore arguments, without the archive path."""
    args = [
        "-h", config.pg_host,
        "-U", config.pg_user,
        "-p", str(config.pg_port),
        "-d", database,
        "-Fc",
    ]
    if clean:
        args.append("--clean")
    return args


async def run_pg_restore(
    config: RunConfiguration,
    invoker: ProcessInvoker,
    database: str,
    archive: Path,
    clean: bool,
) -> None:
    """
    Restore a local archive into database.

    A direct invoker gets the archive path as an argument; a compound
    command gets the archive on stdin.

    Raises:
        RestoreError: If pg_restore exits non-zero or cannot be started
    """
    args = restore_arguments(config, database, clean)
    try:
        if invoker.passes_local_paths:
            result = await invoker.run([*args, str(archive)], env=config.pg_environment())
        else:
            result = await invoker.run(args, stdin=archive, env=config.pg_environment())
    except OSError as e:
        raise RestoreError(
            f"Failed to start restore into {database}: {e}",
            details={"database": database, "command": invoker.command},
        ) from e

    if not result.ok:
        raise RestoreError(
            f"Restore into {database} failed with exit status {result.returncode}",
            details={"database": database, "stderr": result.stderr},
        )


async def resolve_artifact_key(
    config: RunConfiguration,
    store: ObjectStore,
    request: RestoreRequest,
    policy: RetryPolicy,
) -> str:
    if not request.use_latest:
        return config.object_key(request.artifact_name)

    logger.info("selecting_latest_backup", database=request.database)
    entries = await list_backups(config, store, policy)
    entry = select_latest(entries, request.database)
    logger.info("latest_backup_selected", database=request.database, key=entry.key)
    return entry.key


async def restore_artifact(
    config: RunConfiguration,
    store: ObjectStore,
    invoker: ProcessInvoker,
    catalog: DatabaseCatalog,
    request: RestoreRequest,
    policy: RetryPolicy,
) -> RestoreResult:
    """
    Download the selected artifact and restore it.

    In dry-run mode the existence check still runs (it is read-only) but
    download, creation and pg_restore are only reported.

    Args:
        config: Run configuration
        store: Object store holding the artifacts
        invoker: pg_restore invoker
        catalog: Database existence check and creation
        request: Target database and artifact selection
        policy: Retry policy for listing and download

    Returns:
        RestoreResult describing what was (or would be) done
    """
    start_time = datetime.now(UTC)
    database = request.database

    key = await resolve_artifact_key(config, store, request, policy)
    filename = key.rsplit("/", 1)[-1]

    if config.dry_run:
        logger.info(
            "dry_run_download",
            source=f"s3://{config.bucket}/{key}",
            destination=str(config.tmp_dir / filename),
        )
        exists = await catalog.exists(database)
        if exists:
            logger.info("database_exists", database=database, mode="clean")
        else:
            logger.info("dry_run_create_database", database=database)
        logger.info(
            "dry_run_restore",
            command=invoker.describe(restore_arguments(config, database, clean=exists)),
        )
        return RestoreResult(
            database=database,
            artifact_key=key,
            created=False,
            clean=exists,
            dry_run=True,
            duration_seconds=(datetime.now(UTC) - start_time).total_seconds(),
        )

    with tempfile.TemporaryDirectory(prefix=SCRATCH_PREFIX, dir=config.tmp_dir) as scratch:
        local_path = Path(scratch) / filename

        logger.info("downloading_backup", source=f"s3://{config.bucket}/{key}")
        await policy.run(
            lambda: store.download_file(key, local_path),
            f"download {key}",
        )

        exists = await catalog.exists(database)
        if exists:
            logger.info("database_exists", database=database, mode="clean")
        else:
            logger.info("creating_database", database=database)
            await catalog.create(database)

        await run_pg_restore(config, invoker, database, local_path, clean=exists)

    duration = (datetime.now(UTC) - start_time).total_seconds()

    logger.info(
        "backup_restored",
        key=key,
        database=database,
        created=not exists,
        duration=duration,
    )

    return RestoreResult(
        database=database,
        artifact_key=key,
        created=not exists,
        clean=exists,
        dry_run=False,
        duration_seconds=duration,
    )
