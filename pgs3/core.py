# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
pgs3 Core - backup and restore lifecycle orchestration.

run_backup() and run_restore() take their collaborators (object store,
process invoker, database catalog) explicitly. backup_cycle(),
restore_cycle() and list_cycle() build the real ones from a
RunConfiguration, run the preflight checks and the post-run hook, and
bind a run id into every log line.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import List

import structlog

from pgs3.artifacts import BackupArtifact, RemoteListingEntry, format_run_timestamp
from pgs3.backup.producer import backup_database
from pgs3.backup.restore import RestoreRequest, RestoreResult, list_backups, restore_artifact
from pgs3.backup.retention import compute_cutoff, prune_expired
from pgs3.config import RunConfiguration
from pgs3.database import DatabaseCatalog, PostgresCatalog
from pgs3.hooks import run_post_hook
from pgs3.invoker import ProcessInvoker, create_invoker
from pgs3.preflight import check_disk_space, require_retention, resolve_databases
from pgs3.retry import RetryPolicy, SleepFunc
from pgs3.storage import ObjectStore, open_object_store

logger = structlog.get_logger()


@dataclass
class BackupResult:
    """Result of a backup run."""

    run_timestamp: str
    databases: List[str]
    dry_run: bool
    artifacts: List[BackupArtifact] = field(default_factory=list)
    deleted_keys: List[str] = field(default_factory=list)
    skipped_keys: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def uploaded_keys(self) -> List[str]:
        keys: List[str] = []
        for artifact in self.artifacts:
            keys.extend([artifact.artifact_key, artifact.sidecar_key])
        return keys


async def run_backup(
    config: RunConfiguration,
    store: ObjectStore,
    dump_invoker: ProcessInvoker,
    *,
    now: datetime | None = None,
    sleep: SleepFunc = asyncio.sleep,
) -> BackupResult:
    """
    Back up every selected database, then prune expired artifacts.

    Databases are processed one at a time so only one dump is on local
    disk at any moment. Any fatal error aborts the run; artifacts already
    uploaded earlier in the run are left in place.

    Args:
        config: Run configuration
        store: Destination object store
        dump_invoker: pg_dump invoker
        now: Run start instant (defaults to the current UTC time)
        sleep: Backoff sleep, injectable for tests

    Returns:
        BackupResult with uploaded artifacts and pruned keys
    """
    # Listing times have whole-second resolution.
    run_started = (now or datetime.now(UTC)).replace(microsecond=0)
    retention_days = require_retention(config)
    cutoff = compute_cutoff(run_started, retention_days)

    databases = resolve_databases(config)
    check_disk_space(config.tmp_dir, config.min_free_mb)

    policy = RetryPolicy.from_config(config, sleep=sleep)
    result = BackupResult(
        run_timestamp=format_run_timestamp(run_started),
        databases=databases,
        dry_run=config.dry_run,
    )

    logger.info(
        "backup_started",
        databases=databases,
        destination=config.destination_uri,
        dry_run=config.dry_run,
    )

    for database in databases:
        artifact = await backup_database(
            config, store, dump_invoker, database, run_started, policy
        )
        if artifact is not None:
            result.artifacts.append(artifact)

    pruned = await prune_expired(config, store, cutoff, policy)
    result.deleted_keys = pruned.deleted_keys
    result.skipped_keys = pruned.skipped_keys
    result.duration_seconds = (datetime.now(UTC) - run_started).total_seconds()

    logger.info(
        "backup_completed",
        uploaded=len(result.uploaded_keys),
        deleted=len(result.deleted_keys),
        duration=result.duration_seconds,
    )
    return result


async def run_restore(
    config: RunConfiguration,
    store: ObjectStore,
    restore_invoker: ProcessInvoker,
    catalog: DatabaseCatalog,
    request: RestoreRequest,
    *,
    sleep: SleepFunc = asyncio.sleep,
) -> RestoreResult:
    """Restore one artifact (explicit or latest) into request.database."""
    policy = RetryPolicy.from_config(config, sleep=sleep)
    return await restore_artifact(config, store, restore_invoker, catalog, request, policy)


def _new_run_id() -> str:
    from ulid import ULID

    return str(ULID())


async def backup_cycle(config: RunConfiguration) -> BackupResult:
    """Run a complete backup with real collaborators and the post-run hook."""
    with structlog.contextvars.bound_contextvars(run_id=_new_run_id()):
        dump_invoker = create_invoker(config.pg_dump_bin)
        dump_invoker.require_available("PG_DUMP_BIN")

        try:
            async with open_object_store(config) as store:
                result = await run_backup(config, store, dump_invoker)
        except Exception as e:
            logger.error("backup_failed", error=str(e))
            raise

        await run_post_hook(config)
        return result


async def restore_cycle(config: RunConfiguration, request: RestoreRequest) -> RestoreResult:
    """Run a complete restore with real collaborators and the post-run hook."""
    with structlog.contextvars.bound_contextvars(run_id=_new_run_id()):
        restore_invoker = create_invoker(config.pg_restore_bin)
        restore_invoker.require_available("PG_RESTORE_BIN")

        try:
            async with open_object_store(config) as store:
                result = await run_restore(
                    config, store, restore_invoker, PostgresCatalog(config), request
                )
        except Exception as e:
            logger.error("restore_failed", database=request.database, error=str(e))
            raise

        await run_post_hook(config)
        return result


async def list_cycle(config: RunConfiguration, sub_prefix: str = "") -> List[RemoteListingEntry]:
    """List available backups at the destination."""
    logger.info("listing_backups", destination=f"{config.destination_uri}/{sub_prefix}")
    async with open_object_store(config) as store:
        return await list_backups(config, store, RetryPolicy.from_config(config), sub_prefix)
