# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Producer - one dump-and-upload cycle per database.

For each database: pg_dump into a scratch directory, digest and sidecar,
upload both objects with the digest as metadata, then read the metadata
back and compare. The scratch directory belongs to this call alone and is
removed on every exit path, including cancellation.
"""

import tempfile
from datetime import datetime
from pathlib import Path
from typing import List

import structlog

from pgs3.artifacts import BackupArtifact, artifact_filename, sidecar_name
from pgs3.checksum import METADATA_KEY, compute_digest, verify_remote, write_sidecar
from pgs3.config import RunConfiguration
from pgs3.exceptions import CaptureError
from pgs3.invoker import ProcessInvoker
from pgs3.retry import RetryPolicy
from pgs3.storage import ObjectAttributes, ObjectStore

logger = structlog.get_logger()

SCRATCH_PREFIX = "pgs3-"


def dump_arguments(config: RunConfiguration, database: str) -> List[str]:
    """pg_dump arguments producing a custom-format archive on stdout."""
    return [
        "-Fc",
        "-Z", str(config.compression_level),
        "-h", config.pg_host,
        "-U", config.pg_user,
        "-p", str(config.pg_port),
        database,
    ]


async def capture_dump(
    config: RunConfiguration,
    invoker: ProcessInvoker,
    database: str,
    dump_path: Path,
) -> None:
    """
    Run pg_dump with its stdout redirected to dump_path.

    Raises:
        CaptureError: If pg_dump exits non-zero or cannot be started
    """
    try:
        result = await invoker.run(
            dump_arguments(config, database),
            stdout=dump_path,
            env=config.pg_environment(),
        )
    except OSError as e:
        raise CaptureError(
            f"Failed to start dump for {database}: {e}",
            details={"database": database, "command": invoker.command},
        ) from e

    if not result.ok:
        raise CaptureError(
            f"Dump of {database} failed with exit status {result.returncode}",
            details={"database": database, "stderr": result.stderr},
        )


async def backup_database(
    config: RunConfiguration,
    store: ObjectStore,
    invoker: ProcessInvoker,
    database: str,
    run_started: datetime,
    policy: RetryPolicy,
) -> BackupArtifact | None:
    """
    Back up one database to the object store.

    Args:
        config: Run configuration
        store: Destination object store
        invoker: pg_dump invoker
        database: Database to dump
        run_started: Run timestamp shared by every artifact of the run
        policy: Retry policy for uploads and the metadata check

    Returns:
        The uploaded artifact, or None in dry-run mode
    """
    filename = artifact_filename(run_started, database)
    key = config.object_key(filename)
    sidecar_key = sidecar_name(key)

    logger.info("database_backup_started", database=database, key=key)

    if config.dry_run:
        local_path = config.tmp_dir / filename
        logger.info(
            "dry_run_dump",
            command=f"{invoker.describe(dump_arguments(config, database))} > {local_path}",
        )
        logger.info(
            "dry_run_upload",
            source=str(local_path),
            destination=f"s3://{config.bucket}/{key}",
        )
        return None

    with tempfile.TemporaryDirectory(prefix=SCRATCH_PREFIX, dir=config.tmp_dir) as scratch:
        dump_path = Path(scratch) / filename

        await capture_dump(config, invoker, database, dump_path)

        checksum = await compute_digest(dump_path)
        sidecar_path = await write_sidecar(checksum, dump_path)

        attributes = ObjectAttributes.from_config(config, {METADATA_KEY: checksum})

        await policy.run(
            lambda: store.put_file(key, dump_path, attributes),
            f"upload {key}",
        )
        await policy.run(
            lambda: store.put_file(sidecar_key, sidecar_path, attributes),
            f"upload {sidecar_key}",
        )

        await verify_remote(store, checksum, key, policy)

    logger.info(
        "database_backed_up",
        database=database,
        key=key,
        sha256=checksum,
    )

    return BackupArtifact(
        database_name=database,
        timestamp=run_started,
        artifact_key=key,
        checksum=checksum,
    )
