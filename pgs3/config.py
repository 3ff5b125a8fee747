# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
pgs3 Configuration - Immutable run configuration.

The configuration is built once at startup and passed explicitly into
every component. It is frozen so that nothing can change it mid-run.
"""

import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Tuple

from pgs3.errors import (
    explain_invalid_compression,
    explain_invalid_retention,
    explain_missing_destination,
    explain_missing_setting,
)


def resolve_destination(
    s3_path: str | None,
    bucket: str | None,
    prefix: str | None,
) -> Tuple[str, str]:
    """
    Resolve the storage destination into (bucket, prefix).

    The combined S3_PATH form ("bucket/some/prefix", optionally with an
    s3:// scheme) wins over the separate bucket/prefix pair. Leading and
    trailing slashes are stripped from the prefix.
    """
    if s3_path:
        path = s3_path.strip()
        if path.startswith("s3://"):
            path = path[len("s3://"):]
        path = path.strip("/")
        bucket_name, _, path_prefix = path.partition("/")
        return bucket_name, path_prefix.strip("/")

    return (bucket or "").strip(), (prefix or "").strip("/")


@dataclass(frozen=True)
class RunConfiguration:
    """
    Immutable configuration for one backup or restore run.
    """

    # Database server connection
    pg_host: str
    pg_user: str
    pg_port: int = 5432
    pg_password: str | None = None

    # Databases to back up, and names removed from that list
    databases: List[str] = field(default_factory=list)
    exclude_databases: List[str] = field(default_factory=list)

    # Database used for existence checks and CREATE DATABASE
    maintenance_database: str = "postgres"

    # Storage destination
    bucket: str = ""
    prefix: str = ""

    # Minimum artifact age in days before deletion (None: not configured)
    retention_days: int | None = None

    # pg_dump -Z level
    compression_level: int = 0

    # Retry policy for object store operations
    retry_attempts: int = 3
    retry_base_sleep: float = 2

    # Object attributes applied on upload
    storage_class: str | None = None
    sse: str | None = None
    sse_kms_key_id: str | None = None

    # Alternate S3 endpoint (MinIO, Ceph, ...) and region
    endpoint_url: str | None = None
    region: str | None = None

    dry_run: bool = False
    quiet: bool = False

    # Local scratch space
    tmp_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    min_free_mb: int = 512

    # Shell command run after a fully successful run
    healthcheck_cmd: str | None = None

    # External binaries; a value containing spaces is a compound command
    pg_dump_bin: str = "pg_dump"
    pg_restore_bin: str = "pg_restore"

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if not self.bucket:
            errors.append(explain_missing_destination())

        if not self.pg_host:
            errors.append(explain_missing_setting("PG_HOST"))

        if not self.pg_user:
            errors.append(explain_missing_setting("PG_USER"))

        if not 0 < self.pg_port < 65536:
            errors.append(f"PG_PORT must be a valid TCP port, got {self.pg_port}")

        if self.retention_days is not None and self.retention_days < 0:
            errors.append(explain_invalid_retention(str(self.retention_days)))

        if not 0 <= self.compression_level <= 9:
            errors.append(explain_invalid_compression(self.compression_level))

        if self.retry_attempts < 1:
            errors.append(f"RETRY_ATTEMPTS must be >= 1, got {self.retry_attempts}")

        if self.retry_base_sleep < 0:
            errors.append(f"RETRY_BASE_SLEEP must be >= 0, got {self.retry_base_sleep}")

        if self.min_free_mb < 0:
            errors.append(f"MIN_FREE_MB must be >= 0, got {self.min_free_mb}")

        if errors:
            from pgs3.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    @property
    def destination_uri(self) -> str:
        """Human-readable s3:// URI of the destination."""
        if self.prefix:
            return f"s3://{self.bucket}/{self.prefix}"
        return f"s3://{self.bucket}"

    @property
    def listing_prefix(self) -> str:
        """Key prefix under which artifacts are listed."""
        return f"{self.prefix}/" if self.prefix else ""

    def object_key(self, filename: str) -> str:
        """Full object key for a file name at the destination."""
        return f"{self.listing_prefix}{filename}"

    def pg_environment(self) -> Dict[str, str]:
        """Extra environment for pg_dump / pg_restore subprocesses."""
        return {"PGPASSWORD": self.pg_password} if self.pg_password else {}

    def selected_databases(self) -> List[str]:
        """Configured databases minus the exclusion list, order preserved."""
        excluded = set(self.exclude_databases)
        return [db for db in self.databases if db not in excluded]

    def with_updates(self, **kwargs) -> "RunConfiguration":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        from dataclasses import asdict

        current = asdict(self)
        current.update(kwargs)
        return RunConfiguration(**current)
