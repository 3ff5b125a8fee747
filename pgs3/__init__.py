# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
pg-s3-backup - PostgreSQL backups to S3 with integrity checks and retention.

Dumps each configured database, uploads the dump with a SHA-256 sidecar
and metadata digest, verifies the upload, prunes artifacts past the
retention window, and restores a chosen or most recent artifact.
Package name: pgs3.
"""

__version__ = "0.1.0"

# Configuration
from pgs3.config import RunConfiguration
from pgs3.env import create_config_from_env

# Lifecycle orchestration
from pgs3.core import (
    BackupResult,
    backup_cycle,
    list_cycle,
    restore_cycle,
    run_backup,
    run_restore,
)
from pgs3.backup.restore import RestoreRequest, RestoreResult

__all__ = [
    # Version
    "__version__",
    # Configuration
    "RunConfiguration",
    "create_config_from_env",
    # Orchestration
    "BackupResult",
    "RestoreRequest",
    "RestoreResult",
    "backup_cycle",
    "list_cycle",
    "restore_cycle",
    "run_backup",
    "run_restore",
]
