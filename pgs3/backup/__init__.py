# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Engine - dump production, retention pruning and restore.
"""

from pgs3.backup.producer import (
    backup_database,
    capture_dump,
    dump_arguments,
)

from pgs3.backup.retention import (
    PruneResult,
    compute_cutoff,
    prune_expired,
)

from pgs3.backup.restore import (
    RestoreRequest,
    RestoreResult,
    list_backups,
    restore_artifact,
    select_latest,
)

__all__ = [
    # Producer
    "backup_database",
    "capture_dump",
    "dump_arguments",
    # Retention
    "PruneResult",
    "compute_cutoff",
    "prune_expired",
    # Restore
    "RestoreRequest",
    "RestoreResult",
    "list_backups",
    "restore_artifact",
    "select_latest",
]
