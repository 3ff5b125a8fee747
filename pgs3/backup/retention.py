# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Retention Pruner - delete remote artifacts older than the cutoff.

The cutoff is computed once from the run start so every deletion in a run
uses the same boundary. Each listing entry is judged on its own
last-modified time: a .dump and its .sha256 sidecar are not paired, so an
upload that straddles the cutoff can leave one of them behind.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List

import structlog

from pgs3.artifacts import prunable_entries
from pgs3.config import RunConfiguration
from pgs3.retry import RetryPolicy
from pgs3.storage import ObjectStore

logger = structlog.get_logger()


@dataclass
class PruneResult:
    """Outcome of one pruning pass."""

    cutoff: datetime
    deleted_keys: List[str] = field(default_factory=list)
    skipped_keys: List[str] = field(default_factory=list)
    retained_count: int = 0
    skipped_dry_run: bool = False


def compute_cutoff(run_started: datetime, retention_days: int) -> datetime:
    """
    Absolute instant before which artifacts are eligible for deletion.

    Truncated to whole seconds to match listing times, so an entry listed
    in the cutoff second is kept.
    """
    return run_started.replace(microsecond=0) - timedelta(days=retention_days)


async def prune_expired(
    config: RunConfiguration,
    store: ObjectStore,
    cutoff: datetime,
    policy: RetryPolicy,
) -> PruneResult:
    """
    Delete every listed object strictly older than cutoff.

    Entries whose time cannot be parsed (directory markers, foreign
    objects) are logged and skipped. Nothing is listed or deleted in
    dry-run mode.

    Args:
        config: Run configuration
        store: Destination object store
        cutoff: Retention boundary
        policy: Retry policy for the listing and each delete

    Returns:
        PruneResult with deleted and skipped keys
    """
    result = PruneResult(cutoff=cutoff)

    if config.dry_run:
        logger.info("retention_skipped", reason="dry_run")
        result.skipped_dry_run = True
        return result

    logger.info("retention_started", destination=config.destination_uri, cutoff=cutoff.isoformat())

    entries = await policy.run(
        lambda: store.list_entries(config.listing_prefix),
        f"list {config.destination_uri}",
    )

    prunable, unparseable = prunable_entries(entries, cutoff)

    for entry, warning in unparseable:
        logger.warning("listing_entry_skipped", key=entry.key, reason=warning.message)
        result.skipped_keys.append(entry.key)

    for entry in prunable:
        logger.info("deleting_expired_backup", key=entry.key, last_modified=entry.last_modified)
        await policy.run(
            lambda key=entry.key: store.delete(key),
            f"delete {entry.key}",
        )
        result.deleted_keys.append(entry.key)

    result.retained_count = len(entries) - len(prunable) - len(unparseable)

    logger.info(
        "retention_complete",
        deleted=len(result.deleted_keys),
        skipped=len(result.skipped_keys),
        retained=result.retained_count,
    )
    return result
