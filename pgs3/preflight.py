# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Checks that run before any remote action.
"""

import shutil
from pathlib import Path
from typing import List

import structlog

from pgs3.config import RunConfiguration
from pgs3.errors import explain_insufficient_space, explain_missing_setting
from pgs3.exceptions import ConfigurationError, PreflightError

logger = structlog.get_logger()


def check_disk_space(tmp_dir: Path, min_free_mb: int) -> int:
    """
    Ensure the temp directory has at least min_free_mb free.

    Returns:
        Available space in MB

    Raises:
        PreflightError: If there is not enough room for a dump
    """
    try:
        available_mb = shutil.disk_usage(tmp_dir).free // (1024 * 1024)
    except OSError as e:
        raise PreflightError(
            f"Cannot inspect temp directory {tmp_dir}: {e}",
            details={"tmp_dir": str(tmp_dir)},
        ) from e

    if available_mb < min_free_mb:
        raise PreflightError(
            explain_insufficient_space(str(tmp_dir), available_mb, min_free_mb),
            details={"available_mb": available_mb, "required_mb": min_free_mb},
        )
    return available_mb


def resolve_databases(config: RunConfiguration) -> List[str]:
    """
    Apply the exclusion list to the configured databases.

    Raises:
        PreflightError: If no database is left to back up
    """
    selected = config.selected_databases()
    if not selected:
        raise PreflightError(
            "No databases to back up after applying exclusions.",
            details={
                "databases": list(config.databases),
                "excluded": list(config.exclude_databases),
            },
        )
    return selected


def require_retention(config: RunConfiguration) -> int:
    if config.retention_days is None:
        raise ConfigurationError(explain_missing_setting("DELETE_AFTER"))
    return config.retention_days
