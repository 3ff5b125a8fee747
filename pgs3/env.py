# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers.

Settings come from three layers, later layers winning:

- a shell-style config file (first of $PGS3_CONFIG, ~/.pg_dump-to-s3.conf, ./.conf)
- a .env file in the working directory
- the process environment

Files are read with python-dotenv, which understands the KEY="value"
syntax of sourced shell config files.
"""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path
from typing import Dict, List, Mapping

from dotenv import dotenv_values

from pgs3.config import RunConfiguration, resolve_destination
from pgs3.errors import (
    explain_invalid_compression,
    explain_invalid_integer,
    explain_invalid_retention,
    explain_missing_destination,
    explain_missing_setting,
)
from pgs3.exceptions import ConfigurationError

DEFAULT_CONFIG_FILES = (
    Path.home() / ".pg_dump-to-s3.conf",
    Path(".conf"),
)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_RETENTION_RE = re.compile(r"^(\d+)(\s+\S+)?$")


def find_config_file(explicit: Path | str | None = None) -> Path | None:
    """
    Locate the config file to read.

    An explicitly requested file must exist. Otherwise the first existing
    default location is used; having none is fine when the environment
    carries every required setting.
    """
    if explicit:
        path = Path(explicit).expanduser()
        if not path.is_file():
            raise ConfigurationError(
                f"Configuration file not found: {path}",
                details={"path": str(path)},
            )
        return path

    env_path = os.getenv("PGS3_CONFIG")
    if env_path:
        return find_config_file(env_path)

    for candidate in DEFAULT_CONFIG_FILES:
        if candidate.is_file():
            return candidate
    return None


def load_settings(
    config_file: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
    dotenv_path: Path | str | None = ".env",
) -> Dict[str, str]:
    """Merge config file, .env and environment into one flat mapping."""
    settings: Dict[str, str] = {}

    path = find_config_file(config_file)
    if path is not None:
        settings.update(_read_env_file(path))

    if dotenv_path and Path(dotenv_path).is_file():
        settings.update(_read_env_file(Path(dotenv_path)))

    settings.update(os.environ if environ is None else environ)
    return settings


def _read_env_file(path: Path) -> Dict[str, str]:
    return {k: v for k, v in dotenv_values(path).items() if v is not None}


def parse_bool(value: str | None) -> bool:
    return bool(value) and value.strip().lower() in _TRUE_VALUES


def parse_int(name: str, value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError as exc:
        raise ConfigurationError(explain_invalid_integer(name, value)) from exc


def parse_retention_days(value: str | None) -> int:
    """
    Parse DELETE_AFTER into a day count.

    The leading token must be a non-negative integer; a trailing unit
    word ("7 days") is accepted and ignored.
    """
    match = _RETENTION_RE.match((value or "").strip())
    if not match:
        raise ConfigurationError(explain_invalid_retention(value))
    return int(match.group(1))


def parse_compression_level(value: str | None) -> int:
    try:
        level = parse_int("PG_DUMP_COMPRESSION", value, 0)
    except ConfigurationError as exc:
        raise ConfigurationError(explain_invalid_compression(value)) from exc
    if not 0 <= level <= 9:
        raise ConfigurationError(explain_invalid_compression(value))
    return level


def parse_list(value: str | None) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _optional(value: str | None) -> str | None:
    return value.strip() if value and value.strip() else None


def create_config_from_env(
    *,
    for_backup: bool,
    config_file: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
    dotenv_path: Path | str | None = ".env",
    dry_run: bool | None = None,
    quiet: bool | None = None,
) -> RunConfiguration:
    """
    Create a RunConfiguration from config file, .env and environment.

    Required (both entry points):
        - PG_HOST, PG_USER
        - S3_PATH, or S3_BUCKET with optional S3_PREFIX

    Required for backups only:
        - PG_DATABASES: comma-separated database names
        - DELETE_AFTER: retention in days ("7" or "7 days")

    Command-line toggles passed as dry_run/quiet override the settings.
    """
    settings = load_settings(config_file, environ, dotenv_path)

    required = ["PG_HOST", "PG_USER"]
    if for_backup:
        required += ["PG_DATABASES", "DELETE_AFTER"]
    for name in required:
        if not (settings.get(name) or "").strip():
            raise ConfigurationError(explain_missing_setting(name))

    bucket, prefix = resolve_destination(
        settings.get("S3_PATH"),
        settings.get("S3_BUCKET"),
        settings.get("S3_PREFIX"),
    )
    if not bucket:
        raise ConfigurationError(explain_missing_destination())

    retention_days = None
    if (settings.get("DELETE_AFTER") or "").strip():
        retention_days = parse_retention_days(settings["DELETE_AFTER"])

    tmp_dir = _optional(settings.get("TMPDIR")) or tempfile.gettempdir()

    return RunConfiguration(
        pg_host=settings["PG_HOST"].strip(),
        pg_user=settings["PG_USER"].strip(),
        pg_port=parse_int("PG_PORT", settings.get("PG_PORT"), 5432),
        pg_password=settings.get("PG_PASSWORD") or None,
        databases=parse_list(settings.get("PG_DATABASES")),
        exclude_databases=parse_list(settings.get("PG_DATABASES_EXCLUDE")),
        maintenance_database=_optional(settings.get("PG_MAINTENANCE_DB")) or "postgres",
        bucket=bucket,
        prefix=prefix,
        retention_days=retention_days,
        compression_level=parse_compression_level(settings.get("PG_DUMP_COMPRESSION")),
        retry_attempts=parse_int("RETRY_ATTEMPTS", settings.get("RETRY_ATTEMPTS"), 3),
        retry_base_sleep=parse_int("RETRY_BASE_SLEEP", settings.get("RETRY_BASE_SLEEP"), 2),
        storage_class=_optional(settings.get("STORAGE_CLASS")),
        sse=_optional(settings.get("S3_SSE")),
        sse_kms_key_id=_optional(settings.get("S3_SSE_KMS_KEY_ID")),
        endpoint_url=_optional(settings.get("AWS_ENDPOINT_URL")),
        region=_optional(settings.get("AWS_REGION") or settings.get("AWS_DEFAULT_REGION")),
        dry_run=parse_bool(settings.get("DRY_RUN")) if dry_run is None else dry_run,
        quiet=parse_bool(settings.get("QUIET")) if quiet is None else quiet,
        tmp_dir=Path(tmp_dir),
        min_free_mb=parse_int("MIN_FREE_MB", settings.get("MIN_FREE_MB"), 512),
        healthcheck_cmd=_optional(settings.get("HEALTHCHECK_CMD")),
        pg_dump_bin=_optional(settings.get("PG_DUMP_BIN")) or "pg_dump",
        pg_restore_bin=_optional(settings.get("PG_RESTORE_BIN")) or "pg_restore",
    )
