# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for pg-s3-backup.

These helpers centralize wording for common configuration errors so that
all modules present consistent, actionable messages.
"""


def explain_missing_setting(name: str) -> str:
    """
    Explain that a required configuration variable is missing.
    """

    return (
        f"Config variable {name} is required. "
        "Set it in the environment, in .env, or in ~/.pg_dump-to-s3.conf."
    )


def explain_missing_destination() -> str:
    """
    Explain that neither S3_PATH nor S3_BUCKET is configured.
    """

    return (
        "Backup destination is not configured. "
        "Set S3_PATH (bucket/prefix) or S3_BUCKET with an optional S3_PREFIX."
    )


def explain_invalid_retention(value: str | None) -> str:
    """
    Explain that DELETE_AFTER is invalid.
    """

    return (
        f"Invalid DELETE_AFTER value: {value!r}. "
        "It must start with a non-negative number of days (e.g. '7' or '7 days')."
    )


def explain_invalid_compression(value: str | int | None) -> str:
    """
    Explain that PG_DUMP_COMPRESSION is out of range.
    """

    return (
        f"Invalid PG_DUMP_COMPRESSION value: {value!r}. "
        "It must be an integer between 0-9."
    )


def explain_invalid_integer(name: str, value: str | None) -> str:
    """
    Explain that a numeric setting did not parse.
    """

    return f"Invalid {name} value: {value!r}. Expected an integer."


def explain_binary_not_found(command: str, setting: str) -> str:
    """
    Explain that an external binary could not be found on PATH.
    """

    return f"{command} not found in PATH (set {setting} to override)."


def explain_insufficient_space(tmp_dir: str, available_mb: int, required_mb: int) -> str:
    """
    Explain that the temp directory does not have enough free space.
    """

    return (
        f"Not enough free space in {tmp_dir} "
        f"(available {available_mb}MB, need >= {required_mb}MB)."
    )


def explain_invalid_endpoint(endpoint_url: str | None, region: str | None, error: Exception) -> str:
    """
    Explain that the S3 client rejected AWS_ENDPOINT_URL or AWS_REGION.
    """

    return (
        f"Cannot create S3 client for endpoint {endpoint_url!r} in region {region!r}: {error}. "
        "Check AWS_ENDPOINT_URL and AWS_REGION."
    )


def explain_unparseable_command(command: str, setting: str, error: Exception) -> str:
    """
    Explain that a configured command line cannot be split into words.
    """

    return f"Cannot parse {setting} value {command!r}: {error}."
