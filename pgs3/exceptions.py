# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
pg-s3-backup Exceptions - Custom exceptions for the pgs3 package.

Every fatal error is a PGS3Error; the CLI turns any of them into a
message on stderr and exit status 1.
"""


class PGS3Error(Exception):
    """Base exception for all pgs3 errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(PGS3Error):
    """Raised when a required setting is missing or malformed."""

    pass


class PreflightError(PGS3Error):
    """Raised before any remote action when the run cannot start safely."""

    pass


class CaptureError(PGS3Error):
    """Raised when the dump subprocess fails."""

    pass


class TransferError(PGS3Error):
    """Raised when an object store operation fails after all retries."""

    pass


class IntegrityError(PGS3Error):
    """
    Raised when the digest stored on the remote object does not match
    the digest computed locally before upload.

    Never downgrade this to a warning: it means silent corruption or an
    intermediary that strips metadata.
    """

    pass


class RestoreError(PGS3Error):
    """Raised when artifact selection, database creation or pg_restore fails."""

    pass


class HookError(PGS3Error):
    """Raised when the post-run command fails after a successful run."""

    pass


class ParseWarning(PGS3Error):
    """
    Raised for a listing entry whose timestamp cannot be parsed.

    Non-fatal: the retention pruner catches it, logs a warning and skips
    the entry.
    """

    pass
