# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Checksum Verifier - content digests across the upload boundary.

The SHA-256 of each dump is computed locally, written to a human-readable
sidecar ("<digest>  <filename>", the shasum format), and attached to the
uploaded object as the "sha256" metadata attribute. After upload the
metadata is read back and compared with the local digest.
"""

import hashlib
from pathlib import Path

import aiofiles
import structlog

from pgs3.artifacts import sidecar_name
from pgs3.exceptions import IntegrityError
from pgs3.retry import RetryPolicy
from pgs3.storage import ObjectStore

logger = structlog.get_logger()

METADATA_KEY = "sha256"
READ_CHUNK_SIZE = 1024 * 1024


async def compute_digest(path: Path) -> str:
    """
    Compute the SHA-256 of a file's full content.

    Args:
        path: Local file

    Returns:
        Hex-encoded digest
    """
    digest = hashlib.sha256()
    async with aiofiles.open(path, "rb") as f:
        while True:
            chunk = await f.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()


def format_sidecar(hex_digest: str, artifact_name: str) -> str:
    return f"{hex_digest}  {artifact_name}\n"


async def write_sidecar(hex_digest: str, artifact_path: Path) -> Path:
    """
    Write the sidecar file next to the artifact.

    Returns:
        Path to "<artifact>.sha256"
    """
    sidecar_path = artifact_path.with_name(sidecar_name(artifact_path.name))
    async with aiofiles.open(sidecar_path, "w") as f:
        await f.write(format_sidecar(hex_digest, artifact_path.name))
    return sidecar_path


async def fetch_remote_digest(store: ObjectStore, key: str) -> str | None:
    metadata = await store.head_metadata(key)
    return metadata.get(METADATA_KEY)


async def verify_remote(
    store: ObjectStore,
    expected_digest: str,
    key: str,
    policy: RetryPolicy | None = None,
) -> bool:
    """
    Compare the locally computed digest with the one stored on the object.

    The metadata lookup goes through the retry policy; the comparison does
    not, a mismatch is final.

    Returns:
        True when they are identical

    Raises:
        IntegrityError: On any mismatch, including a missing attribute
    """
    policy = policy or RetryPolicy()
    remote_digest = await policy.run(
        lambda: fetch_remote_digest(store, key),
        f"head {key}",
    )

    if remote_digest != expected_digest:
        raise IntegrityError(
            f"Checksum metadata mismatch for {key} "
            f"(expected {expected_digest}, got {remote_digest})",
            details={"key": key},
        )

    logger.debug("checksum_verified", key=key, sha256=expected_digest)
    return True
