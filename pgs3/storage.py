# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Object store access over the S3 API.

S3ObjectStore wraps an aiobotocore client bound to one bucket and exposes
the five operations the backup lifecycle needs: put, get, list, delete and
head (metadata). Each call is a single attempt; failures surface as
TransferError and callers decide whether to retry.
"""

from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Protocol

import aiofiles
import structlog

from pgs3.artifacts import RemoteListingEntry, format_listing_time
from pgs3.config import RunConfiguration
from pgs3.errors import explain_invalid_endpoint
from pgs3.exceptions import ConfigurationError, TransferError

logger = structlog.get_logger()

DOWNLOAD_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class ObjectAttributes:
    """Attributes applied to an object on upload."""

    storage_class: str | None = None
    sse: str | None = None
    sse_kms_key_id: str | None = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: RunConfiguration, metadata: Dict[str, str]) -> "ObjectAttributes":
        return cls(
            storage_class=config.storage_class,
            sse=config.sse,
            sse_kms_key_id=config.sse_kms_key_id,
            metadata=dict(metadata),
        )

    def to_put_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {}
        if self.storage_class:
            kwargs["StorageClass"] = self.storage_class
        if self.sse:
            kwargs["ServerSideEncryption"] = self.sse
        if self.sse_kms_key_id:
            kwargs["SSEKMSKeyId"] = self.sse_kms_key_id
        if self.metadata:
            kwargs["Metadata"] = dict(self.metadata)
        return kwargs


class ObjectStore(Protocol):
    """Operations the lifecycle needs from an object store."""

    async def put_file(self, key: str, path: Path, attributes: ObjectAttributes) -> None:
        ...

    async def download_file(self, key: str, path: Path) -> None:
        ...

    async def list_entries(self, prefix: str) -> List[RemoteListingEntry]:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def head_metadata(self, key: str) -> Dict[str, str]:
        ...


class S3ObjectStore:
    """ObjectStore backed by an aiobotocore S3 client."""

    def __init__(self, client: Any, bucket: str):
        self.client = client
        self.bucket = bucket

    async def put_file(self, key: str, path: Path, attributes: ObjectAttributes) -> None:
        try:
            with open(path, "rb") as body:
                await self.client.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=body,
                    **attributes.to_put_kwargs(),
                )
        except Exception as e:
            raise TransferError(
                f"Upload failed for s3://{self.bucket}/{key}: {e}",
                details={"key": key, "path": str(path)},
            ) from e

        logger.debug("object_uploaded", bucket=self.bucket, key=key)

    async def download_file(self, key: str, path: Path) -> None:
        try:
            response = await self.client.get_object(Bucket=self.bucket, Key=key)
            async with response["Body"] as stream:
                async with aiofiles.open(path, "wb") as f:
                    while True:
                        chunk = await stream.read(DOWNLOAD_CHUNK_SIZE)
                        if not chunk:
                            break
                        await f.write(chunk)
        except Exception as e:
            raise TransferError(
                f"Download failed for s3://{self.bucket}/{key}: {e}",
                details={"key": key, "path": str(path)},
            ) from e

        logger.debug("object_downloaded", bucket=self.bucket, key=key, path=str(path))

    async def list_entries(self, prefix: str) -> List[RemoteListingEntry]:
        """
        List one level under prefix.

        Sub-prefixes are returned as entries with an empty last_modified,
        the same way a directory listing shows them without a date.
        """
        entries: List[RemoteListingEntry] = []
        paginator = self.client.get_paginator("list_objects_v2")

        try:
            async for page in paginator.paginate(
                Bucket=self.bucket,
                Prefix=prefix,
                Delimiter="/",
            ):
                for common in page.get("CommonPrefixes", []):
                    entries.append(RemoteListingEntry(key=common["Prefix"], last_modified=""))
                for obj in page.get("Contents", []):
                    entries.append(
                        RemoteListingEntry(
                            key=obj["Key"],
                            last_modified=format_listing_time(obj["LastModified"]),
                            size=obj.get("Size", 0),
                        )
                    )
        except Exception as e:
            raise TransferError(
                f"Listing failed for s3://{self.bucket}/{prefix}: {e}",
                details={"prefix": prefix},
            ) from e

        return entries

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete_object(Bucket=self.bucket, Key=key)
        except Exception as e:
            raise TransferError(
                f"Delete failed for s3://{self.bucket}/{key}: {e}",
                details={"key": key},
            ) from e

    async def head_metadata(self, key: str) -> Dict[str, str]:
        try:
            response = await self.client.head_object(Bucket=self.bucket, Key=key)
        except Exception as e:
            raise TransferError(
                f"Metadata lookup failed for s3://{self.bucket}/{key}: {e}",
                details={"key": key},
            ) from e
        return dict(response.get("Metadata") or {})


@asynccontextmanager
async def open_object_store(config: RunConfiguration) -> AsyncIterator[S3ObjectStore]:
    """
    Open an S3 client for the configured destination.

    The optional endpoint URL applies uniformly to every operation.

    Raises:
        ConfigurationError: If the client rejects the endpoint or region
    """
    from aiobotocore.session import get_session

    session = get_session()
    async with AsyncExitStack() as stack:
        try:
            client = await stack.enter_async_context(
                session.create_client(
                    "s3",
                    region_name=config.region,
                    endpoint_url=config.endpoint_url,
                )
            )
        except ValueError as e:
            raise ConfigurationError(
                explain_invalid_endpoint(config.endpoint_url, config.region, e),
                details={"endpoint_url": config.endpoint_url, "region": config.region},
            ) from e
        yield S3ObjectStore(client, config.bucket)
