# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for pgs3 tests.

Provides an in-memory object store, fake pg_dump / pg_restore invokers,
a fake database catalog and configuration helpers.
"""

import tempfile
from pathlib import Path
from typing import Dict, Generator, List

import pytest

from pgs3.artifacts import RemoteListingEntry
from pgs3.config import RunConfiguration
from pgs3.exceptions import TransferError
from pgs3.invoker import DirectInvoker, ProcessResult
from pgs3.storage import ObjectAttributes


class InMemoryObjectStore:
    """ObjectStore that keeps objects in a dict and records every call."""

    def __init__(self, listing_time: str = "2026-10-16 12:00:00"):
        self.objects: Dict[str, dict] = {}
        self.calls: List[tuple] = []
        self.listing_time = listing_time
        self.put_failures = 0
        self.delete_failures = 0
        self.metadata_override: Dict[str, str] | None = None

    def add_object(self, key: str, last_modified: str, body: bytes = b"x") -> None:
        self.objects[key] = {
            "body": body,
            "metadata": {},
            "attributes": None,
            "last_modified": last_modified,
        }

    async def put_file(self, key: str, path: Path, attributes: ObjectAttributes) -> None:
        self.calls.append(("put", key))
        if self.put_failures > 0:
            self.put_failures -= 1
            raise TransferError(f"simulated upload failure for {key}")
        metadata = dict(attributes.metadata)
        if self.metadata_override is not None:
            metadata.update(self.metadata_override)
        self.objects[key] = {
            "body": Path(path).read_bytes(),
            "metadata": metadata,
            "attributes": attributes,
            "last_modified": self.listing_time,
        }

    async def download_file(self, key: str, path: Path) -> None:
        self.calls.append(("download", key))
        if key not in self.objects:
            raise TransferError(f"no such key {key}")
        Path(path).write_bytes(self.objects[key]["body"])

    async def list_entries(self, prefix: str) -> List[RemoteListingEntry]:
        self.calls.append(("list", prefix))
        entries: List[RemoteListingEntry] = []
        seen_prefixes = set()
        for key in sorted(self.objects):
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix):]
            if "/" in rest:
                sub = prefix + rest.split("/", 1)[0] + "/"
                if sub not in seen_prefixes:
                    seen_prefixes.add(sub)
                    entries.append(RemoteListingEntry(key=sub, last_modified=""))
                continue
            obj = self.objects[key]
            entries.append(
                RemoteListingEntry(
                    key=key,
                    last_modified=obj["last_modified"],
                    size=len(obj["body"]),
                )
            )
        return entries

    async def delete(self, key: str) -> None:
        self.calls.append(("delete", key))
        if self.delete_failures > 0:
            self.delete_failures -= 1
            raise TransferError(f"simulated delete failure for {key}")
        self.objects.pop(key, None)

    async def head_metadata(self, key: str) -> Dict[str, str]:
        self.calls.append(("head", key))
        if key not in self.objects:
            raise TransferError(f"no such key {key}")
        return dict(self.objects[key]["metadata"])

    def ops(self, name: str) -> List[str]:
        return [key for op, key in self.calls if op == name]


class FakeDumpInvoker(DirectInvoker):
    """pg_dump stand-in writing a fixed payload per database."""

    def __init__(self, returncode: int = 0, fail_on: str | None = None):
        super().__init__("pg_dump")
        self.returncode = returncode
        self.fail_on = fail_on
        self.calls: List[list] = []

    async def run(self, args, *, stdin=None, stdout=None, env=None) -> ProcessResult:
        self.calls.append(list(args))
        database = args[-1]
        if stdout is not None:
            # Partial output is written even when the dump then fails.
            Path(stdout).write_bytes(f"PGDMP-{database}".encode())
        if self.fail_on == database:
            return ProcessResult(returncode=1, stderr="pg_dump: error: connection failed")
        return ProcessResult(returncode=self.returncode, stderr="")


class FakeRestoreInvoker(DirectInvoker):
    """pg_restore stand-in recording its arguments and input."""

    def __init__(self, returncode: int = 0, compound: bool = False):
        super().__init__("pg_restore")
        self.returncode = returncode
        self.passes_local_paths = not compound
        self.calls: List[dict] = []

    async def run(self, args, *, stdin=None, stdout=None, env=None) -> ProcessResult:
        archive = Path(stdin) if stdin is not None else Path(args[-1])
        self.calls.append(
            {
                "args": list(args),
                "stdin": stdin,
                "content": archive.read_bytes(),
            }
        )
        return ProcessResult(returncode=self.returncode, stderr="" if self.returncode == 0 else "boom")


class FakeCatalog:
    """DatabaseCatalog stand-in."""

    def __init__(self, existing: List[str] | None = None):
        self.existing = set(existing or [])
        self.calls: List[tuple] = []

    async def exists(self, name: str) -> bool:
        self.calls.append(("exists", name))
        return name in self.existing

    async def create(self, name: str) -> None:
        self.calls.append(("create", name))
        self.existing.add(name)


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def scratch_dir(temp_dir: Path) -> Path:
    """Directory used as the run's TMPDIR."""
    path = temp_dir / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def make_config(scratch_dir: Path):
    """Factory for a valid RunConfiguration with overrides."""

    def _make(**overrides) -> RunConfiguration:
        values = dict(
            pg_host="db.internal",
            pg_user="backup",
            pg_port=5432,
            databases=["app", "billing", "audit"],
            bucket="test-bucket",
            prefix="backups/prod",
            retention_days=7,
            min_free_mb=0,
            tmp_dir=scratch_dir,
        )
        values.update(overrides)
        return RunConfiguration(**values)

    return _make


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()
