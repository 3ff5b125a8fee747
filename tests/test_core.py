# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Full-cycle tests: preflight, run, post-run hook.
"""

from contextlib import asynccontextmanager

import pytest

import pgs3.core
from conftest import FakeCatalog, FakeDumpInvoker, FakeRestoreInvoker, InMemoryObjectStore
from pgs3.backup.restore import RestoreRequest
from pgs3.core import backup_cycle, list_cycle, restore_cycle
from pgs3.exceptions import CaptureError, HookError, TransferError


@pytest.fixture
def wired(monkeypatch):
    """Replace real collaborators with in-memory fakes."""
    store = InMemoryObjectStore()
    invokers = {"pg_dump": FakeDumpInvoker(), "pg_restore": FakeRestoreInvoker()}

    @asynccontextmanager
    async def fake_open(config):
        yield store

    def fake_create_invoker(command):
        invoker = invokers[command]
        invoker.require_available = lambda setting: None
        return invoker

    monkeypatch.setattr(pgs3.core, "open_object_store", fake_open)
    monkeypatch.setattr(pgs3.core, "create_invoker", fake_create_invoker)
    monkeypatch.setattr(pgs3.core, "PostgresCatalog", lambda config: FakeCatalog(["app"]))
    return store, invokers


@pytest.mark.asyncio
async def test_backup_cycle_runs_hook_after_success(make_config, wired, temp_dir):
    store, _ = wired
    marker = temp_dir / "healthy"

    result = await backup_cycle(make_config(databases=["app"], healthcheck_cmd=f"touch {marker}"))

    assert len(result.uploaded_keys) == 2
    assert marker.exists()


@pytest.mark.asyncio
async def test_backup_cycle_skips_hook_on_failure(make_config, wired, temp_dir):
    _, invokers = wired
    invokers["pg_dump"].fail_on = "app"
    marker = temp_dir / "healthy"

    with pytest.raises(CaptureError):
        await backup_cycle(make_config(databases=["app"], healthcheck_cmd=f"touch {marker}"))

    assert not marker.exists()


@pytest.mark.asyncio
async def test_hook_failure_follows_completed_backup(make_config, wired):
    store, _ = wired

    with pytest.raises(HookError):
        await backup_cycle(make_config(databases=["app"], healthcheck_cmd="exit 1"))

    assert len(store.ops("put")) == 2


@pytest.mark.asyncio
async def test_failed_delete_skips_hook(make_config, wired, temp_dir):
    store, _ = wired
    store.add_object("backups/prod/2020-01-01-at-00-00-00_app.dump", "2020-01-01 00:00:00")
    store.delete_failures = 99
    marker = temp_dir / "healthy"
    config = make_config(
        databases=["app"],
        retry_base_sleep=0,
        healthcheck_cmd=f"touch {marker}",
    )

    with pytest.raises(TransferError):
        await backup_cycle(config)

    assert len(store.ops("delete")) == 3
    assert not marker.exists()


@pytest.mark.asyncio
async def test_restore_cycle_restores_latest(make_config, wired):
    store, invokers = wired
    store.add_object("backups/prod/2024-01-01-at-00-00-00_app.dump", "2024-01-01 00:00:00", b"jan")
    store.add_object("backups/prod/2024-02-01-at-00-00-00_app.dump", "2024-02-01 00:00:00", b"feb")

    result = await restore_cycle(make_config(), RestoreRequest(database="app"))

    assert result.artifact_key.endswith("2024-02-01-at-00-00-00_app.dump")
    assert result.clean is True
    assert invokers["pg_restore"].calls[0]["content"] == b"feb"


@pytest.mark.asyncio
async def test_list_cycle_lists_destination(make_config, wired):
    store, _ = wired
    store.add_object("backups/prod/2024-01-01-at-00-00-00_app.dump", "2024-01-01 00:00:00")

    entries = await list_cycle(make_config())

    assert [e.name for e in entries] == ["2024-01-01-at-00-00-00_app.dump"]
