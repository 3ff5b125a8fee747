# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Process invoker tests using real subprocesses.
"""

import asyncio

import pytest

from pgs3.exceptions import PreflightError
from pgs3.invoker import DirectInvoker, ShellInvoker, create_invoker


def test_plain_name_gets_direct_invoker():
    invoker = create_invoker("pg_dump")

    assert isinstance(invoker, DirectInvoker)
    assert invoker.passes_local_paths is True


def test_compound_command_gets_shell_invoker():
    invoker = create_invoker(" docker exec -i db pg_restore ")

    assert isinstance(invoker, ShellInvoker)
    assert invoker.passes_local_paths is False
    assert invoker.executable == "docker"
    assert invoker.describe(["-d", "my db"]) == "docker exec -i db pg_restore -d 'my db'"


def test_missing_binary_fails_preflight():
    with pytest.raises(PreflightError, match="PG_DUMP_BIN"):
        DirectInvoker("pgs3-no-such-binary").require_available("PG_DUMP_BIN")


def test_unbalanced_quotes_fail_preflight():
    invoker = create_invoker('docker exec -i db "pg_dump')

    with pytest.raises(PreflightError, match="Cannot parse PG_DUMP_BIN"):
        invoker.require_available("PG_DUMP_BIN")


def test_present_binary_passes_preflight():
    ShellInvoker("sh -c true").require_available("HEALTHCHECK_CMD")


@pytest.mark.asyncio
async def test_direct_invoker_writes_stdout_to_file(temp_dir):
    out = temp_dir / "out.bin"

    result = await DirectInvoker("sh").run(["-c", "printf dumped"], stdout=out)

    assert result.ok
    assert out.read_bytes() == b"dumped"


@pytest.mark.asyncio
async def test_extra_environment_reaches_child(temp_dir):
    out = temp_dir / "env.txt"

    await DirectInvoker("sh").run(
        ["-c", 'printf %s "$PGPASSWORD"'],
        stdout=out,
        env={"PGPASSWORD": "s3cret"},
    )

    assert out.read_text() == "s3cret"


@pytest.mark.asyncio
async def test_failure_reports_status_and_stderr():
    result = await DirectInvoker("sh").run(["-c", "echo oops >&2; exit 3"])

    assert not result.ok
    assert result.returncode == 3
    assert result.stderr == "oops"


@pytest.mark.asyncio
async def test_shell_invoker_feeds_stdin(temp_dir):
    source = temp_dir / "in.bin"
    source.write_bytes(b"archive-bytes")
    out = temp_dir / "copy.bin"

    result = await ShellInvoker("cat -").run([], stdin=source, stdout=out)

    assert result.ok
    assert out.read_bytes() == b"archive-bytes"


@pytest.mark.asyncio
async def test_cancellation_kills_child():
    loop = asyncio.get_running_loop()
    started = loop.time()

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(DirectInvoker("sleep").run(["30"]), timeout=0.2)

    assert loop.time() - started < 10
