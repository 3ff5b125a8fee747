# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""pg-s3-backup command-line entry points.

Usage:
    pgs3-backup [--dry-run] [--quiet] [--config PATH]
    pgs3-restore [options] <database> <artifact>
    pgs3-restore --latest <database>
    pgs3-restore --list [prefix]

Exit codes:
    0: Success (including --list and --help)
    1: Validation or execution failure
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from typing import Any, Coroutine, List, Sequence

from pgs3.artifacts import RemoteListingEntry
from pgs3.backup.restore import RestoreRequest
from pgs3.core import backup_cycle, list_cycle, restore_cycle
from pgs3.env import create_config_from_env
from pgs3.exceptions import HookError, PGS3Error
from pgs3.log import configure_logging

RESTORE_EPILOG = """\
examples:
  pgs3-restore service 2025-12-16-at-16-02-41_service.dump
  pgs3-restore --latest service
  pgs3-restore --list backups/
"""


def _run(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run a coroutine, turning SIGTERM into task cancellation."""

    async def runner() -> Any:
        loop = asyncio.get_running_loop()
        task = asyncio.current_task()
        try:
            loop.add_signal_handler(signal.SIGTERM, task.cancel)
        except (NotImplementedError, RuntimeError):
            pass
        try:
            return await coro
        finally:
            try:
                loop.remove_signal_handler(signal.SIGTERM)
            except (NotImplementedError, RuntimeError):
                pass

    return asyncio.run(runner())


def _report_failure(error: BaseException) -> int:
    if isinstance(error, HookError):
        print(f"Error: post-run hook failed: {error}", file=sys.stderr)
    else:
        print(f"Error: {error}", file=sys.stderr)
    return 1


def _parse(parser: argparse.ArgumentParser, argv: Sequence[str] | None) -> argparse.Namespace | int:
    try:
        return parser.parse_args(argv)
    except SystemExit as e:
        return 0 if e.code in (0, None) else 1


def build_backup_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pgs3-backup",
        description="Back up PostgreSQL databases to S3 with checksum verification and retention.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Print actions without dumping, uploading or deleting (env: DRY_RUN=1)",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        default=None,
        help="Only log warnings and errors (env: QUIET=1)",
    )
    parser.add_argument("--config", default=None, help="Configuration file to read")
    return parser


def build_restore_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pgs3-restore",
        description="Restore a PostgreSQL backup from S3.",
        epilog=RESTORE_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("targets", nargs="*", metavar="<database> <artifact>")
    parser.add_argument(
        "--latest",
        action="store_true",
        help="Restore the latest backup for <database> (ignores <artifact>)",
    )
    parser.add_argument(
        "--list",
        nargs="?",
        const="",
        default=None,
        metavar="prefix",
        help="List available backups (optional prefix filter) and exit",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Print actions without downloading/restoring",
    )
    parser.add_argument("--quiet", action="store_true", default=None, help="Only log warnings and errors")
    parser.add_argument("--config", default=None, help="Configuration file to read")
    return parser


def format_listing(entries: List[RemoteListingEntry]) -> List[str]:
    lines = []
    for entry in entries:
        if not entry.last_modified:
            lines.append(f"{'':>19} {'PRE':>10} {entry.name}")
        else:
            lines.append(f"{entry.last_modified:>19} {entry.size:>10} {entry.name}")
    return lines


def backup_main(argv: Sequence[str] | None = None) -> int:
    parsed = _parse(build_backup_parser(), argv)
    if isinstance(parsed, int):
        return parsed

    try:
        config = create_config_from_env(
            for_backup=True,
            config_file=parsed.config,
            dry_run=parsed.dry_run,
            quiet=parsed.quiet,
        )
        configure_logging(config.quiet)
        _run(backup_cycle(config))
    except PGS3Error as e:
        return _report_failure(e)
    except (KeyboardInterrupt, asyncio.CancelledError):
        print("Error: interrupted", file=sys.stderr)
        return 1
    return 0


def restore_main(argv: Sequence[str] | None = None) -> int:
    parser = build_restore_parser()
    parsed = _parse(parser, argv)
    if isinstance(parsed, int):
        return parsed

    if parsed.list is None:
        needed = 1 if parsed.latest else 2
        if len(parsed.targets) < needed:
            parser.print_usage(sys.stderr)
            return 1

    try:
        config = create_config_from_env(
            for_backup=False,
            config_file=parsed.config,
            dry_run=parsed.dry_run,
            quiet=parsed.quiet,
        )
        configure_logging(config.quiet)

        if parsed.list is not None:
            entries = _run(list_cycle(config, parsed.list))
            for line in format_listing(entries):
                print(line)
            return 0

        request = RestoreRequest(
            database=parsed.targets[0],
            artifact_name=None if parsed.latest else parsed.targets[1],
        )
        _run(restore_cycle(config, request))
    except PGS3Error as e:
        return _report_failure(e)
    except (KeyboardInterrupt, asyncio.CancelledError):
        print("Error: interrupted", file=sys.stderr)
        return 1
    return 0


def backup_entry() -> None:
    sys.exit(backup_main())


def restore_entry() -> None:
    sys.exit(restore_main())
