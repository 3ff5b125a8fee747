# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Post-run notification hook (HEALTHCHECK_CMD).
"""

import structlog

from pgs3.config import RunConfiguration
from pgs3.exceptions import HookError
from pgs3.invoker import ProcessInvoker, ShellInvoker

logger = structlog.get_logger()


async def run_post_hook(
    config: RunConfiguration,
    invoker: ProcessInvoker | None = None,
) -> bool:
    """
    Run the configured hook after a fully successful, non-dry run.

    Returns:
        True if a hook ran

    Raises:
        HookError: If the hook exits non-zero. The backup or restore itself
            already succeeded at this point.
    """
    if config.dry_run or not config.healthcheck_cmd:
        return False

    logger.info("running_healthcheck")
    invoker = invoker or ShellInvoker(config.healthcheck_cmd)

    try:
        result = await invoker.run([])
    except OSError as e:
        raise HookError(
            f"Healthcheck command failed to start: {e}",
            details={"command": config.healthcheck_cmd},
        ) from e

    if not result.ok:
        raise HookError(
            "Healthcheck command failed",
            details={"returncode": result.returncode, "stderr": result.stderr},
        )
    return True
