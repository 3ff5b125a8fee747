# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
External process invocation.

pg_dump and pg_restore are configured either as a plain binary name or
as a compound command such as "docker exec -i db pg_dump". The choice of
invoker is made once from the configured command:

- DirectInvoker execs the binary with an argv list
- ShellInvoker runs the compound command through the shell, appending
  the quoted arguments

A compound command usually runs inside a container that cannot see local
paths, so callers feed files on stdin when passes_local_paths is False.
"""

import asyncio
import os
import shlex
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Sequence

import structlog

from pgs3.errors import explain_binary_not_found, explain_unparseable_command
from pgs3.exceptions import PreflightError

logger = structlog.get_logger()


@dataclass
class ProcessResult:
    """Outcome of one subprocess run."""

    returncode: int
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ProcessInvoker(ABC):
    """Runs an external command with extra arguments."""

    passes_local_paths: bool = True

    def __init__(self, command: str):
        self.command = command

    @property
    @abstractmethod
    def executable(self) -> str:
        """Program that must be present on PATH."""

    @abstractmethod
    def describe(self, args: Sequence[str]) -> str:
        """Printable form of the full command line."""

    @abstractmethod
    async def _spawn(self, args: Sequence[str], **kwargs: Any) -> asyncio.subprocess.Process:
        ...

    def require_available(self, setting: str) -> None:
        """
        Fail the preflight when the executable cannot be found.

        Raises:
            PreflightError: If the command cannot be parsed or the program
                is not on PATH
        """
        try:
            executable = self.executable
        except ValueError as e:
            raise PreflightError(
                explain_unparseable_command(self.command, setting, e),
                details={"command": self.command},
            ) from e

        if shutil.which(executable) is None:
            raise PreflightError(
                explain_binary_not_found(executable, setting),
                details={"command": self.command},
            )

    async def run(
        self,
        args: Sequence[str],
        *,
        stdin: Path | None = None,
        stdout: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> ProcessResult:
        """
        Run the command and wait for it to exit.

        Args:
            args: Arguments appended to the configured command
            stdin: File fed to the process's standard input
            stdout: File receiving the process's standard output (binary)
            env: Extra environment variables

        Returns:
            ProcessResult with exit status and captured stderr
        """
        process_env = {**os.environ, **env} if env else None
        stdin_file = open(stdin, "rb") if stdin is not None else None
        stdout_file = open(stdout, "wb") if stdout is not None else None

        try:
            process = await self._spawn(
                args,
                stdin=stdin_file if stdin_file is not None else asyncio.subprocess.DEVNULL,
                stdout=stdout_file if stdout_file is not None else None,
                stderr=asyncio.subprocess.PIPE,
                env=process_env,
            )
            try:
                _, stderr = await process.communicate()
            except asyncio.CancelledError:
                # Child must be gone before its output file is removed.
                process.kill()
                await process.wait()
                raise
        finally:
            if stdin_file is not None:
                stdin_file.close()
            if stdout_file is not None:
                stdout_file.close()

        result = ProcessResult(
            returncode=process.returncode,
            stderr=(stderr or b"").decode("utf-8", errors="replace").strip(),
        )
        logger.debug(
            "process_finished",
            command=self.describe(args),
            returncode=result.returncode,
        )
        return result


class DirectInvoker(ProcessInvoker):
    """Execs a single binary."""

    passes_local_paths = True

    @property
    def executable(self) -> str:
        return self.command

    def describe(self, args: Sequence[str]) -> str:
        return shlex.join([self.command, *args])

    async def _spawn(self, args: Sequence[str], **kwargs: Any) -> asyncio.subprocess.Process:
        return await asyncio.create_subprocess_exec(self.command, *args, **kwargs)


class ShellInvoker(ProcessInvoker):
    """Runs a compound command line through the shell."""

    passes_local_paths = False

    @property
    def executable(self) -> str:
        return shlex.split(self.command)[0]

    def describe(self, args: Sequence[str]) -> str:
        if not args:
            return self.command
        return f"{self.command} {shlex.join(args)}"

    async def _spawn(self, args: Sequence[str], **kwargs: Any) -> asyncio.subprocess.Process:
        return await asyncio.create_subprocess_shell(self.describe(args), **kwargs)


def create_invoker(command: str) -> ProcessInvoker:
    """Pick the invoker for a configured command: whitespace means compound."""
    if any(ch.isspace() for ch in command.strip()):
        return ShellInvoker(command.strip())
    return DirectInvoker(command.strip())
