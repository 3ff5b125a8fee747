# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Database server catalog queries used by restore.

Connects to the maintenance database with asyncpg to check whether a
target database exists and to create it from template0.
"""

from typing import Any, Protocol

import structlog

from pgs3.config import RunConfiguration
from pgs3.exceptions import RestoreError

logger = structlog.get_logger()

EMPTY_TEMPLATE = "template0"


class DatabaseCatalog(Protocol):
    """Read and create databases on the target server."""

    async def exists(self, name: str) -> bool:
        ...

    async def create(self, name: str) -> None:
        ...


def quote_identifier(name: str) -> str:
    """Quote a database name for use in DDL."""
    return '"' + name.replace('"', '""') + '"'


class PostgresCatalog:
    """DatabaseCatalog backed by asyncpg."""

    def __init__(self, config: RunConfiguration):
        self.config = config

    async def _connect(self) -> Any:
        import asyncpg

        return await asyncpg.connect(
            host=self.config.pg_host,
            port=self.config.pg_port,
            user=self.config.pg_user,
            password=self.config.pg_password,
            database=self.config.maintenance_database,
        )

    async def exists(self, name: str) -> bool:
        try:
            conn = await self._connect()
            try:
                found = await conn.fetchval(
                    "SELECT 1 FROM pg_database WHERE datname = $1",
                    name,
                )
            finally:
                await conn.close()
        except Exception as e:
            raise RestoreError(
                f"Failed to check whether database {name} exists: {e}",
                details={"database": name, "host": self.config.pg_host},
            ) from e

        return found == 1

    async def create(self, name: str) -> None:
        try:
            conn = await self._connect()
            try:
                await conn.execute(
                    f"CREATE DATABASE {quote_identifier(name)} TEMPLATE {EMPTY_TEMPLATE}"
                )
            finally:
                await conn.close()
        except Exception as e:
            raise RestoreError(
                f"Failed to create database {name}: {e}",
                details={"database": name, "host": self.config.pg_host},
            ) from e

        logger.info("database_created", database=name, template=EMPTY_TEMPLATE)
