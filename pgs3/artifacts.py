# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Artifact naming and remote listing projections.

The object key is the only identity an artifact has: the run timestamp and
the database name are parsed back out of it for retention and for
"restore latest". The naming scheme must stay bit-exact so that existing
archives remain readable:

    {YYYY-MM-DD-at-HH-MM-SS}_{database}.dump
    {YYYY-MM-DD-at-HH-MM-SS}_{database}.dump.sha256

A remote listing is fetched once per run; prunable_entries() and
latest_by_database() are two independent projections of it.
"""

import re
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Dict, Iterable, List, Tuple

from pgs3.exceptions import ParseWarning

TIMESTAMP_FORMAT = "%Y-%m-%d-at-%H-%M-%S"
LISTING_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
DUMP_SUFFIX = ".dump"
SIDECAR_SUFFIX = ".sha256"

_ARTIFACT_NAME_RE = re.compile(
    r"^(?P<ts>\d{4}-\d{2}-\d{2}-at-\d{2}-\d{2}-\d{2})_(?P<db>.+)\.dump$"
)


@dataclass(frozen=True)
class BackupArtifact:
    """One uploaded dump and its digest sidecar."""

    database_name: str
    timestamp: datetime
    artifact_key: str
    checksum: str

    @property
    def sidecar_key(self) -> str:
        return sidecar_name(self.artifact_key)


@dataclass(frozen=True)
class RemoteListingEntry:
    """
    One line of a destination listing.

    last_modified is the store-reported time rendered as
    "YYYY-MM-DD HH:MM:SS" in UTC, or an empty string for entries that
    carry no time (common prefixes / directory markers).
    """

    key: str
    last_modified: str
    size: int = 0

    @property
    def name(self) -> str:
        """Key relative to its parent "directory"."""
        stripped = self.key.rstrip("/")
        name = stripped.rsplit("/", 1)[-1]
        return f"{name}/" if self.key.endswith("/") else name


def format_run_timestamp(moment: datetime) -> str:
    """Render a run instant in the artifact naming format (UTC)."""
    return moment.astimezone(UTC).strftime(TIMESTAMP_FORMAT)


def artifact_filename(moment: datetime, database: str) -> str:
    return f"{format_run_timestamp(moment)}_{database}{DUMP_SUFFIX}"


def sidecar_name(artifact_name: str) -> str:
    return f"{artifact_name}{SIDECAR_SUFFIX}"


def parse_artifact_name(key: str) -> Tuple[datetime, str] | None:
    """
    Recover (timestamp, database) from an artifact key or file name.

    Returns None for keys that do not follow the naming scheme, including
    sidecars.
    """
    name = key.rsplit("/", 1)[-1]
    match = _ARTIFACT_NAME_RE.match(name)
    if not match:
        return None
    try:
        moment = datetime.strptime(match.group("ts"), TIMESTAMP_FORMAT)
    except ValueError:
        return None
    return moment.replace(tzinfo=UTC), match.group("db")


def format_listing_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).strftime(LISTING_TIME_FORMAT)


def parse_listing_time(entry: RemoteListingEntry) -> datetime:
    """
    Parse a listing entry's last-modified time as a UTC instant.

    Raises:
        ParseWarning: If the value is missing or malformed
    """
    try:
        moment = datetime.strptime(entry.last_modified, LISTING_TIME_FORMAT)
    except (TypeError, ValueError) as exc:
        raise ParseWarning(
            f"could not parse date for {entry.name}: {entry.last_modified!r}",
            details={"key": entry.key},
        ) from exc
    return moment.replace(tzinfo=UTC)


def prunable_entries(
    entries: Iterable[RemoteListingEntry],
    cutoff: datetime,
) -> Tuple[List[RemoteListingEntry], List[Tuple[RemoteListingEntry, ParseWarning]]]:
    """
    Split a listing into entries strictly older than cutoff.

    Entries exactly at the cutoff are retained. Entries whose time fails to
    parse are returned separately with the warning that describes them.
    Sidecars are evaluated on their own timestamp; a .dump and its .sha256
    are not paired.

    Returns:
        Tuple of (prunable, unparseable)
    """
    prunable: List[RemoteListingEntry] = []
    unparseable: List[Tuple[RemoteListingEntry, ParseWarning]] = []

    for entry in entries:
        try:
            modified = parse_listing_time(entry)
        except ParseWarning as warning:
            unparseable.append((entry, warning))
            continue
        if modified < cutoff:
            prunable.append(entry)

    return prunable, unparseable


def latest_by_database(entries: Iterable[RemoteListingEntry]) -> Dict[str, RemoteListingEntry]:
    """
    Map each database name to its newest .dump entry.

    Keys are compared lexicographically; the timestamp prefix makes that
    order chronological.
    """
    dumps = sorted(
        (e for e in entries if e.key.endswith(DUMP_SUFFIX)),
        key=lambda e: e.key,
    )
    latest: Dict[str, RemoteListingEntry] = {}
    for entry in dumps:
        parsed = parse_artifact_name(entry.key)
        if parsed is None:
            continue
        latest[parsed[1]] = entry
    return latest
