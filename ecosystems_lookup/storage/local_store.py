"""
Query the ecosyste.ms critical-packages SQLite snapshot.

The snapshot is opened strictly read-only. When no snapshot file exists the
store is "unavailable" and every query returns None instead of raising.
"""
from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Any, List, Optional, Sequence

from ecosystems_lookup.core.errors import database_error
from ecosystems_lookup.domain.models import (
    AdvisoryRecord,
    BuildInfo,
    EcosystemCount,
    PackageRecord,
    RepoMetadata,
    VersionRecord,
)

logger = logging.getLogger(__name__)

DB_FILENAME = "critical-packages.db"

_PACKAGE_COLUMNS = """
    id, ecosystem, name, purl, namespace, description, homepage,
    repository_url, licenses, normalized_licenses, latest_version,
    versions_count, downloads, downloads_period, dependent_packages_count,
    dependent_repos_count, first_release_at, latest_release_at
"""


def candidate_paths(override: Optional[str] = None) -> List[Path]:
    """
    Snapshot locations in probe order.

    Priority:
    1. Explicit override (ECOSYSTEMS_DB_PATH)
    2. '<cwd>/critical-packages.db'
    3. '~/.ecosystems/critical-packages.db'
    """
    paths: List[Path] = []
    if override:
        paths.append(Path(override).expanduser())
    paths.append(Path.cwd() / DB_FILENAME)
    paths.append(Path.home() / ".ecosystems" / DB_FILENAME)
    return paths


def _connect_readonly(path: Path) -> sqlite3.Connection:
    uri = f"{path.resolve().as_uri()}?mode=ro"
    conn = sqlite3.connect(uri, uri=True, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    try:
        conn.execute("PRAGMA query_only = ON")
        # Fails here for files that are not SQLite databases.
        conn.execute("SELECT count(*) FROM sqlite_master").fetchone()
    except sqlite3.Error:
        conn.close()
        raise
    return conn


class LocalStore:
    """Reads the local package snapshot (packages, versions, advisories, repo metadata)."""

    def __init__(self, conn: Optional[sqlite3.Connection] = None, path: Optional[Path] = None):
        self.conn = conn
        self.path = path

    @classmethod
    def open(cls, path: Path) -> "LocalStore":
        """Open one snapshot file read-only."""
        path = Path(path)
        if not path.exists():
            logger.error(f"Snapshot database not found: {path}")
            raise FileNotFoundError(f"Snapshot database not found: {path}")
        logger.debug(f"Connecting to snapshot database: {path}")
        return cls(_connect_readonly(path), path)

    @classmethod
    def discover(cls, override: Optional[str] = None) -> "LocalStore":
        """
        Open the first snapshot found among the candidate paths.

        A candidate that exists but cannot be opened is skipped. Returns an
        unavailable store when nothing usable is found.
        """
        for path in candidate_paths(override):
            if not path.exists():
                continue
            try:
                store = cls.open(path)
            except sqlite3.Error as e:
                logger.warning(f"Failed to open {path}: {e}")
                continue
            logger.info(f"Using database: {path}")
            return store

        logger.info("No local database found, using API only")
        return cls()

    @property
    def available(self) -> bool:
        return self.conn is not None

    def close(self):
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def _fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        try:
            return self.conn.execute(sql, params).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Database error running query: {e}", exc_info=True)
            raise database_error(str(e)) from e

    def _fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        try:
            return self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Database error running query: {e}", exc_info=True)
            raise database_error(str(e)) from e

    # ========================================================================
    # Point lookups
    # ========================================================================

    def get_package(self, ecosystem: str, name: str) -> Optional[PackageRecord]:
        """Find a package by exact (ecosystem, name)."""
        if not self.available:
            return None
        logger.debug(f"Querying package: {ecosystem}/{name}")
        row = self._fetch_one(
            f"SELECT {_PACKAGE_COLUMNS} FROM packages WHERE ecosystem = ? AND name = ?",
            (ecosystem, name),
        )
        return PackageRecord.from_row(row) if row else None

    def get_package_by_purl(self, purl: str) -> Optional[PackageRecord]:
        """Find a package by exact purl."""
        if not self.available:
            return None
        logger.debug(f"Querying package by purl: {purl}")
        row = self._fetch_one(
            f"SELECT {_PACKAGE_COLUMNS} FROM packages WHERE purl = ?",
            (purl,),
        )
        return PackageRecord.from_row(row) if row else None

    # ========================================================================
    # Per-package child rows
    # ========================================================================

    def get_versions(self, package_id: int) -> Optional[List[VersionRecord]]:
        """Versions of a package, newest first."""
        if not self.available:
            return None
        rows = self._fetch_all(
            """
            SELECT number, purl, licenses, integrity, published_at, download_url
            FROM versions
            WHERE package_id = ?
            ORDER BY published_at DESC
            """,
            (package_id,),
        )
        return [VersionRecord.model_validate(dict(row)) for row in rows]

    def get_advisories(self, package_id: int) -> Optional[List[AdvisoryRecord]]:
        if not self.available:
            return None
        rows = self._fetch_all(
            """
            SELECT uuid, url, title, description, severity, cvss_score, published_at
            FROM advisories
            WHERE package_id = ?
            """,
            (package_id,),
        )
        return [AdvisoryRecord.model_validate(dict(row)) for row in rows]

    def get_repo_metadata(self, package_id: int) -> Optional[RepoMetadata]:
        if not self.available:
            return None
        row = self._fetch_one(
            """
            SELECT owner, repo_name, full_name, host, language,
                   stargazers_count, forks_count, open_issues_count, archived, fork
            FROM repo_metadata
            WHERE package_id = ?
            """,
            (package_id,),
        )
        return RepoMetadata.from_row(row) if row else None

    # ========================================================================
    # Full-text search
    # ========================================================================

    def search_packages(self, query: str, limit: int = 20) -> Optional[List[PackageRecord]]:
        """
        Search package names and descriptions for a literal phrase.

        The query is wrapped in double quotes (embedded quotes doubled) so FTS5
        does not read '-' or other punctuation as operators.
        """
        if not self.available:
            return None
        phrase = '"' + query.replace('"', '""') + '"'
        rows = self._fetch_all(
            """
            SELECT p.id, p.ecosystem, p.name, p.description, p.licenses, p.downloads,
                   p.dependent_packages_count, p.repository_url
            FROM packages p
            JOIN packages_fts fts ON p.id = fts.rowid
            WHERE packages_fts MATCH ?
            LIMIT ?
            """,
            (phrase, limit),
        )
        return [PackageRecord.from_row(row) for row in rows]

    # ========================================================================
    # Aggregates
    # ========================================================================

    def get_build_info(self) -> Optional[BuildInfo]:
        if not self.available:
            return None
        row = self._fetch_one("SELECT * FROM build_info WHERE id = 1")
        return BuildInfo.model_validate(dict(row)) if row else BuildInfo()

    def get_ecosystem_counts(self) -> Optional[List[EcosystemCount]]:
        if not self.available:
            return None
        rows = self._fetch_all(
            """
            SELECT ecosystem, COUNT(*) AS count
            FROM packages
            GROUP BY ecosystem
            ORDER BY count DESC
            """
        )
        return [EcosystemCount(ecosystem=row["ecosystem"], count=row["count"]) for row in rows]

    def count_packages(self) -> Optional[int]:
        if not self.available:
            return None
        row = self._fetch_one("SELECT COUNT(*) AS count FROM packages")
        return row["count"]

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
