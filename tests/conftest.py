"""Pytest configuration and shared fixtures."""
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

from ecosystems_lookup.services.resolver import PackageResolver
from ecosystems_lookup.storage.local_store import LocalStore

SCHEMA = """
CREATE TABLE packages (
    id INTEGER PRIMARY KEY,
    ecosystem TEXT NOT NULL,
    name TEXT NOT NULL,
    purl TEXT,
    namespace TEXT,
    description TEXT,
    homepage TEXT,
    repository_url TEXT,
    licenses TEXT,
    normalized_licenses TEXT,
    latest_version TEXT,
    versions_count INTEGER,
    downloads INTEGER,
    downloads_period TEXT,
    dependent_packages_count INTEGER,
    dependent_repos_count INTEGER,
    first_release_at TEXT,
    latest_release_at TEXT
);
CREATE UNIQUE INDEX idx_packages_ecosystem_name ON packages(ecosystem, name);
CREATE INDEX idx_packages_purl ON packages(purl);

CREATE TABLE versions (
    id INTEGER PRIMARY KEY,
    package_id INTEGER NOT NULL,
    number TEXT NOT NULL,
    purl TEXT,
    licenses TEXT,
    integrity TEXT,
    published_at TEXT,
    download_url TEXT
);

CREATE TABLE advisories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    package_id INTEGER NOT NULL,
    uuid TEXT NOT NULL,
    url TEXT,
    title TEXT,
    description TEXT,
    severity TEXT,
    cvss_score REAL,
    published_at TEXT
);

CREATE TABLE repo_metadata (
    package_id INTEGER PRIMARY KEY,
    owner TEXT,
    repo_name TEXT,
    full_name TEXT,
    host TEXT,
    language TEXT,
    stargazers_count INTEGER,
    forks_count INTEGER,
    open_issues_count INTEGER,
    archived INTEGER,
    fork INTEGER
);

CREATE TABLE build_info (
    id INTEGER PRIMARY KEY,
    built_at TEXT,
    package_count INTEGER
);

CREATE VIRTUAL TABLE packages_fts USING fts5(name, description);
"""

PACKAGES = [
    (1, "npm", "lodash", "pkg:npm/lodash", None, "Lodash utility library",
     "https://lodash.com/", "https://github.com/lodash/lodash", "MIT", '["MIT"]',
     "4.17.21", 1, 1000000, "last-month", 150000, 2000000,
     "2012-04-23T00:00:00Z", "2021-02-20T00:00:00Z"),
    (2, "npm", "better-sqlite3", "pkg:npm/better-sqlite3", None,
     "Wrapper around better-sqlite3 for fast queries",
     None, "https://github.com/WiseLibs/better-sqlite3", "MIT", '["MIT"]',
     "11.0.0", 3, 500000, "last-month", 3000, 40000, None, None),
    (3, "pypi", "requests", "pkg:pypi/requests", None, "Python HTTP for Humans.",
     "https://requests.readthedocs.io", "https://github.com/psf/requests", "Apache-2.0",
     '["Apache-2.0"]', "2.32.0", 3, 300000000, "last-month", 80000, 900000, None, None),
]


def build_snapshot(path: Path) -> Path:
    """Write a small snapshot database to ``path``."""
    conn = sqlite3.connect(str(path))
    conn.executescript(SCHEMA)
    conn.executemany(
        "INSERT INTO packages VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        PACKAGES,
    )
    conn.executemany(
        "INSERT INTO packages_fts (rowid, name, description) VALUES (?, ?, ?)",
        [(p[0], p[2], p[5]) for p in PACKAGES],
    )
    conn.executemany(
        "INSERT INTO versions (package_id, number, published_at) VALUES (?, ?, ?)",
        [
            (1, "4.17.21", "2021-02-20"),
            (3, "2.31.0", "2023-05-22"),
            (3, "2.32.0", "2024-05-20"),
            (3, "2.30.0", "2023-05-03"),
        ],
    )
    conn.execute(
        "INSERT INTO advisories (package_id, uuid, title, severity, cvss_score) VALUES (?, ?, ?, ?, ?)",
        (1, "GHSA-xxxx-xxxx-xxxx", "Prototype Pollution", "HIGH", 7.5),
    )
    conn.execute(
        """
        INSERT INTO repo_metadata
            (package_id, owner, repo_name, full_name, host, language,
             stargazers_count, forks_count, open_issues_count, archived, fork)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (1, "lodash", "lodash", "lodash/lodash", "GitHub", "JavaScript", 50000, 5000, 100, 0, 0),
    )
    conn.execute("INSERT INTO build_info (id, built_at, package_count) VALUES (1, ?, ?)", ("2025-01-01T00:00:00Z", 3))
    conn.commit()
    conn.close()
    return path


class FakeClient:
    """Stands in for EcosystemsClient; records every call."""

    def __init__(self, responses: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None):
        self.responses = responses or {}
        self.error = error
        self.calls: List[Tuple[str, Optional[Dict[str, Any]]]] = []

    async def fetch(self, path: str, params: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None) -> Any:
        self.calls.append((path, params))
        if self.error is not None:
            raise self.error
        return self.responses.get(path)


@pytest.fixture
def snapshot_path(tmp_path) -> Path:
    return build_snapshot(tmp_path / "critical-packages.db")


@pytest.fixture
def store(snapshot_path):
    with LocalStore.open(snapshot_path) as s:
        yield s


@pytest.fixture
def empty_store():
    """A store with no snapshot loaded."""
    return LocalStore()


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def make_client():
    """Factory for FakeClient instances with canned responses or a raised error."""
    return FakeClient


@pytest.fixture
def resolver(store, fake_client):
    return PackageResolver(store, fake_client)


@pytest.fixture
def sample_package_payload() -> Dict[str, Any]:
    """A packages.ecosyste.ms package document, trimmed."""
    return {
        "id": 987654,
        "name": "left-pad",
        "ecosystem": "npm",
        "purl": "pkg:npm/left-pad",
        "description": "String left pad",
        "licenses": "WTFPL",
        "normalized_licenses": ["WTFPL"],
        "homepage": "https://github.com/stevemao/left-pad#readme",
        "repository_url": "https://github.com/stevemao/left-pad",
        "latest_release_number": "1.3.0",
        "versions_count": 11,
        "downloads": 2500000,
        "dependent_packages_count": 500,
        "first_release_published_at": "2014-03-01T00:00:00.000Z",
        "latest_release_published_at": "2018-04-09T00:00:00.000Z",
        "repo_metadata": {
            "full_name": "stevemao/left-pad",
            "owner": "stevemao",
            "name": "left-pad",
            "language": "JavaScript",
            "stargazers_count": 1200,
            "forks_count": 90,
            "open_issues_count": 4,
            "archived": True,
            "fork": False,
            "host": {"name": "GitHub", "url": "https://github.com"},
        },
        "advisories": [
            {
                "uuid": "GHSA-aaaa-bbbb-cccc",
                "url": "https://github.com/advisories/GHSA-aaaa-bbbb-cccc",
                "title": "Regular expression denial of service",
                "severity": "MODERATE",
                "cvss_score": 5.3,
                "packages": [
                    {
                        "package_name": "left-pad",
                        "versions": [
                            {"vulnerable_version_range": "< 1.2.0", "first_patched_version": "1.2.0"},
                            {"vulnerable_version_range": ">= 1.2.1, < 1.3.0", "first_patched_version": "1.3.0"},
                            {"vulnerable_version_range": ">= 0.0.1, < 0.0.3", "first_patched_version": "1.2.0"},
                        ],
                    }
                ],
            }
        ],
    }
