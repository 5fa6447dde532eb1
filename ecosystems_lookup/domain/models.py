"""
Pydantic models for package identity resolution.

This module defines all data models used throughout the application, including:
- Package, version, advisory and repository records
- Lookup requests (a tagged union) and source-tagged results
- Diagnostics (database info, health report, registry listing)
- Runtime settings

Records validate both from local snapshot rows and from packages.ecosyste.ms
payloads; the ``from_row``/``from_api`` constructors map the two column
vocabularies onto one field set.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

API_BASE_URL = "https://packages.ecosyste.ms/api/v1"

# Where a result came from.
Source = Literal["local", "api"]


def _as_list(value: Any) -> List[str]:
    """Normalize a license/list column that may be JSON text, a string or a list."""
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return [str(v) for v in value]
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return [part.strip() for part in value.split(",") if part.strip()]
        if isinstance(parsed, list):
            return [str(v) for v in parsed]
        return [str(parsed)]
    return [str(value)]


def _as_licenses(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, list):
        return ", ".join(str(v) for v in value) or None
    return str(value)


# ---------------------------------------------------------------------------
# Package Records
# ---------------------------------------------------------------------------


class PackageRecord(BaseModel):
    """
    One package in one ecosystem.

    Identity key is (ecosystem, name). Records resolved from the local
    snapshot and from the API expose exactly this field set; ``id`` is only
    populated for local rows.
    """

    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = Field(
        default=None,
        description="Row id in the local snapshot (None for API records).",
    )
    ecosystem: Optional[str] = Field(default=None, description="Ecosystem short name, e.g. 'npm'.")
    name: Optional[str] = Field(default=None, description="Package name as published in its registry.")
    purl: Optional[str] = Field(default=None, description="Package URL, e.g. 'pkg:npm/lodash'.")
    namespace: Optional[str] = Field(default=None, description="Registry namespace, if any.")
    description: Optional[str] = None
    licenses: Optional[str] = Field(default=None, description="License expression as published.")
    normalized_licenses: List[str] = Field(
        default_factory=list,
        description="SPDX identifiers derived from the published license.",
    )
    homepage: Optional[str] = None
    repository_url: Optional[str] = None
    latest_version: Optional[str] = None
    versions_count: Optional[int] = None
    downloads: Optional[int] = None
    downloads_period: Optional[str] = None
    dependent_packages_count: Optional[int] = None
    dependent_repos_count: Optional[int] = None
    first_release_at: Optional[str] = None
    latest_release_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PackageRecord":
        """Build a record from a ``packages`` table row."""
        data = dict(row)
        data["normalized_licenses"] = _as_list(data.get("normalized_licenses"))
        return cls.model_validate(data)

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "PackageRecord":
        """
        Build a record from a packages.ecosyste.ms package document.

        The API names release fields differently from the snapshot
        (``latest_release_number``, ``*_release_published_at``).
        """
        data = dict(payload)
        data.pop("id", None)
        data["licenses"] = _as_licenses(data.get("licenses"))
        data["normalized_licenses"] = _as_list(data.get("normalized_licenses"))
        data["latest_version"] = data.get("latest_version") or data.get("latest_release_number")
        data["first_release_at"] = data.get("first_release_at") or data.get("first_release_published_at")
        data["latest_release_at"] = data.get("latest_release_at") or data.get("latest_release_published_at")
        return cls.model_validate(data)


class VersionRecord(BaseModel):
    """A single published release."""

    model_config = ConfigDict(extra="ignore")

    number: Optional[str] = Field(default=None, description="Version string, e.g. '4.17.21'.")
    purl: Optional[str] = None
    licenses: Optional[str] = None
    integrity: Optional[str] = Field(default=None, description="Registry-provided integrity hash.")
    published_at: Optional[str] = None
    download_url: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "VersionRecord":
        data = dict(payload)
        data["licenses"] = _as_licenses(data.get("licenses"))
        return cls.model_validate(data)


class AdvisoryRecord(BaseModel):
    """
    A security advisory affecting a package.

    API advisories embed per-package version ranges under
    ``packages[].versions[]``; those are flattened into ``affected_ranges``
    and ``fixed_versions``.
    """

    model_config = ConfigDict(extra="ignore")

    uuid: Optional[str] = None
    url: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    severity: Optional[str] = None
    cvss_score: Optional[float] = None
    published_at: Optional[str] = None
    affected_ranges: List[str] = Field(default_factory=list)
    fixed_versions: List[str] = Field(default_factory=list)

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "AdvisoryRecord":
        data = dict(payload)
        packages = data.get("packages") or []
        versions = (packages[0].get("versions") if packages else None) or []

        ranges: List[str] = []
        fixes: List[str] = []
        for v in versions:
            if v.get("vulnerable_version_range"):
                ranges.append(v["vulnerable_version_range"])
            fixed = v.get("first_patched_version")
            if fixed and fixed not in fixes:
                fixes.append(fixed)

        data["affected_ranges"] = ranges
        data["fixed_versions"] = fixes
        return cls.model_validate(data)


class RepoMetadata(BaseModel):
    """Source-repository statistics for a package."""

    model_config = ConfigDict(extra="ignore")

    owner: Optional[str] = None
    repo_name: Optional[str] = None
    full_name: Optional[str] = None
    host: Optional[str] = Field(default=None, description="Hosting service name, e.g. 'GitHub'.")
    language: Optional[str] = None
    stars: Optional[int] = None
    forks: Optional[int] = None
    open_issues: Optional[int] = None
    archived: bool = False
    fork: bool = False

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RepoMetadata":
        """Build from a ``repo_metadata`` row or an API ``repo_metadata`` document."""
        data = dict(row)
        host = data.get("host")
        if isinstance(host, dict):
            host = host.get("name")
        return cls(
            owner=data.get("owner"),
            repo_name=data.get("repo_name") or data.get("name"),
            full_name=data.get("full_name"),
            host=host,
            language=data.get("language"),
            stars=data.get("stargazers_count"),
            forks=data.get("forks_count"),
            open_issues=data.get("open_issues_count"),
            archived=bool(data.get("archived")),
            fork=bool(data.get("fork")),
        )


# ---------------------------------------------------------------------------
# Lookup Requests
# ---------------------------------------------------------------------------


class ByIdentity(BaseModel):
    kind: Literal["identity"] = "identity"
    ecosystem: str
    name: str


class ByPurl(BaseModel):
    kind: Literal["purl"] = "purl"
    purl: str


class ByRepositoryUrl(BaseModel):
    kind: Literal["repository_url"] = "repository_url"
    url: str


LookupRequest = Annotated[
    Union[ByIdentity, ByPurl, ByRepositoryUrl],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Lookup Results
# ---------------------------------------------------------------------------


class LookupResult(BaseModel):
    """
    Outcome of a package resolution.

    ``source`` is always set. Local hits fill ``package``; API hits keep the
    untouched response in ``payload`` and a normalized copy in ``package``
    (single document) or ``packages`` (lookup list).
    """

    source: Source
    package: Optional[PackageRecord] = None
    packages: List[PackageRecord] = Field(default_factory=list)
    payload: Optional[Any] = None


class VersionListing(BaseModel):
    source: Source
    ecosystem: str
    name: str
    versions: List[VersionRecord] = Field(default_factory=list)


class AdvisoryListing(BaseModel):
    source: Source
    ecosystem: str
    name: str
    advisories: List[AdvisoryRecord] = Field(default_factory=list)


class RepositoryInfo(BaseModel):
    source: Source
    ecosystem: str
    name: str
    repository_url: Optional[str] = None
    repo: Optional[RepoMetadata] = None


class DependentsListing(BaseModel):
    source: Source = "api"
    ecosystem: str
    name: str
    page: Optional[int] = None
    per_page: Optional[int] = None
    dependents: List[PackageRecord] = Field(default_factory=list)


class SearchResult(BaseModel):
    """
    Full-text search outcome. ``database_loaded`` is False when no local
    snapshot is available; that is a normal state, not an error.
    """

    source: Source = "local"
    query: str
    database_loaded: bool = True
    results: List[PackageRecord] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


class BuildInfo(BaseModel):
    """The snapshot's ``build_info`` singleton row."""

    model_config = ConfigDict(extra="allow")

    built_at: Optional[str] = None


class EcosystemCount(BaseModel):
    ecosystem: str
    count: int


class RegistrySummary(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    ecosystem: Optional[str] = None
    url: Optional[str] = None
    packages_count: Optional[int] = None


class DatabaseInfo(BaseModel):
    loaded: bool
    path: Optional[str] = None
    built_at: Optional[str] = None
    total_packages: int = 0
    ecosystems: List[EcosystemCount] = Field(default_factory=list)


class HealthReport(BaseModel):
    status: Literal["HEALTHY", "DEGRADED"]
    version: str
    database: str
    api: str
    api_latency_ms: Optional[int] = None
    checks: Dict[str, bool] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class LookupSettings(BaseModel):
    """
    Runtime configuration, populated from environment variables by
    ``core.dependencies.load_settings``.
    """

    db_path: Optional[str] = Field(
        default=None,
        description="Explicit snapshot path (ECOSYSTEMS_DB_PATH). Probed before the default locations.",
    )
    api_base_url: str = Field(
        default=API_BASE_URL,
        description="Base URL of the aggregation API (ECOSYSTEMS_API_URL).",
    )
    api_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-request bound in seconds for API calls (ECOSYSTEMS_API_TIMEOUT).",
    )
    health_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Bound in seconds for the health-check API probe.",
    )
    log_level: str = Field(
        default="INFO",
        description="Root logging level (ECOSYSTEMS_LOG_LEVEL).",
    )
