"""
Resolve package identifiers against the local snapshot first and the
packages.ecosyste.ms API second.

Precedence rules:
- Any operation with a local representation queries the snapshot first; a
  local hit is returned as-is and the API is not contacted.
- On a local miss the ecosystem is mapped to its registry; an unknown
  ecosystem fails before any network call.
- Misses and unparseable purls are plain ``None`` values that select the next
  step; only genuine failures raise ``EcosystemsError``.
"""
from __future__ import annotations

import logging
import time
from typing import Any, List, Optional, assert_never
from urllib.parse import quote

from ecosystems_lookup import __version__
from ecosystems_lookup.core.errors import EcosystemsError, invalid_ecosystem, invalid_input
from ecosystems_lookup.domain.models import (
    AdvisoryListing,
    AdvisoryRecord,
    ByIdentity,
    ByPurl,
    ByRepositoryUrl,
    DatabaseInfo,
    DependentsListing,
    HealthReport,
    LookupRequest,
    LookupResult,
    PackageRecord,
    RegistrySummary,
    RepoMetadata,
    RepositoryInfo,
    SearchResult,
    VersionListing,
    VersionRecord,
)
from ecosystems_lookup.domain.registries import ecosystem_to_registry, parse_purl
from ecosystems_lookup.services.api_client import EcosystemsClient
from ecosystems_lookup.storage.local_store import LocalStore

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 20
HEALTH_PROBE_PATH = "registries/npmjs.org"


def build_lookup_request(
    purl: Optional[str] = None,
    ecosystem: Optional[str] = None,
    name: Optional[str] = None,
    repository_url: Optional[str] = None,
) -> LookupRequest:
    """
    Pick the lookup variant from loose arguments.

    Precedence: purl, then ecosystem+name, then repository_url.
    """
    if purl:
        return ByPurl(purl=purl)
    if ecosystem and name:
        return ByIdentity(ecosystem=ecosystem, name=name)
    if repository_url:
        return ByRepositoryUrl(url=repository_url)
    raise invalid_input("Provide ecosystem+name, purl, or repository_url")


def _as_package_list(payload: Any) -> List[PackageRecord]:
    if isinstance(payload, list):
        return [PackageRecord.from_api(item) for item in payload if isinstance(item, dict)]
    if isinstance(payload, dict):
        return [PackageRecord.from_api(payload)]
    return []


class PackageResolver:
    """
    Local-then-remote lookups for packages and their versions, advisories,
    repository metadata and dependents.
    """

    def __init__(self, store: LocalStore, client: EcosystemsClient, health_timeout: float = 5.0):
        self.store = store
        self.client = client
        self.health_timeout = health_timeout

    def _registry_path(self, ecosystem: str, name: str, suffix: str = "") -> str:
        registry = ecosystem_to_registry(ecosystem)
        if registry is None:
            raise invalid_ecosystem(ecosystem)
        path = f"registries/{registry}/packages/{quote(name, safe='')}"
        return f"{path}/{suffix}" if suffix else path

    # ========================================================================
    # Package identity
    # ========================================================================

    async def resolve(self, request: LookupRequest) -> LookupResult:
        """Dispatch on the request variant."""
        if not isinstance(request, (ByIdentity, ByPurl, ByRepositoryUrl)):
            raise invalid_input("Provide ecosystem+name, purl, or repository_url")

        match request:
            case ByIdentity(ecosystem=ecosystem, name=name):
                return await self.get_package(ecosystem, name)
            case ByPurl(purl=purl):
                return await self._resolve_purl(purl)
            case ByRepositoryUrl(url=url):
                payload = await self.client.fetch("packages/lookup", {"repository_url": url})
                return LookupResult(source="api", payload=payload, packages=_as_package_list(payload))
            case _:
                assert_never(request)

    async def lookup(
        self,
        purl: Optional[str] = None,
        ecosystem: Optional[str] = None,
        name: Optional[str] = None,
        repository_url: Optional[str] = None,
    ) -> LookupResult:
        request = build_lookup_request(purl=purl, ecosystem=ecosystem, name=name, repository_url=repository_url)
        return await self.resolve(request)

    async def get_package(self, ecosystem: str, name: str) -> LookupResult:
        local = self.store.get_package(ecosystem, name)
        if local is not None:
            logger.debug(f"Local hit for {ecosystem}/{name}")
            return LookupResult(source="local", package=local)

        path = self._registry_path(ecosystem, name)
        payload = await self.client.fetch(path)
        package = PackageRecord.from_api(payload) if isinstance(payload, dict) else None
        return LookupResult(source="api", package=package, payload=payload)

    async def _resolve_purl(self, purl: str) -> LookupResult:
        local = self.store.get_package_by_purl(purl)
        if local is not None:
            logger.debug(f"Local hit for {purl}")
            return LookupResult(source="local", package=local)

        parsed = parse_purl(purl)
        if parsed is not None:
            return await self.get_package(parsed.ecosystem, parsed.name)

        payload = await self.client.fetch("packages/lookup", {"purl": purl})
        return LookupResult(source="api", payload=payload, packages=_as_package_list(payload))

    # ========================================================================
    # Per-package details
    # ========================================================================

    async def get_versions(self, ecosystem: str, name: str) -> VersionListing:
        local = self.store.get_package(ecosystem, name)
        if local is not None:
            versions = self.store.get_versions(local.id) or []
            return VersionListing(source="local", ecosystem=ecosystem, name=name, versions=versions)

        payload = await self.client.fetch(self._registry_path(ecosystem, name, "versions"))
        versions = [VersionRecord.from_api(v) for v in payload or [] if isinstance(v, dict)]
        return VersionListing(source="api", ecosystem=ecosystem, name=name, versions=versions)

    async def get_advisories(self, ecosystem: str, name: str) -> AdvisoryListing:
        local = self.store.get_package(ecosystem, name)
        if local is not None:
            advisories = self.store.get_advisories(local.id) or []
            return AdvisoryListing(source="local", ecosystem=ecosystem, name=name, advisories=advisories)

        # No dedicated endpoint; advisories are embedded in the package document.
        payload = await self.client.fetch(self._registry_path(ecosystem, name))
        embedded = (payload.get("advisories") if isinstance(payload, dict) else None) or []
        advisories = [AdvisoryRecord.from_api(a) for a in embedded if isinstance(a, dict)]
        return AdvisoryListing(source="api", ecosystem=ecosystem, name=name, advisories=advisories)

    async def get_repository(self, ecosystem: str, name: str) -> RepositoryInfo:
        local = self.store.get_package(ecosystem, name)
        if local is not None:
            return RepositoryInfo(
                source="local",
                ecosystem=ecosystem,
                name=name,
                repository_url=local.repository_url,
                repo=self.store.get_repo_metadata(local.id),
            )

        result = await self.get_package(ecosystem, name)
        payload = result.payload if isinstance(result.payload, dict) else {}
        repo_data = payload.get("repo_metadata")
        return RepositoryInfo(
            source=result.source,
            ecosystem=ecosystem,
            name=name,
            repository_url=payload.get("repository_url"),
            repo=RepoMetadata.from_row(repo_data) if isinstance(repo_data, dict) else None,
        )

    async def get_dependents(
        self,
        ecosystem: str,
        name: str,
        page: Optional[int] = None,
        per_page: Optional[int] = None,
    ) -> DependentsListing:
        """Reverse dependencies. Always served by the API; the snapshot has no dependents table."""
        path = self._registry_path(ecosystem, name, "dependent_packages")
        payload = await self.client.fetch(path, {"page": page, "per_page": per_page})
        return DependentsListing(
            ecosystem=ecosystem,
            name=name,
            page=page,
            per_page=per_page,
            dependents=_as_package_list(payload),
        )

    # ========================================================================
    # Search and diagnostics
    # ========================================================================

    def search(self, query: str, limit: Optional[int] = None) -> SearchResult:
        """Full-text search over the snapshot. There is no API fallback."""
        if not self.store.available:
            return SearchResult(query=query, database_loaded=False)
        results = self.store.search_packages(query, DEFAULT_SEARCH_LIMIT if limit is None else limit) or []
        return SearchResult(query=query, results=results)

    async def list_registries(self) -> List[RegistrySummary]:
        payload = await self.client.fetch("registries")
        registries = [RegistrySummary.model_validate(r) for r in payload or [] if isinstance(r, dict)]
        return sorted(registries, key=lambda r: r.packages_count or 0, reverse=True)

    def database_info(self) -> DatabaseInfo:
        if not self.store.available:
            return DatabaseInfo(loaded=False)

        build_info = self.store.get_build_info()
        ecosystems = self.store.get_ecosystem_counts() or []
        return DatabaseInfo(
            loaded=True,
            path=str(self.store.path) if self.store.path else None,
            built_at=build_info.built_at if build_info else None,
            total_packages=sum(e.count for e in ecosystems),
            ecosystems=ecosystems,
        )

    async def health_check(self) -> HealthReport:
        checks = {}

        if self.store.available:
            try:
                count = self.store.count_packages()
                database = f"OK ({count} packages)"
                checks["database"] = True
            except EcosystemsError as e:
                database = f"ERROR - {e.message}"
                checks["database"] = False
        else:
            database = "NOT LOADED (using API fallback)"

        latency_ms = None
        start = time.monotonic()
        try:
            await self.client.fetch(HEALTH_PROBE_PATH, timeout=self.health_timeout)
            latency_ms = int((time.monotonic() - start) * 1000)
            api = f"OK ({latency_ms}ms)"
            checks["api"] = True
        except EcosystemsError as e:
            api = f"ERROR - {e.message}"
            checks["api"] = False

        status = "HEALTHY" if all(checks.values()) else "DEGRADED"
        return HealthReport(
            status=status,
            version=__version__,
            database=database,
            api=api,
            api_latency_ms=latency_ms,
            checks=checks,
        )
