from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ecosystems_lookup.core.dependencies import get_resolver
from ecosystems_lookup.core.errors import package_not_found
from ecosystems_lookup.domain.models import (
    AdvisoryListing,
    DatabaseInfo,
    DependentsListing,
    LookupResult,
    RegistrySummary,
    RepositoryInfo,
    SearchResult,
    VersionListing,
)
from ecosystems_lookup.services.resolver import PackageResolver

logger = logging.getLogger(__name__)
router = APIRouter()

# ---------------------------------------------------------------------------
# 1. Package identity
# ---------------------------------------------------------------------------


@router.get("/versions/{ecosystem}/{name:path}")
async def get_package_versions(
    ecosystem: str,
    name: str,
    resolver: PackageResolver = Depends(get_resolver),
) -> VersionListing:
    """
    Version history with release dates, newest first.
    """
    return await resolver.get_versions(ecosystem, name)


@router.get("/advisories/{ecosystem}/{name:path}")
async def get_package_advisories(
    ecosystem: str,
    name: str,
    resolver: PackageResolver = Depends(get_resolver),
) -> AdvisoryListing:
    """
    Security advisories affecting the package.
    """
    return await resolver.get_advisories(ecosystem, name)


@router.get("/repository/{ecosystem}/{name:path}")
async def get_package_repository(
    ecosystem: str,
    name: str,
    resolver: PackageResolver = Depends(get_resolver),
) -> RepositoryInfo:
    """
    Source repository stats: stars, forks, language, open issues.
    """
    return await resolver.get_repository(ecosystem, name)


@router.get("/dependents/{ecosystem}/{name:path}")
async def get_package_dependents(
    ecosystem: str,
    name: str,
    page: Optional[int] = Query(default=None, ge=1),
    per_page: Optional[int] = Query(default=None, ge=1, le=100),
    resolver: PackageResolver = Depends(get_resolver),
) -> DependentsListing:
    """
    Packages that depend on this one (reverse dependencies).
    """
    return await resolver.get_dependents(ecosystem, name, page=page, per_page=per_page)


@router.get("/packages/{ecosystem}/{name:path}")
async def get_package(
    ecosystem: str,
    name: str,
    resolver: PackageResolver = Depends(get_resolver),
) -> LookupResult:
    """
    License, latest version, description, downloads and dependents count.
    """
    return await resolver.get_package(ecosystem, name)


@router.get("/lookup")
async def lookup_package(
    purl: Optional[str] = None,
    ecosystem: Optional[str] = None,
    name: Optional[str] = None,
    repository_url: Optional[str] = None,
    resolver: PackageResolver = Depends(get_resolver),
) -> LookupResult:
    """
    Find packages by purl, ecosystem+name, or repository URL.
    """
    result = await resolver.lookup(
        purl=purl,
        ecosystem=ecosystem,
        name=name,
        repository_url=repository_url,
    )
    if result.package is None and not result.packages:
        identifier = purl or repository_url or f"{ecosystem}/{name}"
        raise package_not_found(identifier)
    return result


# ---------------------------------------------------------------------------
# 2. Search and diagnostics
# ---------------------------------------------------------------------------


@router.get("/search")
async def search_packages(
    q: str = Query(min_length=1, description="Keywords to search for."),
    limit: int = Query(default=20, ge=1, le=100),
    resolver: PackageResolver = Depends(get_resolver),
) -> SearchResult:
    """
    Keyword search across all ecosystems in the local snapshot.
    """
    return resolver.search(q, limit)


@router.get("/registries")
async def list_registries(resolver: PackageResolver = Depends(get_resolver)) -> List[RegistrySummary]:
    return await resolver.list_registries()


@router.get("/database")
async def get_database_info(resolver: PackageResolver = Depends(get_resolver)) -> DatabaseInfo:
    return resolver.database_info()
