import os
from typing import Optional

from ecosystems_lookup.domain.models import API_BASE_URL, LookupSettings
from ecosystems_lookup.services.api_client import EcosystemsClient
from ecosystems_lookup.services.resolver import PackageResolver
from ecosystems_lookup.storage.local_store import LocalStore

DB_PATH_ENV_VAR = "ECOSYSTEMS_DB_PATH"
API_URL_ENV_VAR = "ECOSYSTEMS_API_URL"
API_TIMEOUT_ENV_VAR = "ECOSYSTEMS_API_TIMEOUT"
LOG_LEVEL_ENV_VAR = "ECOSYSTEMS_LOG_LEVEL"

_settings: Optional[LookupSettings] = None
_local_store: Optional[LocalStore] = None
_api_client: Optional[EcosystemsClient] = None
_resolver: Optional[PackageResolver] = None


def load_settings() -> LookupSettings:
    """Build settings from the environment, falling back to model defaults."""
    values = {
        "db_path": os.environ.get(DB_PATH_ENV_VAR) or None,
        "api_base_url": os.environ.get(API_URL_ENV_VAR) or API_BASE_URL,
        "log_level": os.environ.get(LOG_LEVEL_ENV_VAR) or "INFO",
    }
    timeout = os.environ.get(API_TIMEOUT_ENV_VAR)
    if timeout:
        values["api_timeout"] = float(timeout)
    return LookupSettings(**values)


def get_settings() -> LookupSettings:
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def get_local_store() -> LocalStore:
    """The process-wide snapshot handle, opened on first use and never reopened."""
    global _local_store
    if _local_store is None:
        _local_store = LocalStore.discover(get_settings().db_path)
    return _local_store


def get_api_client() -> EcosystemsClient:
    global _api_client
    if _api_client is None:
        settings = get_settings()
        _api_client = EcosystemsClient(settings.api_base_url, timeout=settings.api_timeout)
    return _api_client


def get_resolver() -> PackageResolver:
    global _resolver
    if _resolver is None:
        _resolver = PackageResolver(
            get_local_store(),
            get_api_client(),
            health_timeout=get_settings().health_timeout,
        )
    return _resolver
