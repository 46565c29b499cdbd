"""
json-home client: resolves link relation urls from periodically refreshed
json-home documents, with pluggable fetcher, scheduler and template expander.
"""
from .types import (
    DirectLinkRelationType,
    TemplateLinkRelationType,
    LinkRelationType,
    JsonHomeHost,
    DirectEntry,
    TemplateEntry,
    DirectoryEntry,
    Snapshot,
    JsonHomeCacheStats,
    JsonHomeCacheEvent,
    JsonHomeCacheEventListener,
    DirectoryFetcher,
    TemplateExpander,
    Scheduler,
    ScheduledHandle,
)
from .errors import (
    JsonHomeError,
    ConfigurationError,
    FetchError,
    ExpansionError,
)
from .config import (
    DEFAULT_UPDATE_INTERVAL_SECONDS,
    DEFAULT_START_DELAY_SECONDS,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    JsonHomeSettings,
    JsonHomeCacheConfig,
    get_settings,
    merge_config,
)
from .parser import parse_json_home
from .fetcher import HttpxDirectoryFetcher
from .scheduler import AsyncioScheduler, AsyncioScheduledHandle
from .template import UriTemplateExpander
from .cache import JsonHomeCache, create_json_home_cache
from .service import JsonHomeService, OnDemandJsonHomeService
from .builder import JsonHomeServiceBuilder


__all__ = [
    # Types
    "DirectLinkRelationType",
    "TemplateLinkRelationType",
    "LinkRelationType",
    "JsonHomeHost",
    "DirectEntry",
    "TemplateEntry",
    "DirectoryEntry",
    "Snapshot",
    "JsonHomeCacheStats",
    "JsonHomeCacheEvent",
    "JsonHomeCacheEventListener",
    "DirectoryFetcher",
    "TemplateExpander",
    "Scheduler",
    "ScheduledHandle",
    # Errors
    "JsonHomeError",
    "ConfigurationError",
    "FetchError",
    "ExpansionError",
    # Config
    "DEFAULT_UPDATE_INTERVAL_SECONDS",
    "DEFAULT_START_DELAY_SECONDS",
    "DEFAULT_REQUEST_TIMEOUT_SECONDS",
    "JsonHomeSettings",
    "JsonHomeCacheConfig",
    "get_settings",
    "merge_config",
    # Collaborators
    "parse_json_home",
    "HttpxDirectoryFetcher",
    "AsyncioScheduler",
    "AsyncioScheduledHandle",
    "UriTemplateExpander",
    # Cache / service
    "JsonHomeCache",
    "create_json_home_cache",
    "JsonHomeService",
    "OnDemandJsonHomeService",
    "JsonHomeServiceBuilder",
]


__version__ = "1.0.0"
