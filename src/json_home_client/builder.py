"""
Builder for json-home services.

Every call returns a new builder; a builder is only turned into a service
once a host and a fetch capability are configured.

Example:
    service = (
        JsonHomeServiceBuilder()
        .add_host("https://api.example.com/", DirectLinkRelationType("profile"))
        .with_http_client(httpx.AsyncClient())
        .with_scheduler(AsyncioScheduler())
        .with_update_interval(timedelta(minutes=5))
        .build()
    )
"""
import logging
from dataclasses import dataclass, replace
from typing import Optional
from urllib.parse import urlparse

import httpx

from .cache import JsonHomeCache
from .config import Duration, JsonHomeCacheConfig, JsonHomeSettings, get_settings, to_seconds
from .errors import ConfigurationError
from .fetcher import HttpxDirectoryFetcher
from .service import JsonHomeService, OnDemandJsonHomeService
from .types import (
    DirectLinkRelationType,
    DirectoryFetcher,
    JsonHomeCacheEventListener,
    JsonHomeHost,
    LinkRelationType,
    Scheduler,
    TemplateExpander,
    TemplateLinkRelationType,
)

logger = logging.getLogger(__name__)


def _validate_url(url: str) -> None:
    if not url:
        raise ConfigurationError("Host url is required")
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ConfigurationError(f"Invalid host url: {url}")


@dataclass(frozen=True)
class JsonHomeServiceBuilder:
    """Immutable configuration for JsonHomeService / OnDemandJsonHomeService."""

    hosts: tuple = ()
    fetcher: Optional[DirectoryFetcher] = None
    http_client: Optional[httpx.AsyncClient] = None
    scheduler: Optional[Scheduler] = None
    update_interval_seconds: Optional[float] = None
    start_delay_seconds: Optional[float] = None
    expander: Optional[TemplateExpander] = None
    listeners: tuple = ()
    settings: Optional[JsonHomeSettings] = None

    def add_host(self, url: str, *relations: LinkRelationType) -> "JsonHomeServiceBuilder":
        """Register a json-home host and the relations resolved against it."""
        _validate_url(url)
        for relation in relations:
            if not isinstance(relation, (DirectLinkRelationType, TemplateLinkRelationType)):
                raise ConfigurationError(f"Not a link relation type: {relation!r}")
        return replace(self, hosts=self.hosts + (JsonHomeHost.of(url, relations),))

    def with_fetcher(self, fetcher: DirectoryFetcher) -> "JsonHomeServiceBuilder":
        """Use a custom fetcher. Replaces any http client set earlier."""
        return replace(self, fetcher=fetcher, http_client=None)

    def with_http_client(self, client: httpx.AsyncClient) -> "JsonHomeServiceBuilder":
        """Fetch with an HttpxDirectoryFetcher over ``client``. Replaces any fetcher set earlier."""
        return replace(self, http_client=client, fetcher=None)

    def with_scheduler(self, scheduler: Scheduler) -> "JsonHomeServiceBuilder":
        """Enable periodic background refresh."""
        return replace(self, scheduler=scheduler)

    with_caching = with_scheduler

    def with_update_interval(self, interval: Duration) -> "JsonHomeServiceBuilder":
        return replace(self, update_interval_seconds=to_seconds(interval, "update_interval"))

    def with_start_delay(self, delay: Duration) -> "JsonHomeServiceBuilder":
        return replace(self, start_delay_seconds=to_seconds(delay, "start_delay"))

    def with_expander(self, expander: TemplateExpander) -> "JsonHomeServiceBuilder":
        return replace(self, expander=expander)

    def with_listener(self, listener: JsonHomeCacheEventListener) -> "JsonHomeServiceBuilder":
        """Subscribe ``listener`` to the events of every cache built."""
        return replace(self, listeners=self.listeners + (listener,))

    def with_settings(self, settings: JsonHomeSettings) -> "JsonHomeServiceBuilder":
        return replace(self, settings=settings)

    def _check_required(self) -> None:
        if not self.hosts:
            raise ConfigurationError("At least one host must be added with add_host()")
        if self.fetcher is None and self.http_client is None:
            raise ConfigurationError("A fetch capability is required: call with_fetcher() or with_http_client()")

        seen: set[str] = set()
        for host in self.hosts:
            if host.url in seen:
                raise ConfigurationError(f"Host added more than once: {host.url}")
            seen.add(host.url)

    def _resolve_fetcher(self) -> tuple[DirectoryFetcher, bool]:
        """Return the fetcher and whether the built service owns it"""
        if self.fetcher is not None:
            return self.fetcher, False
        return HttpxDirectoryFetcher(self.http_client, settings=self._settings()), True

    def _settings(self) -> JsonHomeSettings:
        return self.settings or get_settings()

    def build_with_periodic_refresh(self) -> JsonHomeService:
        """
        Build a service with one refreshing cache per host and start them.
        Must be called where the scheduler can run (for AsyncioScheduler,
        inside a running event loop).

        Raises:
            ConfigurationError: if hosts, fetch capability or scheduler are missing
        """
        self._check_required()
        if self.scheduler is None:
            raise ConfigurationError(
                "Periodic refresh requires a scheduler: call with_scheduler() or use build_fetch_on_demand()"
            )

        fetcher, owned = self._resolve_fetcher()
        config = JsonHomeCacheConfig(
            update_interval_seconds=self.update_interval_seconds,
            start_delay_seconds=self.start_delay_seconds,
        )
        settings = self._settings()

        caches = []
        for host in self.hosts:
            cache = JsonHomeCache(host, fetcher, self.scheduler, config, settings)
            for listener in self.listeners:
                cache.on(listener)
            caches.append(cache)

        try:
            for cache in caches:
                cache.start()
        except Exception:
            for cache in caches:
                cache.stop()
            raise

        logger.info(f"Built json-home service with periodic refresh for {len(caches)} hosts")
        return JsonHomeService(caches, self.expander, owned_fetcher=fetcher if owned else None)

    def build(self) -> JsonHomeService:
        """Same as build_with_periodic_refresh()."""
        return self.build_with_periodic_refresh()

    def build_fetch_on_demand(self) -> OnDemandJsonHomeService:
        """
        Build a service that fetches the host document on every lookup.

        Raises:
            ConfigurationError: if hosts or fetch capability are missing
        """
        self._check_required()
        fetcher, owned = self._resolve_fetcher()
        logger.info(f"Built on-demand json-home service for {len(self.hosts)} hosts")
        return OnDemandJsonHomeService(self.hosts, fetcher, self.expander, owns_fetcher=owned)
