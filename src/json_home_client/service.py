"""
json-home service - resolves relation URLs per host.
"""
import asyncio
import logging
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Union

from .cache import JsonHomeCache
from .errors import FetchError
from .template import UriTemplateExpander
from .types import (
    DirectEntry,
    DirectLinkRelationType,
    DirectoryFetcher,
    JsonHomeHost,
    LinkRelationType,
    TemplateEntry,
    TemplateExpander,
    TemplateLinkRelationType,
)

logger = logging.getLogger(__name__)

HostRef = Union[JsonHomeHost, str]


def _index_by_url(hosts: Iterable[JsonHomeHost]) -> dict[str, JsonHomeHost]:
    return {host.url: host for host in hosts}


class JsonHomeService:
    """
    Resolves urls (href/href-template) for a json-home host and a link relation
    from per-host refreshing caches.

    Unknown hosts and unknown relations both resolve to None.

    Example:
        service = (
            JsonHomeServiceBuilder()
            .add_host("https://api.example.com/", TemplateLinkRelationType("search"))
            .with_http_client(httpx.AsyncClient())
            .with_scheduler(AsyncioScheduler())
            .build()
        )
        service.resolve_template("https://api.example.com/", "search", {"query": "widgets"})
    """

    def __init__(
        self,
        caches: Iterable[JsonHomeCache],
        expander: Optional[TemplateExpander] = None,
        owned_fetcher: Optional[DirectoryFetcher] = None,
    ) -> None:
        caches_by_host: dict[JsonHomeHost, JsonHomeCache] = {}
        for cache in caches:
            caches_by_host[cache.host] = cache
        self._caches = MappingProxyType(caches_by_host)
        self._hosts_by_url = _index_by_url(caches_by_host)
        self._expander = expander or UriTemplateExpander()
        self._owned_fetcher = owned_fetcher

    @property
    def caches(self) -> Mapping[JsonHomeHost, JsonHomeCache]:
        return self._caches

    @property
    def hosts(self) -> list[JsonHomeHost]:
        return list(self._caches)

    def get_cache(self, host: HostRef) -> Optional[JsonHomeCache]:
        """Get the cache for a host object or its url"""
        if isinstance(host, str):
            host = self._hosts_by_url.get(host)
            if host is None:
                return None
        return self._caches.get(host)

    def resolve_direct(self, host: HostRef, relation_name: str) -> Optional[str]:
        """
        Determines the url (json-home "href") for the given host and direct
        link relation.
        """
        cache = self.get_cache(host)
        if cache is None:
            return None
        return cache.lookup_direct(relation_name)

    def resolve_template(
        self,
        host: HostRef,
        relation_name: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Optional[str]:
        """
        Determines the url (json-home "href-template") for the given host and
        template link relation, with template variables replaced from params.

        Raises:
            ExpansionError: if the href-template cannot be expanded
        """
        cache = self.get_cache(host)
        if cache is None:
            return None
        href_template = cache.lookup_template(relation_name)
        if href_template is None:
            return None
        return self._expander.expand(href_template, params or {})

    def get_url(
        self,
        host: HostRef,
        relation: LinkRelationType,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Optional[str]:
        """Resolve a relation according to its kind"""
        if isinstance(relation, DirectLinkRelationType):
            return self.resolve_direct(host, relation.name)
        if isinstance(relation, TemplateLinkRelationType):
            return self.resolve_template(host, relation.name, params)
        raise TypeError(f"Unsupported relation type: {relation!r}")

    def start(self) -> None:
        """Start every cache"""
        for cache in self._caches.values():
            cache.start()

    async def refresh_all(self) -> dict[JsonHomeHost, bool]:
        """Refresh every cache now; hosts refresh independently"""
        hosts = list(self._caches)
        results = await asyncio.gather(*(self._caches[h].refresh() for h in hosts))
        return dict(zip(hosts, results))

    def stop(self) -> None:
        """Stop every cache"""
        for cache in self._caches.values():
            cache.stop()

    async def close(self) -> None:
        """Stop every cache, wait for their tasks and close an owned fetcher"""
        for cache in self._caches.values():
            await cache.close()
        if self._owned_fetcher is not None:
            await self._owned_fetcher.close()
        logger.info(f"Closed json-home service ({len(self._caches)} hosts)")

    async def __aenter__(self) -> "JsonHomeService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class OnDemandJsonHomeService:
    """
    json-home service without caching: every lookup fetches the host's
    document once. Fetch failures are logged and resolve to None.

    Example:
        service = (
            JsonHomeServiceBuilder()
            .add_host("https://api.example.com/", DirectLinkRelationType("profile"))
            .with_http_client(httpx.AsyncClient())
            .build_fetch_on_demand()
        )
        await service.resolve_direct("https://api.example.com/", "profile")
    """

    def __init__(
        self,
        hosts: Iterable[JsonHomeHost],
        fetcher: DirectoryFetcher,
        expander: Optional[TemplateExpander] = None,
        owns_fetcher: bool = False,
    ) -> None:
        self._hosts_by_url = _index_by_url(hosts)
        self._hosts = frozenset(self._hosts_by_url.values())
        self._fetcher = fetcher
        self._expander = expander or UriTemplateExpander()
        self._owns_fetcher = owns_fetcher

    @property
    def hosts(self) -> list[JsonHomeHost]:
        return list(self._hosts_by_url.values())

    def _find_host(self, host: HostRef) -> Optional[JsonHomeHost]:
        if isinstance(host, str):
            return self._hosts_by_url.get(host)
        return host if host in self._hosts else None

    async def _fetch_entry(self, host: HostRef, relation_name: str):
        known_host = self._find_host(host)
        if known_host is None:
            return None
        try:
            snapshot = await self._fetcher.fetch(known_host)
        except FetchError as e:
            logger.warning(f"Fetching json-home document from {known_host.url} failed: {e}")
            return None
        return snapshot.get(relation_name)

    async def resolve_direct(self, host: HostRef, relation_name: str) -> Optional[str]:
        entry = await self._fetch_entry(host, relation_name)
        if isinstance(entry, DirectEntry):
            return entry.href
        return None

    async def resolve_template(
        self,
        host: HostRef,
        relation_name: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Optional[str]:
        entry = await self._fetch_entry(host, relation_name)
        if isinstance(entry, TemplateEntry):
            return self._expander.expand(entry.href_template, params or {})
        return None

    async def get_url(
        self,
        host: HostRef,
        relation: LinkRelationType,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Optional[str]:
        if isinstance(relation, DirectLinkRelationType):
            return await self.resolve_direct(host, relation.name)
        if isinstance(relation, TemplateLinkRelationType):
            return await self.resolve_template(host, relation.name, params)
        raise TypeError(f"Unsupported relation type: {relation!r}")

    async def close(self) -> None:
        """Close the fetcher if this service owns it"""
        if self._owns_fetcher:
            await self._fetcher.close()

    async def __aenter__(self) -> "OnDemandJsonHomeService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
