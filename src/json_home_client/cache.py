"""
Refreshing json-home cache - one per host.
"""
import asyncio
import logging
import time
from typing import Callable, Optional

from .config import JsonHomeCacheConfig, JsonHomeSettings, merge_config, validate_config
from .errors import ConfigurationError, FetchError
from .types import (
    DirectEntry,
    DirectLinkRelationType,
    DirectoryFetcher,
    JsonHomeCacheEvent,
    JsonHomeCacheEventListener,
    JsonHomeCacheStats,
    JsonHomeHost,
    LinkRelationType,
    ScheduledHandle,
    Scheduler,
    Snapshot,
    TemplateEntry,
    TemplateLinkRelationType,
)

logger = logging.getLogger(__name__)


class JsonHomeCache:
    """
    JSON Home Cache

    Keeps the json-home document of one host available for lookups:
    - Periodic refresh driven by an injected scheduler
    - Lookups read the current snapshot and never wait on I/O
    - Failed fetches keep the last good snapshot (stale-but-available)
    - At most one fetch in flight
    - Event emission for observability

    Example:
        cache = JsonHomeCache(
            JsonHomeHost.of("https://api.example.com/", [DirectLinkRelationType("profile")]),
            HttpxDirectoryFetcher(),
            AsyncioScheduler(),
        )
        cache.start()
        cache.lookup_direct("profile")  # None until the first fetch succeeds
    """

    def __init__(
        self,
        host: JsonHomeHost,
        fetcher: DirectoryFetcher,
        scheduler: Optional[Scheduler] = None,
        config: Optional[JsonHomeCacheConfig] = None,
        settings: Optional[JsonHomeSettings] = None,
    ) -> None:
        self._host = host
        self._fetcher = fetcher
        self._scheduler = scheduler
        self._config = merge_config(config, settings)
        validate_config(self._config)

        # Written only by _fetch_once; replaced whole, never edited
        self._snapshot: Optional[Snapshot] = None

        self._handle: Optional[ScheduledHandle] = None
        self._stopped = False
        self._refresh_lock = asyncio.Lock()
        self._listeners: set[JsonHomeCacheEventListener] = set()

        # Statistics
        self._fetch_attempts = 0
        self._fetch_successes = 0
        self._fetch_failures = 0
        self._last_success_at: Optional[float] = None
        self._last_failure_at: Optional[float] = None
        self._last_error: Optional[str] = None

    @property
    def host(self) -> JsonHomeHost:
        return self._host

    @property
    def config(self) -> JsonHomeCacheConfig:
        return self._config

    @property
    def snapshot(self) -> Optional[Snapshot]:
        """The current snapshot, or None while unpopulated"""
        return self._snapshot

    @property
    def is_populated(self) -> bool:
        return self._snapshot is not None

    @property
    def is_running(self) -> bool:
        return self._handle is not None and not self._stopped

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    def start(self) -> None:
        """
        Schedule the first fetch after the start delay and then one fetch per
        update interval, measured from the end of the previous fetch.
        """
        if self._stopped:
            raise RuntimeError(f"Cache for {self._host.url} has been stopped")
        if self._handle is not None:
            return
        if self._scheduler is None:
            raise ConfigurationError(f"No scheduler configured for {self._host.url}")

        self._handle = self._scheduler.schedule_repeating(
            self._config.start_delay_seconds,
            self._config.update_interval_seconds,
            self.refresh,
        )
        logger.info(
            f"Started json-home cache for {self._host.url} "
            f"(start_delay={self._config.start_delay_seconds}s, "
            f"update_interval={self._config.update_interval_seconds}s)"
        )

    async def refresh(self) -> bool:
        """
        Fetch the document once and publish it on success.

        Calls made while a fetch is running wait for it to finish before
        fetching themselves. Fetch errors are logged, never raised.

        Returns:
            True if a new snapshot was published
        """
        if self._stopped:
            return False

        async with self._refresh_lock:
            if self._stopped:
                return False
            return await self._fetch_once()

    async def _fetch_once(self) -> bool:
        """Perform one fetch attempt"""
        self._fetch_attempts += 1
        self._emit(JsonHomeCacheEvent(type="fetch:start", data={"url": self._host.url}))
        logger.debug(f"Fetching json-home document from {self._host.url}")

        start_time = time.monotonic()
        try:
            snapshot = await self._fetcher.fetch(self._host)
        except Exception as e:
            self._record_failure(e, time.monotonic() - start_time)
            return False

        if self._stopped:
            logger.debug(f"Discarding json-home document for stopped cache {self._host.url}")
            return False

        was_populated = self._snapshot is not None
        self._snapshot = snapshot

        self._fetch_successes += 1
        self._last_success_at = time.time()
        duration_seconds = time.monotonic() - start_time

        if not was_populated:
            logger.info(f"json-home cache for {self._host.url} populated with {len(snapshot)} relations")

        self._emit(JsonHomeCacheEvent(
            type="fetch:success",
            data={
                "url": self._host.url,
                "relation_count": len(snapshot),
                "duration_seconds": duration_seconds,
            },
        ))
        return True

    def _record_failure(self, error: Exception, duration_seconds: float) -> None:
        self._fetch_failures += 1
        self._last_failure_at = time.time()
        self._last_error = str(error)

        if isinstance(error, FetchError):
            logger.warning(
                f"Fetching json-home document from {self._host.url} failed: {error} "
                f"(serving {'last good snapshot' if self._snapshot is not None else 'nothing yet'})"
            )
        else:
            logger.warning(
                f"Unexpected error fetching json-home document from {self._host.url}: {error!r}",
                exc_info=True,
            )

        self._emit(JsonHomeCacheEvent(
            type="fetch:error",
            data={
                "url": self._host.url,
                "error": str(error),
                "populated": self._snapshot is not None,
                "duration_seconds": duration_seconds,
            },
        ))

    def lookup_direct(self, relation_name: str) -> Optional[str]:
        """
        Get the href of a direct relation.

        Returns None if the cache is unpopulated, the relation is absent or
        the relation is templated.
        """
        snapshot = self._snapshot
        if snapshot is None:
            return None
        entry = snapshot.get(relation_name)
        if isinstance(entry, DirectEntry):
            return entry.href
        return None

    def lookup_template(self, relation_name: str) -> Optional[str]:
        """
        Get the raw href-template of a templated relation.

        Returns None if the cache is unpopulated, the relation is absent or
        the relation is direct.
        """
        snapshot = self._snapshot
        if snapshot is None:
            return None
        entry = snapshot.get(relation_name)
        if isinstance(entry, TemplateEntry):
            return entry.href_template
        return None

    def get_url(self, relation: LinkRelationType) -> Optional[str]:
        """Look up a relation according to its kind"""
        if isinstance(relation, DirectLinkRelationType):
            return self.lookup_direct(relation.name)
        if isinstance(relation, TemplateLinkRelationType):
            return self.lookup_template(relation.name)
        raise TypeError(f"Unsupported relation type: {relation!r}")

    def stop(self) -> None:
        """Cancel scheduled fetches. The last snapshot stays readable."""
        if self._stopped:
            return
        self._stopped = True
        if self._handle is not None:
            self._handle.cancel()

        logger.info(f"Stopped json-home cache for {self._host.url}")
        self._emit(JsonHomeCacheEvent(type="cache:stopped", data={"url": self._host.url}))

    async def close(self) -> None:
        """Stop the cache and wait for the scheduled task to finish"""
        self.stop()
        if self._handle is not None:
            await self._handle.wait_closed()

    def get_stats(self) -> JsonHomeCacheStats:
        """Get cache statistics"""
        snapshot = self._snapshot
        return JsonHomeCacheStats(
            url=self._host.url,
            populated=snapshot is not None,
            stopped=self._stopped,
            fetch_attempts=self._fetch_attempts,
            fetch_successes=self._fetch_successes,
            fetch_failures=self._fetch_failures,
            relation_count=len(snapshot) if snapshot is not None else 0,
            last_success_at=self._last_success_at,
            last_failure_at=self._last_failure_at,
            last_error=self._last_error,
        )

    def on(self, listener: JsonHomeCacheEventListener) -> Callable[[], None]:
        """Subscribe to events"""
        self._listeners.add(listener)
        return lambda: self._listeners.discard(listener)

    def off(self, listener: JsonHomeCacheEventListener) -> None:
        """Unsubscribe from events"""
        self._listeners.discard(listener)

    def _emit(self, event: JsonHomeCacheEvent) -> None:
        """Emit an event"""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # Ignore listener errors
                pass

    def __repr__(self) -> str:
        return (
            f"JsonHomeCache(url={self._host.url!r}, populated={self.is_populated}, "
            f"stopped={self._stopped})"
        )


def create_json_home_cache(
    host: JsonHomeHost,
    fetcher: DirectoryFetcher,
    scheduler: Optional[Scheduler] = None,
    config: Optional[JsonHomeCacheConfig] = None,
) -> JsonHomeCache:
    """Factory function to create a json-home cache"""
    return JsonHomeCache(host, fetcher, scheduler, config)
