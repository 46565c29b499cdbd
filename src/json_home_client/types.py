"""
Type definitions for json_home_client
"""
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Iterable, Literal, Mapping, Optional, Union


@dataclass(frozen=True)
class DirectLinkRelationType:
    """A link relation that resolves to a literal ``href``"""

    name: str


@dataclass(frozen=True)
class TemplateLinkRelationType:
    """A link relation that resolves to an ``href-template``"""

    name: str


LinkRelationType = Union[DirectLinkRelationType, TemplateLinkRelationType]


@dataclass(frozen=True)
class JsonHomeHost:
    """
    One remote json-home directory.

    Hosts are used as registry keys, so equality and hashing cover the url
    and the relation set.
    """

    url: str
    """Absolute URL of the json-home document"""

    relations: frozenset = field(default_factory=frozenset)
    """Relation types the application resolves against this host"""

    @classmethod
    def of(cls, url: str, relations: Iterable[LinkRelationType] = ()) -> "JsonHomeHost":
        return cls(url=url, relations=frozenset(relations))

    @property
    def relation_names(self) -> frozenset:
        return frozenset(rel.name for rel in self.relations)


@dataclass(frozen=True)
class DirectEntry:
    """A directory entry carrying a literal URL"""

    href: str


@dataclass(frozen=True)
class TemplateEntry:
    """A directory entry carrying a URI template"""

    href_template: str


DirectoryEntry = Union[DirectEntry, TemplateEntry]


class Snapshot:
    """
    Immutable relation-name -> DirectoryEntry mapping from one successful fetch.

    Example:
        snapshot = Snapshot({"profile": DirectEntry("/api/profile")})
        snapshot.get("profile")  # DirectEntry(href='/api/profile')
    """

    __slots__ = ("_entries", "_fetched_at")

    def __init__(
        self,
        entries: Mapping[str, DirectoryEntry],
        fetched_at: Optional[float] = None,
    ) -> None:
        self._entries = MappingProxyType(dict(entries))
        self._fetched_at = time.time() if fetched_at is None else fetched_at

    @property
    def entries(self) -> Mapping[str, DirectoryEntry]:
        return self._entries

    @property
    def fetched_at(self) -> float:
        """When the document backing this snapshot was fetched (Unix timestamp)"""
        return self._fetched_at

    def get(self, relation_name: str) -> Optional[DirectoryEntry]:
        return self._entries.get(relation_name)

    def __contains__(self, relation_name: object) -> bool:
        return relation_name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Snapshot):
            return NotImplemented
        return dict(self._entries) == dict(other._entries)

    def __hash__(self) -> int:
        return hash(frozenset(self._entries.items()))

    def __repr__(self) -> str:
        return f"Snapshot(entries={dict(self._entries)!r}, fetched_at={self._fetched_at!r})"


@dataclass
class JsonHomeCacheStats:
    """Statistics from a json-home cache"""

    url: str
    """The json-home document URL"""

    populated: bool
    """Whether at least one fetch has succeeded"""

    stopped: bool
    """Whether the cache has been stopped"""

    fetch_attempts: int
    """Total fetch attempts"""

    fetch_successes: int
    """Total successful fetches"""

    fetch_failures: int
    """Total failed fetches"""

    relation_count: int
    """Number of relations in the current snapshot"""

    last_success_at: Optional[float] = None
    """When the last successful fetch completed"""

    last_failure_at: Optional[float] = None
    """When the last failed fetch completed"""

    last_error: Optional[str] = None
    """Message of the last fetch failure"""


# Event types
EventType = Literal[
    "fetch:start",
    "fetch:success",
    "fetch:error",
    "cache:stopped",
]


@dataclass
class JsonHomeCacheEvent:
    """Event emitted by a json-home cache"""

    type: EventType
    """Event type"""

    data: dict[str, Any] = field(default_factory=dict)
    """Event-specific data"""


# Event listener type
JsonHomeCacheEventListener = Callable[[JsonHomeCacheEvent], None]

# Task run by a scheduler
ScheduledTask = Callable[[], Awaitable[Any]]


class DirectoryFetcher(ABC):
    """Fetches and parses the json-home document of a host"""

    @abstractmethod
    async def fetch(self, host: JsonHomeHost) -> Snapshot:
        """
        Perform one round trip for ``host``.

        Raises:
            FetchError: on network failure, non-success status or a malformed document
        """
        pass

    async def close(self) -> None:
        """Release resources held by the fetcher"""
        pass


class TemplateExpander(ABC):
    """Expands URI templates"""

    @abstractmethod
    def expand(self, template: str, params: Mapping[str, Any]) -> str:
        """
        Expand ``template`` with ``params``.

        Raises:
            ExpansionError: when the template cannot be expanded
        """
        pass


class ScheduledHandle(ABC):
    """Handle returned by Scheduler.schedule_repeating"""

    @abstractmethod
    def cancel(self) -> None:
        """Cancel pending and future runs"""
        pass

    @abstractmethod
    def cancelled(self) -> bool:
        pass

    async def wait_closed(self) -> None:
        """Wait until the scheduled work has fully stopped"""
        pass


class Scheduler(ABC):
    """Drives periodic work"""

    @abstractmethod
    def schedule_repeating(
        self,
        initial_delay_seconds: float,
        interval_seconds: float,
        task: ScheduledTask,
    ) -> ScheduledHandle:
        """
        Run ``task`` once after ``initial_delay_seconds``, then again
        ``interval_seconds`` after each run completes, until cancelled.
        """
        pass
