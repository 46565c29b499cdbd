"""
Shared fixtures for json_home_client tests.
"""
import asyncio
from typing import Any, Optional

import pytest

from json_home_client.config import JsonHomeSettings
from json_home_client.errors import FetchError
from json_home_client.parser import parse_json_home
from json_home_client.types import (
    DirectLinkRelationType,
    DirectoryFetcher,
    JsonHomeHost,
    ScheduledHandle,
    ScheduledTask,
    Scheduler,
    Snapshot,
    TemplateLinkRelationType,
)

HOST_URL = "https://api.example.com/"


class ScriptedFetcher(DirectoryFetcher):
    """Returns scripted documents/errors in order, repeating the last one."""

    def __init__(self, *results: Any, delay_seconds: float = 0.0) -> None:
        self.results = list(results)
        self.delay_seconds = delay_seconds
        self.calls: list[JsonHomeHost] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def fetch(self, host: JsonHomeHost) -> Snapshot:
        self.calls.append(host)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay_seconds:
                await asyncio.sleep(self.delay_seconds)
            index = min(len(self.calls), len(self.results)) - 1
            result = self.results[index]
            if isinstance(result, Exception):
                raise result
            if isinstance(result, Snapshot):
                return result
            return parse_json_home(result, url=host.url)
        finally:
            self.in_flight -= 1

    async def close(self) -> None:
        self.closed = True


class ManualHandle(ScheduledHandle):
    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    """Records schedules; tests run the task themselves."""

    def __init__(self) -> None:
        self.scheduled: list[tuple[float, float, ScheduledTask, ManualHandle]] = []

    def schedule_repeating(
        self,
        initial_delay_seconds: float,
        interval_seconds: float,
        task: ScheduledTask,
    ) -> ManualHandle:
        handle = ManualHandle()
        self.scheduled.append((initial_delay_seconds, interval_seconds, task, handle))
        return handle

    async def run_all(self) -> None:
        for _, _, task, handle in self.scheduled:
            if not handle.cancelled():
                await task()


@pytest.fixture
def settings() -> JsonHomeSettings:
    return JsonHomeSettings(
        update_interval_seconds=60.0,
        start_delay_seconds=0.0,
        request_timeout_seconds=5.0,
    )


@pytest.fixture
def search_rel() -> TemplateLinkRelationType:
    return TemplateLinkRelationType("search")


@pytest.fixture
def profile_rel() -> DirectLinkRelationType:
    return DirectLinkRelationType("profile")


@pytest.fixture
def host(search_rel, profile_rel) -> JsonHomeHost:
    return JsonHomeHost.of(HOST_URL, [search_rel, profile_rel])


@pytest.fixture
def document() -> dict:
    return {
        "profile": {"href": "/api/profile"},
        "search": {"href-template": "/search?q={query}"},
    }


@pytest.fixture
def manual_scheduler() -> ManualScheduler:
    return ManualScheduler()


def fetch_error(message: str = "boom", status_code: Optional[int] = None) -> FetchError:
    return FetchError(message, url=HOST_URL, status_code=status_code)
