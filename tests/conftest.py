from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

import pytest

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


class FakeBus:
    """In-memory stand-in for the host data bus."""

    def __init__(self) -> None:
        self.self_id: str | None = "urn:mrn:imo:mmsi:244000001"
        self.paths: dict[str, Any] = {
            "mmsi": "244000001",
            "navigation.position": {"value": {"latitude": 52.1, "longitude": 4.3}},
        }
        self.messages: list[tuple[str, Mapping[str, Any]]] = []
        self.subscriptions: list[tuple[Mapping[str, Any], Callable[[Mapping[str, Any]], None]]] = []
        self.unsubscribed = 0
        self.inject_error: Exception | None = None

    def get_self_path(self, path: str) -> Any:
        if path not in self.paths:
            raise KeyError(path)
        return self.paths[path]

    def handle_message(self, provider_id: str, delta: Mapping[str, Any]) -> None:
        if self.inject_error is not None:
            raise self.inject_error
        self.messages.append((provider_id, delta))

    def subscribe(self, subscription: Mapping[str, Any], on_delta: Callable[[Mapping[str, Any]], None]) -> Callable[[], None]:
        self.subscriptions.append((subscription, on_delta))

        def _unsubscribe() -> None:
            self.unsubscribed += 1

        return _unsubscribe


class FakeTransport:
    """Records requests; failures are configured per POST call number."""

    def __init__(self) -> None:
        self.get_response: Any = {"vessels": []}
        self.get_error: Exception | None = None
        self.gets: list[tuple[str, dict[str, str]]] = []
        self.posts: list[tuple[str, Mapping[str, Any]]] = []
        self.post_errors: dict[int, Exception] = {}

    async def get_json(self, url: str, params: Mapping[str, str]) -> Any:
        self.gets.append((url, dict(params)))
        if self.get_error is not None:
            raise self.get_error
        return self.get_response

    async def post_json(self, url: str, payload: Mapping[str, Any]) -> Any:
        self.posts.append((url, payload))
        error = self.post_errors.get(len(self.posts))
        if error is not None:
            raise error
        return {"status": "ok"}


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class MutableClock:
    def __init__(self, start: datetime = NOW) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def bus() -> FakeBus:
    return FakeBus()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()
