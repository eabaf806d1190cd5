from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tasktracker.alerts import InAppPlatform
from tasktracker.main import create_app
from tasktracker.repositories import InMemoryRepository

from .fakes import FakeClock, FakePlatform, FakeTimerQueue
from .helpers import make_settings


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def timers(clock: FakeClock) -> FakeTimerQueue:
    return FakeTimerQueue(clock)


@pytest.fixture()
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture()
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture()
def in_app_platform() -> InAppPlatform:
    return InAppPlatform("granted")


@pytest.fixture()
def app(repository: InMemoryRepository, in_app_platform: InAppPlatform):
    return create_app(make_settings(), repository=repository, platform=in_app_platform)


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c
