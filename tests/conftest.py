"""
Pytest configuration and shared fixtures
"""
from datetime import datetime, timedelta, timezone

import pytest

from intentui.domain.components.component_registry import ComponentRegistry
from intentui.domain.context.memory.fact_store import FactStore
from intentui.domain.context.memory.intent_memory import ReferenceMemory
from intentui.domain.context.state.state_engine import UIStateEngine
from intentui.infrastructure.config.settings import Settings
from intentui.session import UISession


class FakeClock:
    """Deterministic clock that only moves when told to"""

    def __init__(self, start: datetime = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def facts(clock):
    return FactStore(clock=clock)


@pytest.fixture
def memory(clock):
    return ReferenceMemory(max_intents=50, max_age=timedelta(hours=1), clock=clock)


@pytest.fixture
def engine():
    return UIStateEngine()


@pytest.fixture
def registry():
    return ComponentRegistry()


@pytest.fixture
def session(settings, clock):
    return UISession(settings=settings, clock=clock)
