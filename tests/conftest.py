"""
Pytest configuration and shared fixtures for discord-delete tests.
"""
import pytest
import requests

from discord_delete.config import Settings
from discord_delete.models import RunCounters
from discord_delete.transport import Dispatcher
from tests.fixtures.fake_discord import API_BASE, FakeDiscord


@pytest.fixture
def sleeps():
    """Records every requested sleep instead of sleeping."""
    return []


@pytest.fixture
def counters():
    return RunCounters()


@pytest.fixture
def fake():
    """An empty fake server; tests fill in channels and messages."""
    return FakeDiscord()


@pytest.fixture
def session(fake):
    return fake.install(requests.Session())


@pytest.fixture
def dispatcher(session, counters, sleeps):
    return Dispatcher("test-token", counters, session=session, api_base=API_BASE,
                      sleep=sleeps.append)


@pytest.fixture
def make_settings():
    def _make(**overrides):
        overrides.setdefault('token', 'test-token')
        overrides.setdefault('api_base', API_BASE)
        return Settings(**overrides)
    return _make
