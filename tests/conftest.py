"""
Pytest configuration and fixtures for the membase test suite.
"""

import httpx
import pytest

from membase.config import HubConfig
from membase.storage.hub import HubClient
from tests.utils import HubRecorder


@pytest.fixture
def hub_config():
    return HubConfig(
        base_url="http://hub.test",
        account="tester",
        timeout_seconds=5,
        retry_attempts=3,
        backoff_seconds=1.0,
        upload_interval_seconds=0,
        idle_poll_seconds=0.001,
    )


@pytest.fixture
def recorder():
    return HubRecorder()


@pytest.fixture
def sleeps():
    """Backoff delays requested by the hub client under test."""
    return []


@pytest.fixture
def hub(hub_config, recorder, sleeps):
    async def record_sleep(delay):
        sleeps.append(delay)

    return HubClient(hub_config, transport=httpx.MockTransport(recorder), sleep=record_sleep)
