"""
Tests for hub configuration defaults and environment resolution.
"""

import pytest

from membase.config import DEFAULT_HUB_URL, HubConfig
from membase.memory.multi_memory import MultiMemory
from membase.storage.hub import HubClient


ENV_VARS = (
    "MEMBASE_HUB",
    "MEMBASE_ID",
    "MEMBASE_ACCOUNT",
    "MEMBASE_TIMEOUT_SECONDS",
    "MEMBASE_RETRY_ATTEMPTS",
    "MEMBASE_BACKOFF_SECONDS",
    "MEMBASE_UPLOAD_INTERVAL_SECONDS",
    "MEMBASE_USER_AGENT",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # keep load_dotenv away from any .env in the working tree
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("membase.config.load_dotenv", lambda *a, **kw: False)
    return monkeypatch


def test_defaults():
    config = HubConfig()

    assert config.base_url == DEFAULT_HUB_URL
    assert config.membase_id == ""
    assert config.account == "default"
    assert config.timeout_seconds == 30.0
    assert config.retry_attempts == 3
    assert config.backoff_seconds == 1.0
    assert config.upload_interval_seconds == 0.1


def test_trailing_slash_is_stripped():
    assert HubConfig(base_url="http://hub.test/").base_url == "http://hub.test"


@pytest.mark.parametrize("kwargs", [{"retry_attempts": 0}, {"timeout_seconds": 0}])
def test_invalid_values_rejected(kwargs):
    with pytest.raises(ValueError):
        HubConfig(**kwargs)


def test_config_is_frozen():
    config = HubConfig()
    with pytest.raises(AttributeError):
        config.base_url = "http://other"


def test_from_env_reads_environment(clean_env):
    clean_env.setenv("MEMBASE_HUB", "http://env.test/")
    clean_env.setenv("MEMBASE_ID", "hub-id")
    clean_env.setenv("MEMBASE_ACCOUNT", "alice")
    clean_env.setenv("MEMBASE_RETRY_ATTEMPTS", "5")
    clean_env.setenv("MEMBASE_BACKOFF_SECONDS", "0.5")

    config = HubConfig.from_env()

    assert config.base_url == "http://env.test"
    assert config.membase_id == "hub-id"
    assert config.account == "alice"
    assert config.retry_attempts == 5
    assert config.backoff_seconds == 0.5


def test_from_env_overrides_win(clean_env):
    clean_env.setenv("MEMBASE_ACCOUNT", "alice")

    config = HubConfig.from_env(account="bob", timeout_seconds=2)

    assert config.account == "bob"
    assert config.timeout_seconds == 2


def test_from_env_defaults(clean_env):
    assert HubConfig.from_env() == HubConfig()


def test_from_env_rejects_unknown_overrides(clean_env):
    with pytest.raises(TypeError):
        HubConfig.from_env(colour="red")


def test_from_env_rejects_bad_numbers(clean_env):
    clean_env.setenv("MEMBASE_RETRY_ATTEMPTS", "many")
    with pytest.raises(ValueError):
        HubConfig.from_env()


def test_env_account_reaches_memories(clean_env):
    clean_env.setenv("MEMBASE_ACCOUNT", "alice")

    hub = HubClient(HubConfig.from_env())

    assert MultiMemory(hub=hub).get_memory("conv").membase_account == "alice"
