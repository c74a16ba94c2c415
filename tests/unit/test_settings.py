"""Tests for process bootstrap."""

import pytest
from unittest.mock import patch

from queue_agent.settings import create_agent, load_store_settings
from queue_agent.utils.errors import ConfigurationError


@pytest.mark.unit
def test_load_store_settings(monkeypatch):
    """Test reading connection parameters from the environment."""
    monkeypatch.setenv("SUPABASE_URL", "https://prod.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "prod-key")

    settings = load_store_settings()

    assert settings.url == "https://prod.supabase.co"
    assert settings.key == "prod-key"


@pytest.mark.unit
@pytest.mark.parametrize("missing", ["SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"])
def test_load_store_settings_missing(monkeypatch, missing):
    """Test that missing connection parameters are a configuration error."""
    monkeypatch.delenv(missing, raising=False)

    with pytest.raises(ConfigurationError):
        load_store_settings()


@pytest.mark.unit
def test_create_agent(monkeypatch):
    """Test building an agent for a worker process."""
    monkeypatch.setenv("SUPABASE_URL", "https://prod.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "prod-key")

    with patch("queue_agent.services.agent.SupabaseTaskStore") as store_class:
        agent = create_agent("splitter", "pipeline", sleep_between=2, setup_logging=False)

    assert agent.name == "splitter"
    assert agent.queue == "pipeline"
    assert agent.sleep_between == 2
    settings = store_class.connect.call_args.args[0]
    assert settings.url == "https://prod.supabase.co"


@pytest.mark.unit
def test_create_agent_default_sleep(monkeypatch):
    """Test that an unspecified sleep_between uses the default."""
    with patch("queue_agent.services.agent.SupabaseTaskStore"):
        agent = create_agent("splitter", "pipeline", setup_logging=False)

    assert agent.sleep_between == 5
