"""Shared pytest fixtures and configuration."""

import os
import pytest
from unittest.mock import MagicMock
import freezegun
from freezegun import freeze_time
from freezegun.config import DEFAULT_IGNORE_LIST

from queue_agent.models.agent import AgentConfig
from queue_agent.services.agent import Agent
from queue_agent.services.memory_store import MemoryTaskStore

# Set test environment variables
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")

# freezegun skips callers whose module starts with "queue", which covers queue_agent
freezegun.configure(default_ignore_list=[name for name in DEFAULT_IGNORE_LIST if name != "queue"])

QUEUE = "test_tasks"
AGENT_NAME = "test_agent"


@pytest.fixture
def memory_store():
    """Empty in-memory task store."""
    return MemoryTaskStore()


@pytest.fixture
def agent(memory_store):
    """Agent working on QUEUE as AGENT_NAME, backed by the memory store."""
    return Agent(AgentConfig(name=AGENT_NAME, queue=QUEUE, sleep_between=0), store=memory_store)


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client whose query builders chain back to themselves."""
    client = MagicMock()
    query = MagicMock()
    for method in ("select", "update", "insert", "eq", "is_", "contains", "order", "limit"):
        getattr(query, method).return_value = query
    query.execute.return_value = MagicMock(data=[])
    client.table.return_value = query
    client.query = query
    return client


@pytest.fixture
def sample_task_document():
    """Ready task addressed to the test agent."""
    return {
        "agent_name": AGENT_NAME,
        "ready": True,
        "input_path": "/data/batch-17.csv",
        "rows": 250,
    }


@pytest.fixture
def freeze_time_fixture():
    """Fixture for freezing time in tests."""
    with freeze_time("2024-12-09 12:00:00") as frozen_time:
        yield frozen_time
